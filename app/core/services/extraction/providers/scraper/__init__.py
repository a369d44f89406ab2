from app.core.services.extraction.providers.scraper.service import PageScrapeProvider

__all__ = ['PageScrapeProvider']
