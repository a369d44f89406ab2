from app.core.services.extraction.providers.tikwm.service import TikwmProvider

__all__ = ['TikwmProvider']
