from app.core.services.extraction.providers.ytdlp.service import YtDlpProvider

__all__ = ['YtDlpProvider']
