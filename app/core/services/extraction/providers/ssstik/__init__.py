from app.core.services.extraction.providers.ssstik.service import SsstikProvider

__all__ = ['SsstikProvider']
