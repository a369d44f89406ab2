"""HTTP surface for the media pipeline.

Routes:
    POST /api/download                      resolve a share URL
    GET  /api/download/{id}/status          request status
    GET  /api/download/{id}/{video|audio}   stream the media

Run with ``python -m app.web``.
"""

from app.web.app import create_app

__all__ = ['create_app']
