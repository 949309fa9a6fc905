# api/middleware.py
"""Cross-origin access for the payroll dashboard."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings


def setup_middleware(app: FastAPI):
    """
    Allow the dashboard origins to call the assistant.

    The caller identity travels in the ``X-User-Id``/``X-User-Role`` and
    ``Authorization`` headers, so those must be allowed, and ``Retry-After`` is
    exposed so the browser can read it on a 429.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
        expose_headers=["Retry-After"],
    )
