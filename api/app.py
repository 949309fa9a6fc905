# api/app.py
"""Payroll data assistant HTTP application."""
from fastapi import FastAPI

from api.lifespan import lifespan
from api.middleware import setup_middleware
from config.settings import settings
from routers import assistant, health


def create_app() -> FastAPI:
    """Build the assistant API: health probes plus the query and suggestion routes."""
    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        lifespan=lifespan
    )

    setup_middleware(app)

    app.include_router(health.router)
    # Natural-language query and page suggestion endpoints
    app.include_router(assistant.router)

    @app.get("/", tags=["Root"])
    async def root():
        """Service name, version and the routes a dashboard client calls."""
        return {
            "name": settings.API_TITLE,
            "version": settings.API_VERSION,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "query": "/ai-assistant/query",
                "suggestions": "/ai-assistant/query/suggestions",
                "docs": "/docs",
                "redoc": "/redoc"
            }
        }

    return app
