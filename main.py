# main.py
"""Payroll Data Assistant API entry point."""
import logging

from api.app import create_app
from config.logging_config import setup_logging
from config.settings import settings

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

app = create_app()

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {settings.HOST}:{settings.PORT}")
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL
    )
