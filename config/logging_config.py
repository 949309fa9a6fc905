# config/logging_config.py
"""Logging configuration for the application."""
import logging
import sys
from config.settings import settings

AUDIT_LOGGER_NAME = "audit.ai_query"


def setup_logging():
    """Configure logging for the application."""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Set specific loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    # Audit trail must survive a quiet LOG_LEVEL
    logging.getLogger(AUDIT_LOGGER_NAME).setLevel(logging.INFO)

    return logging.getLogger(__name__)
