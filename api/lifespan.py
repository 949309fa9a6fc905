# api/lifespan.py
"""Application lifespan management."""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from config.access_policy import default_access_policy, load_access_policy
from config.settings import settings
from models.pipeline import HasuraConnection
from services.assistant import DataAssistant
from services.audit import LoggingAuditSink
from services.llm_client import CompletionClient
from services.query_executor import QueryExecutor
from services.query_generator import QueryGenerator
from services.rate_limiter import RateLimiter
from services.result_summarizer import ResultSummarizer
from services.schema_context import SchemaContextBuilder
from services.security_validator import SecurityValidator

logger = logging.getLogger(__name__)


def build_assistant(policy, http_client: httpx.AsyncClient, completion_client: CompletionClient) -> DataAssistant:
    """Construct the pipeline once; every component shares the same policy."""
    connection = None
    if settings.is_hasura_configured():
        connection = HasuraConnection(url=settings.HASURA_GRAPHQL_URL, admin_secret=settings.HASURA_ADMIN_SECRET)

    generator = QueryGenerator(
        completion_client=completion_client,
        schema_builder=SchemaContextBuilder(http_client=http_client),
        rate_limiter=RateLimiter(
            settings.GENERATION_RATE_LIMIT,
            settings.GENERATION_RATE_WINDOW_SECONDS,
            name="generation",
        ),
        connection=connection,
    )
    return DataAssistant(
        generator=generator,
        validator=SecurityValidator(policy),
        executor=QueryExecutor(http_client=http_client),
        summarizer=ResultSummarizer(completion_client),
        execution_limiter=RateLimiter(
            settings.EXECUTION_RATE_LIMIT,
            settings.EXECUTION_RATE_WINDOW_SECONDS,
            name="execution",
        ),
        audit_sink=LoggingAuditSink(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    # Startup
    logger.info("="*50)
    logger.info("Starting Payroll Data Assistant API Server...")
    logger.info(f"OpenAI Configured: {settings.is_openai_configured()}")
    logger.info(f"Hasura Endpoint: {settings.HASURA_GRAPHQL_URL or 'not configured'}")
    logger.info("="*50)

    if settings.ACCESS_POLICY_PATH:
        policy = load_access_policy(settings.ACCESS_POLICY_PATH)
        logger.info(f"Loaded access policy from {settings.ACCESS_POLICY_PATH}")
    else:
        policy = default_access_policy()
        logger.info("Using bundled access policy")

    http_client = httpx.AsyncClient(timeout=settings.EXECUTION_TIMEOUT_SECONDS)
    completion_client = CompletionClient()

    app.state.policy = policy
    app.state.assistant = build_assistant(policy, http_client, completion_client)

    yield

    # Shutdown
    logger.info("Shutting down Payroll Data Assistant...")
    await http_client.aclose()
    await completion_client.close()
