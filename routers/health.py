# routers/health.py
"""Health check endpoints."""
from fastapi import APIRouter, Request

from config.access_policy import default_access_policy
from config.settings import settings
from models.responses import HealthResponse

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
async def health_check(request: Request):
    """Check the health status of the service."""
    policy = getattr(request.app.state, "policy", None) or default_access_policy()
    assistant = getattr(request.app.state, "assistant", None)

    rate_limits = {}
    if assistant is not None:
        if assistant.generator.rate_limiter is not None:
            rate_limits["generation"] = assistant.generator.rate_limiter.stats()
        rate_limits["execution"] = assistant.execution_limiter.stats()

    return HealthResponse(
        status="healthy" if assistant is not None else "starting",
        openai_configured=settings.is_openai_configured(),
        hasura_configured=settings.is_hasura_configured(),
        policy_limits={
            "max_depth": policy.limits.max_depth,
            "max_complexity": policy.limits.max_complexity,
            "max_field_count": policy.limits.max_field_count,
        },
        rate_limits=rate_limits,
    )
