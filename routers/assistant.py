# routers/assistant.py
"""Data assistant endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_assistant, get_role_context
from models.pipeline import GenerationRequest, RoleContext
from models.requests import GenerateQueryRequest
from models.responses import GenerateQueryResponse, QueryMetricsResponse, SuggestionsResponse
from services.assistant import AssistantResult, DataAssistant
from services.errors import RateLimitExceeded
from services.page_context import extract_page_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai-assistant", tags=["AI Assistant"])


def _to_response(result: AssistantResult) -> GenerateQueryResponse:
    metrics = result.verdict.metrics
    return GenerateQueryResponse(
        query=result.query,
        explanation=result.explanation,
        security_report=result.security_report,
        is_valid=result.verdict.is_valid,
        errors=result.errors,
        warnings=list(result.verdict.warnings),
        metrics=QueryMetricsResponse(
            depth=metrics.depth,
            complexity=metrics.complexity,
            field_count=metrics.field_count,
            tables_accessed=sorted(metrics.tables_accessed),
        ),
        used_fallback=result.used_fallback,
        executed=result.executed,
        data=result.data,
        execution_errors=result.execution_errors,
        answer=result.answer,
        related_questions=result.related_questions,
    )


@router.post("/query", response_model=GenerateQueryResponse)
async def generate_query(
    body: GenerateQueryRequest,
    role_context: RoleContext = Depends(get_role_context),
    assistant: DataAssistant = Depends(get_assistant),
):
    """Generate a GraphQL query from natural language and optionally run it."""
    page = extract_page_context(
        body.page_context.pathname,
        role_context.user_role,
        body.page_context.search_params,
    )
    request = GenerationRequest(
        user_id=role_context.user_id,
        user_role=role_context.user_role,
        natural_language_text=body.natural_language_text,
        page_context=page,
    )

    try:
        result = await assistant.handle(request, role_context, execute=body.execute)
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=e.to_dict(),
            headers={"Retry-After": str(e.retry_after)},
        )

    return _to_response(result)


@router.get("/query/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(
    pathname: Optional[str] = "/",
    role_context: RoleContext = Depends(get_role_context),
):
    """Suggested questions for the caller's current page."""
    page = extract_page_context(pathname, role_context.user_role)
    return SuggestionsResponse(
        pathname=page.pathname,
        title=page.title,
        relevant_tables=list(page.relevant_tables),
        suggestions=list(page.suggested_queries),
    )
