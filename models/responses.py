# models/responses.py
"""Response models for API endpoints."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class QueryMetricsResponse(BaseModel):
    depth: int
    complexity: float
    field_count: int
    tables_accessed: List[str]


class GenerateQueryResponse(BaseModel):
    """Response model for the generate-and-optionally-execute endpoint."""
    query: str
    explanation: str
    security_report: str
    is_valid: bool
    errors: List[Dict[str, Any]] = []
    warnings: List[str] = []
    metrics: QueryMetricsResponse
    used_fallback: bool = False
    executed: bool = False
    data: Optional[Dict[str, Any]] = None
    execution_errors: List[Dict[str, Any]] = []
    answer: Optional[str] = None
    related_questions: List[str] = []


class SuggestionsResponse(BaseModel):
    """Page-aware suggested questions."""
    pathname: str
    title: str
    relevant_tables: List[str]
    suggestions: List[str]


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    openai_configured: bool
    hasura_configured: bool
    policy_limits: Dict[str, float]
    rate_limits: Dict[str, Dict[str, Any]] = {}
