# models/requests.py
"""Request models for API endpoints."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator

from config.settings import settings


class PageContextRequest(BaseModel):
    """Where the user is in the application when asking."""
    pathname: str = Field("/", description="Current page path, e.g. /payrolls/123")
    search_params: Dict[str, str] = Field(default_factory=dict)
    page_data: Optional[Dict[str, Any]] = None


class GenerateQueryRequest(BaseModel):
    """Request model for query generation and optional execution."""
    natural_language_text: str = Field(..., min_length=1, description="The user's question")
    page_context: PageContextRequest = Field(default_factory=PageContextRequest)
    execute: bool = Field(False, description="Run the query if it passes validation")

    @validator('natural_language_text')
    def validate_text(cls, v):
        """Validate the question is present and within the length limit."""
        if not v or not v.strip():
            raise ValueError('Request cannot be empty')
        if len(v) > settings.MAX_REQUEST_LENGTH:
            raise ValueError(f'Request too long (max {settings.MAX_REQUEST_LENGTH} characters)')
        return v.strip()
