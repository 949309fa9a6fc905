# api/dependencies.py
"""Request-scoped dependencies."""
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from config.settings import settings
from models.pipeline import RoleContext
from services.assistant import DataAssistant


def get_assistant(request: Request) -> DataAssistant:
    """The DataAssistant built at startup."""
    assistant = getattr(request.app.state, "assistant", None)
    if assistant is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assistant is not initialized",
        )
    return assistant


def get_role_context(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> RoleContext:
    """Caller identity as forwarded by the identity provider."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    role = x_user_role or settings.DEFAULT_ROLE
    if role not in settings.ALLOWED_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions for AI query generation",
        )
    return RoleContext(user_id=x_user_id, user_role=role, authorization=authorization)
