# services/errors.py
"""Error taxonomy for the query pipeline."""
from typing import Any, Dict, Iterable, List, Optional


class AssistantError(Exception):
    """Base class for pipeline failures surfaced to callers."""
    code = "ASSISTANT_ERROR"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class RateLimitExceeded(AssistantError):
    """Admission denied; retryable once the window resets."""
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int, limit: Optional[int] = None, scope: str = "generation"):
        self.retry_after = retry_after
        self.limit = limit
        self.scope = scope
        super().__init__(
            f"Rate limit exceeded for {scope}. Try again in {retry_after} seconds."
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class GenerationError(AssistantError):
    """No usable query could be produced, even after every repair strategy."""
    code = "GENERATION_FAILED"

    def __init__(self, message: str, raw_text: Optional[str] = None):
        self.raw_text = raw_text
        super().__init__(message)


class SecurityViolation(AssistantError):
    """Query parsed but failed the access policy. Never executed."""
    code = "SECURITY_VIOLATION"

    def __init__(self, violations: Iterable[str]):
        self.violations = list(violations)
        super().__init__("Query failed security validation: " + "; ".join(self.violations))

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["violations"] = self.violations
        return payload


class ExecutionError(AssistantError):
    """Execution engine failure, possibly with partial data."""
    code = "EXECUTION_FAILED"

    def __init__(
        self,
        message: str,
        partial_data: Optional[Dict[str, Any]] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.partial_data = partial_data
        self.errors = errors or []
        super().__init__(message)
