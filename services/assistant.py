# services/assistant.py
"""
Data assistant orchestration.

Wires generation, validation, execution and summarization together and
makes sure every request ends in a structured result and an audit record.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.pipeline import GeneratedQuery, GenerationRequest, RoleContext, SecurityVerdict
from services.audit import AuditRecord, AuditSink, record_safely
from services.errors import (
    ExecutionError,
    GenerationError,
    RateLimitExceeded,
    SecurityViolation,
)
from services.query_executor import QueryExecutor
from services.query_generator import QueryGenerator
from services.rate_limiter import RateLimiter
from services.result_summarizer import ResultSummarizer
from services.security_validator import SecurityValidator

logger = logging.getLogger(__name__)

GENERATION_APOLOGY = "Sorry, I couldn't build a query for that request. "
UNEXPECTED_APOLOGY = (
    "Sorry, something went wrong while answering your question. "
    "Please try again in a moment."
)


@dataclass
class AssistantResult:
    query: str
    explanation: str
    verdict: SecurityVerdict
    security_report: str
    used_fallback: bool = False
    executed: bool = False
    data: Optional[Dict[str, Any]] = None
    execution_errors: List[Dict[str, Any]] = field(default_factory=list)
    answer: Optional[str] = None
    related_questions: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)


class DataAssistant:
    """Generate, validate and optionally execute a query for one request."""

    def __init__(
        self,
        generator: QueryGenerator,
        validator: SecurityValidator,
        executor: QueryExecutor,
        summarizer: ResultSummarizer,
        execution_limiter: RateLimiter,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.generator = generator
        self.validator = validator
        self.executor = executor
        self.summarizer = summarizer
        self.execution_limiter = execution_limiter
        self.audit_sink = audit_sink

    async def handle(self, request: GenerationRequest, role_context: RoleContext, execute: bool = False) -> AssistantResult:
        """
        Run the pipeline for ``request``.

        Only the initial generation admission can raise
        (``RateLimitExceeded``); every other failure is reported inside the
        returned result.
        """
        try:
            return await self._handle(request, role_context, execute)
        except RateLimitExceeded as e:
            self._audit(request, "rate_limited", errors=[str(e)])
            raise
        except Exception as e:
            logger.error(f"Unexpected assistant failure for {request.user_id}: {e}", exc_info=True)
            self._audit(request, "failed", errors=[str(e)])
            return self._unexpected_failure(request)

    async def _handle(self, request: GenerationRequest, role_context: RoleContext, execute: bool) -> AssistantResult:
        errors: List[Dict[str, Any]] = []

        try:
            generated = await self.generator.generate(request.natural_language_text, request)
        except GenerationError as e:
            logger.warning(f"Generation failed for {request.user_id}, using fallback query: {e}")
            errors.append(e.to_dict())
            generated = self.generator.fallback(request.natural_language_text, GENERATION_APOLOGY)

        verdict = self.validator.validate(generated.document, role_context)
        result = AssistantResult(
            query=generated.query,
            explanation=generated.explanation,
            verdict=verdict,
            security_report=self.validator.generate_security_report(verdict),
            used_fallback=generated.used_fallback or bool(errors),
            errors=errors,
        )

        if not verdict.is_valid:
            violation = SecurityViolation(verdict.errors)
            logger.warning(f"Rejected query for {request.user_id}: {violation}")
            result.errors.append(violation.to_dict())
            self._audit(request, "rejected", generated, result)
            return result

        if not execute:
            outcome = "generation_failed_fallback" if errors else "generated"
            self._audit(request, outcome, generated, result)
            return result

        try:
            self.execution_limiter.enforce(request.user_id)
        except RateLimitExceeded as e:
            result.errors.append(e.to_dict())
            self._audit(request, "execution_rate_limited", generated, result)
            return result

        outcome = await self._execute(request, role_context, generated, result)
        self._audit(request, outcome, generated, result)
        return result

    async def _execute(
        self,
        request: GenerationRequest,
        role_context: RoleContext,
        generated: GeneratedQuery,
        result: AssistantResult,
    ) -> str:
        question = request.natural_language_text
        result.executed = True
        try:
            execution = await self.executor.execute(generated.document, generated.variables, role_context)
        except ExecutionError as e:
            result.data = e.partial_data
            result.execution_errors = e.errors
            result.errors.append(e.to_dict())
            result.answer = self.summarizer.error_answer(e, request.user_role)
            return "execution_failed"

        result.data = execution.data
        result.execution_errors = execution.errors
        result.answer = await self.summarizer.summarize(question, execution.data, generated.query, request.user_role)
        result.related_questions = self.summarizer.related_questions(question)
        return "executed_with_errors" if execution.has_errors else "executed"

    def _unexpected_failure(self, request: GenerationRequest) -> AssistantResult:
        generated = self.generator.fallback(request.natural_language_text, "")
        verdict = self.validator.validate(generated.document)
        return AssistantResult(
            query=generated.query,
            explanation=UNEXPECTED_APOLOGY,
            verdict=verdict,
            security_report=self.validator.generate_security_report(verdict),
            used_fallback=True,
            errors=[{"code": "INTERNAL_ERROR", "message": UNEXPECTED_APOLOGY}],
        )

    def _audit(
        self,
        request: GenerationRequest,
        outcome: str,
        generated: Optional[GeneratedQuery] = None,
        result: Optional[AssistantResult] = None,
        errors: Optional[List[str]] = None,
    ):
        verdict = result.verdict if result else None
        messages = list(errors or [])
        if result:
            # Violations are already listed through the verdict
            messages = list(verdict.errors) + [
                e["message"] for e in result.errors if e.get("code") != SecurityViolation.code
            ]
        record_safely(self.audit_sink, AuditRecord(
            user_id=request.user_id,
            user_role=request.user_role,
            request=request.natural_language_text,
            outcome=outcome,
            query=generated.query if generated else None,
            tables_accessed=sorted(verdict.metrics.tables_accessed) if verdict else [],
            is_valid=verdict.is_valid if verdict else None,
            errors=messages,
            warnings=list(verdict.warnings) if verdict else [],
            executed=result.executed if result else False,
            used_fallback=result.used_fallback if result else False,
        ))
