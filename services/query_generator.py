# services/query_generator.py
"""Natural language to GraphQL generation with layered recovery."""
import logging
from typing import Optional, Tuple

from graphql import GraphQLSyntaxError, parse, print_ast
from graphql.language.ast import DocumentNode

from models.pipeline import GeneratedQuery, GenerationRequest, HasuraConnection
from services.errors import GenerationError
from services.llm_client import CompletionClient, CompletionUnavailable
from services.prompt_composer import SYSTEM_IDENTITY, compose
from services.query_parser import (
    ExtractedQuery,
    extract_query_response,
    fallback_query_for,
    repair_graphql_syntax,
)
from services.rate_limiter import RateLimiter
from services.schema_context import SchemaContextBuilder

logger = logging.getLogger(__name__)


def parse_query(text: str, raw_text: str = "") -> Tuple[DocumentNode, Tuple[str, ...]]:
    """Repair and parse ``text``. Returns ``(document, repairs)``."""
    repaired = repair_graphql_syntax(text)
    try:
        document = parse(repaired.query)
    except GraphQLSyntaxError as e:
        raise GenerationError(f"Generated query is not valid GraphQL: {e.message}", raw_text=raw_text) from e
    return document, repaired.fixes


class QueryGenerator:
    """
    Turns a user's question into a parsed GraphQL document.

    The completion service is treated as unreliable: its output goes through
    JSON extraction, query location, keyword fallback and syntax repair
    before it is parsed.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        schema_builder: Optional[SchemaContextBuilder] = None,
        rate_limiter: Optional[RateLimiter] = None,
        connection: Optional[HasuraConnection] = None,
        system_prompt: str = SYSTEM_IDENTITY,
    ):
        self.completion_client = completion_client
        self.schema_builder = schema_builder or SchemaContextBuilder()
        self.rate_limiter = rate_limiter
        self.connection = connection
        self.system_prompt = system_prompt

    async def generate(self, user_message: str, context: GenerationRequest) -> GeneratedQuery:
        """
        Generate a query for ``user_message``.

        Raises:
            RateLimitExceeded: generation admission denied for this user
            GenerationError: no usable query after every recovery strategy
        """
        if self.rate_limiter is not None:
            self.rate_limiter.enforce(context.user_id)

        schema_context = await self.schema_builder.build_context(self.connection)
        messages = compose(
            self.system_prompt,
            context.user_role,
            context.page_context.title,
            schema_context,
            user_message,
        )

        try:
            raw_text = await self.completion_client.complete(messages)
        except CompletionUnavailable as e:
            raise GenerationError(f"Query generation is unavailable: {e}") from e

        return self.from_completion(raw_text, user_message)

    def from_completion(self, raw_text: str, user_message: str) -> GeneratedQuery:
        """Extract, repair and parse a raw completion."""
        extracted = extract_query_response(raw_text, user_message)
        return self._build(extracted, raw_text)

    def fallback(self, user_message: str, explanation_prefix: str = "") -> GeneratedQuery:
        """The canned query for ``user_message``, used when generation fails outright."""
        query, explanation, _ = fallback_query_for(user_message)
        extracted = ExtractedQuery(
            query=query,
            explanation=(explanation_prefix + explanation).strip(),
            source="keyword_fallback",
        )
        return self._build(extracted, "")

    def _build(self, extracted: ExtractedQuery, raw_text: str) -> GeneratedQuery:
        document, repairs = parse_query(extracted.query, raw_text)
        if repairs:
            logger.info(f"Repaired generated query ({', '.join(repairs)})")

        return GeneratedQuery(
            raw_text=raw_text,
            document=document,
            query=print_ast(document),
            explanation=extracted.explanation,
            variables=extracted.variables,
            repairs=repairs,
            used_fallback=extracted.is_fallback,
        )
