# services/query_executor.py
"""Query execution service."""
import logging
from typing import Any, Dict, Optional

import httpx
from graphql import print_ast
from graphql.language.ast import DocumentNode

from config.settings import settings
from models.pipeline import ExecutionResult, RoleContext
from services.errors import ExecutionError

logger = logging.getLogger(__name__)


class QueryExecutor:
    """
    Sends validated queries to Hasura using the caller's own credentials.

    Admin credentials are never attached here, so the engine's row and
    column permissions still apply to every generated query.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint = endpoint or settings.HASURA_GRAPHQL_URL
        self.timeout = timeout or settings.EXECUTION_TIMEOUT_SECONDS
        self.http_client = http_client or httpx.AsyncClient(timeout=self.timeout)

    def _headers(self, role_context: RoleContext) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if role_context.authorization:
            token = role_context.authorization
            if not token.lower().startswith("bearer "):
                token = f"Bearer {token}"
            headers["Authorization"] = token
        if role_context.user_role:
            headers["x-hasura-role"] = role_context.user_role
        return headers

    async def execute(
        self,
        document: DocumentNode,
        variables: Optional[Dict[str, Any]],
        role_context: RoleContext,
    ) -> ExecutionResult:
        """Execute a query. GraphQL errors alongside data are returned, not raised."""
        if not self.endpoint:
            raise ExecutionError("No GraphQL endpoint configured")

        body = {"query": print_ast(document), "variables": variables or {}}
        logger.info(f"Executing query for {role_context.user_id} as role {role_context.user_role}")

        try:
            response = await self.http_client.post(
                self.endpoint,
                json=body,
                headers=self._headers(role_context),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Query execution timed out after {self.timeout}s")
            raise ExecutionError(f"Query execution timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"Query execution transport error: {e}")
            raise ExecutionError(f"Could not reach the GraphQL engine: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ExecutionError(
                f"GraphQL engine returned a non-JSON response (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict) or ("data" not in payload and "errors" not in payload):
            raise ExecutionError(f"Unexpected GraphQL response (HTTP {response.status_code})")

        data = payload.get("data")
        errors = payload.get("errors") or []

        if response.status_code >= 400 and data is None:
            raise ExecutionError(
                f"GraphQL engine rejected the query (HTTP {response.status_code})",
                errors=errors,
            )

        if errors:
            logger.warning(f"Query returned {len(errors)} errors" + (" with partial data" if data else ""))
        return ExecutionResult(data=data, errors=errors)

    async def close(self):
        await self.http_client.aclose()
