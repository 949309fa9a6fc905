"""
Tests for executing validated queries against the GraphQL engine.
"""
import json

import httpx
import pytest
from graphql import parse

from config.settings import settings
from models.pipeline import RoleContext
from services.errors import ExecutionError
from services.query_executor import QueryExecutor

from conftest import mock_http_client

ENDPOINT = "http://hasura.test/v1/graphql"
DOCUMENT = parse("query GetClients { clients(limit: 5) { id name } }")
ROLE = RoleContext(user_id="user-1", user_role="consultant", authorization="jwt-token")


def executor_for(handler) -> QueryExecutor:
    return QueryExecutor(endpoint=ENDPOINT, http_client=mock_http_client(handler))


class TestQueryExecutor:

    async def test_sends_caller_credentials(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": {"clients": [{"id": "1", "name": "Acme"}]}})

        result = await executor_for(handler).execute(DOCUMENT, {"limit": 5}, ROLE)

        request = seen[0]
        assert request.headers["Authorization"] == "Bearer jwt-token"
        assert request.headers["x-hasura-role"] == "consultant"
        assert "x-hasura-admin-secret" not in request.headers
        body = json.loads(request.content)
        assert "clients(limit: 5)" in body["query"]
        assert body["variables"] == {"limit": 5}
        assert result.data == {"clients": [{"id": "1", "name": "Acme"}]}
        assert not result.has_errors

    async def test_existing_bearer_prefix_is_kept(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": {"clients": []}})

        role = RoleContext(user_id="user-1", user_role="manager", authorization="Bearer abc")
        await executor_for(handler).execute(DOCUMENT, None, role)

        assert seen[0].headers["Authorization"] == "Bearer abc"

    async def test_partial_data_with_errors_is_returned(self):
        payload = {
            "data": {"clients": [{"id": "1", "name": "Acme"}]},
            "errors": [{"message": "field 'secret' not found"}],
        }
        result = await executor_for(lambda request: httpx.Response(200, json=payload)).execute(DOCUMENT, None, ROLE)

        assert result.has_errors
        assert result.data == payload["data"]

    async def test_rejected_query_raises_with_errors(self):
        payload = {"errors": [{"message": "permission denied"}]}
        executor = executor_for(lambda request: httpx.Response(403, json=payload))

        with pytest.raises(ExecutionError) as exc_info:
            await executor.execute(DOCUMENT, None, ROLE)

        assert exc_info.value.errors == payload["errors"]

    async def test_non_json_response(self):
        executor = executor_for(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))

        with pytest.raises(ExecutionError, match="non-JSON"):
            await executor.execute(DOCUMENT, None, ROLE)

    async def test_unexpected_json_shape(self):
        executor = executor_for(lambda request: httpx.Response(200, json={"status": "ok"}))

        with pytest.raises(ExecutionError, match="Unexpected"):
            await executor.execute(DOCUMENT, None, ROLE)

    async def test_unreachable_engine(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ExecutionError, match="Could not reach"):
            await executor_for(handler).execute(DOCUMENT, None, ROLE)

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow")

        with pytest.raises(ExecutionError, match="timed out"):
            await executor_for(handler).execute(DOCUMENT, None, ROLE)

    async def test_missing_endpoint(self, monkeypatch):
        monkeypatch.setattr(settings, "HASURA_GRAPHQL_URL", "")
        executor = QueryExecutor(http_client=mock_http_client(lambda request: httpx.Response(200, json={})))

        with pytest.raises(ExecutionError, match="No GraphQL endpoint"):
            await executor.execute(DOCUMENT, None, ROLE)
