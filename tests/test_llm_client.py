"""
Tests for the completion client wrapper.
"""
import asyncio
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from config.settings import settings
from services.llm_client import CompletionClient, CompletionUnavailable

MESSAGES = [{"role": "user", "content": "list clients"}]


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestCompletionClient:

    async def test_unconfigured_client(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        client = CompletionClient()

        assert not client.available
        with pytest.raises(CompletionUnavailable):
            await client.complete(MESSAGES)

    async def test_returns_first_choice(self, monkeypatch):
        client = CompletionClient(api_key="sk-test", model="test-model")
        seen = {}

        async def create(**kwargs):
            seen.update(kwargs)
            return completion('{"query": "query { clients { id } }"}')

        monkeypatch.setattr(client.client.chat.completions, "create", create)

        assert await client.complete(MESSAGES, temperature=0.0) == '{"query": "query { clients { id } }"}'
        assert seen["model"] == "test-model"
        assert seen["temperature"] == 0.0
        assert seen["max_tokens"] == settings.OPENAI_MAX_TOKENS

    async def test_timeout(self, monkeypatch):
        client = CompletionClient(api_key="sk-test", timeout=0.01)

        async def create(**kwargs):
            await asyncio.sleep(1)

        monkeypatch.setattr(client.client.chat.completions, "create", create)

        with pytest.raises(CompletionUnavailable, match="timed out"):
            await client.complete(MESSAGES)

    async def test_api_error(self, monkeypatch):
        client = CompletionClient(api_key="sk-test")

        async def create(**kwargs):
            raise OpenAIError("service unavailable")

        monkeypatch.setattr(client.client.chat.completions, "create", create)

        with pytest.raises(CompletionUnavailable, match="service unavailable"):
            await client.complete(MESSAGES)

    async def test_empty_response(self, monkeypatch):
        client = CompletionClient(api_key="sk-test")

        async def create(**kwargs):
            return completion("")

        monkeypatch.setattr(client.client.chat.completions, "create", create)

        with pytest.raises(CompletionUnavailable, match="empty"):
            await client.complete(MESSAGES)
