"""Shared fixtures for pipeline tests."""
from typing import List, Optional

import httpx
import pytest

from config.access_policy import default_access_policy
from services.llm_client import CompletionUnavailable
from services.security_validator import SecurityValidator


class FakeCompletionClient:
    """Stands in for the OpenAI client; replays canned responses."""

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []
        self.available = True

    async def complete(self, messages, temperature=None, max_tokens=None):
        self.calls.append(messages)
        if self.error:
            raise self.error
        if not self.responses:
            raise CompletionUnavailable("no canned response left")
        return self.responses.pop(0)

    async def close(self):
        pass


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ListAuditSink:
    def __init__(self):
        self.records = []

    def record(self, record):
        self.records.append(record)


def mock_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def policy():
    return default_access_policy()


@pytest.fixture
def validator(policy):
    return SecurityValidator(policy)


@pytest.fixture
def clock():
    return FakeClock()
