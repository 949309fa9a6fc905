# services/llm_client.py
"""Text completion client used for query generation and answer summaries."""
import asyncio
import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from config.settings import settings

logger = logging.getLogger(__name__)


class CompletionUnavailable(Exception):
    """The completion service is not configured or did not answer."""


class CompletionClient:
    """
    Thin wrapper around the OpenAI chat completions API.

    The client never retries on its own: a failed call is reported to the
    caller, who decides whether to resubmit.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.GENERATION_TIMEOUT_SECONDS
        if self.api_key:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=base_url or settings.OPENAI_BASE_URL,
                max_retries=0,
                timeout=self.timeout,
            )
            logger.info(f"OpenAI client initialized with model {self.model}")
        else:
            logger.warning("No OpenAI API key provided, completions disabled")
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the raw text of the first choice."""
        if not self.client:
            raise CompletionUnavailable("Completion service is not configured")

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=settings.OPENAI_TEMPERATURE if temperature is None else temperature,
                    max_tokens=max_tokens or settings.OPENAI_MAX_TOKENS,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Completion timed out after {self.timeout}s")
            raise CompletionUnavailable(f"Completion timed out after {self.timeout}s")
        except OpenAIError as e:
            logger.error(f"Completion request failed: {e}")
            raise CompletionUnavailable(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CompletionUnavailable("Completion service returned an empty response")
        return content

    async def close(self):
        if self.client:
            await self.client.close()
