import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from outfit_agent.config import Settings, get_settings
from outfit_agent.outfit.exceptions import LLMError, ParseError

logger = logging.getLogger(__name__)

_backoff = wait_exponential(multiplier=1, min=2, max=30)


def _is_transient(exception: BaseException) -> bool:
    if isinstance(exception, httpx.TimeoutException | httpx.ConnectError):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        code = exception.response.status_code
        return code == 429 or code >= 500
    return False


def _retry_after_or_backoff(retry_state: RetryCallState) -> float:
    exception = retry_state.outcome.exception()
    if (
        isinstance(exception, httpx.HTTPStatusError)
        and exception.response.status_code == 429
    ):
        header = exception.response.headers.get("Retry-After")
        if header:
            try:
                return float(header)
            except ValueError:
                logger.debug("Unusable Retry-After header: %r", header)
    return _backoff(retry_state)


def to_llm_error(err: Exception) -> LLMError:
    """Translate a transport failure into the explainer's error type."""
    if isinstance(err, httpx.HTTPStatusError):
        code = err.response.status_code
        if code == 401:
            return LLMError("Invalid OpenAI API Key")
        if code == 400:
            return LLMError(f"Invalid request: {err.response.text}")
        return LLMError(f"OpenAI API failed ({code}): {err.response.text}")
    if isinstance(err, httpx.TimeoutException | httpx.ConnectError):
        return LLMError(f"Network error: {err}")
    return LLMError(f"Unexpected error: {err}")


def message_content(completion: dict[str, Any]) -> str:
    try:
        content = completion["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ParseError(f"Invalid completion format: {e}") from e
    return content or ""


class LLMClient(ABC):
    """Text-in, text-out language model."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> str:
        """Assistant reply to ``prompt``. Any failure raises an OutfitError."""


class OpenAIClient(LLMClient):
    """Chat completions over httpx, retried on transient failures.

    ``LLM_MAX_ATTEMPTS`` bounds the attempts; the default of 1 disables retry.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def _headers(self) -> dict[str, str]:
        api_key = self.settings.openai_api_key
        if not api_key:
            raise LLMError("OPENAI_API_KEY is not configured")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _post_once(
        self, headers: dict[str, str], payload: dict[str, Any]
    ) -> dict[str, Any]:
        url = f"{self.settings.openai_base_url}/chat/completions"
        async with httpx.AsyncClient(timeout=self.settings.llm_timeout) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> str:
        headers = self._headers()

        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.settings.openai_chat_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.llm_max_attempts),
            wait=_retry_after_or_backoff,
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            completion = await retrying(self._post_once, headers, payload)
        except Exception as err:
            logger.error("OpenAI chat completion failed: %s", err)
            raise to_llm_error(err) from err

        return message_content(completion)


def get_llm_client() -> LLMClient:
    return OpenAIClient()
