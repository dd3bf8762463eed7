"""Claude API wrapper with async support and retry logic."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import anthropic
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from resume_pipeline.utils.json_parser import extract_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"

_RETRYABLE = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class LLMError(Exception):
    """Base class for completion failures."""


class LLMTransportError(LLMError):
    """The completion request itself failed (network, auth, quota, timeout)."""


class LLMParseError(LLMError, ValueError):
    """The completion succeeded but its text is not the expected JSON shape."""


@dataclass
class LLMResponse:
    """Response from the LLM including usage metadata."""

    text: str
    input_tokens: int
    output_tokens: int


class LLMClient:
    """Async Claude API client with exponential-backoff retries.

    Transport retries happen here; callers only see LLMTransportError once
    the retries are exhausted, or LLMParseError for unusable output.
    """

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        kwargs: dict = {}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = anthropic.AsyncAnthropic(**kwargs)
        self._token_log: list[tuple[str, int, int]] = []  # (model, input_tokens, output_tokens)
        # Label for calls made while a pipeline phase is running
        self.phase: str | None = None
        self._phase_calls: dict[str, list[tuple[str, int, int]]] = {}

    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _call_api(
        self,
        prompt: str,
        system: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> anthropic.types.Message:
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        return await self.client.messages.create(**kwargs)

    async def generate(
        self,
        prompt: str,
        system: str = "",
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send a prompt to Claude and return the text response with usage."""
        logger.debug("LLM call: model=%s", model)
        try:
            message = await self._call_api(
                prompt=prompt,
                system=system,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except anthropic.APIError as exc:
            logger.error("LLM call failed: model=%s", model, exc_info=True)
            raise LLMTransportError(str(exc)) from exc

        input_tokens = message.usage.input_tokens
        output_tokens = message.usage.output_tokens
        logger.debug("LLM response: %d input, %d output tokens", input_tokens, output_tokens)
        entry = (model, input_tokens, output_tokens)
        self._token_log.append(entry)
        if self.phase is not None:
            self._phase_calls.setdefault(self.phase, []).append(entry)
        text = "".join(
            getattr(block, "text", "") for block in message.content
        )
        return LLMResponse(text=text, input_tokens=input_tokens, output_tokens=output_tokens)

    async def generate_json(
        self,
        prompt: str,
        system: str = "",
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        expect: type | None = None,
    ) -> dict | list:
        """Send a prompt and parse JSON from the response.

        Raises LLMParseError when no JSON of the expected shape is present.
        """
        response = await self.generate(
            prompt=prompt,
            system=system,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        try:
            return extract_json(response.text, expect=expect)
        except ValueError as exc:
            raise LLMParseError(str(exc)) from exc

    def get_token_summary(self) -> dict:
        """Return accumulated token usage and reset the log."""
        summary = {
            "input": sum(t[1] for t in self._token_log),
            "output": sum(t[2] for t in self._token_log),
            "calls": list(self._token_log),
            "by_phase": {phase: list(calls) for phase, calls in self._phase_calls.items()},
        }
        self._token_log.clear()
        self._phase_calls.clear()
        return summary
