"""LiteLLM adapter implementing the AIResponder interface.

Routes persona completions to any LLM provider via LiteLLM's unified
API. Handles per-persona model selection, persona system prompts,
timeouts, and retry with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import os

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from quorum.prompts import render_prompt
from quorum.providers.base import AIResponder
from quorum.schemas.config import EngineConfig, ModelConfig
from quorum.schemas.discussion import Persona

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMProvider:
    """Single-model completion client powered by LiteLLM."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._api_key = os.environ.get(config.api_key_env, "")

    @property
    def config(self) -> ModelConfig:
        return self._config

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str,
        *,
        max_tokens: int | None = None,
        timeout: int = 120,
    ) -> str:
        """Send a completion request and return the reply text.

        Raises:
            TimeoutError: If the call exceeds timeout after all retries.
            RuntimeError: If the call fails after all retries.
        """
        full_messages = [{"role": "system", "content": system}, *messages]
        kwargs = self._build_completion_kwargs(full_messages, max_tokens, timeout)

        response = await self._call_with_retry(kwargs)
        content = self._extract_content(response)

        usage = getattr(response, "usage", None)
        logger.debug(
            "%s completion: %d chars (prompt_tokens=%s, completion_tokens=%s)",
            self._config.display_name,
            len(content),
            getattr(usage, "prompt_tokens", "?"),
            getattr(usage, "completion_tokens", "?"),
        )
        return content

    def _build_completion_kwargs(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None,
        timeout: int,
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "timeout": float(timeout),
            "max_tokens": max_tokens or self._config.max_tokens,
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        return kwargs

    async def _call_with_retry(self, kwargs: dict) -> litellm.ModelResponse:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Model call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise RuntimeError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise RuntimeError(
                    f"Bad request to {self._config.model}: {e}"
                ) from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    _MAX_RETRIES,
                    self._config.display_name,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise RuntimeError(
            f"Model call to {self._config.model} failed after {_MAX_RETRIES} "
            f"retries: {last_error}"
        ) from last_error

    def _extract_content(self, response: litellm.ModelResponse) -> str:
        """Extract text content from a LiteLLM response."""
        if not response.choices:
            return ""
        message = response.choices[0].message
        return (message.content or "") if message else ""


class LiteLLMResponder(AIResponder):
    """AIResponder that voices each persona through its configured model.

    A persona's ``model`` field names a registry key; personas without
    one use ``EngineConfig.default_model``.
    """

    def __init__(self, registry: dict[str, ModelConfig], config: EngineConfig) -> None:
        self._registry = registry
        self._config = config
        self._providers: dict[str, LiteLLMProvider] = {}

    def _provider_for(self, persona: Persona) -> LiteLLMProvider:
        key = persona.model or self._config.default_model
        if not key:
            raise RuntimeError(
                f"No model configured for persona {persona.name} "
                "and no default_model set"
            )
        if key not in self._registry:
            raise RuntimeError(f"Unknown model key '{key}' for persona {persona.name}")
        if key not in self._providers:
            self._providers[key] = LiteLLMProvider(self._registry[key])
        return self._providers[key]

    async def respond(
        self,
        persona: Persona,
        prompt: str,
        max_tokens: int | None = None,
    ) -> str:
        provider = self._provider_for(persona)
        system = render_prompt("persona_system", persona=persona)
        logger.debug(
            "Asking %s via %s (%d prompt chars)",
            persona.name, provider.config.display_name, len(prompt),
        )
        content = await provider.complete(
            messages=[{"role": "user", "content": prompt}],
            system=system,
            max_tokens=max_tokens,
            timeout=self._config.ai_timeout,
        )
        return content.strip()
