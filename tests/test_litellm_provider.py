"""Tests for quorum.providers.litellm_provider — LiteLLM adapter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from quorum.providers.litellm_provider import (
    LiteLLMProvider,
    LiteLLMResponder,
    _short_error_reason,
)
from quorum.schemas.config import EngineConfig, ModelConfig
from quorum.schemas.discussion import Persona

# Shorthand for the mock target
_ACOMP = "quorum.providers.litellm_provider.litellm.acompletion"
_SLEEP = "quorum.providers.litellm_provider.asyncio.sleep"


# ── Helpers ───────────────────────────────────────────────────


def _make_config(**overrides) -> ModelConfig:
    defaults = {
        "provider": "anthropic",
        "model": "anthropic/claude-sonnet-4-5",
        "display_name": "Claude Sonnet",
        "api_key_env": "ANTHROPIC_API_KEY",
    }
    defaults.update(overrides)
    return ModelConfig(**defaults)


def _make_response(content: str | None = "Hello") -> SimpleNamespace:
    """Build a mock LiteLLM ModelResponse-like object."""
    message = SimpleNamespace(content=content, tool_calls=None)
    choice = SimpleNamespace(message=message, finish_reason="stop", index=0)
    usage = SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    return SimpleNamespace(choices=[choice], usage=usage)


def _make_persona(**overrides) -> Persona:
    defaults = {"id": "maya", "name": "Maya", "role": "Tech Lead"}
    defaults.update(overrides)
    return Persona(**defaults)


def _rate_limit() -> Exception:
    return litellm.RateLimitError(message="rate limited", model="test", llm_provider="test")


# ── LiteLLMProvider.complete() ────────────────────────────────


class TestLiteLLMProviderComplete:
    @pytest.fixture
    def provider(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}):
            return LiteLLMProvider(_make_config())

    async def test_returns_reply_text(self, provider):
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response("APPROVE: ship it")
            result = await provider.complete(
                messages=[{"role": "user", "content": "Verdict?"}],
                system="You are the lead.",
            )
        assert result == "APPROVE: ship it"

    async def test_system_message_first(self, provider):
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await provider.complete(
                messages=[{"role": "user", "content": "hi"}], system="sys",
            )
        messages = mock.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[1]["role"] == "user"

    async def test_kwargs_include_key_timeout_and_token_cap(self, provider):
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await provider.complete(
                messages=[{"role": "user", "content": "hi"}], system="s", timeout=30,
            )
        kwargs = mock.call_args.kwargs
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["timeout"] == 30.0
        assert kwargs["max_tokens"] == 1024
        assert "api_base" not in kwargs

    async def test_api_base_passed_when_configured(self):
        provider = LiteLLMProvider(_make_config(api_base="https://proxy.local/v1"))
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await provider.complete(messages=[], system="s", max_tokens=64)
        assert mock.call_args.kwargs["api_base"] == "https://proxy.local/v1"
        assert mock.call_args.kwargs["max_tokens"] == 64

    async def test_empty_content_returns_empty_string(self, provider):
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response(None)
            result = await provider.complete(messages=[], system="s")
        assert result == ""

    async def test_no_choices_returns_empty_string(self, provider):
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = SimpleNamespace(choices=[], usage=None)
            result = await provider.complete(messages=[], system="s")
        assert result == ""


class TestLiteLLMProviderRetry:
    @pytest.fixture
    def provider(self):
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test"}):
            return LiteLLMProvider(_make_config())

    async def test_retries_on_rate_limit(self, provider):
        mock_acomp = AsyncMock(side_effect=[_rate_limit(), _make_response()])
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock) as mock_sleep,
        ):
            result = await provider.complete(messages=[], system="s")

        assert result == "Hello"
        assert mock_acomp.call_count == 2
        mock_sleep.assert_awaited_once_with(1.0)

    async def test_backoff_doubles(self, provider):
        mock_acomp = AsyncMock(side_effect=[_rate_limit(), _rate_limit(), _make_response()])
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock) as mock_sleep,
        ):
            await provider.complete(messages=[], system="s")

        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    async def test_auth_error_not_retried(self, provider):
        mock_acomp = AsyncMock(
            side_effect=litellm.AuthenticationError(
                message="bad key", model="test", llm_provider="test",
            ),
        )
        with patch(_ACOMP, mock_acomp), pytest.raises(
            RuntimeError, match="Authentication failed",
        ):
            await provider.complete(messages=[], system="s")
        assert mock_acomp.call_count == 1

    async def test_bad_request_not_retried(self, provider):
        mock_acomp = AsyncMock(
            side_effect=litellm.BadRequestError(
                message="invalid params", model="test", llm_provider="test",
            ),
        )
        with patch(_ACOMP, mock_acomp), pytest.raises(RuntimeError, match="Bad request"):
            await provider.complete(messages=[], system="s")
        assert mock_acomp.call_count == 1

    async def test_all_retries_exhausted(self, provider):
        mock_acomp = AsyncMock(side_effect=_rate_limit())
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(RuntimeError, match="failed after 3"),
        ):
            await provider.complete(messages=[], system="s")
        assert mock_acomp.call_count == 3

    async def test_timeout_raises_timeout_error(self, provider):
        mock_acomp = AsyncMock(side_effect=TimeoutError())
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(TimeoutError, match="timed out"),
        ):
            await provider.complete(messages=[], system="s", timeout=30)


class TestShortErrorReason:
    def test_known_reasons(self):
        assert _short_error_reason(Exception("HTTP 429 Too Many")) == "rate limit"
        assert _short_error_reason(Exception("Overloaded")) == "overloaded"
        assert _short_error_reason(TimeoutError()) == "timeout"
        assert _short_error_reason(Exception("503 upstream")) == "service unavailable"

    def test_unknown_reason_truncated(self):
        assert len(_short_error_reason(Exception("x" * 300))) == 80


# ── LiteLLMResponder ──────────────────────────────────────────


class TestLiteLLMResponder:
    def _make_responder(self, default_model: str = "sonnet") -> LiteLLMResponder:
        registry = {
            "sonnet": _make_config(),
            "gpt": _make_config(provider="openai", model="gpt-4o", display_name="GPT-4o",
                                api_key_env="OPENAI_API_KEY"),
        }
        return LiteLLMResponder(registry, EngineConfig(default_model=default_model))

    async def test_uses_default_model(self):
        responder = self._make_responder()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response("  APPROVE: fine  ")
            reply = await responder.respond(_make_persona(), "Verdict?")
        assert reply == "APPROVE: fine"
        assert mock.call_args.kwargs["model"] == "anthropic/claude-sonnet-4-5"

    async def test_persona_model_overrides_default(self):
        responder = self._make_responder()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await responder.respond(_make_persona(model="gpt"), "hi")
        assert mock.call_args.kwargs["model"] == "gpt-4o"

    async def test_system_prompt_names_persona(self):
        responder = self._make_responder()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await responder.respond(_make_persona(), "hi")
        system = mock.call_args.kwargs["messages"][0]["content"]
        assert "Maya" in system
        assert "Tech Lead" in system

    async def test_timeout_from_engine_config(self):
        registry = {"sonnet": _make_config()}
        responder = LiteLLMResponder(registry, EngineConfig(default_model="sonnet", ai_timeout=45))
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await responder.respond(_make_persona(), "hi")
        assert mock.call_args.kwargs["timeout"] == 45.0

    async def test_unknown_model_raises(self):
        responder = self._make_responder()
        with pytest.raises(RuntimeError, match="Unknown model key"):
            await responder.respond(_make_persona(model="nope"), "hi")

    async def test_no_model_raises(self):
        responder = self._make_responder(default_model="")
        with pytest.raises(RuntimeError, match="No model configured"):
            await responder.respond(_make_persona(), "hi")

    async def test_provider_cached_per_model(self):
        responder = self._make_responder()
        with patch(_ACOMP, new_callable=AsyncMock) as mock:
            mock.return_value = _make_response()
            await responder.respond(_make_persona(), "a")
            await responder.respond(_make_persona(id="sam", name="Sam"), "b")
        assert len(responder._providers) == 1
