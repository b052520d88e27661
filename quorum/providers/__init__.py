"""AI responder providers and configuration loading."""

from quorum.providers.base import AIResponder
from quorum.providers.litellm_provider import LiteLLMProvider, LiteLLMResponder
from quorum.providers.registry import load_engine_config, load_models

__all__ = [
    "AIResponder",
    "LiteLLMProvider",
    "LiteLLMResponder",
    "load_engine_config",
    "load_models",
]
