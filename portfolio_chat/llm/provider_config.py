"""LLM provider configuration.

Maps the provider selected through ``LLM_PROVIDER`` to the API route the chat
client calls. Build a :class:`ProviderConfig` once at start-up and hand it to
whatever needs it instead of reading the environment at call sites.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from portfolio_chat.utils.logger import get_logger

logger = get_logger(__name__)


class LLMProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


DEFAULT_PROVIDER = LLMProvider.OPENAI

# Provider-specific API endpoints
API_ENDPOINTS: dict[LLMProvider, str] = {
    LLMProvider.OPENAI: "/api/chat/openai",
    LLMProvider.GEMINI: "/api/chat/gemini",
}


def get_api_endpoint(provider: LLMProvider) -> str:
    return API_ENDPOINTS[provider]


@dataclass(frozen=True)
class ProviderConfig:
    """The active provider and the route serving it."""

    provider: LLMProvider = DEFAULT_PROVIDER

    @property
    def endpoint(self) -> str:
        return get_api_endpoint(self.provider)

    @classmethod
    def from_name(cls, name: str | None) -> "ProviderConfig":
        """Build a config from a provider name, falling back to OpenAI for blank or unknown names."""
        if not name:
            return cls()
        try:
            return cls(LLMProvider(name.strip().lower()))
        except ValueError:
            logger.warning("Unknown LLM provider %r, falling back to %s", name, DEFAULT_PROVIDER.value)
            return cls()

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        return cls.from_name(os.getenv("LLM_PROVIDER"))
