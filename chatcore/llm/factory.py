"""Chat client factory bound to the aggregated config.

One client per process; `clear_client_cache()` drops it (tests, config
reloads).
"""
from __future__ import annotations

from functools import lru_cache

from chatcore.config import get_config

from .gemini_provider import GeminiChatClient
from .provider import ChatModelClient


@lru_cache(maxsize=1)
def get_chat_client() -> ChatModelClient:  # noqa: D401
    llm_cfg = get_config().llm
    return GeminiChatClient(
        api_key=llm_cfg.api_key, default_model=llm_cfg.default_model
    )


def clear_client_cache() -> None:
    get_chat_client.cache_clear()
