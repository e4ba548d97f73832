"""LLM client abstraction layer exports."""

from .provider import ChatModelClient, ModelStream  # noqa: F401
from .types import Turn, GenerationOptions, Frame  # noqa: F401
from .history import truncate_turns, MAX_TURNS  # noqa: F401
from .exceptions import (  # noqa: F401
    RelayError,
    ValidationError,
    ConfigurationError,
    UpstreamError,
)
from .gemini_provider import GeminiChatClient  # noqa: F401

__all__ = ["ChatModelClient", "ModelStream", "Turn", "GenerationOptions", "Frame", "truncate_turns", "MAX_TURNS", "RelayError", "ValidationError", "ConfigurationError", "UpstreamError", "GeminiChatClient"]  # noqa: E501
