"""Google Gemini chat client (google-generativeai SDK).

The SDK is configured lazily on first use so the process boots without a
credential; a missing key surfaces as ConfigurationError at request time.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import google.generativeai as genai

from .exceptions import ConfigurationError, RelayError, UpstreamError
from .provider import ChatModelClient, ModelStream
from .types import GenerationOptions, Turn

logger = logging.getLogger("gemrelay.gemini")

MISSING_KEY_MESSAGE = "Missing GEMINI_API_KEY in environment"


def to_gemini_history(history: Sequence[Turn]) -> List[Dict[str, Any]]:
    return [{"role": t.role, "parts": [t.text]} for t in history]


def _chunk_text(chunk: Any) -> str:
    # `.text` raises ValueError when a chunk carries no text part
    # (e.g. a safety-only or finish-reason-only chunk).
    try:
        return chunk.text or ""
    except ValueError:
        return ""


class GeminiChatClient(ChatModelClient):
    name = "gemini"

    def __init__(self, api_key: str | None, default_model: str) -> None:
        self._api_key = api_key or None
        self._default_model = default_model
        self._configured = False
        self._lock = threading.Lock()

    def default_model(self) -> str:
        return self._default_model

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    def _ensure_configured(self) -> None:
        if not self._api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        with self._lock:
            if not self._configured:
                genai.configure(api_key=self._api_key)
                self._configured = True

    def begin_stream(
        self,
        history: Sequence[Turn],
        message: str,
        options: GenerationOptions,
    ) -> ModelStream:
        self._ensure_configured()
        model_name = options.model or self._default_model
        model_kwargs: Dict[str, Any] = {}
        if options.system_prompt:
            model_kwargs["system_instruction"] = options.system_prompt
        send_kwargs: Dict[str, Any] = {}
        sampling = options.sampling()
        if sampling:
            send_kwargs["generation_config"] = sampling
        try:
            model = genai.GenerativeModel(model_name, **model_kwargs)
            chat = model.start_chat(history=to_gemini_history(history))
        except RelayError:
            raise
        except Exception as e:  # noqa: BLE001
            raise UpstreamError(str(e) or "Failed to start chat") from e
        logger.debug(
            "gemini stream prepared model=%s history=%d sampling=%s",
            model_name,
            len(history),
            sorted(sampling),
        )

        response: Optional[Any] = None

        async def _increments() -> AsyncIterator[str]:
            nonlocal response
            try:
                response = await chat.send_message_async(
                    message, stream=True, **send_kwargs
                )
                async for chunk in response:
                    text = _chunk_text(chunk)
                    if text:
                        yield text
            except RelayError:
                raise
            except Exception as e:  # noqa: BLE001
                raise UpstreamError(str(e) or "Generation failed") from e

        def _final_text() -> Optional[str]:
            if response is None:
                return None
            return response.text

        return ModelStream(_increments(), _final_text)


__all__ = ["GeminiChatClient", "to_gemini_history", "MISSING_KEY_MESSAGE"]
