"""ChatModelClient interface + ModelStream handle.

Clients must not open network connections on import or construction; the
remote call starts when the stream returned by ``begin_stream`` is iterated.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Optional, Sequence

from .types import GenerationOptions, Turn


class ModelStream:
    """Single-pass async sequence of text increments plus final text.

    ``final_text`` becomes readable once iteration has finished (normally or
    with an error); it is the authoritative reply text and may differ from
    the concatenation of increments. ``None`` means the client could not
    provide one.
    """

    def __init__(
        self,
        increments: AsyncIterator[str],
        final_text: Callable[[], Optional[str]] | None = None,
    ) -> None:
        self._it = increments
        self._final = final_text
        self._exhausted = False

    def __aiter__(self) -> "ModelStream":
        return self

    async def __anext__(self) -> str:
        if self._exhausted:
            raise StopAsyncIteration
        try:
            return await self._it.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
            raise
        except BaseException:
            self._exhausted = True
            raise

    @property
    def final_text(self) -> Optional[str]:
        if not self._exhausted:
            raise RuntimeError("final_text read before stream was drained")
        if self._final is None:
            return None
        try:
            return self._final()
        except Exception:  # noqa: BLE001
            # SDKs raise when the aggregated response has no text parts;
            # the relay falls back to the joined increments then.
            return None


class ChatModelClient(ABC):
    name: str = "abstract"

    @abstractmethod
    def begin_stream(
        self,
        history: Sequence[Turn],
        message: str,
        options: GenerationOptions,
    ) -> ModelStream:
        """Prepare a streamed reply to ``message`` given prior ``history``.

        Raises ConfigurationError / UpstreamError synchronously when the call
        cannot be initiated; failures after that surface from iteration.
        """

    @abstractmethod
    def default_model(self) -> str:
        """Model id used when options.model is not set."""
