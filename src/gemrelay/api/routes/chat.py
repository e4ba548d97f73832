"""/api/chat route: NDJSON streaming relay to the remote chat model."""
from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from chatcore.config import get_config
from chatcore.llm.exceptions import RelayError
from chatcore.llm.factory import get_chat_client
from chatcore.llm.pipeline.relay import StreamingRelay
from chatcore.llm.types import FRAME_DONE, Frame, GenerationOptions
from gemrelay.api import cancellation
from gemrelay.api.ndjson import MEDIA_TYPE, encode_frame
from gemrelay.api.session_store import store

router = APIRouter()
logger = logging.getLogger("gemrelay.api")

# Relay tasks outlive the response body when the caller disconnects (they
# keep draining upstream); hold strong refs until they finish.
_RELAY_TASKS: set[asyncio.Task] = set()


class ChatRequest(BaseModel):  # noqa: D401
    # sessionId/message presence is checked by the relay so that a missing
    # field yields the same {error} body as any other validation failure
    session_id: str | None = Field(None, alias="sessionId")
    message: str | None = None
    model: str | None = None
    system_prompt: str | None = Field(None, alias="systemPrompt")
    # JSON numbers only; "0.5" or true are rejected, never coerced
    temperature: StrictFloat | StrictInt | None = None
    max_output_tokens: StrictInt | None = Field(None, alias="maxOutputTokens")

    model_config = ConfigDict(populate_by_name=True)

    def options(self) -> GenerationOptions:
        return GenerationOptions(
            model=self.model or None,
            system_prompt=self.system_prompt or None,
            temperature=(
                float(self.temperature)
                if self.temperature is not None
                else None
            ),
            max_output_tokens=self.max_output_tokens,
        )


class RelayStreamingResponse(StreamingResponse):
    """StreamingResponse that reports its own teardown.

    ``on_close`` runs however the response ends, including a caller that
    went away before the body iterator was ever started.
    """

    def __init__(self, content, *, on_close, **kwargs) -> None:
        super().__init__(content, **kwargs)
        self._on_close = on_close

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._on_close()


def build_relay() -> StreamingRelay:
    return StreamingRelay(
        store,
        get_chat_client(),
        max_turns=get_config().history.max_turns,
    )


def pending_relays() -> int:
    return len(_RELAY_TASKS)


@router.post("/api/chat")
async def chat(req: ChatRequest):  # noqa: D401
    request_id = str(uuid.uuid4())
    relay = build_relay()
    try:
        ctx = relay.prepare(
            request_id=request_id,
            session_id=req.session_id,
            message=req.message,
            options=req.options(),
        )
    except RelayError as e:
        logger.warning(
            "chat rejected pre-stream request_id=%s error_type=%s "
            "message=%s",
            request_id,
            e.error_type,
            e.message,
        )
        raise

    token = cancellation.register(request_id)
    queue: asyncio.Queue[Frame | None] = asyncio.Queue()

    async def _run_relay() -> None:
        try:
            await relay.run(ctx, queue.put_nowait, token)
        except Exception:  # noqa: BLE001
            logger.exception("relay crashed request_id=%s", request_id)
        finally:
            cancellation.clear(request_id)
            # wake the body iterator even if the relay died before `done`
            queue.put_nowait(None)

    task = asyncio.create_task(_run_relay())
    _RELAY_TASKS.add(task)
    task.add_done_callback(_RELAY_TASKS.discard)

    finished = False

    def _release() -> None:
        if not finished and token.cancel("client_disconnect"):
            logger.info(
                "client disconnected request_id=%s session=%s",
                request_id,
                ctx.session_id,
            )

    async def _body():
        nonlocal finished
        try:
            while True:
                frame = await queue.get()
                if frame is None:
                    finished = True
                    break
                yield encode_frame(frame)
                if frame.type == FRAME_DONE:
                    finished = True
                    break
        finally:
            _release()

    return RelayStreamingResponse(
        _body(),
        on_close=_release,
        media_type=MEDIA_TYPE,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Request-Id": request_id,
        },
    )


__all__ = [
    "router",
    "ChatRequest",
    "RelayStreamingResponse",
    "build_relay",
    "pending_relays",
]
