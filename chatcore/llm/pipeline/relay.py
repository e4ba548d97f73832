"""Streaming relay: one chat request end to end.

prepare()  Validating -> Truncating -> begin upstream stream (pre-stream
           failures raise and never produce frames)
run()      Streaming -> Aggregating -> Committing|Skipping -> Finalizing ->
           Closed; always ends with exactly one ``done`` frame

Cancellation (caller disconnected) suppresses frame emission but the
upstream stream is still drained to its end and nothing is committed.
"""
from __future__ import annotations

import logging
import time

from chatcore import metrics
from chatcore.errors import map_exception
from chatcore.events import (
    ChatCancelled,
    ChatCompleted,
    ChatStarted,
    emit,
)
from chatcore.llm.exceptions import RelayError, ValidationError
from chatcore.llm.history import MAX_TURNS
from chatcore.llm.provider import ChatModelClient
from chatcore.llm.types import FRAME_DONE, Frame, GenerationOptions, Turn

from .base import (
    CancelSignal,
    FrameSink,
    HistoryStorePort,
    RelayContext,
    RelayResult,
    RelayState,
)

logger = logging.getLogger("gemrelay.relay")


class StreamingRelay:
    def __init__(
        self,
        store: HistoryStorePort,
        client: ChatModelClient,
        *,
        max_turns: int = MAX_TURNS,
    ) -> None:
        self._store = store
        self._client = client
        self._max_turns = max_turns

    # ------------------------------------------------------------------
    # pre-stream
    # ------------------------------------------------------------------
    def prepare(
        self,
        *,
        request_id: str,
        session_id: str | None,
        message: str | None,
        options: GenerationOptions | None = None,
    ) -> RelayContext:
        """Validate, bound the history and open the upstream stream.

        Raises ValidationError, ConfigurationError or UpstreamError; the
        caller turns those into a plain JSON error response.
        """
        options = options or GenerationOptions()
        ctx = RelayContext(
            request_id=request_id,
            session_id=session_id or "",
            message=message if isinstance(message, str) else "",
            options=options,
        )
        ctx.enter(RelayState.VALIDATING)
        if not isinstance(session_id, str) or not session_id:
            raise ValidationError("Missing sessionId")
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Missing message")

        ctx.enter(RelayState.TRUNCATING)
        ctx.history = self._store.truncate(session_id, self._max_turns)
        ctx.model_id = options.model or self._client.default_model()
        ctx.stream = self._client.begin_stream(ctx.history, message, options)
        emit(
            ChatStarted(
                request_id=request_id,
                session_id=session_id,
                model_id=ctx.model_id,
                history_turns=len(ctx.history),
                options=options.sampling() or None,
                has_system_prompt=bool(options.system_prompt),
            )
        )
        metrics.inc("chat_stream_open_total", {"model": ctx.model_id})
        return ctx

    # ------------------------------------------------------------------
    # streaming
    # ------------------------------------------------------------------
    def _emit(
        self, frame: Frame, sink: FrameSink, cancel: CancelSignal
    ) -> bool:
        if cancel.cancelled and frame.type != FRAME_DONE:
            return False
        try:
            sink(frame)
        except Exception:  # noqa: BLE001
            # a sink that cannot accept frames means the caller is gone
            logger.debug("frame sink rejected %s frame", frame.type)
            cancel.cancel("sink_closed")
            return False
        return True

    async def run(
        self,
        ctx: RelayContext,
        sink: FrameSink,
        cancel: CancelSignal,
    ) -> RelayResult:
        if ctx.stream is None:
            raise RuntimeError("relay context was not prepared")
        model_id = ctx.model_id or "unknown"
        ctx.started_at = time.time()
        ctx.enter(RelayState.STREAMING)
        failed = False
        try:
            try:
                async for increment in ctx.stream:
                    ctx.increments_drained += 1
                    if not increment:
                        continue
                    if not self._emit(Frame.content(increment), sink, cancel):
                        metrics.inc_increment(model_id, emitted=False)
                        continue
                    if ctx.first_increment_ms is None:
                        ctx.first_increment_ms = (
                            time.time() - ctx.started_at
                        ) * 1000.0
                        metrics.observe(
                            "chat_first_increment_latency_ms",
                            ctx.first_increment_ms,
                            {"model": model_id},
                        )
                    ctx.increments_emitted += 1
                    ctx.fragments.append(increment)
                    metrics.inc_increment(model_id, emitted=True)
            except Exception as e:  # noqa: BLE001
                failed = True
                ctx.error_type = map_exception(e, "stream")
                ctx.error_message = (
                    e.message if isinstance(e, RelayError) else str(e)
                ) or "Generation failed"
                logger.warning(
                    "upstream failed mid-stream request_id=%s session=%s "
                    "error_type=%s message=%s",
                    ctx.request_id,
                    ctx.session_id,
                    ctx.error_type,
                    ctx.error_message,
                )
                self._emit(Frame.failure(ctx.error_message), sink, cancel)

            if not failed:
                self._aggregate_and_commit(ctx, cancel)
            else:
                ctx.enter(RelayState.SKIPPING)
                metrics.inc_commit("skipped")
        finally:
            ctx.enter(RelayState.FINALIZING)
            self._emit(Frame.done(), sink, cancel)
            ctx.enter(RelayState.CLOSED)
            ctx.latency_ms = int((time.time() - ctx.started_at) * 1000)
            self._record_outcome(ctx, cancel, model_id)
        return RelayResult(
            request_id=ctx.request_id,
            session_id=ctx.session_id,
            committed=ctx.committed_text is not None,
            cancelled=cancel.cancelled,
            error=ctx.error_message,
            text=ctx.committed_text,
            increments_emitted=ctx.increments_emitted,
            increments_drained=ctx.increments_drained,
            latency_ms=ctx.latency_ms or 0,
        )

    def _aggregate_and_commit(
        self, ctx: RelayContext, cancel: CancelSignal
    ) -> None:
        ctx.enter(RelayState.AGGREGATING)
        text = ctx.stream.final_text or "".join(ctx.fragments)
        if cancel.cancelled or not text:
            ctx.enter(RelayState.SKIPPING)
            metrics.inc_commit("skipped")
            return
        ctx.enter(RelayState.COMMITTING)
        self._store.commit(
            ctx.session_id, Turn.user(ctx.message), Turn.model(text)
        )
        ctx.committed_text = text
        metrics.inc_commit("committed")

    def _record_outcome(
        self, ctx: RelayContext, cancel: CancelSignal, model_id: str
    ) -> None:
        latency_ms = ctx.latency_ms or 0
        metrics.observe("chat_latency_ms", latency_ms, {"model": model_id})
        if cancel.cancelled:
            metrics.inc_stream_close(model_id, "cancelled")
            emit(
                ChatCancelled(
                    request_id=ctx.request_id,
                    session_id=ctx.session_id,
                    model_id=model_id,
                    increments_emitted=ctx.increments_emitted,
                    increments_drained=ctx.increments_drained,
                    latency_ms=latency_ms,
                    reason=getattr(cancel, "reason", None)
                    or "client_disconnect",
                )
            )
            logger.info(
                "chat cancelled request_id=%s session=%s emitted=%d "
                "drained=%d",
                ctx.request_id,
                ctx.session_id,
                ctx.increments_emitted,
                ctx.increments_drained,
            )
            return
        status = "error" if ctx.error_message else "ok"
        metrics.inc_stream_close(model_id, status)
        emit(
            ChatCompleted(
                request_id=ctx.request_id,
                session_id=ctx.session_id,
                model_id=model_id,
                status=status,
                increments=ctx.increments_emitted,
                latency_ms=latency_ms,
                committed=ctx.committed_text is not None,
                error_type=ctx.error_type,
                message=ctx.error_message,
            )
        )
        logger.info(
            "chat finished request_id=%s session=%s status=%s "
            "increments=%d committed=%s latency_ms=%d",
            ctx.request_id,
            ctx.session_id,
            status,
            ctx.increments_emitted,
            ctx.committed_text is not None,
            latency_ms,
        )


__all__ = ["StreamingRelay"]
