import asyncio
import contextlib

from chatcore.llm.types import Turn
from gemrelay.api import cancellation
from gemrelay.api.routes import chat as chat_route
from gemrelay.api.routes.chat import ChatRequest
from gemrelay.api.session_store import store


def test_disconnect_drains_upstream_without_commit(use_fake_client, fake_client_cls):
    store.commit("s1", Turn.user("before"), Turn.model("kept"))
    fake = use_fake_client(
        fake_client_cls(["a", "b", "c", "d", "e"], "abcde", delay=0.01)
    )

    async def _go():
        resp = await chat_route.chat(ChatRequest(sessionId="s1", message="hi"))
        body = resp.body_iterator
        first = await body.__anext__()
        await body.aclose()
        await asyncio.gather(*list(chat_route._RELAY_TASKS))
        await asyncio.sleep(0)
        return first

    first = asyncio.run(_go())
    assert first == b'{"type": "content", "text": "a"}\n'
    assert fake.drained == 5
    assert fake.finished is True
    assert store.get("s1") == [Turn.user("before"), Turn.model("kept")]
    assert cancellation.in_flight() == 0
    assert chat_route.pending_relays() == 0


def test_completed_stream_releases_token(use_fake_client, fake_client_cls):
    use_fake_client(fake_client_cls(["a"], "a"))

    async def _go():
        resp = await chat_route.chat(ChatRequest(sessionId="s2", message="hi"))
        chunks = [c async for c in resp.body_iterator]
        await asyncio.gather(*list(chat_route._RELAY_TASKS))
        return chunks

    chunks = asyncio.run(_go())
    assert chunks[-1] == b'{"type": "done"}\n'
    assert cancellation.in_flight() == 0
    assert store.get("s2") == [Turn.user("hi"), Turn.model("a")]


def test_disconnect_before_body_starts_skips_commit(
    use_fake_client, fake_client_cls
):
    fake = use_fake_client(fake_client_cls(["a", "b"], "ab", delay=0.01))

    async def _receive():
        return {"type": "http.disconnect"}

    async def _send(message):
        raise OSError("connection reset by peer")

    async def _go():
        resp = await chat_route.chat(ChatRequest(sessionId="s3", message="hi"))
        scope = {"type": "http", "asgi": {"spec_version": "2.4"}}
        # the dead socket surfaces as ClientDisconnect or OSError depending
        # on the Starlette release
        with contextlib.suppress(Exception):
            await resp(scope, _receive, _send)
        await asyncio.gather(*list(chat_route._RELAY_TASKS))

    asyncio.run(_go())
    assert fake.drained == 2
    assert store.get("s3") == []
    assert cancellation.in_flight() == 0
