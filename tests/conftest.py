"""Pytest configuration ensuring project root is importable.

Adds repository root and src/ to sys.path explicitly so tests run without an
editable install, and isolates global state (config cache, chat client cache,
session store, credential env) between tests.
"""
from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from chatcore.llm.exceptions import UpstreamError  # noqa: E402
from chatcore.llm.provider import ChatModelClient, ModelStream  # noqa: E402

_ENV_KEYS = ("RELAY_CONFIG_DIR", "GEMINI_API_KEY", "GEMINI_MODEL", "PORT")


@pytest.fixture(autouse=True)
def _isolate_global_state(monkeypatch):  # noqa: D401
    """Ensure config/env/store side effects do not leak between tests.

    - Point the loader at the repo configs/ dir regardless of cwd
    - Drop credential / model env vars picked up from the developer shell
    - Clear cached config + chat client, empty the session store
    """
    from chatcore.config import clear_config_cache
    from chatcore.llm.factory import clear_client_cache
    from gemrelay.api.session_store import store

    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith("RELAY__"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("RELAY_CONFIG_DIR", str(ROOT / "configs"))
    clear_config_cache()
    clear_client_cache()
    store.clear()
    try:
        yield
    finally:
        clear_config_cache()
        clear_client_cache()
        store.clear()


class FakeChatClient(ChatModelClient):
    """Scripted chat client.

    parts: increments to stream, in order
    final_text: value exposed as ModelStream.final_text (None -> unavailable)
    fail_at: index at which iteration raises UpstreamError (None -> never)
    delay: seconds awaited before each increment
    """

    name = "fake"

    def __init__(
        self,
        parts=("He", "llo"),
        final_text=None,
        *,
        fail_at=None,
        error_message="upstream exploded",
        begin_error=None,
        delay=0.0,
    ):
        self.parts = list(parts)
        self.final_text = final_text
        self.fail_at = fail_at
        self.error_message = error_message
        self.begin_error = begin_error
        self.delay = delay
        self.calls = []
        self.drained = 0
        self.finished = False

    def default_model(self) -> str:
        return "fake-model"

    def begin_stream(self, history, message, options):
        if self.begin_error is not None:
            raise self.begin_error
        self.calls.append(
            {"history": list(history), "message": message, "options": options}
        )

        async def _gen():
            for i, part in enumerate(self.parts):
                if self.fail_at is not None and i >= self.fail_at:
                    raise UpstreamError(self.error_message)
                if self.delay:
                    await asyncio.sleep(self.delay)
                self.drained += 1
                yield part
            if self.fail_at is not None and self.fail_at >= len(self.parts):
                raise UpstreamError(self.error_message)
            self.finished = True

        final = self.final_text
        return ModelStream(
            _gen(), (lambda: final) if final is not None else None
        )


@pytest.fixture
def fake_client_cls():
    return FakeChatClient


@pytest.fixture
def use_fake_client(monkeypatch):
    """Install a FakeChatClient for the /api/chat route; returns a setter."""
    from gemrelay.api.routes import chat as chat_route

    def _install(client):
        monkeypatch.setattr(chat_route, "get_chat_client", lambda: client)
        return client

    return _install
