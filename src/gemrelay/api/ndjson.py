"""NDJSON framing for the chat stream."""
from __future__ import annotations

import json

from chatcore.llm.types import Frame

MEDIA_TYPE = "application/x-ndjson"


def format_frame(frame: Frame) -> str:
    # one JSON object per line; embedded newlines stay escaped inside strings
    return json.dumps(frame.to_payload(), ensure_ascii=False) + "\n"


def encode_frame(frame: Frame) -> bytes:
    return format_frame(frame).encode("utf-8")
