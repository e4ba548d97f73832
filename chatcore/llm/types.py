"""LLM shared value types: turns, generation options, stream frames."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

ROLE_USER = "user"
ROLE_MODEL = "model"
ROLES = frozenset({ROLE_USER, ROLE_MODEL})


@dataclass(frozen=True, slots=True)
class Turn:
    role: str  # user|model
    text: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"unknown turn role '{self.role}'")

    @staticmethod
    def user(text: str) -> "Turn":
        return Turn(role=ROLE_USER, text=text)

    @staticmethod
    def model(text: str) -> "Turn":
        return Turn(role=ROLE_MODEL, text=text)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    """Per-request generation options.

    ``None`` means "not set by the caller". Unset fields are never forwarded
    upstream, so the remote service keeps its own defaults.
    """

    model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None

    def sampling(self) -> Dict[str, Any]:
        """Return only the sampling fields that were set."""
        out: Dict[str, Any] = {}
        if self.temperature is not None:
            out["temperature"] = self.temperature
        if self.max_output_tokens is not None:
            out["max_output_tokens"] = self.max_output_tokens
        return out


FRAME_CONTENT = "content"
FRAME_ERROR = "error"
FRAME_DONE = "done"


@dataclass(frozen=True, slots=True)
class Frame:
    type: str  # content|error|done
    text: Optional[str] = None
    error: Optional[str] = None

    @staticmethod
    def content(text: str) -> "Frame":
        return Frame(type=FRAME_CONTENT, text=text)

    @staticmethod
    def failure(message: str) -> "Frame":
        return Frame(type=FRAME_ERROR, error=message)

    @staticmethod
    def done() -> "Frame":
        return Frame(type=FRAME_DONE)

    def to_payload(self) -> Dict[str, str]:
        if self.type == FRAME_CONTENT:
            return {"type": FRAME_CONTENT, "text": self.text or ""}
        if self.type == FRAME_ERROR:
            return {"type": FRAME_ERROR, "error": self.error or ""}
        return {"type": FRAME_DONE}
