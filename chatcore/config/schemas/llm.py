"""LLM + conversation history schemas.

No side effects / globals. The credential is optional here on purpose: the
process must boot without it and fail only when a chat request needs it.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LLMConfig(BaseModel):
    default_model: str = "gemini-1.5-flash"
    api_key: str | None = Field(default=None, repr=False)

    model_config = ConfigDict(extra="forbid")

    @field_validator("api_key")
    @classmethod
    def _blank_key_is_missing(cls, v: str | None) -> str | None:  # noqa: D401
        if v is not None and not str(v).strip():
            return None
        return v

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


class HistoryConfig(BaseModel):
    # one turn == one user/model pair, so the stored history is bounded by
    # 2 * max_turns entries
    max_turns: int = 50

    model_config = ConfigDict(extra="forbid")

    @field_validator("max_turns")
    @classmethod
    def _max_turns_positive(cls, v: int) -> int:  # noqa: D401
        if v <= 0:
            raise ValueError("max_turns must be >0")
        return v
