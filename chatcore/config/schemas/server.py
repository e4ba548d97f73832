"""HTTP server schema: bind address, CORS, body limit, static UI dir."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    max_body_bytes: int = 1024 * 1024
    static_dir: str = "public"
    index_file: str = "chat.html"

    model_config = ConfigDict(extra="forbid")

    @field_validator("port")
    @classmethod
    def _port_range(cls, v: int) -> int:  # noqa: D401
        if not (0 < v < 65536):
            raise ValueError("port out of range 1..65535")
        return v
