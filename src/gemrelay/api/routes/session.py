"""Session lifecycle + health routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from chatcore.config import get_config
from chatcore.llm.exceptions import ValidationError
from gemrelay.api.session_store import store

router = APIRouter()
logger = logging.getLogger("gemrelay.api")


class SessionResetRequest(BaseModel):  # noqa: D401
    session_id: str | None = Field(None, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


@router.get("/api/health")
def health():  # noqa: D401
    llm_cfg = get_config().llm
    return {
        "status": "ok",
        "modelDefault": llm_cfg.default_model,
        "hasApiKey": llm_cfg.has_api_key,
    }


@router.post("/api/session/reset")
def reset_session(req: SessionResetRequest):  # noqa: D401
    if not req.session_id:
        raise ValidationError("Missing sessionId")
    existed = store.reset(req.session_id)
    logger.info("session reset session=%s existed=%s", req.session_id, existed)
    return {"ok": True}


__all__ = ["router", "SessionResetRequest"]
