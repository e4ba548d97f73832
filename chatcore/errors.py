"""Central error taxonomy enforcement.

Every error surfaced to a caller (JSON error body or in-band ``error`` frame)
carries one of these codes in logs, events and metrics labels.
"""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # request (pre-stream, 4xx)
    "invalid-params",
    "payload-too-large",
    # configuration (pre-stream, 5xx)
    "config-missing",
    "config-invalid",
    "config-out-of-range",
    # upstream (pre- or mid-stream)
    "provider-error",
    "stream-broken",
    # transport
    "aborted",
    # infra
    "event-handler-error",
}


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: Exception, phase: str) -> str:
    """Classify an arbitrary exception into a taxonomy code.

    ``phase`` is ``pre_stream`` or ``stream``. Relay exceptions carry their own
    code; everything else is classified by name/message heuristics.
    """
    code = getattr(e, "error_type", None)
    if isinstance(code, str) and code in _ALLOWED_ERROR_TYPES:
        return code
    name = e.__class__.__name__.lower()
    msg = str(e).lower()
    if "abort" in name or "cancel" in name:
        return "aborted"
    if "api_key" in msg or "api key" in msg or "credential" in msg:
        return "config-missing"
    if phase == "stream":
        return "stream-broken"
    return "provider-error"


__all__ = ["validate_error_type", "map_exception"]
