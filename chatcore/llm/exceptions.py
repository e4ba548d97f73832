"""Relay exception hierarchy.

Each exception knows how it is rendered to a caller: ``http_status`` for
pre-stream JSON errors and ``error_type`` for the error taxonomy.
"""
from __future__ import annotations

from chatcore.errors import validate_error_type


class RelayError(Exception):
    """Base relay exception."""

    http_status = 500
    error_type = "provider-error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        validate_error_type(self.error_type)


class ValidationError(RelayError):
    """Missing or malformed request fields (always pre-stream)."""

    http_status = 400
    error_type = "invalid-params"


class PayloadTooLargeError(ValidationError):
    http_status = 413
    error_type = "payload-too-large"


class ConfigurationError(RelayError):
    """Remote credential or other required setting missing.

    Raised at first use, never at startup.
    """

    http_status = 500
    error_type = "config-missing"


class UpstreamError(RelayError):
    """Remote model service failed (could not start or broke mid-stream)."""

    http_status = 502
    error_type = "provider-error"
