"""Errors raised at the model gateway boundary."""

from __future__ import annotations

from typing import Any

GENERIC_FAILURE_MESSAGE = "AI service call failed"


class ModelServiceError(RuntimeError):
    """Any transport or provider failure, normalized to a single error type.

    The message is the provider's own message when one could be extracted,
    otherwise the generic failure text.
    """

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        super().__init__(message or GENERIC_FAILURE_MESSAGE)
        self.status_code = status_code


def extract_provider_message(body: Any) -> str | None:
    """Pull a human-readable message out of a provider error body."""
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
        error = body.get("error")
        if isinstance(error, dict):
            return extract_provider_message(error)
        if isinstance(error, str) and error:
            return error
    return None


__all__ = ["GENERIC_FAILURE_MESSAGE", "ModelServiceError", "extract_provider_message"]
