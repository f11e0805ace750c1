"""Exceptions and failure classification for epic chat."""

from collections.abc import Mapping
from typing import Optional

from epicchat.constants import INVALID_RESPONSE_MARKERS, NETWORK_ERROR_MARKERS
from epicchat.models import ErrorEvent, ErrorKind


class EpicChatError(Exception):
    """Base class for epicchat errors."""


class MissingApiKeyError(EpicChatError):
    """No API key is configured for the completion service."""

    def __init__(self, message: str = "No API key configured"):
        super().__init__(message)


class StreamAborted(EpicChatError):
    """The streaming call was terminated on request."""


def _status_of(error: object) -> Optional[int]:
    """Extract an HTTP status from SDK errors, generic errors or dicts."""
    if isinstance(error, Mapping):
        status = error.get("status_code", error.get("status"))
    else:
        status = getattr(error, "status_code", None)
        if status is None:
            status = getattr(error, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _message_of(error: object) -> Optional[str]:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, Mapping) and isinstance(error.get("message"), str):
        return error["message"]
    return None


def classify_error(error: object) -> ErrorEvent:
    """Map any failure onto one of the four error kinds.

    First match wins: 429, 401 / missing key, network-fault text,
    malformed-payload text, then ``network`` as the catch-all.

    Args:
        error: Exception, mapping or any other object

    Returns:
        ErrorEvent carrying the kind and a human-readable message
    """
    try:
        status = _status_of(error)
        message = _message_of(error)
    except Exception:
        status, message = None, None

    if status == 429:
        return ErrorEvent(
            kind=ErrorKind.RATE_LIMIT,
            message="Rate limit exceeded. Please wait a moment and try again.",
        )

    if isinstance(error, MissingApiKeyError):
        return ErrorEvent(
            kind=ErrorKind.AUTH,
            message="No API key configured. Please set ANTHROPIC_API_KEY.",
        )

    if status == 401:
        return ErrorEvent(
            kind=ErrorKind.AUTH,
            message="Authentication failed. Please check your API key.",
        )

    if message is None:
        return ErrorEvent(
            kind=ErrorKind.NETWORK,
            message="An unexpected error occurred.",
        )

    lowered = message.lower()

    if isinstance(error, (ConnectionError, TimeoutError)) or any(
        marker in lowered for marker in NETWORK_ERROR_MARKERS
    ):
        return ErrorEvent(
            kind=ErrorKind.NETWORK,
            message="Network error. Please check your internet connection and try again.",
        )

    if any(marker in lowered for marker in INVALID_RESPONSE_MARKERS):
        return ErrorEvent(
            kind=ErrorKind.INVALID_RESPONSE,
            message=f"Invalid response from API: {message}",
        )

    return ErrorEvent(
        kind=ErrorKind.NETWORK,
        message=f"An error occurred: {message}",
    )
