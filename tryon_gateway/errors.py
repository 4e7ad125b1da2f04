"""Exception hierarchy for the Try-On gateway.

Every exception carries the HTTP status it maps to, so the API layer can
render any of them with a single handler.
"""

from typing import Any


class TryOnError(Exception):
    """Base class for all gateway errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequestError(TryOnError):
    """The client sent missing or malformed input."""

    status_code = 400


class ServiceUnavailableError(TryOnError):
    """The remote connection is not ready to serve requests."""

    status_code = 503


class RemoteConnectionError(TryOnError):
    """A connection attempt failed, or a retry is still pending."""

    status_code = 503


class InitializationError(RemoteConnectionError):
    """Retries are exhausted; the manager stays failed until reset."""


class UpstreamProtocolError(TryOnError):
    """The remote service answered with an unexpected shape."""


class UpstreamCallError(TryOnError):
    """The remote predict call itself failed."""


def describe(exc: BaseException) -> str:
    """Human readable message for an exception, even when str(exc) is empty."""
    text = str(exc).strip()
    return text or type(exc).__name__
