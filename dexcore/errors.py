"""
Exception hierarchy for the data-access layer.

Absence (an unknown id or name) is not an error here: resolvers return
``None`` for it and cache that answer. Exceptions are reserved for upstream
trouble that should be retried later and for payloads that cannot be decoded.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for all data-access errors."""

    pass


class UpstreamUnavailableError(CatalogError):
    """
    Raised when the upstream could not answer after all retry attempts.

    Covers exhausted 429/5xx responses, transport failures on the final
    attempt, and fast-fail rejections from an open circuit breaker. These
    results are never cached.

    Attributes:
        path: The upstream resource path that failed.
        status: The final HTTP status, if a response was received at all.
    """

    def __init__(
        self, message: str, path: Optional[str] = None, status: Optional[int] = None
    ):
        super().__init__(message)
        self.path = path
        self.status = status


class MalformedPayloadError(CatalogError):
    """Raised when a payload is missing a required identity field."""

    pass
