from __future__ import annotations

from typing import Any, Dict, Optional


class BaseError(Exception):
    """Common wrapper that preserves the original exception."""

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.original = original


class ConfigError(BaseError):
    """Raised when settings or credentials are missing or inconsistent."""


class VenueUnavailable(BaseError):
    """Network or parse failure from a single venue."""

    def __init__(self, venue: str, message: str, original: Exception | None = None):
        super().__init__(f"{venue}: {message}", original)
        self.venue = venue


class InvalidIntent(BaseError):
    """Trade parameters failed validation; the build is abandoned."""


class SigningDeclined(BaseError):
    """The wallet refused or failed to sign; restart from a new intent."""


class AuthenticationRejected(BaseError):
    """The venue rejected our credentials or request signature."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        payload: Optional[Dict[str, Any]] = None,
        original: Exception | None = None,
    ):
        super().__init__(message, original)
        self.status = status
        self.payload = payload


class OrderRejected(BaseError):
    """A well-formed, authenticated order was refused by the venue."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        payload: Optional[Dict[str, Any]] = None,
        original: Exception | None = None,
    ):
        super().__init__(message, original)
        self.status = status
        self.payload = payload


class TransportError(BaseError):
    """Timeout, connection failure or unparseable response. Retry with a fresh build."""
