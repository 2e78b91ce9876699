"""Structured outcomes returned by the public session operations.

Failures travel as data, not exceptions: a view receives a result and decides
how to render it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from console_session.core.exceptions import (
    AuthenticationError,
    ConsoleSessionError,
    TransportTimeoutError,
)


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a login attempt.

    Attributes:
        success: Whether a session was established.
        user: Normalized user payload returned by the server.
        error: The failure, when ``success`` is False.
    """

    success: bool
    user: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ConsoleSessionError] = None

    @classmethod
    def ok(cls, user: Dict[str, Any]) -> "LoginResult":
        return cls(success=True, user=user)

    @classmethod
    def failed(cls, error: ConsoleSessionError) -> "LoginResult":
        return cls(success=False, error=error)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of a refresh round-trip, shared by every caller that awaited it."""

    success: bool
    access_token: Optional[str] = None
    error: Optional[ConsoleSessionError] = None

    @classmethod
    def ok(cls, access_token: str) -> "RefreshResult":
        return cls(success=True, access_token=access_token)

    @classmethod
    def failed(cls, error: ConsoleSessionError) -> "RefreshResult":
        return cls(success=False, error=error)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


@dataclass(frozen=True)
class FetchResult:
    """Response of an authenticated request plus what the pipeline did with it.

    The response is handed over untouched; the transport never reads its body.

    Attributes:
        response: The final response, or None when no response was received.
        error: Set on timeout, transport failure, or an auth failure that
            survived the refresh-and-retry cycle.
        retried: Whether the request was re-issued after a refresh.
    """

    response: Optional[httpx.Response] = None
    error: Optional[ConsoleSessionError] = None
    retried: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.response is not None and self.response.is_success

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None

    @property
    def is_auth_error(self) -> bool:
        return isinstance(self.error, AuthenticationError)

    @property
    def is_timeout(self) -> bool:
        return isinstance(self.error, TransportTimeoutError)

    def raise_for_error(self) -> httpx.Response:
        """Return the response, raising the carried error if there is one.

        For callers that prefer exceptions over result inspection.
        """
        if self.error is not None:
            raise self.error
        return self.response
