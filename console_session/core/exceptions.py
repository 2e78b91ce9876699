from __future__ import annotations

"""Structured exception hierarchy for the session client.

Each exception carries a machine-readable `code` for programmatic handling
and a human-readable `message` for logging. The public surface never raises
these: the session manager and the authenticated transport catch them and
hand them back inside `LoginResult`, `RefreshResult` or `FetchResult`, where
the calling view decides how to render them.
"""

from typing import Final, Optional

__all__: Final = [
    "ConsoleSessionError",
    "MalformedCredentialError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "RefreshError",
    "TransportError",
    "TransportTimeoutError",
    "StorageError",
]


class ConsoleSessionError(Exception):
    """Base exception class for all errors raised by the session client.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Credential errors
# ---------------------------------------------------------------------------


class MalformedCredentialError(ConsoleSessionError):
    """Raised when a token fails the placeholder or three-segment format check.

    Such a token is never stored. When found in already persisted state it is
    purged and the client behaves as if no session existed.
    """

    def __init__(self, message: str = "Malformed credential", code: str = "malformed_credential"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Remote auth errors
# ---------------------------------------------------------------------------


class AuthenticationError(ConsoleSessionError):
    """Raised when the server rejects a request as unauthorized (401).

    The authenticated transport answers the first one with a refresh-and-retry
    cycle; a second one is surfaced to the caller. It never logs the user out.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "authentication_error",
        status_code: Optional[int] = 401,
    ):
        super().__init__(message, code)
        self.status_code = status_code


class InvalidCredentialsError(AuthenticationError):
    """Raised when the login endpoint rejects the email/password pair."""

    def __init__(
        self,
        message: str = "Invalid email or password",
        code: str = "invalid_credentials",
        status_code: Optional[int] = 401,
    ):
        super().__init__(message, code, status_code)


class RefreshError(ConsoleSessionError):
    """Raised when the refresh endpoint is unreachable or rejects the refresh token.

    A refresh failure degrades the session: the expired pair stays in place and
    the next `ensure_valid()` call tries again.
    """

    def __init__(
        self,
        message: str = "Token refresh failed",
        code: str = "refresh_failed",
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class TransportError(ConsoleSessionError):
    """Raised when the request could not be completed at the network level.

    `status_code` is set when the server answered with a 5xx that the caller
    asked to be treated as a transport failure (login/refresh endpoints).
    """

    def __init__(
        self,
        message: str = "Network error",
        code: str = "transport_error",
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code)
        self.status_code = status_code


class TransportTimeoutError(TransportError):
    """Raised when a request exceeds its bounded wait.

    Distinct from `AuthenticationError`: a timeout never triggers a refresh.
    """

    def __init__(self, message: str = "Request timed out", code: str = "timeout"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------


class StorageError(ConsoleSessionError):
    """Raised by credential storage backends when a read or write fails."""

    def __init__(self, message: str, code: str = "storage_error"):
        super().__init__(message, code)
