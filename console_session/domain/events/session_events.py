"""Session Domain Events.

These events represent significant occurrences in the session lifecycle that
other parts of the console may react to (re-rendering the header, showing a
"session expired" banner, audit logging).
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class BaseDomainEvent:
    """Base class for all domain events.

    Attributes:
        occurred_at: When the event occurred
        user_id: ID of the signed-in user, when known
        correlation_id: Optional correlation ID for tracking
    """

    occurred_at: datetime
    user_id: Optional[str] = None
    correlation_id: Optional[str] = None

    def __post_init__(self):
        """Ensure occurred_at is timezone-aware."""
        if not self.occurred_at.tzinfo:
            object.__setattr__(self, 'occurred_at',
                               self.occurred_at.replace(tzinfo=timezone.utc))


@dataclass(frozen=True)
class SessionStartedEvent(BaseDomainEvent):
    """Event published after a successful login.

    Attributes:
        expires_at: Expiry of the freshly issued access token
        email: Email used to sign in
    """

    expires_at: Optional[datetime] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class TokenRefreshedEvent(BaseDomainEvent):
    """Event published when a refresh replaced the token pair.

    Attributes:
        expires_at: Expiry of the new access token
        refresh_token_rotated: Whether the server issued a new refresh token
    """

    expires_at: Optional[datetime] = None
    refresh_token_rotated: bool = False


@dataclass(frozen=True)
class RefreshFailedEvent(BaseDomainEvent):
    """Event published when a refresh round-trip failed.

    The session is degraded, not ended: the expired pair is still stored.

    Attributes:
        reason: Machine-readable error code
        consecutive_failures: Failed refreshes in a row, this one included
    """

    reason: str = "refresh_failed"
    consecutive_failures: int = 1


@dataclass(frozen=True)
class SessionEndedEvent(BaseDomainEvent):
    """Event published when credential state was cleared.

    Attributes:
        reason: ``logout`` or ``refresh_exhausted``
    """

    reason: str = "logout"


@dataclass(frozen=True)
class CredentialPurgedEvent(BaseDomainEvent):
    """Event published when malformed persisted credentials were removed.

    Attributes:
        storage_key: Key of the purged record
        reason: Why the record was rejected
    """

    storage_key: str = ""
    reason: str = "malformed_credential"
