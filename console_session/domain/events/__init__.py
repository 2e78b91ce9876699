"""Session domain events."""

from .session_events import (
    BaseDomainEvent,
    CredentialPurgedEvent,
    RefreshFailedEvent,
    SessionEndedEvent,
    SessionStartedEvent,
    TokenRefreshedEvent,
)

__all__ = [
    "BaseDomainEvent",
    "CredentialPurgedEvent",
    "RefreshFailedEvent",
    "SessionEndedEvent",
    "SessionStartedEvent",
    "TokenRefreshedEvent",
]
