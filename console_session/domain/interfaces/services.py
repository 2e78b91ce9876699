"""Service interfaces consumed by the session manager."""

from abc import ABC, abstractmethod
from typing import Callable, List

from console_session.adapters.api.schemas import LoginResponse, RefreshResponse
from console_session.domain.events.session_events import BaseDomainEvent
from console_session.domain.value_objects.credentials import LoginCredentials


class IAuthApiClient(ABC):
    """Interface to the remote authentication endpoints.

    Implementations raise the session client exceptions: `AuthenticationError`
    for rejected credentials, `RefreshError` for a rejected refresh token,
    `TransportError` / `TransportTimeoutError` for network trouble and
    `MalformedCredentialError` for an unreadable response body.
    """

    @abstractmethod
    async def login(self, credentials: LoginCredentials) -> LoginResponse:
        """POST the credentials to the login endpoint."""
        pass

    @abstractmethod
    async def refresh(self, refresh_token: str) -> RefreshResponse:
        """Exchange a refresh token for a new access token."""
        pass

    @abstractmethod
    async def logout(self, access_token: str) -> None:
        """Tell the server the session is over. Best effort."""
        pass


class IEventPublisher(ABC):
    """Interface for domain event publishing."""

    @abstractmethod
    async def publish(self, event: BaseDomainEvent) -> None:
        """Publish a domain event.

        Args:
            event: Domain event to publish
        """
        pass

    @abstractmethod
    async def publish_many(self, events: List[BaseDomainEvent]) -> None:
        """Publish multiple domain events.

        Args:
            events: List of domain events to publish
        """
        pass

    @abstractmethod
    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Register a callback and return a function that unregisters it."""
        pass
