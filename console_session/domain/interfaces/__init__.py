"""Domain interfaces (ports) for the session client."""

from .navigation import INavigator
from .services import IAuthApiClient, IEventPublisher
from .storage import ICredentialStorage

__all__ = [
    "IAuthApiClient",
    "ICredentialStorage",
    "IEventPublisher",
    "INavigator",
]
