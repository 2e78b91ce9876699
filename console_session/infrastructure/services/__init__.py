"""Infrastructure services for the session client."""

from .auth_api_client import HttpAuthApiClient
from .event_publisher import InMemoryEventPublisher
from .navigation import CallbackNavigator, NullNavigator

__all__ = [
    "CallbackNavigator",
    "HttpAuthApiClient",
    "InMemoryEventPublisher",
    "NullNavigator",
]
