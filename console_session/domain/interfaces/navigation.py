"""Navigation interface.

Logout is the one state transition that moves the user interface. The
session manager does that through this port instead of knowing about routers.
"""

from abc import ABC, abstractmethod
from typing import Optional


class INavigator(ABC):
    """Client-side navigation as seen by the session manager."""

    @property
    @abstractmethod
    def current_path(self) -> Optional[str]:
        """Path of the surface currently displayed, if known."""
        raise NotImplementedError

    @abstractmethod
    def navigate(self, path: str) -> None:
        """Switch to the surface at ``path``."""
        raise NotImplementedError
