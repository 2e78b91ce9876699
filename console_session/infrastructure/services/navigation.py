"""Navigator implementations.

The console host (a desktop shell, a TUI, a test) supplies navigation. These
adapters cover the common cases: a callback-driven router and "no UI at all".
"""

from typing import Callable, Optional

from structlog import get_logger

from console_session.domain.interfaces.navigation import INavigator

logger = get_logger(__name__)


class CallbackNavigator(INavigator):
    """Delegates navigation to a callback and remembers where it went.

    Args:
        on_navigate: Called with the target path.
        initial_path: Path shown before the first navigation.
    """

    def __init__(self, on_navigate: Callable[[str], None], initial_path: Optional[str] = None):
        self._on_navigate = on_navigate
        self._current_path = initial_path

    @property
    def current_path(self) -> Optional[str]:
        return self._current_path

    def set_current_path(self, path: str) -> None:
        """Record a navigation the host performed on its own."""
        self._current_path = path

    def navigate(self, path: str) -> None:
        logger.info("navigating", target=path, source=self._current_path)
        self._on_navigate(path)
        self._current_path = path


class NullNavigator(INavigator):
    """Navigator for headless use: records the request and does nothing else."""

    def __init__(self):
        self._current_path: Optional[str] = None

    @property
    def current_path(self) -> Optional[str]:
        return self._current_path

    def navigate(self, path: str) -> None:
        logger.debug("navigation_skipped_headless", target=path)
        self._current_path = path
