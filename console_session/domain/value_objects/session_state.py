"""Session state as seen by the console."""

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of the console session.

    Values:
        ANONYMOUS: No token pair is held.
        ACTIVE: A pair is held and is either unexpired or inside the post-login
            grace window.
        REFRESHING: A refresh round-trip is in flight.
        DEGRADED: The held pair is expired and has not been replaced yet.
            Requests still carry the expired token and the next `ensure_valid`
            tries again.
    """

    ANONYMOUS = "anonymous"
    ACTIVE = "active"
    REFRESHING = "refreshing"
    DEGRADED = "degraded"
