"""Client-side session lifecycle and authenticated request pipeline.

The package keeps one access/refresh token pair per application root,
refreshes it transparently and wraps outbound API calls so callers never see
a stale-token failure that could have healed itself.
"""

from console_session.client import SessionClient

__all__ = ["SessionClient"]
