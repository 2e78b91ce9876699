"""Domain value objects for the session client."""

from .auth_result import FetchResult, LoginResult, RefreshResult
from .credentials import LoginCredentials
from .session_state import SessionState
from .token_pair import TokenPair, is_valid_token_format, mask_token

__all__ = [
    "FetchResult",
    "LoginCredentials",
    "LoginResult",
    "RefreshResult",
    "SessionState",
    "TokenPair",
    "is_valid_token_format",
    "mask_token",
]
