"""Session lifecycle and credential storage settings.
"""

import logging
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

logger = logging.getLogger(__name__)


class AuthSettings(BaseSettings):
    """Defines the policy knobs of the session manager and credential store.

    Refresh policy:
        - REFRESH_MAX_ATTEMPTS: attempts per refresh call. Only transport
          failures (network errors, timeouts, 5xx) are retried, with exponential
          backoff between REFRESH_BACKOFF_INITIAL_SECONDS and
          REFRESH_BACKOFF_MAX_SECONDS. A 4xx rejection is final.
        - REFRESH_FAILURE_LOGOUT_THRESHOLD: number of consecutive failed refresh
          calls after which a still-expired token is cleared. ``None`` keeps the
          expired token forever and leaves it to the server to reject it. An
          authenticated request spends at most one refresh, so with the
          default of 3 the third failing request clears the session.

    Security Note:
        - Tokens are persisted in the credential database; keep that file
          readable only by the console user (chmod 600).
    """

    # Grace window after login during which expiry checks are skipped
    LOGIN_GRACE_PERIOD_SECONDS: float = Field(ge=0, default=10.0)
    # Used when the server omits expires_in
    DEFAULT_TOKEN_TTL_SECONDS: int = Field(gt=0, default=86400)
    DEFAULT_TOKEN_TYPE: str = "bearer"

    TOKEN_STORAGE_KEY: str = "auth_tokens"
    LEGACY_TOKEN_STORAGE_KEY: str = "access_token"
    USER_STORAGE_KEY: str = "user_data"

    REFRESH_MAX_ATTEMPTS: int = Field(ge=1, default=2)
    REFRESH_BACKOFF_INITIAL_SECONDS: float = Field(ge=0, default=0.5)
    REFRESH_BACKOFF_MAX_SECONDS: float = Field(ge=0, default=4.0)
    REFRESH_FAILURE_LOGOUT_THRESHOLD: Optional[int] = Field(ge=1, default=3)

    LOGIN_SURFACE_PATH: str = "/auth/login"
    UNAUTHENTICATED_SURFACE_PATHS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["/auth/login", "/auth/register", "/login"]
    )

    @field_validator("UNAUTHENTICATED_SURFACE_PATHS", mode="before")
    @classmethod
    def split_surface_paths(cls, v):
        """Accepts a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v
