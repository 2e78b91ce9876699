"""
Remote API connection settings.
"""
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class ApiSettings(BaseSettings):
    """
    Defines where the remote console API lives and how long a request may take.

    Performance Note:
        - REQUEST_TIMEOUT_SECONDS bounds every outbound call, including login and
          refresh. A request exceeding it is aborted and reported as a timeout,
          never as an authentication failure.
    """
    API_BASE_URL: str = "http://localhost:8000/api/v1"
    REQUEST_TIMEOUT_SECONDS: float = Field(gt=0, default=10.0)

    LOGIN_ENDPOINT: str = "/auth/login"
    REFRESH_ENDPOINT: str = "/auth/refresh"
    LOGOUT_ENDPOINT: str = "/auth/logout"
    CURRENT_USER_ENDPOINT: str = "/auth/me"

    @field_validator("API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """
        Normalizes the base URL so endpoint paths can be appended verbatim.

        Args:
            v: Configured base URL.

        Returns:
            The URL without a trailing slash.
        """
        return v.rstrip("/")
