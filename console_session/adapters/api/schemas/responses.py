"""Response bodies returned by the authentication endpoints.

Token fields are deliberately loose here: the session manager applies the
format check itself so a bad token from the server surfaces as a
`MalformedCredentialError` rather than a schema error.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class TokenResponse(BaseModel):
    """Token material shared by the login and refresh responses."""

    model_config = ConfigDict(extra="allow")

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[float] = None  # seconds

    @field_validator("expires_in", mode="before")
    @classmethod
    def drop_non_positive_lifetime(cls, v: Any) -> Any:
        """A lifetime of zero or less is treated as not announced."""
        if isinstance(v, (int, float)) and not isinstance(v, bool) and v <= 0:
            return None
        return v


class LoginResponse(TokenResponse):
    """Body of a successful ``POST /auth/login``."""

    user: Optional[Dict[str, Any]] = None


class RefreshResponse(TokenResponse):
    """Body of a successful ``POST /auth/refresh``."""
