from __future__ import annotations

"""Request bodies sent to the authentication endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Body of ``POST /auth/login``."""

    model_config = ConfigDict(frozen=True)

    email: str = Field(..., examples=["ops@example.com"])
    password: str = Field(..., repr=False)


class RefreshRequest(BaseModel):
    """Body of ``POST /auth/refresh``."""

    model_config = ConfigDict(frozen=True)

    refresh_token: str = Field(..., repr=False)
