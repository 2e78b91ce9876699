"""Pydantic models for the authentication endpoints."""

from .requests import LoginRequest, RefreshRequest
from .responses import LoginResponse, RefreshResponse, TokenResponse

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "RefreshRequest",
    "RefreshResponse",
    "TokenResponse",
]
