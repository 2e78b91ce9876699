"""Outbound HTTP adapters."""

from .authenticated_transport import AuthenticatedTransport

__all__ = ["AuthenticatedTransport"]
