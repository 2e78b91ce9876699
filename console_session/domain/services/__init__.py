"""Domain services: credential storage discipline and the session lifecycle."""

from .credential_store import CredentialStore
from .session_manager import SessionManager

__all__ = ["CredentialStore", "SessionManager"]
