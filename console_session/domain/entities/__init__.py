from .stored_credential import StoredCredential

__all__ = ["StoredCredential"]
