from .credential_repository import InMemoryCredentialStorage, SQLModelCredentialStorage

__all__ = ["InMemoryCredentialStorage", "SQLModelCredentialStorage"]
