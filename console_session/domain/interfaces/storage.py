"""Credential storage interface.

The credential store talks to durable storage only through this port, so the
same store logic runs against a SQL database, an in-memory dictionary or
whatever the embedding application provides. Values are opaque strings; the
store owns their serialization.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ICredentialStorage(ABC):
    """A synchronous string key/value store that survives process restarts.

    Implementations raise `StorageError` when the backend fails. Reads are
    synchronous because they sit on the hot path of every outbound request.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the raw value stored under ``key``, or None."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Stores ``value`` under ``key``, replacing any previous value."""
        raise NotImplementedError

    @abstractmethod
    def set_many(self, items: dict) -> None:
        """Stores several keys in a single transaction."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, *keys: str) -> None:
        """Removes the given keys. Missing keys are ignored."""
        raise NotImplementedError
