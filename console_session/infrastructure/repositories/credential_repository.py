"""Credential storage implementations.

`SQLModelCredentialStorage` persists credential records in a SQL database so
a console restart restores the previous session. `InMemoryCredentialStorage`
keeps them in a dictionary, for ephemeral sessions and tests.

Both implement `ICredentialStorage` and translate backend failures into
`StorageError`; neither knows what the values mean.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from structlog import get_logger

from console_session.core.exceptions import StorageError
from console_session.domain.entities.stored_credential import StoredCredential
from console_session.domain.interfaces.storage import ICredentialStorage
from console_session.infrastructure.database.database import (
    create_db_and_tables,
    get_db_session,
)

logger = get_logger(__name__)


class SQLModelCredentialStorage(ICredentialStorage):
    """SQLModel implementation of the credential storage port.

    Every operation runs in its own short session and commits before
    returning, so a write is durable by the time the caller continues.
    """

    def __init__(self, engine: Engine, create_tables: bool = True):
        """Initialize storage with a database engine.

        Args:
            engine: SQLAlchemy engine for the credential database.
            create_tables: Create the credential table if it does not exist.
        """
        self._engine = engine
        if create_tables:
            try:
                create_db_and_tables(engine)
            except SQLAlchemyError as e:
                raise StorageError(f"Could not prepare credential table: {e}")

    def get(self, key: str) -> Optional[str]:
        try:
            with get_db_session(self._engine) as session:
                record = session.get(StoredCredential, key)
                return record.value if record else None
        except SQLAlchemyError as e:
            logger.error("credential_read_failed", key=key, error=str(e))
            raise StorageError(f"Could not read credential '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Dict[str, str]) -> None:
        now = datetime.now(timezone.utc)
        try:
            with get_db_session(self._engine) as session:
                for key, value in items.items():
                    record = session.get(StoredCredential, key)
                    if record is None:
                        record = StoredCredential(key=key, value=value, updated_at=now)
                    else:
                        record.value = value
                        record.updated_at = now
                    session.add(record)
                session.commit()
        except SQLAlchemyError as e:
            logger.error("credential_write_failed", keys=list(items), error=str(e))
            raise StorageError(f"Could not write credentials: {e}")

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            with get_db_session(self._engine) as session:
                for key in keys:
                    record = session.get(StoredCredential, key)
                    if record is not None:
                        session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            logger.error("credential_delete_failed", keys=list(keys), error=str(e))
            raise StorageError(f"Could not delete credentials: {e}")


class InMemoryCredentialStorage(ICredentialStorage):
    """Dictionary-backed storage. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def set_many(self, items: Dict[str, str]) -> None:
        self._data.update(items)

    def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the stored values."""
        return dict(self._data)
