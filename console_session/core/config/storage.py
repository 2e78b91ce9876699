"""
Credential database settings.
"""
from pydantic import Field
from pydantic_settings import BaseSettings


class StorageSettings(BaseSettings):
    """
    Defines where persisted credentials live.

    Any SQLAlchemy URL works; the default is a SQLite file next to the working
    directory so a console restart restores the previous session.
    """
    CREDENTIAL_DATABASE_URL: str = "sqlite:///./.console_session.db"
    CREDENTIAL_DATABASE_ECHO: bool = False
    CREDENTIAL_DATABASE_TIMEOUT_SECONDS: float = Field(gt=0, default=10.0)
