from datetime import datetime, timezone

from sqlalchemy import DateTime, Text
from sqlmodel import Column, Field, SQLModel


class StoredCredential(SQLModel, table=True):
    """A persisted credential record, addressed by a well-known storage key.

    The credential store keeps one row per key: the serialized token pair
    (``auth_tokens``), the cached user profile (``user_data``) and, on
    installations upgraded from the single-token format, the legacy
    ``access_token`` row until it is migrated.

    Attributes:
        key: Storage key, primary key of the table.
        value: Opaque serialized value (JSON text or a raw legacy token).
        updated_at: When the row was last written.
    """

    __tablename__ = "credential_store"

    key: str = Field(
        primary_key=True,
        max_length=64,
        description="Well-known storage key.",
    )
    value: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Serialized value.",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Timestamp of the last write.",
    )

    __table_args__ = ({"extend_existing": True},)
