"""Unit tests for the credential storage backends."""

import pytest

from console_session.infrastructure.database.database import create_credential_engine
from console_session.infrastructure.repositories.credential_repository import (
    InMemoryCredentialStorage,
    SQLModelCredentialStorage,
)


@pytest.fixture(params=["sqlmodel", "memory"])
def backend(request, test_settings):
    if request.param == "memory":
        yield InMemoryCredentialStorage()
        return
    engine = create_credential_engine("sqlite://", test_settings)
    yield SQLModelCredentialStorage(engine)
    engine.dispose()


class TestCredentialStorage:
    def test_get_missing_key(self, backend):
        assert backend.get("auth_tokens") is None

    def test_set_overwrites(self, backend):
        backend.set("auth_tokens", "first")
        backend.set("auth_tokens", "second")

        assert backend.get("auth_tokens") == "second"

    def test_set_many_and_delete(self, backend):
        backend.set_many({"auth_tokens": "a", "user_data": "b", "other": "c"})

        backend.delete("auth_tokens", "user_data", "never-written")

        assert backend.get("auth_tokens") is None
        assert backend.get("user_data") is None
        assert backend.get("other") == "c"

    def test_delete_nothing(self, backend):
        backend.delete()
