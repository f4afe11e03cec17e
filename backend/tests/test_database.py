import pytest

from apiserver.core import database
from apiserver.utils.exceptions import DatabaseError

from conftest import FakeDatabase


@pytest.fixture()
def fake_client(monkeypatch: pytest.MonkeyPatch):
    def _install(fake: FakeDatabase) -> FakeDatabase:
        monkeypatch.setattr(database, "create_database_client", lambda settings: fake)
        return fake

    return _install


async def test_connect_returns_client_when_ping_succeeds(fake_client, settings) -> None:
    fake = fake_client(FakeDatabase())

    client = await database.connect_database(settings)

    assert client is fake


async def test_connect_is_idempotent(fake_client, settings) -> None:
    fake = fake_client(FakeDatabase())

    await database.connect_database(settings)
    await database.connect_database(settings)

    assert fake.pings == 1


async def test_failed_ping_raises_and_closes(fake_client, settings) -> None:
    fake = fake_client(FakeDatabase(available=False))

    with pytest.raises(DatabaseError, match="ping"):
        await database.connect_database(settings)

    assert fake.closed is True
    retry = fake_client(FakeDatabase())
    assert await database.connect_database(settings) is retry


async def test_ping_error_is_wrapped(fake_client, settings) -> None:
    fake = fake_client(FakeDatabase(error=ConnectionError("connection refused")))

    with pytest.raises(DatabaseError) as exc_info:
        await database.connect_database(settings)

    assert "connection refused" in exc_info.value.message
    assert exc_info.value.details["url"] == settings.elasticsearch_url
    assert fake.closed is True


async def test_client_creation_error_is_wrapped(monkeypatch: pytest.MonkeyPatch, settings) -> None:
    def broken(settings):
        raise ValueError("bad url")

    monkeypatch.setattr(database, "create_database_client", broken)

    with pytest.raises(DatabaseError, match="bad url"):
        await database.connect_database(settings)


async def test_close_database(fake_client, settings) -> None:
    fake = fake_client(FakeDatabase())
    await database.connect_database(settings)

    await database.close_database()

    assert fake.closed is True
    replacement = fake_client(FakeDatabase())
    assert await database.connect_database(settings) is replacement
