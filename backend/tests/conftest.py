"""
Shared pytest fixtures.

Route modules are written into temporary directories so each test
controls exactly which files discovery sees.
"""
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if BACKEND_DIR.as_posix() not in sys.path:
    sys.path.insert(0, BACKEND_DIR.as_posix())

from apiserver.api.main import create_app  # noqa: E402
from apiserver.core import database  # noqa: E402
from apiserver.core.config import Settings  # noqa: E402

CLIENT_URL = "https://app.example.com"

HEALTH_ROUTE = """
from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}
"""


class FakeDatabase:
    """Stand-in for the Elasticsearch client: ping() and close()."""

    def __init__(self, available: bool = True, error: Exception | None = None):
        self.available = available
        self.error = error
        self.closed = False
        self.pings = 0

    async def ping(self) -> bool:
        self.pings += 1
        if self.error is not None:
            raise self.error
        return self.available

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's environment out of Settings."""
    for name in (
        "PORT",
        "HOST",
        "CLIENT_URL",
        "NODE_ENV",
        "ROUTES_DIR",
        "MAX_BODY_SIZE",
        "ELASTICSEARCH_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_database() -> None:
    database.reset_database_client()
    yield
    database.reset_database_client()


@pytest.fixture()
def write_route(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a route module into the temporary routes directory."""
    routes_dir = tmp_path / "routes"
    routes_dir.mkdir(exist_ok=True)

    def _write(filename: str, source: str) -> Path:
        path = routes_dir / filename
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def routes_dir(tmp_path: Path, write_route) -> Path:
    write_route("health.py", HEALTH_ROUTE)
    return tmp_path / "routes"


@pytest.fixture()
def make_settings(routes_dir: Path) -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = {"client_url": CLIENT_URL, "routes_dir": routes_dir}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture()
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture()
def client(settings: Settings) -> TestClient:
    # No context manager: lifespan (and its data store connection) is not run
    return TestClient(create_app(settings), raise_server_exceptions=False)
