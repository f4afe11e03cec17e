from pathlib import Path

import pytest
from fastapi import APIRouter

from apiserver.api.route_loader import (
    RouteTable,
    discover_route_files,
    load_route_module,
    load_routes,
)
from apiserver.utils.exceptions import ConfigurationError, RouteModuleError

from conftest import HEALTH_ROUTE

USERS_ROUTE = """
from fastapi import APIRouter

router = APIRouter(prefix="/users")


@router.get("")
async def list_users():
    return [{"id": 1}]
"""

BROKEN_SYNTAX_ROUTE = """
from fastapi import APIRouter

router = APIRouter(
"""


def test_discover_is_sorted_and_skips_private_entries(write_route, tmp_path: Path) -> None:
    write_route("zeta.py", HEALTH_ROUTE)
    write_route("alpha.py", HEALTH_ROUTE)
    write_route("_helpers.py", "")
    write_route("__init__.py", "")
    write_route("README.md", "docs")
    (tmp_path / "routes" / "__pycache__").mkdir()

    files = discover_route_files(tmp_path / "routes")

    assert [path.name for path in files] == ["alpha.py", "zeta.py"]


def test_missing_routes_directory_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        discover_route_files(tmp_path / "does-not-exist")


def test_load_route_module_returns_router(write_route) -> None:
    path = write_route("users.py", USERS_ROUTE)
    router = load_route_module(path)
    assert isinstance(router, APIRouter)
    assert [route.path for route in router.routes] == ["/users"]


def test_module_without_router_is_rejected(write_route) -> None:
    path = write_route("empty.py", "value = 1\n")
    with pytest.raises(RouteModuleError, match="router"):
        load_route_module(path)


def test_router_of_wrong_type_is_rejected(write_route) -> None:
    path = write_route("wrong.py", "router = {'GET': '/x'}\n")
    with pytest.raises(RouteModuleError):
        load_route_module(path)


def test_one_bad_file_does_not_stop_the_others(write_route, tmp_path: Path) -> None:
    write_route("a_health.py", HEALTH_ROUTE)
    write_route("b_broken.py", BROKEN_SYNTAX_ROUTE)
    write_route("c_users.py", USERS_ROUTE)

    table = load_routes(tmp_path / "routes", "/api/v1")

    assert table.loaded == ["a_health", "c_users"]
    assert len(table.failures) == 1
    failure = table.failures[0]
    assert failure.name == "b_broken"
    assert failure.error_type == "SyntaxError"
    assert table.ok is False


def test_import_time_exception_is_recorded(write_route, tmp_path: Path) -> None:
    write_route("boom.py", "raise RuntimeError('no database driver')\n")
    write_route("health.py", HEALTH_ROUTE)

    table = load_routes(tmp_path / "routes")

    assert table.loaded == ["health"]
    assert table.failures[0].error_type == "RuntimeError"
    assert "no database driver" in table.failures[0].message


def test_missing_router_failure_is_reported(write_route, tmp_path: Path) -> None:
    write_route("norouter.py", "x = 1\n")

    table = load_routes(tmp_path / "routes")

    assert table.loaded == []
    assert table.failures[0].error_type == "RouteModuleError"


UNMOUNTABLE_ROUTE = """
from fastapi import APIRouter

router = APIRouter()


@router.get("")
async def index():
    return {"ok": True}
"""


def test_router_that_cannot_be_mounted_is_recorded(write_route, tmp_path: Path) -> None:
    write_route("health.py", HEALTH_ROUTE)
    write_route("index.py", UNMOUNTABLE_ROUTE)

    table = load_routes(tmp_path / "routes", "/api/v1")

    assert table.loaded == ["health"]
    (failure,) = table.failures
    assert failure.name == "index"
    assert failure.error_type == "FastAPIError"
    assert "cannot be both empty" in failure.message
    paths = [route.path for route in table.build_router().routes]
    assert paths == ["/api/v1/health"]


def test_build_router_mounts_everything_under_prefix(write_route, tmp_path: Path) -> None:
    write_route("health.py", HEALTH_ROUTE)
    write_route("users.py", USERS_ROUTE)

    router = load_routes(tmp_path / "routes", "/api/v1").build_router()

    paths = sorted(route.path for route in router.routes)
    assert paths == ["/api/v1/health", "/api/v1/users"]


def test_report_lists_loaded_and_failed(write_route, tmp_path: Path) -> None:
    write_route("health.py", HEALTH_ROUTE)
    write_route("broken.py", BROKEN_SYNTAX_ROUTE)

    report = load_routes(tmp_path / "routes").report()

    assert report["prefix"] == "/api/v1"
    assert report["loaded"] == [{"module": "health", "paths": ["/health"]}]
    assert [item["module"] for item in report["failed"]] == ["broken"]
    assert report["failed"][0]["error_type"] == "SyntaxError"


def test_route_table_is_immutable(tmp_path: Path) -> None:
    table = RouteTable(prefix="/api/v1", directory=tmp_path)
    with pytest.raises(AttributeError):
        table.prefix = "/other"  # type: ignore[misc]
