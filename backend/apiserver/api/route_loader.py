"""
Route module discovery.

Every ``*.py`` file in the routes directory (excluding names starting
with ``_``) is a route module that exposes a module-level ``router``
(``fastapi.APIRouter``). Modules are loaded in file-name order and the
result is an immutable RouteTable: the routers that loaded and a report
of the files that failed. A failing file is logged and skipped; it never
aborts startup.
"""
import importlib.util
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from fastapi import APIRouter

from apiserver.utils.exceptions import ConfigurationError, RouteModuleError
from apiserver.utils.logging import get_logger
from apiserver.utils.metrics import route_modules_loaded_total

logger = get_logger(__name__)

# Route modules are imported under this namespace: apiserver_routes.<stem>
ROUTE_MODULE_NAMESPACE = "apiserver_routes"
ROUTER_ATTRIBUTE = "router"


@dataclass(frozen=True)
class LoadedRoute:
    """A route module that loaded and exposes a router."""

    name: str
    path: Path
    router: APIRouter = field(repr=False, compare=False)

    @property
    def paths(self) -> List[str]:
        return [route.path for route in self.router.routes]


@dataclass(frozen=True)
class RouteLoadFailure:
    """A route module that could not be loaded."""

    name: str
    path: Path
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.name,
            "path": str(self.path),
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass(frozen=True)
class RouteTable:
    """
    Result of route discovery.

    Built once before the application starts serving; never mutated.
    """

    prefix: str
    directory: Path
    routes: tuple[LoadedRoute, ...] = ()
    failures: tuple[RouteLoadFailure, ...] = ()

    @property
    def loaded(self) -> List[str]:
        return [route.name for route in self.routes]

    @property
    def ok(self) -> bool:
        return not self.failures

    def build_router(self) -> APIRouter:
        """Combine all loaded routers under the prefix."""
        api_router = APIRouter(prefix=self.prefix)
        for route in self.routes:
            api_router.include_router(route.router)
        return api_router

    def report(self) -> Dict[str, Any]:
        """Startup report: what was mounted and what failed."""
        return {
            "prefix": self.prefix,
            "directory": str(self.directory),
            "loaded": [
                {"module": route.name, "paths": route.paths}
                for route in self.routes
            ],
            "failed": [failure.to_dict() for failure in self.failures],
        }


def discover_route_files(directory: Path) -> List[Path]:
    """
    List route module files in deterministic (sorted by name) order.

    Raises:
        ConfigurationError: If the directory does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigurationError(
            f"Routes directory not found: {directory}",
            {"directory": str(directory)},
        )

    files = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.name.startswith(("_", ".")):
            continue
        if not entry.is_file() or entry.suffix != ".py":
            logger.debug("route_entry_skipped", entry=entry.name)
            continue
        files.append(entry)
    return files


def load_route_module(path: Path) -> APIRouter:
    """
    Import a route module from a file and return its router.

    Raises:
        RouteModuleError: If the module fails to import or has no router
    """
    module_name = f"{ROUTE_MODULE_NAMESPACE}.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise RouteModuleError(
            f"Cannot import route module {path.name}",
            {"path": str(path)},
        )

    module = importlib.util.module_from_spec(spec)
    # Registered before exec so pydantic/dataclasses can resolve the module
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise RouteModuleError(
            f"Failed to import route module {path.name}: {e}",
            {"path": str(path), "error_type": type(e).__name__},
        ) from e

    router = getattr(module, ROUTER_ATTRIBUTE, None)
    if not isinstance(router, APIRouter):
        sys.modules.pop(module_name, None)
        raise RouteModuleError(
            f"Route module {path.name} does not export an APIRouter named '{ROUTER_ATTRIBUTE}'",
            {"path": str(path), "found": type(router).__name__},
        )
    return router


def check_mountable(path: Path, router: APIRouter, prefix: str) -> None:
    """
    Mount a router on a scratch prefix router the way build_router does.

    FastAPI validates paths only when a router is included, so a module
    can import cleanly and still be rejected here.

    Raises:
        RouteModuleError: If FastAPI refuses to mount the router
    """
    try:
        APIRouter(prefix=prefix).include_router(router)
    except Exception as e:
        sys.modules.pop(f"{ROUTE_MODULE_NAMESPACE}.{path.stem}", None)
        raise RouteModuleError(
            f"Cannot mount route module {path.name}: {e}",
            {"path": str(path), "error_type": type(e).__name__},
        ) from e


def load_routes(directory: Path, prefix: str = "/api/v1") -> RouteTable:
    """
    Discover and load every route module in a directory.

    Loads run sequentially in file-name order. Each failure is logged
    and recorded in the table instead of being raised.

    Args:
        directory: Directory containing route modules
        prefix: Path prefix every router is mounted under

    Returns:
        RouteTable with loaded routers and failures
    """
    directory = Path(directory)
    routes: List[LoadedRoute] = []
    failures: List[RouteLoadFailure] = []

    for path in discover_route_files(directory):
        try:
            router = load_route_module(path)
            check_mountable(path, router, prefix)
        except RouteModuleError as e:
            cause = e.__cause__ if e.__cause__ is not None else e
            failures.append(
                RouteLoadFailure(
                    name=path.stem,
                    path=path,
                    error_type=type(cause).__name__,
                    message=str(cause),
                )
            )
            route_modules_loaded_total.labels(status="failure").inc()
            logger.error(
                "route_load_failed",
                message="Failed to load route file",
                module=path.stem,
                path=str(path),
                error_type=type(cause).__name__,
                error_message=str(cause),
            )
            continue

        loaded = LoadedRoute(name=path.stem, path=path, router=router)
        routes.append(loaded)
        route_modules_loaded_total.labels(status="success").inc()
        logger.info(
            "route_module_loaded",
            module=path.stem,
            prefix=prefix,
            paths=loaded.paths,
        )

    return RouteTable(
        prefix=prefix,
        directory=directory,
        routes=tuple(routes),
        failures=tuple(failures),
    )
