"""
Server bootstrap.

Startup order:
1. build the application (middleware, error handlers, route discovery)
2. await the data store connection; on failure log and exit with status 1
3. bind the listening socket and log readiness

Run with: python -m apiserver.server (or the ``apiserver`` console script)
"""
import asyncio
import socket
from typing import Awaitable, Callable, List, Optional

import uvicorn
from fastapi import FastAPI

from apiserver.api.main import create_app
from apiserver.core.config import Settings, settings as default_settings
from apiserver.core.database import close_database, connect_database
from apiserver.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_DATABASE_FAILURE = 1


class Server(uvicorn.Server):
    """uvicorn server that logs readiness once its socket is bound."""

    def __init__(self, config: uvicorn.Config, settings: Settings):
        super().__init__(config)
        self.settings = settings

    async def startup(self, sockets: Optional[List[socket.socket]] = None) -> None:
        await super().startup(sockets=sockets)
        if not self.started:
            return
        logger.info(
            "server_listening",
            message=f"Server is running on port {self.config.port}",
            host=self.config.host,
            port=self.config.port,
        )
        if self.settings.node_env:
            logger.info("server_environment", message=f"Running {self.settings.node_env}")


class ServerBootstrap:
    """
    Wires configuration, application, data store and listener together.

    The connect/disconnect callables and the server class are injectable
    so the startup sequence can be exercised without a real data store
    or socket.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        connect: Callable[[Settings], Awaitable[object]] = connect_database,
        disconnect: Callable[[], Awaitable[None]] = close_database,
        server_class: Callable[..., Server] = Server,
        app: Optional[FastAPI] = None,
    ):
        self.settings = settings or default_settings
        self.connect = connect
        self.disconnect = disconnect
        self.server_class = server_class
        self.app = app
        self.server: Optional[Server] = None

    def build_app(self) -> FastAPI:
        if self.app is None:
            self.app = create_app(self.settings)
        return self.app

    def build_server(self, app: FastAPI) -> Server:
        config = uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
            log_level=self.settings.log_level.lower(),
            lifespan="on",
        )
        return self.server_class(config, settings=self.settings)

    async def run(self) -> None:
        """
        Run the startup sequence and serve until shutdown.

        Raises:
            SystemExit: With status 1 if the data store connection fails
        """
        app = self.build_app()

        try:
            app.state.database = await self.connect(self.settings)
        except Exception as e:
            logger.error(
                "server_start_failed",
                message="Failed to start server",
                error_type=type(e).__name__,
                error_message=getattr(e, "message", str(e)),
            )
            raise SystemExit(EXIT_DATABASE_FAILURE) from e

        self.server = self.build_server(app)
        try:
            await self.server.serve()
        finally:
            await self.disconnect()


def build_application(settings: Optional[Settings] = None) -> FastAPI:
    """
    Configure logging from settings, then create the application.

    Route discovery logs through loggers that are cached on first use,
    so logging has to be configured before create_app() runs.
    """
    settings = settings or default_settings
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)
    return create_app(settings)


def main(app: Optional[FastAPI] = None) -> None:
    """Console entry point."""
    if app is None:
        app = build_application(default_settings)
    try:
        asyncio.run(ServerBootstrap(default_settings, app=app).run())
    except KeyboardInterrupt:
        logger.info("server_stopped", message="Interrupted")


if __name__ == "__main__":
    main()
