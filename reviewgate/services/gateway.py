"""Local webhook listener: FastAPI app served by uvicorn on a pre-bound socket."""

from __future__ import annotations

import asyncio
from enum import Enum
import errno
import logging
import socket

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from reviewgate.config import Settings
from reviewgate.errors import BindError, GatewayError, PortInUse
from reviewgate.routers.webhooks import build_webhook_router
from reviewgate.services.event_queue import EventQueue

logger = logging.getLogger(__name__)

_STARTUP_POLL_SECONDS = 0.01


class GatewayState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def build_gateway_app(
    queue: EventQueue,
    secret: str = "",
    webhook_path: str = "/webhook",
    health_path: str = "/health",
) -> FastAPI:
    """Build the ASGI app implementing the per-request state machine."""
    app = FastAPI(
        title="reviewgate webhook gateway",
        description="Authenticated GitHub pull request webhook receiver",
        version="0.1.0",
        redirect_slashes=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.event_queue = queue
    app.state.webhook_secret = secret

    @app.middleware("http")
    async def reject_non_post(request: Request, call_next):
        if request.method != "POST":
            return JSONResponse(status_code=405, content={"error": "Method not allowed"})
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def render_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = "Not found" if exc.status_code == 404 else exc.detail
        return JSONResponse(status_code=exc.status_code, content={"error": detail})

    app.include_router(build_webhook_router(webhook_path, health_path), tags=["webhooks"])
    return app


class WebhookGateway:
    """Owns the listening socket and the uvicorn server task.

    ``stopped -> running`` on a successful ``start``; back to ``stopped`` on
    ``stop`` or when the server dies during startup.
    """

    def __init__(self, settings: Settings, queue: EventQueue) -> None:
        self._settings = settings
        self._queue = queue
        self.app = build_gateway_app(
            queue,
            secret=settings.webhook_secret,
            webhook_path=settings.webhook_path,
            health_path=settings.health_path,
        )
        self._state = GatewayState.STOPPED
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None
        self._port: int | None = None

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is GatewayState.RUNNING

    @property
    def port(self) -> int | None:
        """Port actually bound, useful when started on port 0."""
        return self._port

    async def start(self, port: int | None = None, secret: str | None = None) -> None:
        """Bind the listener and begin accepting connections."""
        if self._state is GatewayState.RUNNING:
            raise GatewayError("Webhook gateway is already running.")

        port = self._settings.webhook_port if port is None else port
        self.app.state.webhook_secret = self._settings.webhook_secret if secret is None else secret
        if not self.app.state.webhook_secret:
            logger.warning("No webhook secret configured; signature verification is disabled.")

        sock = self._bind(self._settings.webhook_host, port)
        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=5,
        )
        server = uvicorn.Server(config)
        task = asyncio.create_task(server.serve(sockets=[sock]), name="reviewgate-gateway")

        while not server.started and not task.done():
            await asyncio.sleep(_STARTUP_POLL_SECONDS)

        if not server.started:
            sock.close()
            reason = "server exited during startup"
            if not task.cancelled() and task.exception() is not None:
                reason = str(task.exception())
            raise BindError(port, reason)

        self._socket = sock
        self._server = server
        self._task = task
        self._port = sock.getsockname()[1]
        self._state = GatewayState.RUNNING
        logger.info("Webhook gateway started on %s:%s", self._settings.webhook_host, self._port)

    async def wait_closed(self) -> None:
        """Block until the server task ends, e.g. after a shutdown signal."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Close the listener; a no-op when already stopped."""
        if self._state is GatewayState.STOPPED:
            return

        server, task, sock = self._server, self._task, self._socket
        self._server = self._task = self._socket = None
        self._state = GatewayState.STOPPED

        if server is not None:
            server.should_exit = True
        if task is not None:
            try:
                await task
            except Exception:
                logger.exception("Webhook gateway server exited with an error.")
        if sock is not None:
            sock.close()
        logger.info("Webhook gateway stopped (port %s).", self._port)
        self._port = None

    @staticmethod
    def _bind(host: str, port: int) -> socket.socket:
        try:
            return socket.create_server((host, port))
        except OSError as exc:
            if exc.errno == errno.EADDRINUSE:
                raise PortInUse(port) from exc
            raise BindError(port, exc.strerror or str(exc)) from exc
