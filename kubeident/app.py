"""Application bootstrap for kubeident.

Wires the components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → resolver (cluster client + cache sync) → REST

Shutdown is graceful: components are stopped in reverse startup order, and
each stop error is caught and logged independently.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from kubeident.config import load_config
from kubeident.models.config import KubeIdentConfig
from kubeident.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubeident.resolver.identity import IdentityResolver

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeIdentApp:
    """Application root. Owns the resolver and the REST server.

    Calling ``stop()`` on an app that was never started (or already
    stopped) is safe.
    """

    def __init__(self) -> None:
        self.config: KubeIdentConfig | None = None
        self._resolver: IdentityResolver | None = None
        self._rest_server: object | None = None
        self._background_tasks: list[asyncio.Task[None]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("kubeident starting", version=_kubeident_version())

        # --- 3. Resolver (client, cache sync) ---------------------------
        await self._start_resolver()

        # --- 4. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("kubeident started", port=self.config.api.port)

    async def _start_resolver(self) -> None:
        """Validate config, build the cluster client and wait for cache sync."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting resolver")
        try:
            from kubeident.resolver.builder import ResolverBuilder

            builder = ResolverBuilder()
            builder.set_config(self.config.resolver)
            self._resolver = await builder.build()
            self._log.info(
                "resolver started",
                workloads=len(self._resolver.cache),
                lookup_ingress=self.config.resolver.lookup_ingress_source_and_origin_values,
            )
        except Exception as exc:
            raise _ComponentError("resolver", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self._resolver is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kubeident.api import create_app

            fastapi_app = create_app(resolver=self._resolver)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order."""
        if not self._running and self._resolver is None and not self._background_tasks:
            return

        log = self._log or get_logger("app")
        log.info("kubeident shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        if self._resolver is not None:
            try:
                await asyncio.wait_for(self._resolver.close(), timeout=_SHUTDOWN_GRACE_SECONDS)
            except TimeoutError:
                log.warning("component stop timed out", component="resolver", timeout=_SHUTDOWN_GRACE_SECONDS)
            except Exception as exc:
                log.error("component stop raised an error", component="resolver", error=str(exc))
            self._resolver = None

        log.info("kubeident stopped")


def _kubeident_version() -> str:
    from kubeident import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeIdentApp()
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    finally:
        await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
