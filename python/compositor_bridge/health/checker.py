"""
Health Check HTTP Server.

Provides endpoints for liveness and readiness probes:
- /health/live - Returns 200 if the bridge process is running
- /health/ready - Returns 200 only when the orchestrator and compositor are healthy
- /health - Alias for /health/ready with detailed component status
"""

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

logger = logging.getLogger("vcb.health")

if TYPE_CHECKING:
    from ..core.orchestrator import Orchestrator


class HealthChecker:
    """Health check server for bridge components."""

    def __init__(
        self,
        port: int = 8091,
        host: str = "0.0.0.0",
        orchestrator: Optional["Orchestrator"] = None,
    ):
        """
        Initialize health checker.

        Args:
            port: HTTP port to listen on
            host: Host to bind to
            orchestrator: Registers the standard bridge checks when given
        """
        self.port = port
        self.host = host
        self._checks: Dict[str, Callable[[], Optional[bool]]] = {}
        self._async_checks: Dict[str, Callable[[], Awaitable[Any]]] = {}
        self._runner: Optional[web.AppRunner] = None
        self._started = False

        if orchestrator is not None:
            self.watch(orchestrator)

    def watch(self, orchestrator: "Orchestrator") -> None:
        """Register orchestrator, compositor process and control API checks."""
        self.register_check("orchestrator", lambda: orchestrator.is_running)
        self.register_check(
            "compositor_process",
            lambda: orchestrator.supervisor.is_running if orchestrator.owns_process else None,
        )

        async def control_api() -> bool:
            result = await orchestrator.get_status()
            return result.ok

        self.register_async_check("compositor_api", control_api)

    def register_check(self, name: str, check_fn: Callable[[], Optional[bool]]) -> None:
        """Register a check. A check returning None does not apply and is left out."""
        self._checks[name] = check_fn

    def register_async_check(self, name: str, check_fn: Callable[[], Awaitable[Any]]) -> None:
        self._async_checks[name] = check_fn

    async def check_all(self) -> Dict[str, bool]:
        """Run all health checks and return results."""
        results = {}

        for name, check_fn in self._checks.items():
            try:
                healthy = check_fn()
                if healthy is not None:
                    results[name] = bool(healthy)
            except Exception as e:
                logger.warning(f"Health check '{name}' failed: {e}")
                results[name] = False

        for name, check_fn in self._async_checks.items():
            try:
                results[name] = bool(await check_fn())
            except Exception as e:
                logger.warning(f"Async health check '{name}' failed: {e}")
                results[name] = False

        return results

    async def _live_handler(self, request: web.Request) -> web.Response:
        return web.Response(text="OK", status=200)

    async def _ready_handler(self, request: web.Request) -> web.Response:
        results = await self.check_all()
        all_healthy = all(results.values()) if results else True

        return web.json_response(
            {
                "status": "healthy" if all_healthy else "unhealthy",
                "components": results,
            },
            status=200 if all_healthy else 503,
        )

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._ready_handler)
        app.router.add_get("/health/live", self._live_handler)
        app.router.add_get("/health/ready", self._ready_handler)
        return app

    async def start(self) -> None:
        """Start the health check HTTP server."""
        if self._started:
            return

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        self._started = True
        logger.info(f"Health check server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the health check server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        self._started = False
        logger.info("Health check server stopped")
