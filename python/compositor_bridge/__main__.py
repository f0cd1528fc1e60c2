"""
Compositor Bridge entry point.

Usage:
    python -m compositor_bridge

Environment Variables:
    VCB_CONTROL_PORT - Compositor control API port (default: 8001)
    VCB_COMPOSITOR_APP_DIR - Directory with per-platform compositor builds
    VCB_API_PORT - Bridge REST API port (default: 8090)
    VCB_HEALTH_PORT - Health check port, 0 disables (default: 8091)
    VCB_METRICS_PORT - Prometheus port, 0 disables (default: 9090)
    VCB_EVENT_WS_URL - WebSocket endpoint receiving bridge events
    VCB_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR)
"""

import asyncio
import signal
import sys

from .api.bridge_api import BridgeAPI
from .config import get_config, get_logger, setup_logging
from .core import Orchestrator
from .errors import BridgeError
from .health.checker import HealthChecker
from .metrics import get_metrics
from .websocket import EventPublisher

setup_logging()
logger = get_logger("main")


async def main():
    """Main entry point."""
    try:
        config = get_config()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    if config.metrics_port:
        metrics = get_metrics()
        metrics.port = config.metrics_port
        metrics.start()

    orchestrator = Orchestrator(config)
    try:
        await orchestrator.start()
    except BridgeError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    publisher = None
    if config.event_ws_urls:
        publisher = EventPublisher(
            urls=config.event_ws_urls,
            queue_maxsize=config.event_queue_maxsize,
            reconnect_interval=config.event_reconnect_interval,
        )
        orchestrator.add_event_handler(publisher.publish)
        await publisher.start()

    api = BridgeAPI(orchestrator, port=config.api_port, host=config.api_host)
    health = HealthChecker(port=config.health_port, orchestrator=orchestrator) if config.health_port else None

    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown requested...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler())

    try:
        await api.start()
        if health:
            await health.start()
        await shutdown_event.wait()
    finally:
        if health:
            await health.stop()
        await api.stop()
        if publisher:
            await publisher.stop()
        await orchestrator.stop()


def _run():
    asyncio.run(main())


if __name__ == "__main__":
    _run()
