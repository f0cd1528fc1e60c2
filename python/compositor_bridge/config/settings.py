"""
Bridge configuration with environment variable support.

Environment Variables:
    VCB_CONTROL_PORT - Compositor control API port (default: 8001)
    VCB_FRAMERATE - Output framerate (default: 30)
    VCB_STREAM_FALLBACK_TIMEOUT_MS - Input fallback timeout (default: 1000)
    VCB_INIT_WEB_RENDERER - Enable compositor web renderer (true/false)
    VCB_START_COMPOSING - on_init or on_message (default: on_init)
    VCB_COMPOSITOR_APP_DIR - Directory holding per-platform compositor builds
    VCB_INPUT_BASE_PORT / VCB_OUTPUT_BASE_PORT - First UDP port tried per kind
    VCB_EVENT_WS_URL, VCB_EVENT_WS_URL_1... - WebSocket event subscribers
    VCB_DEBUG - Enable debug logging (true/false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

START_ON_INIT = "on_init"
START_ON_MESSAGE = "on_message"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _get_event_ws_urls_from_env() -> List[str]:
    """Collect event WebSocket URLs from environment variables."""
    urls = []

    main_url = os.getenv("VCB_EVENT_WS_URL")
    if main_url:
        urls.append(main_url)

    # Additional URLs (VCB_EVENT_WS_URL_1, VCB_EVENT_WS_URL_2, ...)
    i = 1
    while True:
        url = os.getenv(f"VCB_EVENT_WS_URL_{i}")
        if not url:
            break
        urls.append(url)
        i += 1

    return urls


@dataclass
class BridgeConfig:
    """Compositor bridge configuration."""

    # Compositor process
    control_port: int = field(
        default_factory=lambda: int(os.getenv("VCB_CONTROL_PORT", "8001"))
    )
    compositor_app_dir: str = field(
        default_factory=lambda: os.getenv(
            "VCB_COMPOSITOR_APP_DIR", str(Path.cwd() / "video_compositor_app")
        )
    )
    startup_max_attempts: int = field(
        default_factory=lambda: int(os.getenv("VCB_STARTUP_MAX_ATTEMPTS", "50"))
    )
    startup_poll_interval: float = field(
        default_factory=lambda: float(os.getenv("VCB_STARTUP_POLL_INTERVAL", "0.1"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("VCB_REQUEST_TIMEOUT", "5.0"))
    )

    # Composition
    framerate: int = field(
        default_factory=lambda: int(os.getenv("VCB_FRAMERATE", "30"))
    )
    stream_fallback_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("VCB_STREAM_FALLBACK_TIMEOUT_MS", "1000"))
    )
    init_web_renderer: bool = field(
        default_factory=lambda: _env_bool("VCB_INIT_WEB_RENDERER", "true")
    )
    start_composing_strategy: str = field(
        default_factory=lambda: os.getenv("VCB_START_COMPOSING", START_ON_INIT)
    )

    # Media relay ports (even ports only, odd port is reserved for RTCP)
    input_base_port: int = field(
        default_factory=lambda: int(os.getenv("VCB_INPUT_BASE_PORT", "4000"))
    )
    output_base_port: int = field(
        default_factory=lambda: int(os.getenv("VCB_OUTPUT_BASE_PORT", "5000"))
    )
    max_register_attempts: int = field(
        default_factory=lambda: int(os.getenv("VCB_MAX_REGISTER_ATTEMPTS", "32"))
    )

    # Bridge HTTP API
    api_host: str = field(default_factory=lambda: os.getenv("VCB_API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: int(os.getenv("VCB_API_PORT", "8090")))

    # Health / metrics (port 0 disables the server)
    health_port: int = field(default_factory=lambda: int(os.getenv("VCB_HEALTH_PORT", "8091")))
    metrics_port: int = field(default_factory=lambda: int(os.getenv("VCB_METRICS_PORT", "9090")))

    # Event streaming
    event_ws_urls: List[str] = field(default_factory=_get_event_ws_urls_from_env)
    event_queue_maxsize: int = field(
        default_factory=lambda: int(os.getenv("VCB_EVENT_QUEUE_MAXSIZE", "1000"))
    )
    event_reconnect_interval: float = field(
        default_factory=lambda: float(os.getenv("VCB_EVENT_RECONNECT_INTERVAL", "5.0"))
    )

    # Debug
    debug: bool = field(default_factory=lambda: _env_bool("VCB_DEBUG", "false"))

    def __post_init__(self):
        """Validate settings that would otherwise fail deep inside the orchestrator."""
        logger = logging.getLogger("vcb.config")

        if self.framerate <= 0:
            raise ValueError("framerate must be positive")
        if self.stream_fallback_timeout_ms < 0:
            raise ValueError("stream_fallback_timeout_ms must be non-negative")
        if self.start_composing_strategy not in (START_ON_INIT, START_ON_MESSAGE):
            raise ValueError(
                f"start_composing_strategy must be '{START_ON_INIT}' or '{START_ON_MESSAGE}'"
            )
        for name in ("input_base_port", "output_base_port"):
            if getattr(self, name) % 2 != 0:
                raise ValueError(f"{name} must be even")
        if self.input_base_port == self.output_base_port:
            raise ValueError("input and output base ports must differ")
        if self.startup_max_attempts < 1 or self.max_register_attempts < 1:
            raise ValueError("attempt budgets must be at least 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        if not self.event_ws_urls:
            logger.debug("No event WebSocket URL configured; events stay local")

    @property
    def start_on_init(self) -> bool:
        return self.start_composing_strategy == START_ON_INIT

    @property
    def control_url(self) -> str:
        return f"http://127.0.0.1:{self.control_port}"


# Singleton config instance
_config: Optional[BridgeConfig] = None


def get_config() -> BridgeConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = BridgeConfig()
    return _config


def reset_config():
    """Reset the global config (useful for testing)."""
    global _config
    _config = None
