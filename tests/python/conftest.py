"""Pytest configuration and fixtures."""

import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from compositor_bridge.config import BridgeConfig
from compositor_bridge.control.client import ControlResponse, RequestOutcome, RequestResult


def pytest_configure(config):
    """Configure pytest."""
    os.environ['VCB_LOG_LEVEL'] = 'WARNING'
    # Register asyncio marker
    config.addinivalue_line("markers", "asyncio: mark test as async")


def _ok(body=None, request=None):
    return RequestResult(RequestOutcome.OK, request or {}, response=ControlResponse(200, body))


def _rejected(status=400, body="port already in use", request=None):
    return RequestResult(
        RequestOutcome.ERROR_RESPONSE, request or {}, response=ControlResponse(status, body)
    )


def _unreachable(request=None):
    return RequestResult(
        RequestOutcome.TRANSPORT_ERROR,
        request or {},
        error=aiohttp.ClientConnectionError("Connection refused"),
    )


@pytest.fixture
def results():
    """Factories for classified control results."""
    return SimpleNamespace(ok=_ok, rejected=_rejected, unreachable=_unreachable)


@pytest.fixture
def bridge_config():
    """Config with fast startup probing and a small registration budget."""
    return BridgeConfig(
        control_port=8001,
        compositor_app_dir="/opt/video_compositor_app",
        startup_max_attempts=3,
        startup_poll_interval=0,
        framerate=30,
        stream_fallback_timeout_ms=1000,
        init_web_renderer=True,
        start_composing_strategy="on_init",
        input_base_port=4000,
        output_base_port=5000,
        max_register_attempts=4,
        event_ws_urls=[],
    )


@pytest.fixture
def fake_client(results):
    """ControlClient double that accepts everything."""
    client = MagicMock()
    client.port = 8001
    for name in (
        "initialize",
        "start_composing",
        "register_input",
        "unregister_input",
        "register_output",
        "unregister_output",
        "send_custom",
        "get_status",
        "wait_for_frame_on_input",
    ):
        setattr(client, name, AsyncMock(return_value=results.ok()))
    client.send = AsyncMock(side_effect=lambda request: _ok(request=request.to_dict()))
    client.close = AsyncMock()
    return client


@pytest.fixture
def fake_supervisor():
    """ProcessSupervisor double whose compositor is always ready."""
    supervisor = MagicMock()
    supervisor.start_and_wait_ready = AsyncMock(return_value=1)
    supervisor.wait_ready = AsyncMock(return_value=1)
    supervisor.stop = AsyncMock()
    supervisor.is_running = True
    return supervisor
