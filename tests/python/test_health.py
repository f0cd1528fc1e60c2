"""Tests for health check server."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from compositor_bridge.health.checker import HealthChecker


def _orchestrator(results, running=True, process_running=True, status=None, owns_process=True):
    orch = MagicMock()
    orch.is_running = running
    orch.owns_process = owns_process
    orch.supervisor.is_running = process_running
    orch.get_status = AsyncMock(return_value=status or results.ok())
    return orch


class TestHealthChecker:
    """Test HealthChecker checks."""

    @pytest.mark.asyncio
    async def test_all_healthy(self, results):
        checker = HealthChecker(orchestrator=_orchestrator(results))

        assert await checker.check_all() == {
            "orchestrator": True,
            "compositor_process": True,
            "compositor_api": True,
        }

    @pytest.mark.asyncio
    async def test_unreachable_compositor_api(self, results):
        checker = HealthChecker(orchestrator=_orchestrator(results, status=results.unreachable()))

        assert (await checker.check_all())["compositor_api"] is False

    @pytest.mark.asyncio
    async def test_failing_check_is_unhealthy(self):
        checker = HealthChecker()

        def broken():
            raise RuntimeError("boom")

        checker.register_check("broken", broken)

        assert await checker.check_all() == {"broken": False}


class TestHealthRoutes:
    """Test health HTTP endpoints."""

    @pytest.mark.asyncio
    async def test_live(self):
        client = test_utils.TestClient(test_utils.TestServer(HealthChecker().build_app(), host="127.0.0.1"))
        await client.start_server()
        try:
            resp = await client.get("/health/live")
            text = await resp.text()
        finally:
            await client.close()

        assert resp.status == 200
        assert text == "OK"

    @pytest.mark.asyncio
    async def test_ready_reports_dead_process(self, results):
        checker = HealthChecker(orchestrator=_orchestrator(results, process_running=False))
        client = test_utils.TestClient(test_utils.TestServer(checker.build_app(), host="127.0.0.1"))
        await client.start_server()
        try:
            resp = await client.get("/health/ready")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 503
        assert data["status"] == "unhealthy"
        assert data["components"]["compositor_process"] is False

    @pytest.mark.asyncio
    async def test_ready_without_spawned_process(self, results):
        checker = HealthChecker(
            orchestrator=_orchestrator(results, process_running=False, owns_process=False)
        )
        client = test_utils.TestClient(test_utils.TestServer(checker.build_app(), host="127.0.0.1"))
        await client.start_server()
        try:
            resp = await client.get("/health/ready")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert data["status"] == "healthy"
        assert "compositor_process" not in data["components"]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
