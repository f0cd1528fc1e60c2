"""Tests for the bridge REST API."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from compositor_bridge.api.bridge_api import BridgeAPI
from compositor_bridge.control.requests import EncoderPreset, EndpointKind, Resolution
from compositor_bridge.core.orchestrator import RemovalResult
from compositor_bridge.core.session_state import PadRef, SessionSnapshot
from compositor_bridge.core.wiring import InputWiring, OutputWiring
from compositor_bridge.errors import (
    ControlTransportError,
    DuplicateEndpoint,
    InternalInconsistency,
    ResourceExhausted,
)


@pytest.fixture
def orchestrator(results):
    orch = MagicMock()
    orch.add_input = AsyncMock(
        side_effect=lambda pad, input_id: InputWiring(pad=pad, input_id=input_id, port=4000)
    )
    orch.add_output = AsyncMock(
        side_effect=lambda pad, output_id, resolution, preset: OutputWiring(
            pad=pad, output_id=output_id, port=5000
        )
    )
    orch.remove_input = AsyncMock(
        side_effect=lambda pad: RemovalResult(pad, "a", 4000, results.ok())
    )
    orch.remove_output = AsyncMock(
        side_effect=lambda pad: RemovalResult(pad, "main", 5000, results.rejected(status=404))
    )
    orch.send_custom = AsyncMock(return_value=results.ok())
    orch.start_composing = AsyncMock(return_value=results.ok())
    orch.get_status = AsyncMock(return_value=results.ok(body={"instance_id": "x"}))
    orch.snapshot = MagicMock(
        return_value=SessionSnapshot(inputs=(), outputs=(), framerate=30, control_port=8001)
    )
    return orch


async def _client(orchestrator):
    api = BridgeAPI(orchestrator)
    client = test_utils.TestClient(test_utils.TestServer(api.build_app(), host="127.0.0.1"))
    await client.start_server()
    return client


class TestEndpointRoutes:
    """Test attach/detach routes."""

    @pytest.mark.asyncio
    async def test_add_input(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/inputs", json={"input_id": "cam", "pad_id": "p1"})
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 201
        assert data["status"] == "registered"
        assert data["port"] == 4000
        assert data["wiring"]["udp_sink"]["destination_port"] == 4000
        orchestrator.add_input.assert_awaited_once_with(PadRef(EndpointKind.INPUT, "p1"), "cam")

    @pytest.mark.asyncio
    async def test_add_input_generates_pad_id(self, orchestrator):
        client = await _client(orchestrator)
        try:
            first = await (await client.post("/api/inputs", json={"input_id": "a"})).json()
            second = await (await client.post("/api/inputs", json={"input_id": "b"})).json()
        finally:
            await client.close()

        assert first["pad_id"] != second["pad_id"]

    @pytest.mark.asyncio
    async def test_add_input_requires_id(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/inputs", json={})
        finally:
            await client.close()

        assert resp.status == 400
        orchestrator.add_input.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_json_body(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/inputs", data="not json")
        finally:
            await client.close()

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_add_output_parses_resolution_and_preset(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post(
                "/api/outputs",
                json={"output_id": "main", "pad_id": "o1", "width": 1280, "height": 720, "encoder_preset": "fast"},
            )
        finally:
            await client.close()

        assert resp.status == 201
        orchestrator.add_output.assert_awaited_once_with(
            PadRef(EndpointKind.OUTPUT, "o1"), "main", Resolution(1280, 720), EncoderPreset.FAST
        )

    @pytest.mark.asyncio
    async def test_add_output_bad_preset(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post(
                "/api/outputs",
                json={"output_id": "main", "width": 1280, "height": 720, "encoder_preset": "warp"},
            )
        finally:
            await client.close()

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_add_output_missing_resolution(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/outputs", json={"output_id": "main"})
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 400
        assert "width" in data["error"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status",
        [
            (DuplicateEndpoint("Input id 'cam' is already registered"), 409),
            (ResourceExhausted("all ports rejected", last_port=4006), 503),
            (ControlTransportError("refused"), 502),
            (InternalInconsistency("pad already registered"), 404),
        ],
    )
    async def test_add_input_error_mapping(self, orchestrator, error, status):
        orchestrator.add_input.side_effect = error
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/inputs", json={"input_id": "cam"})
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == status
        assert data["error"] == str(error)

    @pytest.mark.asyncio
    async def test_unrelated_failure_is_not_a_conflict(self, orchestrator):
        orchestrator.add_input.side_effect = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/inputs", json={"input_id": "cam"})
        finally:
            await client.close()

        assert resp.status == 500

    @pytest.mark.asyncio
    async def test_generated_pad_ids_do_not_collide_with_client_ids(self, orchestrator):
        client = await _client(orchestrator)
        try:
            generated = await (await client.post("/api/inputs", json={"input_id": "a"})).json()
            chosen = await (await client.post("/api/inputs", json={"input_id": "b", "pad_id": "0"})).json()
        finally:
            await client.close()

        assert generated["pad_id"].startswith("auto-")
        assert generated["pad_id"] != chosen["pad_id"]

    @pytest.mark.asyncio
    async def test_reserved_pad_prefix_rejected(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/inputs", json={"input_id": "a", "pad_id": "auto-0"})
        finally:
            await client.close()

        assert resp.status == 400
        orchestrator.add_input.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_input(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.delete("/api/inputs/p1")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert data["status"] == "removed"
        assert data["port"] == 4000
        orchestrator.remove_input.assert_awaited_once_with(PadRef(EndpointKind.INPUT, "p1"))

    @pytest.mark.asyncio
    async def test_remove_output_rejected_by_compositor(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.delete("/api/outputs/o1")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert data["status"] == "removed_locally"
        assert data["unregister"]["status"] == 404

    @pytest.mark.asyncio
    async def test_remove_unknown_pad(self, orchestrator):
        orchestrator.remove_input.side_effect = InternalInconsistency("No endpoint registered")
        client = await _client(orchestrator)
        try:
            resp = await client.delete("/api/inputs/ghost")
        finally:
            await client.close()

        assert resp.status == 404


class TestRequestRoutes:
    """Test custom request and read-only routes."""

    @pytest.mark.asyncio
    async def test_custom_request_mirrors_compositor_status(self, orchestrator, results):
        body = {"type": "update_scene"}
        orchestrator.send_custom.return_value = results.rejected(
            status=422, body={"error_code": "INVALID_SCENE"}, request=body
        )
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/requests", json=body)
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 422
        assert data["request"] == body
        assert data["response"] == {"error_code": "INVALID_SCENE"}
        orchestrator.send_custom.assert_awaited_once_with(body)

    @pytest.mark.asyncio
    async def test_custom_request_unreachable(self, orchestrator, results):
        orchestrator.send_custom.return_value = results.unreachable()
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/requests", json={"type": "update_scene"})
        finally:
            await client.close()

        assert resp.status == 502

    @pytest.mark.asyncio
    async def test_start(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.post("/api/start")
        finally:
            await client.close()

        assert resp.status == 200
        orchestrator.start_composing.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_status(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.get("/api/status")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert data["response"] == {"instance_id": "x"}

    @pytest.mark.asyncio
    async def test_session(self, orchestrator):
        client = await _client(orchestrator)
        try:
            resp = await client.get("/api/session")
            data = await resp.json()
        finally:
            await client.close()

        assert data["framerate"] == 30
        assert data["inputs"] == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
