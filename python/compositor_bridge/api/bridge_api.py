"""
Bridge REST API.

Lets an external media pipeline attach and detach compositor streams, forward
custom compositor requests and inspect the session.
"""

import itertools
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from aiohttp import web

from ..control.requests import EncoderPreset, EndpointKind, Resolution
from ..core.session_state import PadRef
from ..errors import (
    BridgeError,
    ControlTransportError,
    DuplicateEndpoint,
    InternalInconsistency,
    ResourceExhausted,
)

logger = logging.getLogger("vcb.api")

GENERATED_PAD_PREFIX = "auto-"

if TYPE_CHECKING:
    from ..core.orchestrator import Orchestrator


class BridgeAPI:
    """
    REST API for the compositor bridge.

    The pipeline calls this API to:
    1. Attach an input/output stream and get its relay wiring
    2. Detach a stream and free its port
    3. Send scene/renderer requests to the compositor
    """

    def __init__(self, orchestrator: "Orchestrator", port: int = 8090, host: str = "127.0.0.1"):
        self.orchestrator = orchestrator
        self.port = port
        self.host = host
        self._runner: Optional[web.AppRunner] = None
        self._started = False
        self._pad_counter = itertools.count()

    def _pad(self, kind: EndpointKind, pad_id: Optional[str]) -> PadRef:
        if pad_id is None:
            return PadRef(kind, f"{GENERATED_PAD_PREFIX}{next(self._pad_counter)}")
        if str(pad_id).startswith(GENERATED_PAD_PREFIX):
            raise web.HTTPBadRequest(
                text=f'{{"error": "pad_id prefix {GENERATED_PAD_PREFIX} is reserved"}}',
                content_type="application/json",
            )
        return PadRef(kind, str(pad_id))

    @staticmethod
    def _error(message: str, status: int) -> web.Response:
        return web.json_response({"error": message}, status=status)

    def _bridge_error(self, e: BridgeError) -> web.Response:
        if isinstance(e, DuplicateEndpoint):
            return self._error(str(e), 409)
        if isinstance(e, InternalInconsistency):
            return self._error(str(e), 404)
        if isinstance(e, ResourceExhausted):
            return self._error(str(e), 503)
        if isinstance(e, ControlTransportError):
            return self._error(str(e), 502)
        return self._error(str(e), 500)

    @staticmethod
    async def _json_body(request: web.Request) -> Dict[str, Any]:
        try:
            data = await request.json()
        except ValueError:
            raise web.HTTPBadRequest(
                text='{"error": "body must be JSON"}', content_type="application/json"
            )
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(
                text='{"error": "body must be a JSON object"}', content_type="application/json"
            )
        return data

    async def add_input(self, request: web.Request) -> web.Response:
        """
        Attach an input stream.

        POST /api/inputs
        Body: {"input_id": "cam1", "pad_id": "optional"}

        Returns: {"status": "registered", "wiring": {...}}
        """
        data = await self._json_body(request)
        input_id = data.get("input_id")
        if not input_id:
            return self._error("input_id is required", 400)

        pad = self._pad(EndpointKind.INPUT, data.get("pad_id"))
        try:
            wiring = await self.orchestrator.add_input(pad, str(input_id))
        except BridgeError as e:
            logger.error(f"Failed to add input {input_id}: {e}")
            return self._bridge_error(e)

        return web.json_response(
            {"status": "registered", "pad_id": pad.pad_id, "port": wiring.port, "wiring": wiring.to_dict()},
            status=201,
        )

    async def add_output(self, request: web.Request) -> web.Response:
        """
        Attach an output stream.

        POST /api/outputs
        Body: {"output_id": "main", "width": 1280, "height": 720, "encoder_preset": "fast"}
        """
        data = await self._json_body(request)
        output_id = data.get("output_id")
        if not output_id:
            return self._error("output_id is required", 400)

        try:
            resolution = Resolution(int(data["width"]), int(data["height"]))
            preset = EncoderPreset(data.get("encoder_preset", EncoderPreset.MEDIUM.value))
        except KeyError as e:
            return self._error(f"{e.args[0]} is required", 400)
        except (TypeError, ValueError) as e:
            return self._error(str(e), 400)

        pad = self._pad(EndpointKind.OUTPUT, data.get("pad_id"))
        try:
            wiring = await self.orchestrator.add_output(pad, str(output_id), resolution, preset)
        except BridgeError as e:
            logger.error(f"Failed to add output {output_id}: {e}")
            return self._bridge_error(e)

        return web.json_response(
            {"status": "registered", "pad_id": pad.pad_id, "port": wiring.port, "wiring": wiring.to_dict()},
            status=201,
        )

    async def remove_input(self, request: web.Request) -> web.Response:
        """DELETE /api/inputs/{pad_id}"""
        return await self._remove(EndpointKind.INPUT, request.match_info["pad_id"])

    async def remove_output(self, request: web.Request) -> web.Response:
        """DELETE /api/outputs/{pad_id}"""
        return await self._remove(EndpointKind.OUTPUT, request.match_info["pad_id"])

    async def _remove(self, kind: EndpointKind, pad_id: str) -> web.Response:
        pad = PadRef(kind, pad_id)
        try:
            if kind is EndpointKind.INPUT:
                removal = await self.orchestrator.remove_input(pad)
            else:
                removal = await self.orchestrator.remove_output(pad)
        except BridgeError as e:
            return self._bridge_error(e)

        body = removal.to_dict()
        body["status"] = "removed" if removal.ok else "removed_locally"
        return web.json_response(body)

    async def send_request(self, request: web.Request) -> web.Response:
        """
        Forward a custom request to the compositor.

        POST /api/requests
        Body: any compositor request, e.g. {"type": "update_scene", ...}

        Returns the compositor's status code; the body carries the original
        request and the compositor's answer.
        """
        data = await self._json_body(request)
        try:
            result = await self.orchestrator.send_custom(data)
        except BridgeError as e:
            return self._bridge_error(e)

        if result.is_transport_error:
            return web.json_response(result.to_dict(), status=502)
        return web.json_response(result.to_dict(), status=result.response.status)

    async def start_composing(self, request: web.Request) -> web.Response:
        """POST /api/start"""
        try:
            result = await self.orchestrator.start_composing()
        except BridgeError as e:
            return self._bridge_error(e)
        status = 200 if result.ok else 502
        return web.json_response(result.to_dict(), status=status)

    async def get_status(self, request: web.Request) -> web.Response:
        """GET /api/status"""
        result = await self.orchestrator.get_status()
        status = 200 if result.ok else 502
        return web.json_response(result.to_dict(), status=status)

    async def get_session(self, request: web.Request) -> web.Response:
        """GET /api/session"""
        return web.json_response(self.orchestrator.snapshot().to_dict())

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post('/api/inputs', self.add_input)
        app.router.add_delete('/api/inputs/{pad_id}', self.remove_input)
        app.router.add_post('/api/outputs', self.add_output)
        app.router.add_delete('/api/outputs/{pad_id}', self.remove_output)
        app.router.add_post('/api/requests', self.send_request)
        app.router.add_post('/api/start', self.start_composing)
        app.router.add_get('/api/status', self.get_status)
        app.router.add_get('/api/session', self.get_session)
        return app

    async def start(self) -> None:
        """Start the API server."""
        if self._started:
            return

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        self._started = True
        logger.info(f"Bridge API started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the API server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        self._started = False
        logger.info("Bridge API stopped")
