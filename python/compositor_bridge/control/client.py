"""
Compositor control API client.

Sends control requests to the compositor's local HTTP endpoint and classifies
every call into exactly one outcome:

- OK: HTTP 200
- ERROR_RESPONSE: the compositor answered with any other status
- TRANSPORT_ERROR: no answer (connection refused, timeout, broken response)
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import aiohttp

from ..metrics import MetricsCollector, get_metrics
from .requests import (
    ControlRequest,
    CustomRequest,
    EncoderPreset,
    EndpointKind,
    InitRequest,
    LOCAL_HOST,
    RegisterInputStream,
    RegisterOutputStream,
    Resolution,
    StartRequest,
    UnregisterStream,
    WaitForFrameQuery,
    request_action,
)

logger = logging.getLogger("vcb.control")

API_PATH = "/--/api"
STATUS_PATH = "/status"


class RequestOutcome(str, Enum):
    OK = "ok"
    ERROR_RESPONSE = "error_response"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class ControlResponse:
    """HTTP answer from the compositor. Body schema is owned by the compositor."""

    status: int
    body: Any


@dataclass
class RequestResult:
    """Classified result of a single control request."""

    outcome: RequestOutcome
    request: Dict[str, Any]
    response: Optional[ControlResponse] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.outcome is RequestOutcome.OK

    @property
    def is_error_response(self) -> bool:
        return self.outcome is RequestOutcome.ERROR_RESPONSE

    @property
    def is_transport_error(self) -> bool:
        return self.outcome is RequestOutcome.TRANSPORT_ERROR

    @property
    def answered(self) -> bool:
        """True when the HTTP layer of the compositor responded at all."""
        return self.response is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "outcome": self.outcome.value,
            "request": self.request,
        }
        if self.response is not None:
            result["status"] = self.response.status
            result["response"] = self.response.body
        if self.error is not None:
            result["error"] = str(self.error) or type(self.error).__name__
        return result


class ControlClient:
    """
    HTTP client for the compositor control endpoint.

    One client is bound to one compositor control port. The underlying
    ``aiohttp.ClientSession`` is created lazily and must be released with
    :meth:`close` (or by using the client as an async context manager).
    """

    def __init__(
        self,
        port: int,
        timeout: float = 5.0,
        host: str = LOCAL_HOST,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize control client.

        Args:
            port: Compositor control API port
            timeout: Total timeout per request in seconds
            host: Compositor host (always local in practice)
            metrics: Metrics collector (global collector by default)
        """
        self.port = port
        self.host = host
        self.timeout = timeout
        self._metrics = metrics or get_metrics()
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def api_url(self) -> str:
        return f"{self.base_url}{API_PATH}"

    async def __aenter__(self) -> "ControlClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # Actions

    async def initialize(
        self, framerate: int, fallback_timeout_ms: int, enable_renderer: bool
    ) -> RequestResult:
        return await self.send(InitRequest(framerate, fallback_timeout_ms, enable_renderer))

    async def start_composing(self) -> RequestResult:
        return await self.send(StartRequest())

    async def register_input(self, input_id: str, port: int) -> RequestResult:
        return await self.send(RegisterInputStream(input_id, port))

    async def unregister_input(self, input_id: str) -> RequestResult:
        return await self.send(UnregisterStream(EndpointKind.INPUT, input_id))

    async def register_output(
        self,
        output_id: str,
        port: int,
        resolution: Resolution,
        encoder_preset: EncoderPreset = EncoderPreset.MEDIUM,
    ) -> RequestResult:
        return await self.send(RegisterOutputStream(output_id, port, resolution, encoder_preset))

    async def unregister_output(self, output_id: str) -> RequestResult:
        return await self.send(UnregisterStream(EndpointKind.OUTPUT, output_id))

    async def wait_for_frame_on_input(self, input_id: str) -> RequestResult:
        return await self.send(WaitForFrameQuery(input_id))

    async def send_custom(self, body: Mapping[str, Any]) -> RequestResult:
        return await self.send(CustomRequest(body))

    async def get_status(self) -> RequestResult:
        """GET the compositor status page."""
        return await self._perform("status", "GET", f"{self.base_url}{STATUS_PATH}", {})

    async def send(self, request: ControlRequest) -> RequestResult:
        """POST a control request to the API endpoint and classify the result."""
        return await self._perform(request_action(request), "POST", self.api_url, request.to_dict())

    async def _perform(
        self, action: str, method: str, url: str, body: Dict[str, Any]
    ) -> RequestResult:
        started = time.monotonic()
        try:
            session = self._get_session()
            kwargs = {"json": body} if method == "POST" else {}
            async with session.request(method, url, **kwargs) as resp:
                payload = await self._read_body(resp)
                response = ControlResponse(status=resp.status, body=payload)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self._metrics.control_request(action, RequestOutcome.TRANSPORT_ERROR.value, time.monotonic() - started)
            logger.debug(f"{action} request to {url} failed: {e!r}")
            return RequestResult(RequestOutcome.TRANSPORT_ERROR, body, error=e)

        outcome = RequestOutcome.OK if response.status == 200 else RequestOutcome.ERROR_RESPONSE
        self._metrics.control_request(action, outcome.value, time.monotonic() - started)
        if outcome is RequestOutcome.ERROR_RESPONSE:
            logger.debug(f"{action} request rejected with HTTP {response.status}: {response.body}")
        return RequestResult(outcome, body, response=response)

    @staticmethod
    async def _read_body(resp: aiohttp.ClientResponse) -> Any:
        raw = await resp.read()
        if not raw:
            return None
        # Body is opaque; only the status code classifies the answer
        try:
            text = raw.decode(resp.charset or "utf-8", errors="replace")
        except LookupError:
            text = raw.decode("utf-8", errors="replace")
        if resp.content_type == "application/json":
            try:
                return json.loads(text)
            except ValueError:
                return text
        return text
