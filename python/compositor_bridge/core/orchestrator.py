"""
Compositor Bridge Orchestrator.

Coordinates all components:
- Compositor process startup and readiness probing
- UDP port allocation for media relay endpoints
- Register/unregister control requests
- Session state for every live endpoint
- Pipeline-facing events and relay wiring descriptors

All endpoint and custom-request operations go through one command queue and
are executed one at a time, so allocating a port and recording it can never
interleave with another operation.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Union

from ..config import BridgeConfig, get_config
from ..control.client import ControlClient, RequestResult
from ..control.requests import CustomRequest, EncoderPreset, EndpointKind, Resolution
from ..errors import (
    BridgeError,
    ControlTransportError,
    DuplicateEndpoint,
    InternalInconsistency,
    ProtocolRejection,
    ResourceExhausted,
)
from ..metrics import MetricsCollector, get_metrics
from ..supervisor.process import ProcessSupervisor
from .events import (
    ENDPOINT_UNREGISTERED,
    INPUT_REGISTERED,
    OUTPUT_REGISTERED,
    REQUEST_RESPONSE,
    BridgeEvent,
)
from .port_allocator import PortAllocator
from .session_state import InputRecord, OutputRecord, PadRef, SessionSnapshot, SessionState
from .wiring import DepayloaderLink, InputWiring, OutputWiring

logger = logging.getLogger("vcb.orchestrator")

EventHandler = Callable[[BridgeEvent], Any]


def _safe_task(coro, name: str = "task"):
    """Create an asyncio task with error handling."""

    async def wrapper():
        try:
            return await coro
        except Exception as e:
            logger.error(f"Async task '{name}' failed: {e}")

    return asyncio.create_task(wrapper())


@dataclass
class RemovalResult:
    """Outcome of tearing down an endpoint. The local record is always gone."""

    pad: PadRef
    endpoint_id: str
    port: int
    unregister: RequestResult

    @property
    def ok(self) -> bool:
        return self.unregister.ok

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pad": str(self.pad),
            "id": self.endpoint_id,
            "port": self.port,
            "unregister": self.unregister.to_dict(),
        }


@dataclass
class _Command:
    name: str
    run: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"


class Orchestrator:
    """Bridges a media pipeline and an external compositor process."""

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        client: Optional[ControlClient] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or get_config()
        self._metrics = metrics or get_metrics()
        self.client = client or ControlClient(
            port=self.config.control_port,
            timeout=self.config.request_timeout,
            metrics=self._metrics,
        )
        self.supervisor = supervisor or ProcessSupervisor(
            client=self.client,
            app_dir=self.config.compositor_app_dir,
            max_attempts=self.config.startup_max_attempts,
            poll_interval=self.config.startup_poll_interval,
            inherit_output=self.config.debug,
            metrics=self._metrics,
        )
        self.allocator = PortAllocator(self.config.input_base_port, self.config.output_base_port)
        self.state = SessionState(self.config.control_port, self.config.framerate)

        self._queue: "asyncio.Queue[_Command]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._handlers: List[EventHandler] = []
        self._handler_tasks: Set[asyncio.Task] = set()
        self._running = False
        self._owns_process = False

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def owns_process(self) -> bool:
        """True when this orchestrator launched the compositor (start with spawn=True)."""
        return self._owns_process

    async def __aenter__(self) -> "Orchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self, spawn: bool = True) -> None:
        """
        Start the compositor, initialize it and open the command loop.

        Args:
            spawn: Launch the compositor process. With False the bridge only
                waits for an already running compositor to answer.

        Raises:
            ConfigurationError: Unsupported platform / missing binary
            ProcessUnreachable: Compositor never answered
            ProtocolRejection: Compositor rejected initialization
            ControlTransportError: Compositor went away during initialization
        """
        if self._running:
            return

        logger.info("=" * 60)
        logger.info("Compositor Bridge Starting")
        logger.info("=" * 60)
        logger.info(f"Control endpoint: {self.config.control_url}")
        logger.info(f"Framerate: {self.config.framerate}")
        logger.info(f"Start composing: {self.config.start_composing_strategy}")
        logger.info("=" * 60)

        try:
            self._owns_process = spawn
            if spawn:
                await self.supervisor.start_and_wait_ready()
            else:
                await self.supervisor.wait_ready()

            self._require(
                await self.client.initialize(
                    self.config.framerate,
                    self.config.stream_fallback_timeout_ms,
                    self.config.init_web_renderer,
                ),
                "init",
            )
            if self.config.start_on_init:
                self._require(await self.client.start_composing(), "start")
        except BaseException:
            await self.supervisor.stop()
            await self.client.close()
            raise

        self._running = True
        self._worker = asyncio.create_task(self._run_commands())
        logger.info("Compositor bridge ready")

    async def stop(self) -> None:
        """Stop the command loop, drop session state and terminate the compositor."""
        was_running = self._running
        self._running = False

        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        pending = list(self._handler_tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        while not self._queue.empty():
            command = self._queue.get_nowait()
            if not command.future.done():
                command.future.set_exception(BridgeError("Orchestrator stopped"))

        self.state.clear()
        self._metrics.update_endpoints(0, 0)
        await self.supervisor.stop()
        await self.client.close()

        if was_running:
            logger.info("Compositor bridge stopped")

    @staticmethod
    def _require(result: RequestResult, action: str) -> None:
        if result.is_transport_error:
            raise ControlTransportError(
                f"Compositor unreachable during {action}: {result.error}",
                request=result.request,
                cause=result.error,
            )
        if result.is_error_response:
            raise ProtocolRejection(
                f"Compositor rejected {action} with HTTP {result.response.status}",
                request=result.request,
                response_body=result.response.body,
            )

    # Events

    def add_event_handler(self, handler: EventHandler) -> None:
        """Subscribe to pipeline-facing events. Coroutine handlers run as tasks."""
        self._handlers.append(handler)

    def remove_event_handler(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def _emit(self, event: BridgeEvent) -> None:
        for handler in list(self._handlers):
            try:
                outcome = handler(event)
                if asyncio.iscoroutine(outcome):
                    task = _safe_task(outcome, f"event_{event.type}")
                    self._handler_tasks.add(task)
                    task.add_done_callback(self._handler_tasks.discard)
            except Exception:
                logger.exception(f"Event handler failed for {event.type}")

    # Command loop

    async def _submit(self, name: str, run: Callable[[], Awaitable[Any]]) -> Any:
        if not self._running:
            raise BridgeError(f"Cannot {name}: orchestrator is not running")

        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_Command(name, run, future))
        return await future

    async def _run_commands(self) -> None:
        while True:
            command = await self._queue.get()
            try:
                if command.future.done():
                    continue
                try:
                    result = await command.run()
                except asyncio.CancelledError:
                    if not command.future.done():
                        command.future.set_exception(BridgeError("Orchestrator stopped"))
                    raise
                except Exception as e:
                    logger.debug(f"Command '{command.name}' failed: {e!r}")
                    if not command.future.done():
                        command.future.set_exception(e)
                else:
                    if not command.future.done():
                        command.future.set_result(result)
            finally:
                self._queue.task_done()

    # Endpoint add

    async def add_input(self, pad: PadRef, input_id: str) -> InputWiring:
        """
        Register a new input stream and describe how to relay media into the compositor.

        Raises:
            ControlTransportError: Compositor unreachable, nothing was recorded
            ResourceExhausted: Every candidate port was rejected
            InternalInconsistency: Pad already has a record
            DuplicateEndpoint: Input id is already registered
        """
        self._check_pad(pad, EndpointKind.INPUT)
        return await self._submit("add input", lambda: self._add_input(pad, input_id))

    async def _add_input(self, pad: PadRef, input_id: str) -> InputWiring:
        self._check_new_endpoint(pad, input_id, self.state.has_input_id(input_id))

        port = await self._register(
            EndpointKind.INPUT,
            input_id,
            lambda p: self.client.register_input(input_id, p),
        )
        self.state.add_input(InputRecord(input_id=input_id, local_port=port, pipeline_ref=pad))
        self._update_endpoint_metrics()
        logger.info(f"Input registered: {input_id} ({pad}) -> UDP {port}")

        self._emit(BridgeEvent(
            type=INPUT_REGISTERED,
            snapshot=self.state.snapshot(),
            pad=pad,
            endpoint_id=input_id,
            port=port,
        ))
        return InputWiring(pad=pad, input_id=input_id, port=port)

    async def add_output(
        self,
        pad: PadRef,
        output_id: str,
        resolution: Resolution,
        encoder_preset: Union[EncoderPreset, str] = EncoderPreset.MEDIUM,
    ) -> OutputWiring:
        """Register a new output stream and describe where to listen for composed media."""
        self._check_pad(pad, EndpointKind.OUTPUT)
        preset = EncoderPreset(encoder_preset)
        return await self._submit(
            "add output", lambda: self._add_output(pad, output_id, resolution, preset)
        )

    async def _add_output(
        self, pad: PadRef, output_id: str, resolution: Resolution, preset: EncoderPreset
    ) -> OutputWiring:
        self._check_new_endpoint(pad, output_id, self.state.has_output_id(output_id))

        port = await self._register(
            EndpointKind.OUTPUT,
            output_id,
            lambda p: self.client.register_output(output_id, p, resolution, preset),
        )
        self.state.add_output(OutputRecord(
            output_id=output_id,
            local_port=port,
            pipeline_ref=pad,
            resolution=resolution,
            encoder_preset=preset,
        ))
        self._update_endpoint_metrics()
        logger.info(
            f"Output registered: {output_id} ({pad}) -> UDP {port}, "
            f"{resolution.width}x{resolution.height} {preset.value}"
        )

        self._emit(BridgeEvent(
            type=OUTPUT_REGISTERED,
            snapshot=self.state.snapshot(),
            pad=pad,
            endpoint_id=output_id,
            port=port,
        ))
        return OutputWiring(pad=pad, output_id=output_id, port=port)

    async def _register(
        self,
        kind: EndpointKind,
        endpoint_id: str,
        register: Callable[[int], Awaitable[RequestResult]],
    ) -> int:
        """Try ports from the kind's base until the compositor accepts one."""
        label = kind.name.lower()
        used = self.state.used_ports()
        port = self.allocator.candidate(kind, used)
        max_attempts = self.config.max_register_attempts

        for attempt in range(1, max_attempts + 1):
            result = await register(port)
            self._metrics.registration_attempt(label, result.outcome.value)

            if result.ok:
                return port

            if result.is_transport_error:
                raise ControlTransportError(
                    f"Compositor unreachable while registering {label} '{endpoint_id}': {result.error}",
                    request=result.request,
                    cause=result.error,
                )

            logger.info(
                f"Compositor rejected {label} '{endpoint_id}' on port {port} "
                f"(HTTP {result.response.status}), attempt {attempt}/{max_attempts}"
            )
            if attempt < max_attempts:
                port = self.allocator.candidate(kind, used, after=port)

        raise ResourceExhausted(
            f"Compositor rejected {label} '{endpoint_id}' on {max_attempts} ports",
            last_port=port,
        )

    def _check_pad(self, pad: PadRef, kind: EndpointKind) -> None:
        if pad.kind is not kind:
            raise ValueError(f"Pad {pad} is not an {kind.name.lower()} pad")

    def _check_new_endpoint(self, pad: PadRef, endpoint_id: str, id_taken: bool) -> None:
        if self.state.find_record(pad) is not None:
            raise InternalInconsistency(f"Pad {pad} is already registered")
        if id_taken:
            raise DuplicateEndpoint(f"{pad.kind.name.capitalize()} id '{endpoint_id}' is already registered")

    # Endpoint remove

    async def remove_input(self, pad: PadRef) -> RemovalResult:
        """
        Unregister an input and free its port.

        The record is dropped even if the compositor rejects or never receives
        the unregister request; that failure is only reported.

        Raises:
            InternalInconsistency: No record exists for the pad
        """
        self._check_pad(pad, EndpointKind.INPUT)
        return await self._submit("remove input", lambda: self._remove(pad))

    async def remove_output(self, pad: PadRef) -> RemovalResult:
        """Unregister an output and free its port."""
        self._check_pad(pad, EndpointKind.OUTPUT)
        return await self._submit("remove output", lambda: self._remove(pad))

    async def _remove(self, pad: PadRef) -> RemovalResult:
        record = self.state.find_record(pad)
        if record is None:
            logger.error(f"Remove requested for {pad}, which has no record")
            raise InternalInconsistency(f"No endpoint registered for pad {pad}")

        if isinstance(record, InputRecord):
            endpoint_id = record.input_id
            unregister = self.client.unregister_input
            drop = self.state.remove_input
        else:
            endpoint_id = record.output_id
            unregister = self.client.unregister_output
            drop = self.state.remove_output

        try:
            result = await unregister(endpoint_id)
        finally:
            drop(pad)
            self._update_endpoint_metrics()

        label = pad.kind.name.lower()
        self._metrics.unregistration(label, result.outcome.value)
        if result.ok:
            logger.info(f"{label.capitalize()} unregistered: {endpoint_id} ({pad}), port {record.local_port} freed")
        else:
            detail = result.response.body if result.response else result.error
            logger.warning(
                f"Compositor-side unregister of {label} '{endpoint_id}' failed "
                f"({result.outcome.value}): {detail}; port {record.local_port} freed locally"
            )

        removal = RemovalResult(pad=pad, endpoint_id=endpoint_id, port=record.local_port, unregister=result)
        self._emit(BridgeEvent(
            type=ENDPOINT_UNREGISTERED,
            snapshot=self.state.snapshot(),
            pad=pad,
            endpoint_id=endpoint_id,
            result=result.to_dict(),
        ))
        return removal

    # Requests

    async def send_custom(self, body: Union[Mapping[str, Any], CustomRequest]) -> RequestResult:
        """
        Forward a user-supplied request to the compositor.

        Rejections are logged as warnings and returned, not raised: custom
        requests are user-driven and may be malformed.
        """
        request = body if isinstance(body, CustomRequest) else CustomRequest(dict(body))
        return await self._submit("send custom request", lambda: self._send_custom(request))

    async def _send_custom(self, request: CustomRequest) -> RequestResult:
        result = await self.client.send(request)

        if result.is_error_response:
            logger.warning(
                f"Request\n{result.request}\nfailed with error:\n{result.response.body}"
            )
        elif result.is_transport_error:
            logger.error(f"Request {result.request} failed. Error: {result.error}")

        if result.answered:
            self._emit(BridgeEvent(
                type=REQUEST_RESPONSE,
                snapshot=self.state.snapshot(),
                request=result.request,
                result=result.to_dict(),
            ))
        return result

    async def start_composing(self) -> RequestResult:
        """Tell the compositor to start producing frames (on_message strategy)."""
        return await self._submit("start composing", self._start_composing)

    async def _start_composing(self) -> RequestResult:
        result = await self.client.start_composing()
        if result.ok:
            logger.info("Compositor started composing")
        else:
            logger.warning(f"Start composing failed ({result.outcome.value}): {result.to_dict()}")
        return result

    async def get_status(self) -> RequestResult:
        """Read the compositor status page. Does not touch session state."""
        return await self.client.get_status()

    async def wait_for_frame_on_input(self, input_id: str) -> RequestResult:
        """Block until the compositor sees the next frame on an input."""
        if not self.state.has_input_id(input_id):
            raise InternalInconsistency(f"Input '{input_id}' is not registered")
        return await self.client.wait_for_frame_on_input(input_id)

    # Relay topology

    def handle_new_rtp_stream(self, pad: PadRef, ssrc: int) -> DepayloaderLink:
        """Describe how to expose a new RTP stream seen on an output's receiver."""
        self._check_pad(pad, EndpointKind.OUTPUT)
        if self.state.find_output_id(pad) is None:
            raise InternalInconsistency(f"RTP stream {ssrc} arrived for unknown output pad {pad}")
        logger.debug(f"New RTP stream {ssrc} on {pad}")
        return DepayloaderLink(pad=pad, ssrc=ssrc)

    def snapshot(self) -> SessionSnapshot:
        return self.state.snapshot()

    def _update_endpoint_metrics(self) -> None:
        self._metrics.update_endpoints(len(self.state.inputs), len(self.state.outputs))
