"""
Control request shapes understood by the compositor API.

Every request serializes to the JSON body POSTed to ``/--/api``. Known actions
get their own dataclass; anything else travels as a :class:`CustomRequest`
whose body is forwarded verbatim.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Union

LOCAL_HOST = "127.0.0.1"


class EndpointKind(str, Enum):
    """Direction of a stream endpoint as seen from the compositor."""

    INPUT = "input_stream"
    OUTPUT = "output_stream"

    @property
    def id_field(self) -> str:
        return "input_id" if self is EndpointKind.INPUT else "output_id"


class EncoderPreset(str, Enum):
    """H264 encoder speed presets accepted for output streams."""

    ULTRAFAST = "ultrafast"
    SUPERFAST = "superfast"
    VERYFAST = "veryfast"
    FASTER = "faster"
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"
    SLOWER = "slower"
    VERYSLOW = "veryslow"
    PLACEBO = "placebo"


@dataclass(frozen=True)
class Resolution:
    """Output stream resolution in pixels."""

    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Resolution dimensions must be positive")

    def to_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class InitRequest:
    framerate: int
    stream_fallback_timeout_ms: int
    web_renderer_enabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "init",
            "framerate": self.framerate,
            "stream_fallback_timeout": self.stream_fallback_timeout_ms,
            "web_renderer": {"init": self.web_renderer_enabled},
        }


@dataclass(frozen=True)
class StartRequest:
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "start"}


@dataclass(frozen=True)
class RegisterInputStream:
    input_id: str
    port: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "register",
            "entity_type": EndpointKind.INPUT.value,
            "input_id": str(self.input_id),
            "port": self.port,
            "video": {"codec": "h264"},
        }


@dataclass(frozen=True)
class RegisterOutputStream:
    output_id: str
    port: int
    resolution: Resolution
    encoder_preset: EncoderPreset = EncoderPreset.MEDIUM
    ip: str = LOCAL_HOST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "register",
            "entity_type": EndpointKind.OUTPUT.value,
            "output_id": str(self.output_id),
            "port": self.port,
            "ip": self.ip,
            "resolution": self.resolution.to_dict(),
            "encoder_preset": EncoderPreset(self.encoder_preset).value,
        }


@dataclass(frozen=True)
class UnregisterStream:
    kind: EndpointKind
    stream_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "unregister",
            "entity_type": self.kind.value,
            self.kind.id_field: str(self.stream_id),
        }


@dataclass(frozen=True)
class WaitForFrameQuery:
    """Blocks on the compositor side until the next frame arrives on an input."""

    input_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "query",
            "query": "wait_for_next_frame",
            "input_id": str(self.input_id),
        }


@dataclass(frozen=True)
class CustomRequest:
    """Opaque request (scene updates, shader/image registration, ...)."""

    body: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.body)


ControlRequest = Union[
    InitRequest,
    StartRequest,
    RegisterInputStream,
    RegisterOutputStream,
    UnregisterStream,
    WaitForFrameQuery,
    CustomRequest,
]


def request_action(request: ControlRequest) -> str:
    """Short action label used in logs and metrics."""
    if isinstance(request, CustomRequest):
        return "custom"
    if isinstance(request, (RegisterInputStream, RegisterOutputStream)):
        return "register"
    if isinstance(request, UnregisterStream):
        return "unregister"
    if isinstance(request, WaitForFrameQuery):
        return "query"
    return request.to_dict()["type"]
