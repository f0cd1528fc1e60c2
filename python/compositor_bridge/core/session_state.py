"""Session state for registered compositor endpoints."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Hashable, List, Optional, Set, Tuple, Union

from ..control.requests import EncoderPreset, EndpointKind, Resolution
from ..errors import InternalInconsistency


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PadRef:
    """Pipeline-side reference of an endpoint, compared by value."""
    kind: EndpointKind
    pad_id: Hashable

    def __str__(self) -> str:
        return f"{self.kind.name.lower()}:{self.pad_id}"


@dataclass(frozen=True)
class InputRecord:
    """An input stream acknowledged by the compositor."""
    input_id: str
    local_port: int
    pipeline_ref: PadRef
    registered_at: datetime = field(default_factory=_utc_now, compare=False)

    def to_dict(self) -> Dict[str, object]:
        return {
            "input_id": self.input_id,
            "port": self.local_port,
            "pad": str(self.pipeline_ref),
            "registered_at": self.registered_at.isoformat(),
        }


@dataclass(frozen=True)
class OutputRecord:
    """An output stream acknowledged by the compositor."""
    output_id: str
    local_port: int
    pipeline_ref: PadRef
    resolution: Resolution
    encoder_preset: EncoderPreset = EncoderPreset.MEDIUM
    registered_at: datetime = field(default_factory=_utc_now, compare=False)

    def to_dict(self) -> Dict[str, object]:
        return {
            "output_id": self.output_id,
            "port": self.local_port,
            "pad": str(self.pipeline_ref),
            "resolution": self.resolution.to_dict(),
            "encoder_preset": EncoderPreset(self.encoder_preset).value,
            "registered_at": self.registered_at.isoformat(),
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of the session handed out with pipeline events."""
    inputs: Tuple[InputRecord, ...]
    outputs: Tuple[OutputRecord, ...]
    framerate: int
    control_port: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "inputs": [r.to_dict() for r in self.inputs],
            "outputs": [r.to_dict() for r in self.outputs],
            "framerate": self.framerate,
            "control_port": self.control_port,
        }


EndpointRecord = Union[InputRecord, OutputRecord]


class SessionState:
    """
    Authoritative record of the endpoints registered with the compositor.

    Only the orchestrator's command loop mutates it. A record is added after
    the compositor acknowledged the registration and removed when the pipeline
    tears the endpoint down, so the used-port set always equals the ports of
    live records.
    """

    def __init__(self, control_port: int, framerate: int):
        self.control_port = control_port
        self.framerate = framerate
        self._inputs: Dict[PadRef, InputRecord] = {}
        self._outputs: Dict[PadRef, OutputRecord] = {}

    @property
    def inputs(self) -> List[InputRecord]:
        return list(self._inputs.values())

    @property
    def outputs(self) -> List[OutputRecord]:
        return list(self._outputs.values())

    def used_ports(self) -> Set[int]:
        """Ports held by live inputs and outputs."""
        ports = {r.local_port for r in self._inputs.values()}
        ports.update(r.local_port for r in self._outputs.values())
        return ports

    def add_input(self, record: InputRecord) -> None:
        self._check_insert(record.pipeline_ref, record.local_port)
        if any(r.input_id == record.input_id for r in self._inputs.values()):
            raise InternalInconsistency(f"Input id '{record.input_id}' is already registered")
        self._inputs[record.pipeline_ref] = record

    def add_output(self, record: OutputRecord) -> None:
        self._check_insert(record.pipeline_ref, record.local_port)
        if any(r.output_id == record.output_id for r in self._outputs.values()):
            raise InternalInconsistency(f"Output id '{record.output_id}' is already registered")
        self._outputs[record.pipeline_ref] = record

    def remove_input(self, pipeline_ref: PadRef) -> Optional[str]:
        """Drop the input record for a pad. Returns its id, or None when unknown."""
        record = self._inputs.pop(pipeline_ref, None)
        return record.input_id if record else None

    def remove_output(self, pipeline_ref: PadRef) -> Optional[str]:
        """Drop the output record for a pad. Returns its id, or None when unknown."""
        record = self._outputs.pop(pipeline_ref, None)
        return record.output_id if record else None

    def find_input_id(self, pipeline_ref: PadRef) -> Optional[str]:
        record = self._inputs.get(pipeline_ref)
        return record.input_id if record else None

    def find_output_id(self, pipeline_ref: PadRef) -> Optional[str]:
        record = self._outputs.get(pipeline_ref)
        return record.output_id if record else None

    def find_record(self, pipeline_ref: PadRef) -> Optional[EndpointRecord]:
        if pipeline_ref.kind is EndpointKind.INPUT:
            return self._inputs.get(pipeline_ref)
        return self._outputs.get(pipeline_ref)

    def has_input_id(self, input_id: str) -> bool:
        return any(r.input_id == input_id for r in self._inputs.values())

    def has_output_id(self, output_id: str) -> bool:
        return any(r.output_id == output_id for r in self._outputs.values())

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            inputs=tuple(self._inputs.values()),
            outputs=tuple(self._outputs.values()),
            framerate=self.framerate,
            control_port=self.control_port,
        )

    def clear(self) -> None:
        self._inputs.clear()
        self._outputs.clear()

    def _check_insert(self, pipeline_ref: PadRef, port: int) -> None:
        if pipeline_ref in self._inputs or pipeline_ref in self._outputs:
            raise InternalInconsistency(f"Pad {pipeline_ref} already has a record")
        if port in self.used_ports():
            raise InternalInconsistency(f"Port {port} is already held by a live endpoint")
