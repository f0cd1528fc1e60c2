"""
Media relay wiring descriptors.

The bridge never opens relay sockets itself. For every registered endpoint it
hands the pipeline layer a declarative description of the UDP/RTP elements to
build; the pipeline elements own the sockets from then on.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..control.requests import LOCAL_HOST
from .session_state import PadRef

UDP_BUFFER_SIZE = 1024 * 1024
RTP_ENCODING = "H264"


@dataclass(frozen=True)
class InputWiring:
    """Pipeline input -> RTP payloader/sender -> UDP sink -> compositor."""

    pad: PadRef
    input_id: str
    port: int
    address: str = LOCAL_HOST

    @property
    def rtp_sender(self) -> Tuple[str, object]:
        return ("rtp_sender", self.pad.pad_id)

    @property
    def udp_sink(self) -> Tuple[str, object]:
        return ("udp_sink", self.pad.pad_id)

    def children(self) -> List[Tuple[str, object]]:
        """Child elements the pipeline removes when the pad goes away."""
        return [self.rtp_sender, self.udp_sink]

    def to_dict(self) -> Dict[str, object]:
        return {
            "direction": "to_compositor",
            "pad": str(self.pad),
            "input_id": self.input_id,
            "udp_sink": {"destination_address": self.address, "destination_port": self.port},
            "rtp": {"payloader": RTP_ENCODING, "encoding": RTP_ENCODING},
        }


@dataclass(frozen=True)
class OutputWiring:
    """Compositor -> UDP source (listening) -> RTP receiver -> pipeline output."""

    pad: PadRef
    output_id: str
    port: int
    address: str = LOCAL_HOST
    recv_buffer_size: int = UDP_BUFFER_SIZE

    @property
    def rtp_receiver(self) -> Tuple[str, object]:
        return ("rtp_receiver", self.pad.pad_id)

    @property
    def udp_source(self) -> Tuple[str, object]:
        return ("udp_source", self.pad.pad_id)

    def children(self) -> List[Tuple[str, object]]:
        return [self.rtp_receiver, self.udp_source]

    def to_dict(self) -> Dict[str, object]:
        return {
            "direction": "from_compositor",
            "pad": str(self.pad),
            "output_id": self.output_id,
            "udp_source": {
                "local_address": self.address,
                "local_port": self.port,
                "recv_buffer_size": self.recv_buffer_size,
            },
            "rtp": {"encoding": RTP_ENCODING},
        }


@dataclass(frozen=True)
class DepayloaderLink:
    """Links a newly seen RTP stream on an output's receiver to the pipeline output pad."""

    pad: PadRef
    ssrc: int
    depayloader: str = RTP_ENCODING

    def to_dict(self) -> Dict[str, object]:
        return {
            "pad": str(self.pad),
            "rtp_receiver": ["rtp_receiver", self.pad.pad_id],
            "ssrc": self.ssrc,
            "depayloader": self.depayloader,
        }
