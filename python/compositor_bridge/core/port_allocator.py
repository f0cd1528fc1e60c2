"""UDP port selection for media relay endpoints."""
import logging
from typing import AbstractSet, Dict, Optional

from ..control.requests import EndpointKind

logger = logging.getLogger("vcb.port_allocator")

# RTP uses the even port, the adjacent odd port is left for RTCP.
PORT_STEP = 2

DEFAULT_INPUT_BASE_PORT = 4000
DEFAULT_OUTPUT_BASE_PORT = 5000


def next_free_port(kind: EndpointKind, starting_port: int, used_ports: AbstractSet[int]) -> int:
    """
    Return the smallest candidate port >= starting_port not in used_ports.

    Candidates are starting_port, starting_port + 2, ... with no upper bound;
    the OS port range and the compositor's own checks are the backstop.
    """
    port = starting_port
    while port in used_ports:
        port += PORT_STEP
    logger.debug(f"Next free {kind.name.lower()} port from {starting_port}: {port}")
    return port


class PortAllocator:
    """Maps endpoint kinds to their base ports."""

    def __init__(
        self,
        input_base: int = DEFAULT_INPUT_BASE_PORT,
        output_base: int = DEFAULT_OUTPUT_BASE_PORT,
    ):
        """
        Initialize port allocator.

        Args:
            input_base: First port tried for input streams (even)
            output_base: First port tried for output streams (even)
        """
        if input_base % 2 or output_base % 2:
            raise ValueError("Base ports must be even")
        self._bases: Dict[EndpointKind, int] = {
            EndpointKind.INPUT: input_base,
            EndpointKind.OUTPUT: output_base,
        }

    def base_port(self, kind: EndpointKind) -> int:
        return self._bases[kind]

    def candidate(
        self,
        kind: EndpointKind,
        used_ports: AbstractSet[int],
        after: Optional[int] = None,
    ) -> int:
        """
        Pick the next port to try for an endpoint of the given kind.

        Args:
            kind: Endpoint kind
            used_ports: Ports held by live endpoints
            after: Last rejected port; the search resumes at after + 2

        Returns:
            Candidate port number
        """
        start = self.base_port(kind) if after is None else after + PORT_STEP
        return next_free_port(kind, start, used_ports)
