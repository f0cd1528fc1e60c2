"""Core bridge components."""
from .events import BridgeEvent
from .orchestrator import Orchestrator, RemovalResult
from .port_allocator import PortAllocator, next_free_port
from .session_state import InputRecord, OutputRecord, PadRef, SessionSnapshot, SessionState
from .wiring import DepayloaderLink, InputWiring, OutputWiring

__all__ = [
    "BridgeEvent",
    "Orchestrator",
    "RemovalResult",
    "PortAllocator",
    "next_free_port",
    "InputRecord",
    "OutputRecord",
    "PadRef",
    "SessionSnapshot",
    "SessionState",
    "DepayloaderLink",
    "InputWiring",
    "OutputWiring",
]
