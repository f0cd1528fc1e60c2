"""Pipeline-facing notifications emitted by the orchestrator."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .session_state import PadRef, SessionSnapshot

INPUT_REGISTERED = "input_registered"
OUTPUT_REGISTERED = "output_registered"
ENDPOINT_UNREGISTERED = "endpoint_unregistered"
REQUEST_RESPONSE = "request_response"


@dataclass
class BridgeEvent:
    """Notification for the pipeline layer (and any WebSocket subscribers)."""

    type: str
    snapshot: SessionSnapshot
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    # Endpoint events
    pad: Optional[PadRef] = None
    endpoint_id: Optional[str] = None
    port: Optional[int] = None

    # Unregister / request events
    request: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, object] = {
            "type": self.type,
            "timestamp": self.timestamp,
            "session": self.snapshot.to_dict(),
        }

        if self.type in (INPUT_REGISTERED, OUTPUT_REGISTERED):
            result["pad"] = str(self.pad)
            result["id"] = self.endpoint_id
            result["port"] = self.port
        elif self.type == ENDPOINT_UNREGISTERED:
            result["pad"] = str(self.pad)
            result["id"] = self.endpoint_id
            result["result"] = self.result
        elif self.type == REQUEST_RESPONSE:
            result["request"] = self.request
            result["result"] = self.result

        return result
