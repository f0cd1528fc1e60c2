"""Bridge error types."""
from typing import Any, Optional


class BridgeError(Exception):
    """Base class for compositor bridge errors."""


class ConfigurationError(BridgeError):
    """Host platform or configuration cannot be used. Raised before any network activity."""


class ProcessUnreachable(BridgeError):
    """Compositor control endpoint never answered within the startup attempt budget."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class ControlTransportError(BridgeError):
    """Control request could not be delivered (connection refused, timeout)."""

    def __init__(self, message: str, request: Optional[dict] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.request = request
        self.cause = cause


class ProtocolRejection(BridgeError):
    """Compositor answered a request the bridge cannot proceed without with a non-200 status."""

    def __init__(self, message: str, request: Optional[dict] = None, response_body: Any = None):
        super().__init__(message)
        self.request = request
        self.response_body = response_body


class ResourceExhausted(BridgeError):
    """Registration was rejected on every port tried."""

    def __init__(self, message: str, last_port: int):
        super().__init__(message)
        self.last_port = last_port


class InternalInconsistency(BridgeError):
    """Pipeline side and session state disagree about which endpoints exist."""


class DuplicateEndpoint(BridgeError):
    """An input or output with the same id is already registered."""
