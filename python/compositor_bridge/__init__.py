"""
Compositor Bridge - attach pipeline video streams to an external compositor.

Coordinates:
- Compositor process startup and readiness probing
- UDP port allocation for RTP media relay
- Stream register/unregister over the compositor control API
- Session state for every live input and output

Usage:
    python -m compositor_bridge

Environment Variables:
    VCB_CONTROL_PORT - Compositor control API port (default: 8001)
    VCB_COMPOSITOR_APP_DIR - Directory with per-platform compositor builds
    VCB_API_PORT - Bridge REST API port (default: 8090)
    VCB_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR)
"""

__version__ = "0.1.0"

from .config import BridgeConfig, get_config
from .core import Orchestrator, PadRef

__all__ = [
    "BridgeConfig",
    "get_config",
    "Orchestrator",
    "PadRef",
]
