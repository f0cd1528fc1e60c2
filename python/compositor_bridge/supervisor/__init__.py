"""Compositor process supervision."""
from .process import (
    API_PORT_ENV,
    HostPlatform,
    ProcessSupervisor,
    detect_platform,
    resolve_executable,
)

__all__ = [
    "API_PORT_ENV",
    "HostPlatform",
    "ProcessSupervisor",
    "detect_platform",
    "resolve_executable",
]
