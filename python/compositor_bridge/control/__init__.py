"""Compositor control protocol."""
from .client import ControlClient, ControlResponse, RequestOutcome, RequestResult
from .requests import (
    CustomRequest,
    EncoderPreset,
    EndpointKind,
    Resolution,
)

__all__ = [
    "ControlClient",
    "ControlResponse",
    "RequestOutcome",
    "RequestResult",
    "CustomRequest",
    "EncoderPreset",
    "EndpointKind",
    "Resolution",
]
