"""Configuration module."""
from .settings import BridgeConfig, get_config, reset_config, START_ON_INIT, START_ON_MESSAGE
from .logging import setup_logging, get_logger

__all__ = [
    "BridgeConfig",
    "get_config",
    "reset_config",
    "START_ON_INIT",
    "START_ON_MESSAGE",
    "setup_logging",
    "get_logger",
]
