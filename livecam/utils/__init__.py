"""
Utilities module for the streaming server.
"""

from .config import load_config, Config
from .logger import setup_logging, get_logger
from .exceptions import (
    LiveCamError,
    ConfigurationError,
    InvalidInputError,
    CameraNotFoundError,
    StreamStateError,
    AlreadyRunningError,
    NotRunningError,
    StartFailureError,
)

__all__ = [
    'load_config',
    'Config',
    'setup_logging',
    'get_logger',
    'LiveCamError',
    'ConfigurationError',
    'InvalidInputError',
    'CameraNotFoundError',
    'StreamStateError',
    'AlreadyRunningError',
    'NotRunningError',
    'StartFailureError',
]
