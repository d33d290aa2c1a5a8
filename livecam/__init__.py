"""
Live CCTV Streaming Server

Registers RTSP cameras, converts each live feed to MJPEG with FFmpeg
and streams the frames to browser viewers over WebSockets.
"""

__version__ = "1.0.0"
__author__ = "Live CCTV Team"

from .utils.config import load_config, Config
from .utils.logger import setup_logging, get_logger
from .service import CameraService
from .main import LiveServer, main

__all__ = [
    'load_config',
    'Config',
    'setup_logging',
    'get_logger',
    'CameraService',
    'LiveServer',
    'main',
]
