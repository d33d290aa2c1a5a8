"""
State management module for the streaming server.
"""

from .models import Camera, CameraStatus, HealthStatus, viewer_path
from .registry import CameraRegistry

__all__ = [
    'Camera',
    'CameraStatus',
    'HealthStatus',
    'viewer_path',
    'CameraRegistry',
]
