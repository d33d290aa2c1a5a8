"""
Capture module: FFmpeg frame sources for live cameras.
"""

from .process_manager import ActiveStream, FrameSourceManager, ffmpeg_available, spawn_process

__all__ = [
    'ActiveStream',
    'FrameSourceManager',
    'ffmpeg_available',
    'spawn_process',
]
