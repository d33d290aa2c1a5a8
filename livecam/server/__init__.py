"""
Server module: HTTP API, viewer page and WebSocket endpoint.
"""

from .http_server import StreamServer

__all__ = [
    'StreamServer',
]
