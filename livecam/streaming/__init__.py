"""
Streaming module: viewer subscriptions, fan-out and the WebSocket gateway.
"""

from .broadcast import BroadcastRouter, Connection, SubscriberRegistry
from .gateway import ConnectionGateway

__all__ = [
    'BroadcastRouter',
    'Connection',
    'SubscriberRegistry',
    'ConnectionGateway',
]
