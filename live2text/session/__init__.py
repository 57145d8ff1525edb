"""Live session handling: protocol codec, transport and controller."""

from .controller import SessionController, SESSION_TOPIC
from .transport import (
    AbstractTransport,
    EventLoopThread,
    TransportCallbacks,
    WebSocketTransport,
    websocket_transport_factory,
)

__all__ = [
    "SessionController",
    "SESSION_TOPIC",
    "AbstractTransport",
    "EventLoopThread",
    "TransportCallbacks",
    "WebSocketTransport",
    "websocket_transport_factory",
]
