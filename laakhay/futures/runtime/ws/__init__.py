"""Streaming runtime: transports, subscription bookkeeping and sessions."""

from .events import EventDispatcher, StreamEvent, Subscription
from .manager import USER_DATA_CHANNEL, StreamManager
from .registry import SubscriptionRegistry
from .session import SessionConfig, UserDataSession, UserDataSessionManager
from .transport import StreamTransport, TransportConfig

__all__ = [
    "EventDispatcher",
    "SessionConfig",
    "StreamEvent",
    "StreamManager",
    "StreamTransport",
    "Subscription",
    "SubscriptionRegistry",
    "TransportConfig",
    "USER_DATA_CHANNEL",
    "UserDataSession",
    "UserDataSessionManager",
]
