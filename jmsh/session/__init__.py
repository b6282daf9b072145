"""
Terminal session management - channel, local terminal and the I/O loop.
"""

from .base import (
    SessionState,
    CloseReason,
    SessionEvent,
    LocalInput,
    LocalInputFailed,
    RemoteMessage,
    RemoteFailed,
    Resized,
)
from .protocol import ChannelMessage, MessageType
from .channel import Channel, WebSocketChannel
from .local_terminal import LocalTerminal, StdioTerminal, IS_WINDOWS
from .terminal import TerminalSession

__all__ = [
    # Base
    "SessionState",
    "CloseReason",
    "SessionEvent",
    "LocalInput",
    "LocalInputFailed",
    "RemoteMessage",
    "RemoteFailed",
    "Resized",
    # Wire format
    "ChannelMessage",
    "MessageType",
    # Transports
    "Channel",
    "WebSocketChannel",
    "LocalTerminal",
    "StdioTerminal",
    "IS_WINDOWS",
    # Session
    "TerminalSession",
]
