"""
Session states and the events the terminal loop consumes.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, auto

from .protocol import ChannelMessage
from ..models import TerminalGeometry


class SessionState(Enum):
    """Terminal session lifecycle states."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    CLOSED = auto()
    FAILED = auto()


class CloseReason(Enum):
    """Why a session ended without an error."""
    REMOTE_CLOSED = auto()
    LOCAL_EOF = auto()


@dataclass
class SessionEvent:
    """Base class for events posted to the session loop."""
    pass


@dataclass
class LocalInput(SessionEvent):
    """Bytes typed on the local terminal. Empty means EOF."""
    data: bytes


@dataclass
class LocalInputFailed(SessionEvent):
    """Reading the local terminal raised."""
    error: Exception


@dataclass
class RemoteMessage(SessionEvent):
    """Frame received from the channel."""
    message: ChannelMessage


@dataclass
class RemoteFailed(SessionEvent):
    """Reading the channel raised."""
    error: Exception


@dataclass
class Resized(SessionEvent):
    """Local terminal changed size."""
    geometry: TerminalGeometry
