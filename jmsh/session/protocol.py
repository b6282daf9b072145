"""
Terminal channel wire format.

Every WebSocket frame is one JSON object {"id", "type", "data"}.
data is always a string; geometry payloads are themselves JSON text.
"""

from __future__ import annotations
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from ..errors import ProtocolError
from ..models import TerminalGeometry


class MessageType(str, Enum):
    """Frame types spoken by the terminal endpoint."""
    PING = "PING"
    PONG = "PONG"
    CONNECT = "CONNECT"
    CLOSE = "CLOSE"
    TERMINAL_INIT = "TERMINAL_INIT"
    TERMINAL_DATA = "TERMINAL_DATA"
    TERMINAL_RESIZE = "TERMINAL_RESIZE"


@dataclass(frozen=True)
class ChannelMessage:
    """One frame on the terminal channel."""
    id: str
    type: str
    data: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "data": self.data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str | bytes) -> 'ChannelMessage':
        """
        Decode a frame.

        Raises:
            ProtocolError: If the frame is not a JSON object with a string type
        """
        try:
            obj = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"malformed channel frame: {e}") from e

        if not isinstance(obj, dict) or not isinstance(obj.get("type"), str):
            raise ProtocolError(f"malformed channel frame: {str(text)[:80]!r}")

        data = obj.get("data")
        return cls(
            id="" if obj.get("id") is None else str(obj["id"]),
            type=obj["type"],
            data=data if isinstance(data, str) else ("" if data is None else json.dumps(data)),
        )

    def __repr__(self) -> str:
        preview = self.data if len(self.data) <= 32 else self.data[:32] + "..."
        return f"<ChannelMessage {self.type} id={self.id} data={preview!r}>"


def geometry_payload(geometry: TerminalGeometry) -> str:
    """Encode a terminal size for TERMINAL_INIT / TERMINAL_RESIZE."""
    return json.dumps(geometry.to_dict())


def init_message(correlation_id: str, geometry: TerminalGeometry) -> ChannelMessage:
    return ChannelMessage(correlation_id, MessageType.TERMINAL_INIT.value, geometry_payload(geometry))


def resize_message(correlation_id: str, geometry: TerminalGeometry) -> ChannelMessage:
    return ChannelMessage(correlation_id, MessageType.TERMINAL_RESIZE.value, geometry_payload(geometry))


def data_message(correlation_id: str, data: str) -> ChannelMessage:
    return ChannelMessage(correlation_id, MessageType.TERMINAL_DATA.value, data)
