"""
jmsh/models.py

Data models shared by the API client and the terminal session.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List


@dataclass(frozen=True)
class TerminalGeometry:
    """Terminal size in character cells."""
    cols: int
    rows: int

    def to_dict(self) -> Dict[str, int]:
        return {"cols": self.cols, "rows": self.rows}

    def __str__(self) -> str:
        return f"{self.cols}x{self.rows}"


@dataclass
class Asset:
    """A target machine registered on the bastion host."""
    id: str
    hostname: str
    nodes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Asset':
        return cls(
            id=str(data["id"]),
            hostname=data["hostname"],
            nodes=list(data.get("nodes_display") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __repr__(self) -> str:
        nodes = f", nodes={self.nodes}" if self.nodes else ""
        return f"<Asset {self.hostname} id={self.id}{nodes}>"


@dataclass
class RemoteIdentity:
    """
    A login identity ("system user") the current user may use on an asset.

    name is the label shown in the web console, username is the
    account the session logs in as on the target.
    """
    id: str
    name: str
    username: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RemoteIdentity':
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            username=data.get("username", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __repr__(self) -> str:
        return f"<RemoteIdentity {self.username} ({self.name}) id={self.id}>"
