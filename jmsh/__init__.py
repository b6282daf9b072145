"""
jmsh - a terminal client for Jumpserver bastion hosts.

Logs in to the web console the way a browser does (csrf token,
RSA encrypted password, captcha, OTP) and opens the web terminal
on a target asset in the local terminal.

- JumpClient: cookie-carrying HTTP session, asset and system user lookups
- authenticate / LoginFlow: the login state machine
- TerminalSession: local terminal <-> WebSocket terminal I/O loop
"""

__version__ = "0.1.0"

from .errors import (
    JmshError,
    TransportError,
    ProtocolError,
    EncryptionError,
    AuthenticationFailed,
    InconsistentResult,
)
from .models import Asset, RemoteIdentity, TerminalGeometry
from .client import JumpClient
from .auth import LoginFlow, LoginOutcome, LoginStatus, authenticate
from .session import CloseReason, TerminalSession, StdioTerminal

__all__ = [
    # Errors
    "JmshError",
    "TransportError",
    "ProtocolError",
    "EncryptionError",
    "AuthenticationFailed",
    "InconsistentResult",
    # Models
    "Asset",
    "RemoteIdentity",
    "TerminalGeometry",
    # Client
    "JumpClient",
    "LoginFlow",
    "LoginOutcome",
    "LoginStatus",
    "authenticate",
    # Session
    "CloseReason",
    "TerminalSession",
    "StdioTerminal",
]
