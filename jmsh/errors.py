"""
Exception types for jmsh.

Not-found lookups and a clean remote CLOSE are ordinary results,
not exceptions: lookups return None, sessions return a CloseReason.
"""

from __future__ import annotations
from typing import Optional


class JmshError(Exception):
    """Base exception for all jmsh errors."""


class TransportError(JmshError):
    """
    Network or HTTP failure talking to the bastion host.

    Carries the HTTP status and URL when known so callers can
    report where the request died.
    """

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url

    def __str__(self) -> str:
        msg = super().__str__()
        context = []
        if self.status is not None:
            context.append(f"status={self.status}")
        if self.url:
            context.append(f"url={self.url}")
        if context:
            return f"{msg} ({', '.join(context)})"
        return msg


class ProtocolError(JmshError):
    """Server response did not have the expected shape (missing token, bad frame, ...)."""


class EncryptionError(JmshError):
    """Password could not be encrypted with the login page's public key."""


class AuthenticationFailed(JmshError):
    """
    Credentials, captcha or OTP were rejected.

    Recoverable only by asking the user again.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class InconsistentResult(JmshError):
    """Server returned a record that does not match what was asked for."""
