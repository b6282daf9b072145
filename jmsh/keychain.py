"""
Password storage in the macOS login keychain.

Uses the `security` command rather than linking against the
Keychain API. Other platforms have no backend: find_password()
returns None and is_available() is False.
"""

from __future__ import annotations
import shutil
import subprocess
import sys
import logging
from typing import Optional
from urllib.parse import urlparse

from .errors import JmshError

logger = logging.getLogger(__name__)

SERVICE = "jmsh account"
CREATOR = "jmsh"
DESCRIPTION = "Jumpserver account for jmsh"

# `security find-generic-password` exit status when nothing matches
ITEM_NOT_FOUND = 44


def is_available() -> bool:
    return sys.platform == "darwin" and shutil.which("security") is not None


def account_name(endpoint: str, username: str) -> str:
    """Keychain account for a user on a console: user@host."""
    return f"{username}@{urlparse(endpoint).netloc}"


def find_password(endpoint: str, username: str) -> Optional[str]:
    """
    Look up a stored password.

    Returns:
        The password, or None if none is stored or there is no keychain

    Raises:
        JmshError: If `security` fails for any other reason
    """
    if not is_available():
        return None

    cmd = [
        "security", "find-generic-password",
        "-a", account_name(endpoint, username),
        "-c", CREATOR,
        "-s", SERVICE,
        "-w",
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode == ITEM_NOT_FOUND:
        logger.debug("No password in keychain")
        return None
    if result.returncode != 0:
        raise JmshError(f"keychain lookup failed: {result.stderr.strip()}")
    return result.stdout.strip()


def store_password(endpoint: str, username: str, password: str) -> None:
    """
    Add or update the stored password.

    Raises:
        JmshError: If there is no keychain or `security` fails
    """
    if not is_available():
        raise JmshError("no keychain available on this platform")

    cmd = [
        "security", "add-generic-password",
        "-a", account_name(endpoint, username),
        "-c", CREATOR,
        "-C", CREATOR,
        "-D", DESCRIPTION,
        "-s", SERVICE,
        "-w", password,
        "-U",
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise JmshError(f"keychain update failed: {result.stderr.strip()}")
    logger.info("Password saved to keychain")
