"""
Message channel to the web terminal endpoint.
"""

from __future__ import annotations
import ssl
import logging
from abc import ABC, abstractmethod
from typing import Optional

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import ClientConnection, connect

from .protocol import ChannelMessage
from ..errors import TransportError

logger = logging.getLogger(__name__)


class Channel(ABC):
    """
    Full-duplex, message-framed transport.

    recv() is called from one reader thread while send() is called from
    the session loop; implementations must allow that pairing.
    """

    @abstractmethod
    def send(self, message: ChannelMessage) -> None:
        """Send one frame."""
        pass

    @abstractmethod
    def recv(self) -> ChannelMessage:
        """Block until the next frame arrives."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the transport. Safe to call more than once."""
        pass


class WebSocketChannel(Channel):
    """Channel over a websockets sync client connection."""

    def __init__(self, ws: ClientConnection, url: str = ""):
        self._ws = ws
        self._url = url
        self._closed = False

    @classmethod
    def open(
        cls,
        url: str,
        cookie_header: Optional[str] = None,
        verify: bool = True,
        timeout: float = 30.0,
    ) -> 'WebSocketChannel':
        """
        Dial the terminal endpoint.

        Args:
            url: ws:// or wss:// URL
            cookie_header: Cookie header carrying the authenticated web session
            verify: Verify the server certificate for wss://
            timeout: Opening handshake timeout in seconds

        Raises:
            TransportError: If the connection or handshake fails
        """
        headers = {"Cookie": cookie_header} if cookie_header else None

        ssl_context = None
        if url.startswith("wss://"):
            ssl_context = ssl.create_default_context()
            if not verify:
                ssl_context.check_hostname = False
                ssl_context.verify_mode = ssl.CERT_NONE

        logger.debug(f"Opening channel: {url}")
        try:
            ws = connect(
                url,
                additional_headers=headers,
                ssl=ssl_context,
                open_timeout=timeout,
                max_size=None,
            )
        except (OSError, WebSocketException) as e:
            raise TransportError(f"failed to connect: {e}", url=url) from e

        logger.info(f"Channel open: {url}")
        return cls(ws, url)

    def send(self, message: ChannelMessage) -> None:
        try:
            self._ws.send(message.to_json())
        except (OSError, WebSocketException) as e:
            raise TransportError(f"channel send failed: {e}", url=self._url) from e

    def recv(self) -> ChannelMessage:
        try:
            frame = self._ws.recv()
        except ConnectionClosed as e:
            raise TransportError(f"channel closed: {e}", url=self._url) from e
        except (OSError, WebSocketException) as e:
            raise TransportError(f"channel receive failed: {e}", url=self._url) from e
        return ChannelMessage.from_json(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"Channel close: {e}")
        logger.debug(f"Channel closed: {self._url}")
