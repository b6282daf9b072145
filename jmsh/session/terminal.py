"""
Interactive terminal session over a message channel.

Two reader threads (local input, remote channel) post events to one
queue; the thread calling run() is the only consumer and the only
writer to the channel.
"""

from __future__ import annotations
import codecs
import queue
import threading
import logging
from typing import Optional

from .base import (
    SessionState, CloseReason, SessionEvent,
    LocalInput, LocalInputFailed, RemoteMessage, RemoteFailed, Resized
)
from .channel import Channel
from .local_terminal import LocalTerminal
from .protocol import (
    ChannelMessage, MessageType,
    init_message, resize_message, data_message
)
from ..errors import JmshError, ProtocolError, TransportError
from ..models import TerminalGeometry

logger = logging.getLogger(__name__)


class TerminalSession:
    """
    Pumps bytes between a local terminal and a remote shell.

    Usage:
        session = TerminalSession(channel, StdioTerminal())
        reason = session.run()   # blocks until CLOSE, EOF or error

    run() raises TransportError / ProtocolError on any I/O failure and
    never retries. The channel is closed and the terminal mode restored
    on every exit path.
    """

    READ_BUFFER_SIZE = 8 * 1024

    def __init__(self, channel: Channel, terminal: LocalTerminal):
        self._channel = channel
        self._terminal = terminal

        # SimpleQueue.put is reentrant: the SIGWINCH handler posts from the
        # main thread, which may be inside get() at that moment
        self._events: queue.SimpleQueue[SessionEvent] = queue.SimpleQueue()
        self._state = SessionState.DISCONNECTED

        self._correlation_id: Optional[str] = None
        self._geometry: Optional[TerminalGeometry] = None
        self._last_output = ""

        # Keystrokes can split a multi-byte character across reads
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def correlation_id(self) -> Optional[str]:
        """Id assigned by the server's CONNECT frame."""
        return self._correlation_id

    @property
    def geometry(self) -> Optional[TerminalGeometry]:
        """Size last sent to the remote side."""
        return self._geometry

    def run(self) -> CloseReason:
        """
        Run the session to completion.

        Returns:
            CloseReason.REMOTE_CLOSED on a CLOSE frame,
            CloseReason.LOCAL_EOF when local input ends

        Raises:
            ProtocolError: If the server does not open with CONNECT
            TransportError: On any local or channel I/O failure
        """
        self._set_state(SessionState.CONNECTING)
        try:
            self._handshake_connect()
            with self._terminal.raw_mode():
                self._send_init()
                self._terminal.watch_resize(self._on_resize)
                try:
                    self._start_readers()
                    self._set_state(SessionState.CONNECTED)
                    reason = self._loop()
                finally:
                    self._terminal.unwatch_resize()
        except JmshError as e:
            self._set_state(SessionState.FAILED, str(e))
            raise
        finally:
            self._channel.close()

        self._set_state(SessionState.CLOSED, reason.name)
        return reason

    # -------------------------------------------------------------------------
    # Handshake
    # -------------------------------------------------------------------------

    def _handshake_connect(self) -> None:
        first = self._channel.recv()
        if first.type != MessageType.CONNECT.value:
            raise ProtocolError(f"Expected CONNECT message, but got {first.type}")
        self._correlation_id = first.id
        logger.debug(f"Channel id: {self._correlation_id}")

    def _send_init(self) -> None:
        self._geometry = self._terminal.size()
        self._channel.send(init_message(self._correlation_id, self._geometry))
        logger.debug(f"Sent TERMINAL_INIT {self._geometry}")

    # -------------------------------------------------------------------------
    # Event sources
    # -------------------------------------------------------------------------

    def _start_readers(self) -> None:
        threading.Thread(target=self._read_local, name="jmsh-local-reader", daemon=True).start()
        threading.Thread(target=self._read_remote, name="jmsh-remote-reader", daemon=True).start()

    def _read_local(self) -> None:
        while True:
            try:
                data = self._terminal.read(self.READ_BUFFER_SIZE)
            except Exception as e:
                self._events.put(LocalInputFailed(e))
                return
            self._events.put(LocalInput(data))
            if not data:
                return

    def _read_remote(self) -> None:
        while True:
            try:
                message = self._channel.recv()
            except Exception as e:
                self._events.put(RemoteFailed(e))
                return
            self._events.put(RemoteMessage(message))

    def _on_resize(self, geometry: TerminalGeometry) -> None:
        self._events.put(Resized(geometry))

    # -------------------------------------------------------------------------
    # Consumer
    # -------------------------------------------------------------------------

    def _loop(self) -> CloseReason:
        while True:
            event = self._events.get()

            if isinstance(event, LocalInput):
                if not event.data:
                    logger.info("Local input closed")
                    return CloseReason.LOCAL_EOF
                text = self._decoder.decode(event.data)
                if text:
                    self._channel.send(data_message(self._correlation_id, text))

            elif isinstance(event, RemoteMessage):
                if self._handle_remote(event.message):
                    return CloseReason.REMOTE_CLOSED

            elif isinstance(event, Resized):
                self._handle_resize(event.geometry)

            elif isinstance(event, LocalInputFailed):
                raise TransportError(f"local terminal read failed: {event.error}") from event.error

            elif isinstance(event, RemoteFailed):
                if isinstance(event.error, JmshError):
                    raise event.error
                raise TransportError(f"channel receive failed: {event.error}") from event.error

    def _handle_remote(self, message: ChannelMessage) -> bool:
        """Dispatch one remote frame. True means the session is over."""
        if message.type == MessageType.TERMINAL_DATA.value:
            self._write_local(message.data.encode("utf-8"))
            if message.data:
                self._last_output = message.data
            return False

        if message.type == MessageType.CLOSE.value:
            logger.info("Remote closed the session")
            # Leave the prompt on a fresh line. With no output at all
            # there is nothing to correct.
            if self._last_output and not self._last_output.endswith("\n"):
                self._write_local(b"\r\n")
            return True

        if message.type == MessageType.PING.value:
            self._channel.send(message)
            return False

        logger.debug(f"Ignoring {message!r}")
        return False

    def _handle_resize(self, geometry: TerminalGeometry) -> None:
        if geometry == self._geometry:
            return
        self._geometry = geometry
        self._channel.send(resize_message(self._correlation_id, geometry))
        logger.debug(f"Sent TERMINAL_RESIZE {geometry}")

    def _write_local(self, data: bytes) -> None:
        try:
            self._terminal.write(data)
        except OSError as e:
            raise TransportError(f"local terminal write failed: {e}") from e

    def _set_state(self, state: SessionState, msg: str = "") -> None:
        old, self._state = self._state, state
        logger.debug(f"TerminalSession: {old.name} -> {state.name} {msg}")
