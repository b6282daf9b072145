"""
Local terminal device.

The session loop only needs a handful of operations from the user's
terminal; LocalTerminal names them so tests can substitute a fake.
"""

from __future__ import annotations
import os
import sys
import signal
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ..errors import TransportError
from ..models import TerminalGeometry

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == 'win32'

if not IS_WINDOWS:
    import tty
    import termios

DEFAULT_GEOMETRY = TerminalGeometry(cols=80, rows=24)

TERMINATING_SIGNALS = () if IS_WINDOWS else (signal.SIGTERM, signal.SIGHUP)

ResizeCallback = Callable[[TerminalGeometry], None]


def _exit_on_signal(signum, frame):
    logger.info(f"Received signal {signum}, leaving raw mode")
    raise SystemExit(128 + signum)


class LocalTerminal(ABC):
    """Abstract local terminal."""

    @abstractmethod
    def raw_mode(self) -> Iterator[None]:
        """
        Context manager: byte-at-a-time input, no echo.

        The previous mode must be restored when the block exits,
        however it exits.
        """
        pass

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Blocking read. Empty bytes means EOF."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of data to the terminal."""
        pass

    @abstractmethod
    def size(self) -> TerminalGeometry:
        """Current terminal size."""
        pass

    @abstractmethod
    def watch_resize(self, callback: ResizeCallback) -> None:
        """Call callback with the new size whenever the terminal is resized."""
        pass

    @abstractmethod
    def unwatch_resize(self) -> None:
        """Stop resize notifications."""
        pass


class StdioTerminal(LocalTerminal):
    """
    The controlling terminal on stdin/stdout (POSIX).

    Resize notifications come from SIGWINCH, so watch_resize() must be
    called from the main thread.
    """

    def __init__(self, stdin_fd: Optional[int] = None, stdout_fd: Optional[int] = None):
        if IS_WINDOWS:
            raise RuntimeError("Interactive sessions need a POSIX terminal")
        self._in = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self._out = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self._old_sigwinch = None
        self._watching = False

    def is_tty(self) -> bool:
        return os.isatty(self._in)

    @contextmanager
    def raw_mode(self) -> Iterator[None]:
        """
        Put the terminal in raw mode for the duration of the block.

        ISIG is off in raw mode, so the only way out besides the session
        ending is a signal from elsewhere. SIGTERM and SIGHUP are turned
        into SystemExit while the block runs so the old mode is still
        restored. That needs the main thread; elsewhere they keep their
        current handlers.
        """
        try:
            old_settings = termios.tcgetattr(self._in)
            tty.setraw(self._in)
        except termios.error as e:
            raise TransportError(f"cannot put terminal in raw mode: {e}") from e
        logger.debug("Terminal in raw mode")

        old_handlers = {}
        if threading.current_thread() is threading.main_thread():
            for signum in TERMINATING_SIGNALS:
                old_handlers[signum] = signal.signal(signum, _exit_on_signal)
        try:
            yield
        finally:
            for signum, handler in old_handlers.items():
                signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
            termios.tcsetattr(self._in, termios.TCSADRAIN, old_settings)
            logger.debug("Terminal mode restored")

    def read(self, size: int) -> bytes:
        return os.read(self._in, size)

    def write(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self._out, view)
            view = view[written:]

    def size(self) -> TerminalGeometry:
        try:
            ts = os.get_terminal_size(self._out)
        except OSError:
            return DEFAULT_GEOMETRY
        return TerminalGeometry(cols=ts.columns, rows=ts.lines)

    def watch_resize(self, callback: ResizeCallback) -> None:
        def handle_sigwinch(signum, frame):
            callback(self.size())

        self._old_sigwinch = signal.signal(signal.SIGWINCH, handle_sigwinch)
        self._watching = True

    def unwatch_resize(self) -> None:
        if not self._watching:
            return
        signal.signal(signal.SIGWINCH, self._old_sigwinch or signal.SIG_DFL)
        self._old_sigwinch = None
        self._watching = False
