"""StdioTerminal against a real pseudo-terminal."""

from __future__ import annotations

import os
import signal
import struct
import sys
import threading

import pytest

termios = pytest.importorskip("termios")
import fcntl  # noqa: E402
import pty  # noqa: E402

from jmsh.models import TerminalGeometry  # noqa: E402
from jmsh.session.base import Resized  # noqa: E402
from jmsh.session.local_terminal import DEFAULT_GEOMETRY, StdioTerminal  # noqa: E402
from jmsh.session.terminal import TerminalSession  # noqa: E402

from .conftest import FakeChannel  # noqa: E402

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX terminals only")


@pytest.fixture
def pty_pair():
    master, slave = pty.openpty()
    yield master, slave
    os.close(master)
    os.close(slave)


def set_winsize(fd: int, cols: int, rows: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


class TestRawMode:
    def test_raw_inside_restored_after(self, pty_pair) -> None:
        _, slave = pty_pair
        before = termios.tcgetattr(slave)
        terminal = StdioTerminal(stdin_fd=slave, stdout_fd=slave)

        with terminal.raw_mode():
            lflag = termios.tcgetattr(slave)[3]
            assert not lflag & termios.ECHO
            assert not lflag & termios.ICANON
            assert not lflag & termios.ISIG

        assert termios.tcgetattr(slave) == before

    def test_restored_when_block_raises(self, pty_pair) -> None:
        _, slave = pty_pair
        before = termios.tcgetattr(slave)
        terminal = StdioTerminal(stdin_fd=slave, stdout_fd=slave)

        with pytest.raises(RuntimeError):
            with terminal.raw_mode():
                raise RuntimeError("boom")

        assert termios.tcgetattr(slave) == before

    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGHUP])
    def test_terminating_signal_restores_mode(self, pty_pair, signum) -> None:
        _, slave = pty_pair
        before = termios.tcgetattr(slave)
        previous = signal.getsignal(signum)
        terminal = StdioTerminal(stdin_fd=slave, stdout_fd=slave)

        with pytest.raises(SystemExit) as exc:
            with terminal.raw_mode():
                signal.raise_signal(signum)

        assert exc.value.code == 128 + signum
        assert termios.tcgetattr(slave) == before
        assert signal.getsignal(signum) == previous

    def test_handlers_restored_after_normal_exit(self, pty_pair) -> None:
        _, slave = pty_pair
        previous = signal.getsignal(signal.SIGTERM)
        with StdioTerminal(stdin_fd=slave, stdout_fd=slave).raw_mode():
            assert signal.getsignal(signal.SIGTERM) != previous
        assert signal.getsignal(signal.SIGTERM) == previous


class TestIO:
    def test_size_from_tty(self, pty_pair) -> None:
        _, slave = pty_pair
        set_winsize(slave, 132, 43)
        assert StdioTerminal(stdin_fd=slave, stdout_fd=slave).size() == TerminalGeometry(132, 43)

    def test_size_falls_back_when_not_a_tty(self, pty_pair) -> None:
        _, slave = pty_pair
        r, w = os.pipe()
        try:
            assert StdioTerminal(stdin_fd=slave, stdout_fd=w).size() == DEFAULT_GEOMETRY
        finally:
            os.close(r)
            os.close(w)

    def test_write_reaches_master(self, pty_pair) -> None:
        master, slave = pty_pair
        StdioTerminal(stdin_fd=slave, stdout_fd=slave).write(b"hello")
        assert os.read(master, 100) == b"hello"

    def test_read_from_master(self, pty_pair) -> None:
        master, slave = pty_pair
        terminal = StdioTerminal(stdin_fd=slave, stdout_fd=slave)
        with terminal.raw_mode():
            os.write(master, b"ls\r")
            received = b""
            while len(received) < 3:
                received += terminal.read(100)
            assert received == b"ls\r"

    def test_is_tty(self, pty_pair) -> None:
        _, slave = pty_pair
        assert StdioTerminal(stdin_fd=slave, stdout_fd=slave).is_tty()


class TestResizeSignal:
    def test_sigwinch_reaches_blocked_consumer(self, pty_pair) -> None:
        _, slave = pty_pair
        set_winsize(slave, 100, 30)
        terminal = StdioTerminal(stdin_fd=slave, stdout_fd=slave)
        session = TerminalSession(FakeChannel(), terminal)

        terminal.watch_resize(session._on_resize)
        timer = threading.Timer(0.1, os.kill, (os.getpid(), signal.SIGWINCH))
        try:
            timer.start()
            # The handler runs on this thread while it waits in get()
            event = session._events.get(timeout=5)
        finally:
            timer.cancel()
            terminal.unwatch_resize()

        assert event == Resized(TerminalGeometry(100, 30))

    def test_unwatch_restores_previous_handler(self, pty_pair) -> None:
        _, slave = pty_pair
        previous = signal.getsignal(signal.SIGWINCH)
        terminal = StdioTerminal(stdin_fd=slave, stdout_fd=slave)
        terminal.watch_resize(lambda geometry: None)
        terminal.unwatch_resize()
        assert signal.getsignal(signal.SIGWINCH) == previous
