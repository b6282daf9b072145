"""Shared fixtures: test keys, login page HTML, and in-memory doubles."""

from __future__ import annotations

import json
import queue
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional
from unittest.mock import MagicMock

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from jmsh.client import JumpClient
from jmsh.errors import TransportError
from jmsh.models import TerminalGeometry
from jmsh.session.channel import Channel
from jmsh.session.local_terminal import LocalTerminal
from jmsh.session.protocol import ChannelMessage

ENDPOINT = "http://jump.test"


# ---------------------------------------------------------------------------
# Keys and pages
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_public_pem(rsa_private_key) -> str:
    return rsa_private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


@pytest.fixture(scope="session")
def ec_public_pem() -> str:
    key = ec.generate_private_key(ec.SECP256R1())
    return key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def login_html(
    csrf: Optional[str] = "csrf-login-1",
    pem: Optional[str] = None,
    captcha_id: Optional[str] = None,
) -> str:
    """A login page shaped like the console's."""
    lines = ["<html><body>", '<form method="post" action="/core/auth/login/">']
    if csrf is not None:
        lines.append(f'<input type="hidden" name="csrfmiddlewaretoken" value="{csrf}">')
    lines.append('<input type="text" name="username">')
    if captcha_id is not None:
        lines.append(f'<img src="/core/auth/captcha/image/{captcha_id}/" alt="captcha" class="captcha">')
        lines.append(f'<input type="hidden" name="captcha_0" value="{captcha_id}">')
    lines.append("</form>")
    if pem is not None:
        lines.append(f"<script>var rsaPublicKey = {json.dumps(pem)}\n</script>")
    lines.append("</body></html>")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def make_response(
    url: str = ENDPOINT + "/",
    status: int = 200,
    text: str = "",
    json_body=None,
    content: Optional[bytes] = None,
) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.reason = "OK" if status == 200 else "Error"
    r.url = url
    r.encoding = "utf-8"
    if content is not None:
        r._content = content
    elif json_body is not None:
        r._content = json.dumps(json_body).encode("utf-8")
    else:
        r._content = text.encode("utf-8")
    return r


@pytest.fixture
def http() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(http) -> JumpClient:
    return JumpClient(ENDPOINT, http=http)


# ---------------------------------------------------------------------------
# Channel and terminal doubles
# ---------------------------------------------------------------------------


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


_CLOSED = object()


class FakeChannel(Channel):
    """
    Scripted channel.

    Script items are ChannelMessages (returned by recv), exceptions
    (raised by recv) or callables (run in the reader thread, then skipped).
    """

    def __init__(self, script=()):
        self.sent: list[ChannelMessage] = []
        self.closed = False
        self._incoming: queue.Queue = queue.Queue()
        for item in script:
            self._incoming.put(item)

    def push(self, item) -> None:
        self._incoming.put(item)

    def send(self, message: ChannelMessage) -> None:
        self.sent.append(message)

    def recv(self) -> ChannelMessage:
        while True:
            item = self._incoming.get()
            if item is _CLOSED:
                self._incoming.put(_CLOSED)
                raise TransportError("channel closed")
            if isinstance(item, Exception):
                raise item
            if callable(item):
                item()
                continue
            return item

    def close(self) -> None:
        self.closed = True
        self._incoming.put(_CLOSED)

    def sent_of(self, msg_type: str) -> list[ChannelMessage]:
        return [m for m in self.sent if m.type == msg_type]


class FakeTerminal(LocalTerminal):
    """In-memory terminal. Input items are bytes or exceptions to raise."""

    def __init__(self, geometry: TerminalGeometry = TerminalGeometry(80, 24), input_chunks=()):
        self.geometry = geometry
        self.output = bytearray()
        self.raw = False
        self.raw_entered = 0
        self.restored = 0
        self._callback = None
        self._input: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        for chunk in input_chunks:
            self._input.put(chunk)

    def type(self, data: bytes) -> None:
        self._input.put(data)

    @contextmanager
    def raw_mode(self) -> Iterator[None]:
        self.raw = True
        self.raw_entered += 1
        try:
            yield
        finally:
            self.raw = False
            self.restored += 1

    def read(self, size: int) -> bytes:
        item = self._input.get()
        if isinstance(item, Exception):
            raise item
        return item

    def write(self, data: bytes) -> None:
        with self._lock:
            self.output.extend(data)

    def size(self) -> TerminalGeometry:
        return self.geometry

    def watch_resize(self, callback) -> None:
        self._callback = callback

    def unwatch_resize(self) -> None:
        self._callback = None

    @property
    def watching(self) -> bool:
        return self._callback is not None

    def resize(self, geometry: TerminalGeometry) -> None:
        self.geometry = geometry
        if self._callback:
            self._callback(geometry)
