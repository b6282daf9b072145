"""
jmsh/client.py

HTTP session against a Jumpserver web console, plus the lookups and
terminal connection that need an authenticated cookie jar.
"""

from __future__ import annotations
import logging
from typing import Any, List, Optional
from urllib.parse import urlencode, urlparse

import requests
from requests.cookies import get_cookie_header

from .errors import InconsistentResult, ProtocolError, TransportError
from .models import Asset, RemoteIdentity
from .session.base import CloseReason
from .session.channel import WebSocketChannel
from .session.local_terminal import LocalTerminal, StdioTerminal
from .session.terminal import TerminalSession

logger = logging.getLogger(__name__)

ASSETS_PATH = "/api/v1/assets/assets/"
IDENTITIES_PATH = "/api/v1/perms/users/assets/{asset_id}/system-users/"
TERMINAL_WS_PATH = "/koko/ws/terminal/"

DEFAULT_TIMEOUT = 30.0


class JumpClient:
    """
    Cookie-carrying client for one Jumpserver endpoint.

    Created once per process. Only the login flow changes the cookie
    jar; everything else just sends what it holds.

    Usage:
        client = JumpClient("https://jump.example.com")
        authenticate(client, "alice", password, otp_resolver=ask_otp)

        asset = client.find_asset_by_hostname("db01")
        identities = client.list_remote_identities(asset.id)
        client.connect_asset(asset.id, identities[0].id)
    """

    def __init__(
        self,
        endpoint: str,
        verify: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[requests.Session] = None,
    ):
        """
        Args:
            endpoint: Base URL, scheme and host only (https://jump.example.com)
            verify: Verify TLS certificates
            timeout: Per-request timeout in seconds
            http: Preconfigured requests session (tests, proxies)
        """
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint must be an http(s) URL: {endpoint!r}")

        self.endpoint = endpoint.rstrip("/")
        self.verify = verify
        self.timeout = timeout
        self._http = http or requests.Session()
        self._http.verify = verify

    @property
    def cookies(self) -> requests.cookies.RequestsCookieJar:
        """The session's cookie jar."""
        return self._http.cookies

    def url(self, path: str) -> str:
        return self.endpoint + path

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    def get(self, path: str, params: Optional[dict] = None) -> requests.Response:
        """GET a path under the endpoint. Network failures become TransportError."""
        url = self.url(path)
        try:
            return self._http.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"GET {path} failed: {e}", url=url) from e

    def post(self, path: str, data: dict) -> requests.Response:
        """POST a form, following redirects."""
        url = self.url(path)
        try:
            return self._http.post(url, data=data, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            raise TransportError(f"POST {path} failed: {e}", url=url) from e

    @staticmethod
    def check_status(response: requests.Response, what: str) -> None:
        if response.status_code != 200:
            raise TransportError(
                f"{what} got {response.status_code} {response.reason}",
                status=response.status_code,
                url=response.url,
            )

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"expected JSON from {response.url}: {e}") from e

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def find_asset_by_hostname(self, hostname: str) -> Optional[Asset]:
        """
        Look up an asset by exact hostname.

        Args:
            hostname: Hostname as registered on the bastion host

        Returns:
            The asset, or None if the server knows no such host

        Raises:
            ValueError: If hostname is empty
            InconsistentResult: If the server's first match has another hostname
            TransportError: On network or HTTP failure
        """
        if not hostname:
            raise ValueError("hostname must not be empty")

        params = {
            "hostname": hostname,
            "offset": "0",
            "limit": "100",
            "display": "1",
            "draw": "1",
        }
        r = self.get(ASSETS_PATH, params=params)
        self.check_status(r, "api request")

        body = self._json(r)
        if not isinstance(body, dict) or not isinstance(body.get("results"), list):
            raise ProtocolError(f"unexpected asset listing from {r.url}")

        results = body["results"]
        if not results:
            logger.info(f"No asset named {hostname}")
            return None

        try:
            asset = Asset.from_dict(results[0])
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"malformed asset record: {e}") from e

        # The listing filter is not guaranteed to be an exact match
        if asset.hostname != hostname:
            raise InconsistentResult(f"expected asset {hostname}, but got {asset.hostname}")

        logger.debug(f"Found {asset!r}")
        return asset

    def list_remote_identities(self, asset_id: str) -> List[RemoteIdentity]:
        """
        Login identities the current user may use on an asset.

        An empty list means nothing is connectable; it is not an error.
        """
        r = self.get(IDENTITIES_PATH.format(asset_id=asset_id))
        self.check_status(r, "api request")

        body = self._json(r)
        if not isinstance(body, list):
            raise ProtocolError(f"unexpected system user listing from {r.url}")
        try:
            identities = [RemoteIdentity.from_dict(item) for item in body]
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"malformed system user record: {e}") from e

        logger.debug(f"{len(identities)} system user(s) for asset {asset_id}")
        return identities

    # -------------------------------------------------------------------------
    # Terminal
    # -------------------------------------------------------------------------

    def terminal_url(self, asset_id: str, identity_id: str) -> str:
        """WebSocket URL of the terminal endpoint; wss when the console is https."""
        parsed = urlparse(self.endpoint)
        scheme = "wss" if parsed.scheme == "https" else "ws"
        query = urlencode({
            "target_id": asset_id,
            "type": "asset",
            "system_user_id": identity_id,
        })
        return f"{scheme}://{parsed.netloc}{TERMINAL_WS_PATH}?{query}"

    def cookie_header(self) -> Optional[str]:
        """Cookie header the web console would send to the terminal endpoint."""
        request = requests.Request("GET", self.url(TERMINAL_WS_PATH))
        return get_cookie_header(self._http.cookies, request)

    def open_channel(self, asset_id: str, identity_id: str) -> WebSocketChannel:
        return WebSocketChannel.open(
            self.terminal_url(asset_id, identity_id),
            cookie_header=self.cookie_header(),
            verify=self.verify,
            timeout=self.timeout,
        )

    def connect_asset(
        self,
        asset_id: str,
        identity_id: str,
        terminal: Optional[LocalTerminal] = None,
    ) -> CloseReason:
        """
        Open a terminal on an asset and run it until it ends.

        Args:
            asset_id: Asset.id
            identity_id: RemoteIdentity.id
            terminal: Local terminal, defaults to stdin/stdout

        Returns:
            Why the session ended

        Raises:
            TransportError, ProtocolError: The session died; not retried
        """
        terminal = terminal or StdioTerminal()
        channel = self.open_channel(asset_id, identity_id)
        session = TerminalSession(channel, terminal)
        return session.run()

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> 'JumpClient':
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
