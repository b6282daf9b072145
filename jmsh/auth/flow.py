"""
Web console login flow.

The decisions (what to submit, what a response means) are pure
functions; LoginFlow only adds the HTTP round-trips. Nothing here
retries: a rejected captcha or OTP is reported and the caller asks
the user again.

    fetch page -> [captcha] -> submit credentials -> [OTP]* -> authenticated
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

from .crypto import encrypt_password
from .tokens import LoginChallenge, extract_csrf_token, parse_login_page
from ..client import JumpClient
from ..errors import AuthenticationFailed

logger = logging.getLogger(__name__)

LOGIN_PATH = "/core/auth/login/"
OTP_PATH = "/core/auth/login/otp/"
CAPTCHA_IMAGE_PATH = "/core/auth/captcha/image/{captcha_id}/"
HOME_PATH = "/"

CaptchaResolver = Callable[[bytes], str]
OTPResolver = Callable[[], str]


class LoginStatus(Enum):
    AUTHENTICATED = auto()
    NEEDS_OTP = auto()
    FAILED = auto()


@dataclass(frozen=True)
class LoginOutcome:
    """
    Result of one form submission.

    AUTHENTICATED carries nothing: the session cookie now in the jar is
    the proof. NEEDS_OTP carries the csrf token of the OTP page, which is
    the only token the OTP form accepts. FAILED carries a detail message.
    """
    status: LoginStatus
    csrf_token: Optional[str] = None
    detail: str = ""
    path: str = ""

    @classmethod
    def authenticated(cls) -> 'LoginOutcome':
        return cls(LoginStatus.AUTHENTICATED, path=HOME_PATH)

    @classmethod
    def needs_otp(cls, csrf_token: str) -> 'LoginOutcome':
        return cls(LoginStatus.NEEDS_OTP, csrf_token=csrf_token, path=OTP_PATH)

    @classmethod
    def failed(cls, detail: str, path: str = "") -> 'LoginOutcome':
        return cls(LoginStatus.FAILED, detail=detail, path=path)

    @property
    def is_authenticated(self) -> bool:
        return self.status == LoginStatus.AUTHENTICATED

    @property
    def requires_otp(self) -> bool:
        return self.status == LoginStatus.NEEDS_OTP


# =============================================================================
# Pure decisions
# =============================================================================

def classify_response(path: str, html: str) -> LoginOutcome:
    """
    Interpret where a login submission ended up after redirects.

    Args:
        path: Path of the final URL
        html: Body of the final page

    Raises:
        ProtocolError: If the OTP page carries no csrf token
    """
    if path == HOME_PATH:
        return LoginOutcome.authenticated()
    if path == OTP_PATH:
        return LoginOutcome.needs_otp(extract_csrf_token(html))
    return LoginOutcome.failed(f"login ended at {path}", path=path)


def build_login_form(
    challenge: LoginChallenge,
    username: str,
    password: str,
    captcha_text: Optional[str] = None,
) -> Dict[str, str]:
    """
    Build the credential form for a challenge.

    The password is RSA encrypted when the page published a key.

    Raises:
        ValueError: If captcha_text does not match whether the page asked for one
        EncryptionError: If encryption fails
    """
    if challenge.has_captcha and captcha_text is None:
        raise ValueError("login page requires a captcha answer")
    if not challenge.has_captcha and captcha_text is not None:
        raise ValueError("login page did not ask for a captcha")

    if challenge.public_key is not None:
        password = encrypt_password(challenge.public_key, password)

    form = {
        "csrfmiddlewaretoken": challenge.csrf_token,
        "username": username,
        "password": password,
    }
    if challenge.has_captcha:
        form["captcha_0"] = challenge.captcha_id
        form["captcha_1"] = captcha_text
    return form


def build_otp_form(csrf_token: str, otp_code: str) -> Dict[str, str]:
    return {
        "csrfmiddlewaretoken": csrf_token,
        "otp_code": otp_code,
    }


# =============================================================================
# HTTP round-trips
# =============================================================================

class LoginFlow:
    """
    Drives the login pages of one JumpClient.

    Usage:
        flow = LoginFlow(client)
        challenge = flow.fetch_challenge()
        captcha = None
        if challenge.has_captcha:
            captcha = ask_user(flow.fetch_captcha_image(challenge))
        outcome = flow.submit_credentials(challenge, user, password, captcha)
        if outcome.requires_otp:
            outcome = flow.submit_otp(outcome, ask_user_for_otp())
    """

    def __init__(self, client: JumpClient):
        self.client = client

    def fetch_challenge(self) -> LoginChallenge:
        """GET the login page and scrape its tokens."""
        r = self.client.get(LOGIN_PATH)
        self.client.check_status(r, "access login page")
        return parse_login_page(r.text)

    def fetch_captcha_image(self, challenge: LoginChallenge) -> bytes:
        """Download the captcha image the challenge refers to."""
        if not challenge.has_captcha:
            raise ValueError("login page has no captcha")
        r = self.client.get(CAPTCHA_IMAGE_PATH.format(captcha_id=challenge.captcha_id))
        self.client.check_status(r, "fetch captcha")
        return r.content

    def submit_credentials(
        self,
        challenge: LoginChallenge,
        username: str,
        password: str,
        captcha_text: Optional[str] = None,
    ) -> LoginOutcome:
        form = build_login_form(challenge, username, password, captcha_text)
        r = self.client.post(LOGIN_PATH, form)
        self.client.check_status(r, "submit login form")
        outcome = classify_response(urlparse(r.url).path, r.text)
        logger.info(f"Login as {username}: {outcome.status.name}")
        return outcome

    def submit_otp(self, outcome: LoginOutcome, otp_code: str) -> LoginOutcome:
        """Answer an OTP prompt. outcome must be the NEEDS_OTP that asked for it."""
        if not outcome.requires_otp:
            raise ValueError(f"no OTP was requested (status {outcome.status.name})")
        r = self.client.post(OTP_PATH, build_otp_form(outcome.csrf_token, otp_code))
        self.client.check_status(r, "submit otp form")
        result = classify_response(urlparse(r.url).path, r.text)
        logger.info(f"OTP: {result.status.name}")
        return result


def authenticate(
    client: JumpClient,
    username: str,
    password: str,
    captcha_resolver: Optional[CaptchaResolver] = None,
    otp_resolver: Optional[OTPResolver] = None,
) -> None:
    """
    Log in once, asking the resolvers for whatever the server demands.

    Each resolver is asked at most once. On return the client's cookie
    jar holds an authenticated session.

    Args:
        client: Client whose cookie jar receives the session
        username: Login name
        password: Plaintext password
        captcha_resolver: Turns captcha image bytes into the user's answer
        otp_resolver: Returns the user's one-time code

    Raises:
        AuthenticationFailed: Rejected, or a needed resolver was not given
        TransportError, ProtocolError, EncryptionError: Fatal, not retried
    """
    flow = LoginFlow(client)
    challenge = flow.fetch_challenge()

    captcha_text = None
    if challenge.has_captcha:
        if captcha_resolver is None:
            raise AuthenticationFailed("login page requires a captcha", path=LOGIN_PATH)
        captcha_text = captcha_resolver(flow.fetch_captcha_image(challenge))

    outcome = flow.submit_credentials(challenge, username, password, captcha_text)

    if outcome.requires_otp:
        if otp_resolver is None:
            raise AuthenticationFailed("login requires an OTP code", path=OTP_PATH)
        outcome = flow.submit_otp(outcome, otp_resolver())
        if outcome.requires_otp:
            raise AuthenticationFailed("OTP code rejected", path=OTP_PATH)

    if not outcome.is_authenticated:
        raise AuthenticationFailed(
            f"login failed, check username, password and captcha ({outcome.detail})",
            path=outcome.path,
        )
