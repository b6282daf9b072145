"""
Login page scraping.

Pure functions over the raw HTML of the bastion host's login pages.
The same page always yields the same tokens.
"""

from __future__ import annotations
import json
import re
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import ProtocolError

logger = logging.getLogger(__name__)

CSRF_PATTERN = re.compile(r'name="csrfmiddlewaretoken"\s*?value="(.+?)"')
RSA_KEY_PATTERN = re.compile(r'var rsaPublicKey = (".+")')
CAPTCHA_PATTERN = re.compile(r'name="captcha_0"\s*?value="(.+?)"')


@dataclass(frozen=True)
class LoginChallenge:
    """
    Everything scraped from one login page.

    The csrf token is only good for submitting the form it came from,
    and a captcha_id has to go back with the very next submission.
    """
    csrf_token: str
    public_key: Optional[rsa.RSAPublicKey] = None
    captcha_id: Optional[str] = None

    @property
    def has_captcha(self) -> bool:
        return self.captcha_id is not None


def extract_csrf_token(html: str) -> str:
    """
    Find the Django CSRF token in a form.

    Raises:
        ProtocolError: If the page has no csrfmiddlewaretoken field
    """
    m = CSRF_PATTERN.search(html)
    if not m:
        raise ProtocolError("failed to get csrftoken")
    return m.group(1)


def extract_rsa_public_key(html: str) -> Optional[rsa.RSAPublicKey]:
    """
    Find the RSA key the login form encrypts passwords with.

    The key is a PEM block embedded in a script as a JSON string literal.

    Returns:
        The RSA public key, or None if the page does not embed one

    Raises:
        ProtocolError: If the literal is present but is not a PEM encoded
                       RSA SubjectPublicKeyInfo
    """
    m = RSA_KEY_PATTERN.search(html)
    if not m:
        return None

    try:
        pem_text = json.loads(m.group(1))
    except json.JSONDecodeError as e:
        raise ProtocolError(f"failed to parse rsaPublicKey in json form: {e}") from e
    if not isinstance(pem_text, str):
        raise ProtocolError("failed to parse rsaPublicKey in json form: not a string")

    try:
        key = serialization.load_pem_public_key(pem_text.encode("utf-8"))
    except (ValueError, UnsupportedAlgorithm) as e:
        raise ProtocolError(f"failed to parse rsaPublicKey in pem form: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise ProtocolError(f"invalid rsaPublicKey on login page: {type(key).__name__}")
    return key


def extract_captcha_id(html: str) -> Optional[str]:
    """Captcha challenge id, or None when the page asks for no captcha."""
    m = CAPTCHA_PATTERN.search(html)
    return m.group(1) if m else None


def parse_login_page(html: str) -> LoginChallenge:
    """Scrape a login page into a LoginChallenge."""
    challenge = LoginChallenge(
        csrf_token=extract_csrf_token(html),
        public_key=extract_rsa_public_key(html),
        captcha_id=extract_captcha_id(html),
    )
    logger.debug(
        f"Login page: rsa_key={challenge.public_key is not None} "
        f"captcha={challenge.captcha_id}"
    )
    return challenge
