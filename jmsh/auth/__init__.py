"""
Web console authentication.

- tokens: scrape csrf token, RSA key and captcha id from login pages
- crypto: RSA encrypt the password the way the login page does
- flow: the login state machine (page -> captcha -> credentials -> OTP)
"""

from .tokens import (
    LoginChallenge,
    extract_csrf_token,
    extract_rsa_public_key,
    extract_captcha_id,
    parse_login_page,
)
from .crypto import encrypt_password
from .flow import (
    LoginFlow,
    LoginOutcome,
    LoginStatus,
    authenticate,
    classify_response,
    build_login_form,
    build_otp_form,
)

__all__ = [
    # Tokens
    "LoginChallenge",
    "extract_csrf_token",
    "extract_rsa_public_key",
    "extract_captcha_id",
    "parse_login_page",
    # Crypto
    "encrypt_password",
    # Flow
    "LoginFlow",
    "LoginOutcome",
    "LoginStatus",
    "authenticate",
    "classify_response",
    "build_login_form",
    "build_otp_form",
]
