"""
Password encryption for the login form.
"""

from __future__ import annotations
import base64

from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..errors import EncryptionError


def encrypt_password(public_key: rsa.RSAPublicKey, password: str) -> str:
    """
    Encrypt a password the way the login page's JavaScript does.

    PKCS#1 v1.5 padding with OS randomness, so every call yields
    different ciphertext for the same password.

    Args:
        public_key: Key scraped from the login page
        password: Plaintext password

    Returns:
        Base64 (standard alphabet) ciphertext

    Raises:
        EncryptionError: If the key cannot encrypt the password
    """
    try:
        ciphertext = public_key.encrypt(password.encode("utf-8"), padding.PKCS1v15())
    except (ValueError, TypeError) as e:
        raise EncryptionError(f"failed to encrypt password: {e}") from e
    return base64.b64encode(ciphertext).decode("ascii")
