"""Password hashing, including rows written by the previous backend."""

import hashlib
import hmac
import logging
from typing import Optional

from werkzeug.security import generate_password_hash, check_password_hash

from .exceptions import PasswordAuthenticationFailed

logger = logging.getLogger(__name__)

LEGACY_ITERATIONS = 1000
LEGACY_KEY_LENGTH = 64


def hash_password(password: str) -> str:
    """Generate a salted, slow hash of a password."""
    return generate_password_hash(password)


def is_legacy(encrypted: str) -> bool:
    """Legacy hashes are ``<hex salt>:<hex pbkdf2-sha512 digest>``."""
    parts = encrypted.split(':')
    return len(parts) == 2 and '$' not in encrypted


def _check_legacy(password: str, encrypted: str) -> bool:
    salt, digest = encrypted.split(':')
    candidate = hashlib.pbkdf2_hmac('sha512', password.encode('utf-8'),
                                    salt.encode('utf-8'), LEGACY_ITERATIONS,
                                    LEGACY_KEY_LENGTH).hex()
    return hmac.compare_digest(candidate, digest)


def check_password(password: str, encrypted: Optional[str]) -> None:
    """
    Check a password against a stored hash.

    Raises
    ------
    :class:`PasswordAuthenticationFailed`
        The password does not match, or no hash has been set.

    """
    if not encrypted:
        raise PasswordAuthenticationFailed('No password set')
    if is_legacy(encrypted):
        if not _check_legacy(password, encrypted):
            raise PasswordAuthenticationFailed('Incorrect password')
        return
    if not check_password_hash(encrypted, password):
        raise PasswordAuthenticationFailed('Incorrect password')
