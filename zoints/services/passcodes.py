"""
One-time passcodes that prove control of an email address.

Codes are keyed by (email, purpose), so a signup code, a reset code and a
change-password code for the same address do not displace one another.
Issuing a new code for the same pair overwrites the previous one.
"""

import hmac
import logging
import secrets

from flask import current_app
from sqlalchemy import delete

from ..domain import Purposes
from . import util
from .models import DBPasscode

logger = logging.getLogger(__name__)

_TTL_KEYS = {
    Purposes.SIGNUP: 'OTP_SIGNUP_TTL',
    Purposes.RESET: 'OTP_RESET_TTL',
    Purposes.CHANGE: 'OTP_CHANGE_TTL',
}


def ttl_for(purpose: str) -> int:
    """Validity window, in seconds, for codes issued for ``purpose``."""
    try:
        return int(current_app.config[_TTL_KEYS[purpose]])
    except KeyError as e:
        raise ValueError(f'Unknown passcode purpose: {purpose}') from e


def generate_code(length: int = 6) -> str:
    """Fixed-width numeric code from the OS CSPRNG."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def issue(email: str, purpose: str) -> str:
    """
    Create a passcode for ``email``, replacing any live one for ``purpose``.

    Returns
    -------
    str
        The code, for delivery to the address.

    """
    code = generate_code(int(current_app.config.get('OTP_LENGTH', 6)))
    expires_at = util.now() + ttl_for(purpose)
    with util.transaction() as session:
        db_code = session.get(DBPasscode, (email, purpose))
        if db_code is None:
            db_code = DBPasscode(email=email, purpose=purpose)
        db_code.code = code
        db_code.expires_at = expires_at
        session.add(db_code)
    logger.debug('Issued %s passcode, expires at %s', purpose, expires_at)
    return code


def verify(email: str, purpose: str, code: str) -> bool:
    """
    Check a passcode, consuming it on success.

    A wrong or expired code is left in place, so that the holder of the
    right code can still use it until it expires. Consumption is a
    conditional delete, so of two concurrent verifications of the same code
    at most one succeeds.
    """
    if not code:
        return False
    with util.transaction() as session:
        db_code = session.get(DBPasscode, (email, purpose))
        if db_code is None:
            logger.debug('No %s passcode on record', purpose)
            return False
        if not hmac.compare_digest(db_code.code.encode('utf-8'),
                                   str(code).encode('utf-8')):
            logger.debug('Passcode mismatch for %s', purpose)
            return False
        if db_code.expires_at < util.now():
            logger.debug('Passcode for %s has expired', purpose)
            return False
        result = session.execute(
            delete(DBPasscode)
            .where(DBPasscode.email == email)
            .where(DBPasscode.purpose == purpose)
            .where(DBPasscode.code == db_code.code)
        )
    return bool(result.rowcount == 1)
