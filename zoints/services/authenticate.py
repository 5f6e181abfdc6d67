"""Provide an API for password authentication against the credential store."""

import logging
from typing import Optional

from sqlalchemy.exc import OperationalError

from .. import domain
from . import passwords, util
from .accounts import normalize_email, to_domain
from .exceptions import AuthenticationFailed, PasswordAuthenticationFailed, \
    Unavailable
from .models import DBAccount

logger = logging.getLogger(__name__)


def authenticate(email: Optional[str] = None,
                 password: Optional[str] = None) -> domain.Account:
    """
    Validate email/password. If successful, retrieve account details.

    Unknown email, wrong password, a missing password hash and a suspended
    account all fail the same way, so that callers cannot tell them apart.
    A password stored in the legacy format is re-hashed on success.

    Parameters
    ----------
    email : str
    password : str
        Password (as entered). Danger, Will Robinson!

    Returns
    -------
    :class:`domain.Account`

    Raises
    ------
    :class:`AuthenticationFailed`
        Failed to authenticate account with provided credentials.
    :class:`Unavailable`
        The store could not be reached.

    """
    if not email or not password:
        logger.debug('Email and password are both required')
        raise AuthenticationFailed('Email and password required')

    try:
        with util.transaction() as session:
            db_account: Optional[DBAccount] = session.query(DBAccount) \
                .filter(DBAccount.email == normalize_email(email)) \
                .first()
            if db_account is None:
                logger.debug('No such account')
                raise AuthenticationFailed('Invalid email or password')
            _check(db_account, password)
            if passwords.is_legacy(db_account.password_hash):
                logger.info('Upgrading legacy password hash for %s',
                            db_account.account_id)
                db_account.password_hash = passwords.hash_password(password)
                session.add(db_account)
            account = to_domain(db_account)
    except OperationalError as e:
        raise Unavailable('Database is temporarily unavailable') from e
    return account


def _check(db_account: DBAccount, password: str) -> None:
    try:
        passwords.check_password(password, db_account.password_hash)
    except PasswordAuthenticationFailed as e:
        logger.debug('Password check failed for %s: %s',
                     db_account.account_id, e)
        raise AuthenticationFailed('Invalid email or password') from e
    if not db_account.is_active:
        logger.info('Suspended account %s attempted to log in',
                    db_account.account_id)
        raise AuthenticationFailed('Invalid email or password')
