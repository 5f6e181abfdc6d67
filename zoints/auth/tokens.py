"""Functions for working with signed session tokens."""

from datetime import datetime, timedelta
from typing import Optional, Tuple

import jwt
from pytz import UTC

from . import exceptions
from .. import domain
from ..services.util import epoch, from_epoch

ALGORITHM = 'HS256'


def encode(session: domain.Session, secret: str) -> str:
    """Sign session claims as a JWT."""
    claims = {
        'sub': session.account_id,
        'role': session.role,
        'email': session.email,
        'iat': epoch(session.start_time),
        'exp': epoch(session.end_time)
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode(token: str, secret: str) -> domain.Session:
    """
    Verify a token and unpack its claims.

    Raises
    ------
    :class:`exceptions.ExpiredToken`
    :class:`exceptions.InvalidToken`
        Bad signature, malformed token, or missing claims.

    """
    try:
        data: dict = jwt.decode(token, secret, algorithms=[ALGORITHM],
                                options={'require': ['sub', 'iat', 'exp']})
    except jwt.exceptions.ExpiredSignatureError as e:
        raise exceptions.ExpiredToken('Token has expired') from e
    except jwt.exceptions.InvalidTokenError as e:
        raise exceptions.InvalidToken('Not a valid token') from e
    if not data.get('role') or not data.get('email'):
        raise exceptions.InvalidToken('Token is missing claims')
    return domain.Session(account_id=data['sub'], role=data['role'],
                          email=data['email'],
                          start_time=from_epoch(data['iat']),
                          end_time=from_epoch(data['exp']))


def issue(account: domain.Account, secret: str, duration: int,
          start_time: Optional[datetime] = None) \
        -> Tuple[str, domain.Session]:
    """Start a session for ``account`` lasting ``duration`` seconds."""
    if start_time is None:
        start_time = datetime.now(tz=UTC)
    session = domain.Session(account_id=account.account_id,
                             role=account.role,
                             email=account.email,
                             start_time=start_time,
                             end_time=start_time + timedelta(seconds=duration))
    return encode(session, secret), session
