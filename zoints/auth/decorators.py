"""
Scope-based authorization of requests, and rate limiting.

The :func:`scoped` decorator checks that the request carries a valid
session, and then loads the account from the store so that a suspended
account, or one whose role has changed, is turned away on its next request
rather than at its next login. For example:

.. code-block:: python

   @blueprint.route('/config/update', methods=['POST'])
   @scoped(roles=[Roles.ADMIN])
   def update_config():
       ...

When the decorated route function is called...

- If there is no valid session on the request, or its account no longer
  exists or is suspended, :class:`.errors.Unauthorized` is raised.
- If roles were given, the live account role must be one of them.
- If an authorization function was provided, the function is called with the
  live account and the route parameters.
- The account is attached to the request as ``request.account``.

"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from flask import request

from ..errors import Forbidden, RateLimited, Unauthorized
from ..services import accounts
from ..services.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


def scoped(roles: Optional[Iterable[str]] = None,
           authorizer: Optional[Callable] = None) -> Callable:
    """
    Generate a decorator to enforce authorization requirements.

    Parameters
    ----------
    roles : iterable
        Roles allowed to use the decorated route. If not provided, any
        active account may.
    authorizer : function
        Further check with the signature
        ``(account: domain.Account, *args, **kwargs) -> bool``. If it returns
        ``False``, :class:`.errors.Forbidden` is raised.

    """
    allowed = tuple(roles) if roles is not None else None

    def protector(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            session = getattr(request, 'auth', None)
            if session is None:
                logger.debug('No valid session; aborting')
                raise Unauthorized()

            account = accounts.find_by_id(session.account_id)
            if account is None or not account.is_active:
                logger.info('Session for inactive or missing account %s',
                            session.account_id)
                raise Unauthorized('Account is not active')

            if allowed is not None and account.role not in allowed:
                logger.debug('Role %s is not authorized', account.role)
                raise Forbidden()

            if authorizer and not authorizer(account, *args, **kwargs):
                logger.debug('Authorizer returned negative result')
                raise Forbidden()

            request.account = account
            return func(*args, **kwargs)
        return wrapper
    return protector


def limited(scope: str) -> Callable:
    """
    Generate a decorator that applies the rate limit for ``scope``.

    Requests are counted per account if a session is present, otherwise per
    client address.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            session = getattr(request, 'auth', None)
            if session is not None:
                identity = f'account:{session.account_id}'
            else:
                identity = f'addr:{request.remote_addr or "unknown"}'
            if not RateLimiter.current_limiter().allow(scope, identity):
                raise RateLimited()
            return func(*args, **kwargs)
        return wrapper
    return decorator
