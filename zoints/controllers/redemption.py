"""Controllers for redemption requests."""

import logging
from typing import Any, Mapping

from http import HTTPStatus as status

from .. import domain
from ..errors import BadRequest, Conflict, InsufficientFunds, NotFound
from ..services import accounts, ledger
from ..services import exceptions
from .util import ResponseData, require_string

logger = logging.getLogger(__name__)


def list_redemptions(requester: domain.Account) -> ResponseData:
    """Staff and admins see every request; everyone else sees their own."""
    if requester.is_privileged:
        found = ledger.list_redemptions()
    else:
        found = ledger.list_redemptions(account_id=requester.account_id)
    return {'redemptions': [r.to_json() for r in found]}, status.OK, {}


def create_redemption(requester: domain.Account,
                      payload: Mapping[str, Any]) -> ResponseData:
    """Debit the requester's balance and file a request for ``amount``."""
    amount = payload.get('amount')
    if isinstance(amount, float) and amount.is_integer():
        amount = int(amount)
    try:
        redemption = ledger.request_redemption(requester.account_id, amount,
                                               payload.get('type'))
    except exceptions.InsufficientFunds as e:
        raise InsufficientFunds() from e
    except ValueError as e:
        raise BadRequest(str(e)) from e
    balance = accounts.get_account(requester.account_id).balance
    return {'redemption': redemption.to_json(), 'zointsBalance': balance}, \
        status.CREATED, {}


def update_redemption(requester: domain.Account,
                      payload: Mapping[str, Any]) -> ResponseData:
    """Approve or reject ``{"id": ..., "status": ...}``."""
    redemption_id = require_string(payload, 'id')
    try:
        redemption = ledger.decide_redemption(redemption_id,
                                              payload.get('status'),
                                              decided_by=requester.account_id)
    except exceptions.NoSuchRedemption as e:
        raise NotFound('No such redemption request') from e
    except exceptions.InvalidTransition as e:
        raise Conflict(str(e)) from e
    except ValueError as e:
        raise BadRequest(str(e)) from e
    logger.info('%s set redemption %s to %s', requester.account_id,
                redemption_id, redemption.status)
    return {'redemption': redemption.to_json()}, status.OK, {}
