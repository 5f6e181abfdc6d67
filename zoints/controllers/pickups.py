"""Controllers for scheduling, dispatching and completing pickups."""

import logging
from typing import Any, Mapping

from http import HTTPStatus as status

from .. import domain
from ..domain import PickupStatus, Roles
from ..errors import BadRequest, Conflict, Forbidden, NotFound
from ..services import ledger, pickups
from ..services.exceptions import InvalidTransition, NoSuchAccount, \
    NoSuchPickup
from .util import ResponseData, payload_of, require_string

logger = logging.getLogger(__name__)


def list_pickups(requester: domain.Account) -> ResponseData:
    """
    Pickups visible to the requester.

    Staff and admins see every pickup, collectors see those assigned to
    them, and everyone else sees their own.
    """
    if requester.is_privileged:
        found = pickups.list_pickups()
    elif requester.role == Roles.COLLECTOR:
        found = pickups.list_pickups(driver=requester.account_id)
    else:
        found = pickups.list_pickups(account_id=requester.account_id)
    return {'pickups': [p.to_json() for p in found]}, status.OK, {}


def create_pickup(requester: domain.Account,
                  payload: Mapping[str, Any]) -> ResponseData:
    """Schedule a pickup for the requester, or for ``userId`` if privileged."""
    owner = payload.get('userId') or requester.account_id
    if owner != requester.account_id and not requester.is_privileged:
        raise Forbidden('Cannot schedule pickups for another account')
    try:
        pickup = pickups.create_pickup(
            owner,
            location=require_string(payload, 'location'),
            date=payload.get('date'),
            time=payload.get('time'),
            items=payload.get('items'),
            contact=payload.get('contact'),
            phone_number=payload.get('phoneNumber'),
            waste_image=payload.get('wasteImage')
        )
    except NoSuchAccount as e:
        raise NotFound('No such user') from e
    return {'pickup': pickup.to_json()}, status.CREATED, {}


def update_pickup(requester: domain.Account,
                  payload: Mapping[str, Any]) -> ResponseData:
    """
    Apply ``{"id": ..., "updates": {...}}`` to a pickup.

    ``updates`` either assigns a ``driver`` (staff and admins), marks the
    pickup ``Missed``, or completes it with ``collectionDetails``. The last
    two are open to staff, admins and the assigned collector.
    """
    pickup_id = require_string(payload, 'id')
    updates = payload_of(payload.get('updates'))
    try:
        pickup = pickups.get_pickup(pickup_id)
        if updates.get('driver'):
            if not requester.is_privileged:
                raise Forbidden('Only staff can assign collectors')
            pickup = pickups.assign_driver(pickup_id, updates['driver'])
            return {'pickup': pickup.to_json()}, status.OK, {}

        if not (requester.is_privileged
                or pickup.driver == requester.account_id):
            raise Forbidden('Pickup is not assigned to you')

        if 'collectionDetails' in updates \
                or updates.get('status') == PickupStatus.COMPLETED:
            details = updates.get('collectionDetails')
            if not isinstance(details, list) \
                    or not all(isinstance(d, Mapping) for d in details):
                raise BadRequest('collectionDetails must be a list')
            pickup, credited = ledger.credit_pickup_completion(pickup_id,
                                                               details)
            return {'pickup': pickup.to_json(), 'credited': credited}, \
                status.OK, {}

        if updates.get('status') == PickupStatus.MISSED:
            pickup = pickups.mark_missed(pickup_id)
            return {'pickup': pickup.to_json()}, status.OK, {}
    except NoSuchPickup as e:
        raise NotFound('No such pickup') from e
    except InvalidTransition as e:
        raise Conflict(str(e)) from e
    except ValueError as e:
        raise BadRequest(str(e)) from e
    raise BadRequest('Unsupported pickup update')
