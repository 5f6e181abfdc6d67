"""Scheduling and dispatch of pickups. Completion is handled by the ledger."""

import logging
from typing import List, Optional

from .. import domain
from ..domain import PickupStatus, Roles
from . import util
from .exceptions import InvalidTransition, NoSuchAccount, NoSuchPickup
from .models import DBAccount, DBPickup

logger = logging.getLogger(__name__)


def to_domain(db_pickup: DBPickup) -> domain.Pickup:
    """Build a :class:`.domain.Pickup` from its row."""
    return domain.Pickup(
        pickup_id=db_pickup.pickup_id,
        account_id=db_pickup.account_id,
        location=db_pickup.location,
        status=db_pickup.status,
        date=db_pickup.date,
        time=db_pickup.time,
        items=db_pickup.items,
        contact=db_pickup.contact,
        phone_number=db_pickup.phone_number,
        waste_image=db_pickup.waste_image,
        driver=db_pickup.driver,
        weight=float(db_pickup.weight or 0),
        earned_zoints=int(db_pickup.earned_zoints or 0),
        collection_details=[
            domain.CollectionItem(**item)
            for item in (db_pickup.collection_details or [])
        ],
        created_at=util.from_epoch(db_pickup.created_at)
        if db_pickup.created_at else None
    )


def get_pickup(pickup_id: str) -> domain.Pickup:
    with util.transaction() as session:
        db_pickup = session.get(DBPickup, pickup_id)
        if db_pickup is None:
            raise NoSuchPickup('Pickup does not exist')
        return to_domain(db_pickup)


def list_pickups(account_id: Optional[str] = None,
                 driver: Optional[str] = None) -> List[domain.Pickup]:
    """
    Load pickups, newest first.

    Parameters
    ----------
    account_id : str
        If given, only pickups requested by this account.
    driver : str
        If given, only pickups assigned to this collector.

    """
    with util.transaction() as session:
        query = session.query(DBPickup)
        if account_id is not None:
            query = query.filter(DBPickup.account_id == account_id)
        if driver is not None:
            query = query.filter(DBPickup.driver == driver)
        rows = query.order_by(DBPickup.created_at.desc()).all()
        return [to_domain(db_pickup) for db_pickup in rows]


def create_pickup(account_id: str, location: str,
                  date: Optional[str] = None, time: Optional[str] = None,
                  items: Optional[str] = None, contact: Optional[str] = None,
                  phone_number: Optional[str] = None,
                  waste_image: Optional[str] = None) -> domain.Pickup:
    """Schedule a new pickup for ``account_id``. It starts out ``Pending``."""
    if not location:
        raise ValueError('Location is required')
    with util.transaction() as session:
        if session.get(DBAccount, account_id) is None:
            raise NoSuchAccount('Account does not exist')
        db_pickup = DBPickup(
            pickup_id=util.new_id(),
            account_id=account_id,
            location=location,
            date=date,
            time=time,
            items=items,
            contact=contact,
            phone_number=phone_number,
            waste_image=waste_image,
            status=PickupStatus.PENDING,
            weight=0.0,
            earned_zoints=0,
            collection_details=[],
            created_at=util.now()
        )
        session.add(db_pickup)
        session.flush()
        logger.info('Scheduled pickup %s for %s', db_pickup.pickup_id,
                    account_id)
        return to_domain(db_pickup)


def assign_driver(pickup_id: str, driver: str) -> domain.Pickup:
    """
    Assign an active collector to an open pickup.

    Raises
    ------
    :class:`InvalidTransition`
        The pickup has already been completed or missed.
    :class:`ValueError`
        ``driver`` is not an active collector.

    """
    with util.transaction() as session:
        db_pickup = _get_open(session, pickup_id)
        db_driver = session.get(DBAccount, driver)
        if db_driver is None or db_driver.role != Roles.COLLECTOR \
                or not db_driver.is_active:
            raise ValueError('Driver must be an active collector')
        db_pickup.driver = driver
        db_pickup.status = PickupStatus.ASSIGNED
        session.add(db_pickup)
        session.flush()
        logger.info('Assigned pickup %s to %s', pickup_id, driver)
        return to_domain(db_pickup)


def mark_missed(pickup_id: str) -> domain.Pickup:
    """Close an open pickup without payout."""
    with util.transaction() as session:
        db_pickup = _get_open(session, pickup_id)
        db_pickup.status = PickupStatus.MISSED
        session.add(db_pickup)
        session.flush()
        logger.info('Pickup %s was missed', pickup_id)
        return to_domain(db_pickup)


def _get_open(session, pickup_id: str) -> DBPickup:
    db_pickup = session.get(DBPickup, pickup_id)
    if db_pickup is None:
        raise NoSuchPickup('Pickup does not exist')
    if db_pickup.status not in (PickupStatus.PENDING, PickupStatus.ASSIGNED):
        raise InvalidTransition(f'Pickup is already {db_pickup.status}')
    return db_pickup
