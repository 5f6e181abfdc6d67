"""
Balance-changing events: pickup credits, redemption debits and reversals.

The balance column is the only shared mutable resource that carries an
invariant (``balance >= 0``), so it is never written with a read-then-write
pair. Every change is a single conditional ``UPDATE`` whose row count tells
us whether it applied:

- a debit decrements only ``WHERE balance >= amount``;
- a pickup is credited only on its first transition into ``Completed``, and
  a row in ``pickup_credits`` (keyed by pickup id) records that it was paid;
- a reversal applies only to a redemption that is still ``Pending``.

Each entry point runs in one transaction, so a failure anywhere leaves both
the balance and the event records as they were.
"""

import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from .. import domain
from ..domain import PickupStatus, RedemptionStatus, RedemptionType
from . import pickups, sysconfig, util
from .exceptions import InsufficientFunds, InvalidTransition, \
    NoSuchAccount, NoSuchPickup, NoSuchRedemption
from .models import DBAccount, DBPickup, DBPickupCredit, DBRedemption

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = 'Other'


def compute_payout(details: Iterable[Mapping[str, Any]],
                   rates: Mapping[str, float],
                   default_rate: float) -> Tuple[List[domain.CollectionItem],
                                                 float, int]:
    """
    Price the weighed categories of a collection.

    A category without its own rate is paid at the ``Other`` rate, or at
    ``default_rate`` if there is none. Each item earns the floor of
    weight times rate.

    Returns
    -------
    tuple
        The priced items, the total weight, and the total payout.

    Raises
    ------
    :class:`ValueError`
        If a weight is missing or negative, or the total weight is zero.

    """
    items: List[domain.CollectionItem] = []
    for detail in details:
        category = str(detail.get('category') or FALLBACK_CATEGORY)
        try:
            weight = float(detail.get('weight'))  # type: ignore
        except (TypeError, ValueError) as e:
            raise ValueError(f'Invalid weight for {category}') from e
        if weight < 0 or math.isnan(weight) or math.isinf(weight):
            raise ValueError(f'Invalid weight for {category}')
        rate = rates.get(category, rates.get(FALLBACK_CATEGORY, default_rate))
        earned = int(math.floor(weight * rate))
        items.append(domain.CollectionItem(category=category, weight=weight,
                                           rate=rate, earned=earned))
    total_weight = sum(item.weight for item in items)
    if total_weight <= 0:
        raise ValueError('Total weight must be greater than zero')
    return items, total_weight, sum(item.earned for item in items)


def credit_pickup_completion(pickup_id: str,
                             details: Iterable[Mapping[str, Any]]) \
        -> Tuple[domain.Pickup, bool]:
    """
    Complete a pickup and pay its owner, at most once per pickup.

    Parameters
    ----------
    pickup_id : str
    details : iterable
        ``{'category': str, 'weight': float}`` for each weighed category.

    Returns
    -------
    tuple
        The pickup, and whether this call credited the owner. Completing an
        already-completed pickup changes nothing and returns ``False``.

    Raises
    ------
    :class:`NoSuchPickup`
    :class:`InvalidTransition`
        The pickup was missed.
    :class:`ValueError`
        The collection details are not valid.

    """
    default_rate = float(current_app.config.get('DEFAULT_WASTE_RATE', 10))
    items, weight, payout = compute_payout(details,
                                           sysconfig.get_waste_rates(),
                                           default_rate)
    try:
        with util.transaction() as session:
            db_pickup = session.get(DBPickup, pickup_id)
            if db_pickup is None:
                raise NoSuchPickup('Pickup does not exist')
            if db_pickup.status == PickupStatus.COMPLETED:
                logger.info('Pickup %s already completed', pickup_id)
                return pickups.to_domain(db_pickup), False
            if db_pickup.status == PickupStatus.MISSED:
                raise InvalidTransition('Pickup was missed')
            account_id = db_pickup.account_id

            result = session.execute(
                update(DBPickup)
                .where(DBPickup.pickup_id == pickup_id)
                .where(DBPickup.status.in_([PickupStatus.PENDING,
                                            PickupStatus.ASSIGNED]))
                .values(status=PickupStatus.COMPLETED,
                        weight=weight,
                        earned_zoints=payout,
                        collection_details=[i.to_json() for i in items])
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Someone else closed it between our read and the update.
                db_pickup = session.get(DBPickup, pickup_id,
                                        populate_existing=True)
                return pickups.to_domain(db_pickup), False

            session.add(DBPickupCredit(pickup_id=pickup_id,
                                       account_id=account_id,
                                       amount=payout,
                                       credited_at=util.now()))
            session.flush()
            session.execute(
                update(DBAccount)
                .where(DBAccount.account_id == account_id)
                .values(balance=DBAccount.balance + payout,
                        total_recycled_kg=DBAccount.total_recycled_kg
                        + weight)
                .execution_options(synchronize_session=False)
            )
            db_pickup = session.get(DBPickup, pickup_id,
                                    populate_existing=True)
            pickup = pickups.to_domain(db_pickup)
    except IntegrityError:
        logger.warning('Pickup %s has already been credited', pickup_id)
        return pickups.get_pickup(pickup_id), False
    logger.info('Credited %i zoints to %s for pickup %s', payout, account_id,
                pickup_id)
    return pickup, True


def to_domain(db_redemption: DBRedemption) -> domain.Redemption:
    """Build a :class:`.domain.Redemption` from its row."""
    return domain.Redemption(
        redemption_id=db_redemption.redemption_id,
        account_id=db_redemption.account_id,
        user_name=db_redemption.user_name,
        kind=db_redemption.kind,
        amount=int(db_redemption.amount),
        status=db_redemption.status,
        created_at=util.from_epoch(db_redemption.created_at)
        if db_redemption.created_at else None
    )


def get_redemption(redemption_id: str) -> domain.Redemption:
    with util.transaction() as session:
        db_redemption = session.get(DBRedemption, redemption_id)
        if db_redemption is None:
            raise NoSuchRedemption('Redemption request does not exist')
        return to_domain(db_redemption)


def list_redemptions(account_id: Optional[str] = None) \
        -> List[domain.Redemption]:
    """Load redemption requests, newest first, optionally for one account."""
    with util.transaction() as session:
        query = session.query(DBRedemption)
        if account_id is not None:
            query = query.filter(DBRedemption.account_id == account_id)
        rows = query.order_by(DBRedemption.created_at.desc()).all()
        return [to_domain(db_redemption) for db_redemption in rows]


def _new_redemption(account_id: str, user_name: str, kind: str,
                    amount: int) -> DBRedemption:
    return DBRedemption(redemption_id=util.new_id(),
                        account_id=account_id,
                        user_name=user_name,
                        kind=kind,
                        amount=amount,
                        status=RedemptionStatus.PENDING,
                        created_at=util.now())


def request_redemption(account_id: str, amount: int,
                       kind: str) -> domain.Redemption:
    """
    Debit ``amount`` from an account and record the redemption request.

    The debit and the record are written in one transaction: if either
    fails, neither persists.

    Raises
    ------
    :class:`InsufficientFunds`
        The balance is lower than ``amount``.
    :class:`NoSuchAccount`
    :class:`ValueError`
        ``amount`` is not a positive integer, or ``kind`` is unknown.

    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError('Amount must be a positive integer')
    if kind not in RedemptionType.ALL:
        raise ValueError(f'Unknown redemption type: {kind}')

    with util.transaction() as session:
        db_account = session.get(DBAccount, account_id)
        if db_account is None:
            raise NoSuchAccount('Account does not exist')
        result = session.execute(
            update(DBAccount)
            .where(DBAccount.account_id == account_id)
            .where(DBAccount.balance >= amount)
            .values(balance=DBAccount.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientFunds('Insufficient balance')
        db_redemption = _new_redemption(account_id, db_account.name, kind,
                                        amount)
        session.add(db_redemption)
        session.flush()
        redemption = to_domain(db_redemption)
    logger.info('Debited %i zoints from %s for redemption %s', amount,
                account_id, redemption.redemption_id)
    return redemption


def decide_redemption(redemption_id: str, status: str,
                      decided_by: Optional[str] = None) -> domain.Redemption:
    """
    Approve or reject a pending redemption request.

    Approval only changes the status; the balance was debited when the
    request was made. Rejection re-credits the original amount.

    Raises
    ------
    :class:`NoSuchRedemption`
    :class:`InvalidTransition`
        The request has already been decided.
    :class:`ValueError`
        ``status`` is neither ``Approved`` nor ``Rejected``.

    """
    if status not in (RedemptionStatus.APPROVED, RedemptionStatus.REJECTED):
        raise ValueError(f'Cannot set redemption status to {status}')

    with util.transaction() as session:
        db_redemption = session.get(DBRedemption, redemption_id)
        if db_redemption is None:
            raise NoSuchRedemption('Redemption request does not exist')
        result = session.execute(
            update(DBRedemption)
            .where(DBRedemption.redemption_id == redemption_id)
            .where(DBRedemption.status == RedemptionStatus.PENDING)
            .values(status=status, decided_at=util.now(),
                    decided_by=decided_by)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition('Redemption request already decided')
        if status == RedemptionStatus.REJECTED:
            session.execute(
                update(DBAccount)
                .where(DBAccount.account_id == db_redemption.account_id)
                .values(balance=DBAccount.balance + db_redemption.amount)
                .execution_options(synchronize_session=False)
            )
            logger.info('Re-credited %i zoints to %s for redemption %s',
                        db_redemption.amount, db_redemption.account_id,
                        redemption_id)
        db_redemption = session.get(DBRedemption, redemption_id,
                                    populate_existing=True)
        return to_domain(db_redemption)
