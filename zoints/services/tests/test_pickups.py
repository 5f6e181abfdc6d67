"""Tests for :mod:`zoints.services.pickups`."""

from unittest import TestCase

from .. import ledger, pickups
from ..exceptions import InvalidTransition, NoSuchAccount, NoSuchPickup
from ...domain import PickupStatus, Roles
from ...tests.util import make_account, temporary_app


class TestPickups(TestCase):
    """Scheduling and dispatch."""

    def test_create(self):
        with temporary_app():
            owner = make_account('a@x.com')
            pickup = pickups.create_pickup(owner.account_id, '1 Lagos Rd',
                                           date='2024-05-01', time='09:00',
                                           items='Plastic bottles')
            self.assertEqual(pickup.status, PickupStatus.PENDING)
            self.assertEqual(pickup.account_id, owner.account_id)
            self.assertEqual(pickups.get_pickup(pickup.pickup_id), pickup)

    def test_create_requires_location_and_owner(self):
        with temporary_app():
            owner = make_account('a@x.com')
            with self.assertRaises(ValueError):
                pickups.create_pickup(owner.account_id, '')
            with self.assertRaises(NoSuchAccount):
                pickups.create_pickup('nope', '1 Lagos Rd')

    def test_list_scoping(self):
        with temporary_app():
            owner = make_account('a@x.com')
            other = make_account('b@x.com')
            driver = make_account('driver@x.com', role=Roles.COLLECTOR)
            mine = pickups.create_pickup(owner.account_id, '1 Lagos Rd')
            pickups.create_pickup(other.account_id, '2 Abuja Rd')
            pickups.assign_driver(mine.pickup_id, driver.account_id)

            self.assertEqual(len(pickups.list_pickups()), 2)
            self.assertEqual(
                [p.pickup_id for p in pickups.list_pickups(
                    account_id=owner.account_id)],
                [mine.pickup_id]
            )
            self.assertEqual(
                [p.pickup_id for p in pickups.list_pickups(
                    driver=driver.account_id)],
                [mine.pickup_id]
            )

    def test_assign_driver(self):
        with temporary_app():
            owner = make_account('a@x.com')
            driver = make_account('driver@x.com', role=Roles.COLLECTOR)
            pickup = pickups.create_pickup(owner.account_id, '1 Lagos Rd')
            pickup = pickups.assign_driver(pickup.pickup_id,
                                           driver.account_id)
            self.assertEqual(pickup.status, PickupStatus.ASSIGNED)
            self.assertEqual(pickup.driver, driver.account_id)

    def test_driver_must_be_collector(self):
        with temporary_app():
            owner = make_account('a@x.com')
            pickup = pickups.create_pickup(owner.account_id, '1 Lagos Rd')
            with self.assertRaises(ValueError):
                pickups.assign_driver(pickup.pickup_id, owner.account_id)
            with self.assertRaises(ValueError):
                pickups.assign_driver(pickup.pickup_id, 'nope')
            with self.assertRaises(NoSuchPickup):
                pickups.assign_driver('nope', owner.account_id)

    def test_completed_pickup_is_frozen(self):
        with temporary_app():
            owner = make_account('a@x.com')
            driver = make_account('driver@x.com', role=Roles.COLLECTOR)
            pickup = pickups.create_pickup(owner.account_id, '1 Lagos Rd')
            ledger.credit_pickup_completion(
                pickup.pickup_id, [{'category': 'Paper', 'weight': 4}]
            )
            with self.assertRaises(InvalidTransition):
                pickups.mark_missed(pickup.pickup_id)
            with self.assertRaises(InvalidTransition):
                pickups.assign_driver(pickup.pickup_id, driver.account_id)
            self.assertEqual(pickups.get_pickup(pickup.pickup_id).status,
                             PickupStatus.COMPLETED)

    def test_mark_missed(self):
        with temporary_app():
            owner = make_account('a@x.com')
            pickup = pickups.create_pickup(owner.account_id, '1 Lagos Rd')
            pickup = pickups.mark_missed(pickup.pickup_id)
            self.assertEqual(pickup.status, PickupStatus.MISSED)
            with self.assertRaises(InvalidTransition):
                pickups.mark_missed(pickup.pickup_id)
