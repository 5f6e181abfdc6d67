"""Tests for :mod:`zoints.services.ledger`."""

import os
import shutil
import tempfile
import threading
from unittest import TestCase, mock

from .. import accounts, ledger, pickups, util
from ..exceptions import InsufficientFunds, InvalidTransition, \
    NoSuchAccount, NoSuchPickup, NoSuchRedemption
from ..models import DBPickupCredit, DBRedemption
from ...domain import PickupStatus, RedemptionStatus, RedemptionType, Roles
from ...tests.util import make_account, new_app, temporary_app

RATES = {'Plastic': 15.0, 'Metal': 40.0, 'Other': 3.0}


class TestComputePayout(TestCase):
    """Tests for :func:`.ledger.compute_payout`."""

    def test_known_categories(self):
        items, weight, payout = ledger.compute_payout(
            [{'category': 'Plastic', 'weight': 2.5},
             {'category': 'Metal', 'weight': 1}],
            RATES, 10
        )
        self.assertEqual(weight, 3.5)
        self.assertEqual([i.earned for i in items], [37, 40])
        self.assertEqual(payout, 77)

    def test_unknown_category(self):
        """Unknown categories are paid at the Other rate, or the default."""
        _, _, payout = ledger.compute_payout(
            [{'category': 'Textiles', 'weight': 2}], RATES, 10
        )
        self.assertEqual(payout, 6)
        _, _, payout = ledger.compute_payout(
            [{'category': 'Textiles', 'weight': 2}], {'Plastic': 15.0}, 10
        )
        self.assertEqual(payout, 20)

    def test_bad_weights(self):
        for details in [[], [{'category': 'Plastic', 'weight': 0}],
                        [{'category': 'Plastic', 'weight': -1}],
                        [{'category': 'Plastic', 'weight': 'heavy'}],
                        [{'category': 'Plastic'}]]:
            with self.assertRaises(ValueError):
                ledger.compute_payout(details, RATES, 10)


class TestRedemption(TestCase):
    """Debits on request, reversal on rejection."""

    def test_request_then_reject(self):
        """Rejecting restores exactly the debited amount."""
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            redemption = ledger.request_redemption(account.account_id, 60,
                                                   RedemptionType.CASH)
            self.assertEqual(redemption.status, RedemptionStatus.PENDING)
            self.assertEqual(redemption.user_name, account.name)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 40
            )

            decided = ledger.decide_redemption(redemption.redemption_id,
                                               RedemptionStatus.REJECTED)
            self.assertEqual(decided.status, RedemptionStatus.REJECTED)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 100
            )

    def test_approve_changes_no_balance(self):
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            redemption = ledger.request_redemption(account.account_id, 60,
                                                   RedemptionType.CHARITY)
            decided = ledger.decide_redemption(redemption.redemption_id,
                                               RedemptionStatus.APPROVED)
            self.assertEqual(decided.status, RedemptionStatus.APPROVED)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 40
            )

    def test_decide_twice(self):
        """A decided request cannot be decided again, or refunded twice."""
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            redemption = ledger.request_redemption(account.account_id, 60,
                                                   RedemptionType.CASH)
            ledger.decide_redemption(redemption.redemption_id,
                                     RedemptionStatus.REJECTED)
            for status in [RedemptionStatus.REJECTED,
                           RedemptionStatus.APPROVED]:
                with self.assertRaises(InvalidTransition):
                    ledger.decide_redemption(redemption.redemption_id, status)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 100
            )

    def test_decide_bad_status(self):
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            redemption = ledger.request_redemption(account.account_id, 60,
                                                   RedemptionType.CASH)
            with self.assertRaises(ValueError):
                ledger.decide_redemption(redemption.redemption_id,
                                         RedemptionStatus.PENDING)
            with self.assertRaises(NoSuchRedemption):
                ledger.decide_redemption('nope', RedemptionStatus.APPROVED)

    def test_insufficient_funds(self):
        """Of two requests for 70 against 100, only one succeeds."""
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            ledger.request_redemption(account.account_id, 70,
                                      RedemptionType.CASH)
            with self.assertRaises(InsufficientFunds):
                ledger.request_redemption(account.account_id, 70,
                                          RedemptionType.CASH)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 30
            )
            self.assertEqual(
                len(ledger.list_redemptions(account.account_id)), 1
            )

    def test_exact_balance(self):
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            ledger.request_redemption(account.account_id, 100,
                                      RedemptionType.CASH)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 0
            )

    def test_debit_and_record_are_atomic(self):
        """If the record cannot be written, the debit does not persist."""
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            with mock.patch(f'{ledger.__name__}._new_redemption',
                            side_effect=RuntimeError('disk full')):
                with self.assertRaises(RuntimeError):
                    ledger.request_redemption(account.account_id, 60,
                                              RedemptionType.CASH)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 100
            )
            with util.transaction() as session:
                self.assertEqual(session.query(DBRedemption).count(), 0)

    def test_invalid_requests(self):
        with temporary_app():
            account = make_account('a@x.com', balance=100)
            for amount in [0, -5, 1.5, True, '10', None]:
                with self.assertRaises(ValueError):
                    ledger.request_redemption(account.account_id, amount,
                                              RedemptionType.CASH)
            with self.assertRaises(ValueError):
                ledger.request_redemption(account.account_id, 10, 'Crypto')
            with self.assertRaises(NoSuchAccount):
                ledger.request_redemption('nope', 10, RedemptionType.CASH)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 100
            )

    def test_balance_never_negative(self):
        """No sequence of debits and reversals drives the balance below 0."""
        with temporary_app():
            account = make_account('a@x.com', balance=50)
            requests = []
            for amount in [20, 20, 20, 5, 50]:
                try:
                    requests.append(ledger.request_redemption(
                        account.account_id, amount, RedemptionType.CASH
                    ))
                except InsufficientFunds:
                    pass
                balance = accounts.get_account(account.account_id).balance
                self.assertGreaterEqual(balance, 0)
            self.assertEqual([r.amount for r in requests], [20, 20, 5])
            ledger.decide_redemption(requests[0].redemption_id,
                                     RedemptionStatus.REJECTED)
            self.assertEqual(
                accounts.get_account(account.account_id).balance, 25
            )

    def test_list_redemptions(self):
        with temporary_app():
            first = make_account('a@x.com', balance=100)
            second = make_account('b@x.com', balance=100)
            ledger.request_redemption(first.account_id, 10,
                                      RedemptionType.CASH)
            ledger.request_redemption(second.account_id, 10,
                                      RedemptionType.CASH)
            self.assertEqual(len(ledger.list_redemptions()), 2)
            mine = ledger.list_redemptions(first.account_id)
            self.assertEqual([r.account_id for r in mine],
                             [first.account_id])


class TestPickupCredit(TestCase):
    """Completion pays once per pickup."""

    def setUp(self):
        self.details = [{'category': 'Plastic', 'weight': 2},
                        {'category': 'Metal', 'weight': 0.5}]

    def _pickup(self, owner_email: str = 'a@x.com'):
        owner = make_account(owner_email)
        return owner, pickups.create_pickup(owner.account_id, '1 Lagos Rd')

    def test_credit(self):
        with temporary_app():
            owner, pickup = self._pickup()
            completed, credited = ledger.credit_pickup_completion(
                pickup.pickup_id, self.details
            )
            self.assertTrue(credited)
            self.assertEqual(completed.status, PickupStatus.COMPLETED)
            self.assertEqual(completed.earned_zoints, 50)
            self.assertEqual(completed.weight, 2.5)
            self.assertEqual([i.rate for i in completed.collection_details],
                             [15.0, 40.0])
            owner = accounts.get_account(owner.account_id)
            self.assertEqual(owner.balance, 50)
            self.assertEqual(owner.total_recycled_kg, 2.5)

    def test_credit_applies_once(self):
        """Completing a completed pickup changes nothing."""
        with temporary_app():
            owner, pickup = self._pickup()
            ledger.credit_pickup_completion(pickup.pickup_id, self.details)
            again, credited = ledger.credit_pickup_completion(
                pickup.pickup_id, [{'category': 'Metal', 'weight': 100}]
            )
            self.assertFalse(credited)
            self.assertEqual(again.earned_zoints, 50)
            owner = accounts.get_account(owner.account_id)
            self.assertEqual(owner.balance, 50)
            self.assertEqual(owner.total_recycled_kg, 2.5)
            with util.transaction() as session:
                self.assertEqual(session.query(DBPickupCredit).count(), 1)

    def test_assigned_pickup(self):
        with temporary_app():
            owner, pickup = self._pickup()
            driver = make_account('driver@x.com', role=Roles.COLLECTOR)
            pickups.assign_driver(pickup.pickup_id, driver.account_id)
            _, credited = ledger.credit_pickup_completion(pickup.pickup_id,
                                                          self.details)
            self.assertTrue(credited)

    def test_missed_pickup(self):
        with temporary_app():
            owner, pickup = self._pickup()
            pickups.mark_missed(pickup.pickup_id)
            with self.assertRaises(InvalidTransition):
                ledger.credit_pickup_completion(pickup.pickup_id,
                                                self.details)
            self.assertEqual(
                accounts.get_account(owner.account_id).balance, 0
            )

    def test_no_such_pickup(self):
        with temporary_app():
            with self.assertRaises(NoSuchPickup):
                ledger.credit_pickup_completion('nope', self.details)

    def test_invalid_details(self):
        with temporary_app():
            owner, pickup = self._pickup()
            with self.assertRaises(ValueError):
                ledger.credit_pickup_completion(
                    pickup.pickup_id, [{'category': 'Plastic', 'weight': 0}]
                )
            self.assertEqual(pickups.get_pickup(pickup.pickup_id).status,
                             PickupStatus.PENDING)


class TestConcurrentRedemption(TestCase):
    """Requests racing for the same balance on a shared database file."""

    WORKERS = 8

    def setUp(self):
        self.workdir = tempfile.mkdtemp()
        path = os.path.join(self.workdir, 'ledger.db')
        self.app = new_app(
            SQLALCHEMY_DATABASE_URI=f'sqlite:///{path}',
            SQLALCHEMY_ENGINE_OPTIONS={
                'connect_args': {'timeout': 30, 'check_same_thread': False}
            }
        )
        with self.app.app_context():
            self.account = make_account('a@x.com', balance=100)

    def tearDown(self):
        with self.app.app_context():
            util.drop_all()
        shutil.rmtree(self.workdir)

    def test_at_most_one_succeeds(self):
        """Of N simultaneous requests for 70 against 100, exactly one wins."""
        barrier = threading.Barrier(self.WORKERS)
        outcomes = []
        errors = []

        def redeem():
            with self.app.app_context():
                barrier.wait()
                try:
                    ledger.request_redemption(self.account.account_id, 70,
                                              RedemptionType.CASH)
                except InsufficientFunds:
                    outcomes.append('insufficient')
                except Exception as e:
                    errors.append(e)
                else:
                    outcomes.append('ok')

        workers = [threading.Thread(target=redeem)
                   for _ in range(self.WORKERS)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=60)

        self.assertEqual(errors, [])
        self.assertEqual(outcomes.count('ok'), 1)
        self.assertEqual(outcomes.count('insufficient'), self.WORKERS - 1)
        with self.app.app_context():
            self.assertEqual(
                accounts.get_account(self.account.account_id).balance, 30
            )
            self.assertEqual(
                len(ledger.list_redemptions(self.account.account_id)), 1
            )
