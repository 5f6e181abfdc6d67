"""Tests for :mod:`zoints.auth.decorators`."""

from datetime import datetime, timedelta
from unittest import TestCase, mock

from pytz import UTC

from .. import decorators
from ... import domain
from ...domain import Roles
from ...errors import Forbidden, RateLimited, Unauthorized


def session_for(account: domain.Account) -> domain.Session:
    now = datetime.now(tz=UTC)
    return domain.Session(account_id=account.account_id, role=account.role,
                          email=account.email, start_time=now,
                          end_time=now + timedelta(days=1))


class TestScoped(TestCase):
    """Tests for :func:`.decorators.scoped`."""

    def setUp(self):
        self.account = domain.Account(account_id='abc-123', email='a@x.com',
                                      name='A', role=Roles.HOUSEHOLD)

    @mock.patch(f'{decorators.__name__}.request')
    def test_no_session(self, mock_request):
        """No session is present on the request."""
        mock_request.auth = None

        @decorators.scoped()
        def protected():
            """A protected function."""

        with self.assertRaises(Unauthorized):
            protected()

    @mock.patch(f'{decorators.__name__}.accounts')
    @mock.patch(f'{decorators.__name__}.request')
    def test_suspended_account(self, mock_request, mock_accounts):
        """A valid token for a suspended account no longer works."""
        mock_request.auth = session_for(self.account)
        mock_accounts.find_by_id.return_value = \
            self.account._replace(is_active=False)

        @decorators.scoped()
        def protected():
            """A protected function."""

        with self.assertRaises(Unauthorized):
            protected()

    @mock.patch(f'{decorators.__name__}.accounts')
    @mock.patch(f'{decorators.__name__}.request')
    def test_deleted_account(self, mock_request, mock_accounts):
        mock_request.auth = session_for(self.account)
        mock_accounts.find_by_id.return_value = None

        @decorators.scoped()
        def protected():
            """A protected function."""

        with self.assertRaises(Unauthorized):
            protected()

    @mock.patch(f'{decorators.__name__}.accounts')
    @mock.patch(f'{decorators.__name__}.request')
    def test_live_role_is_checked(self, mock_request, mock_accounts):
        """The role in the store wins over the role in the token."""
        admin = self.account._replace(role=Roles.ADMIN)
        mock_request.auth = session_for(admin)
        mock_accounts.find_by_id.return_value = self.account

        @decorators.scoped(roles=[Roles.ADMIN])
        def protected():
            """A protected function."""

        with self.assertRaises(Forbidden):
            protected()

    @mock.patch(f'{decorators.__name__}.accounts')
    @mock.patch(f'{decorators.__name__}.request')
    def test_authorizer(self, mock_request, mock_accounts):
        mock_request.auth = session_for(self.account)
        mock_accounts.find_by_id.return_value = self.account

        @decorators.scoped(authorizer=lambda account, user_id:
                           account.account_id == user_id)
        def protected(user_id):
            """A protected function."""
            return 'ok'

        self.assertEqual(protected('abc-123'), 'ok')
        with self.assertRaises(Forbidden):
            protected('def-456')

    @mock.patch(f'{decorators.__name__}.accounts')
    @mock.patch(f'{decorators.__name__}.request')
    def test_authorized(self, mock_request, mock_accounts):
        """The live account is attached to the request."""
        mock_request.auth = session_for(self.account)
        mock_accounts.find_by_id.return_value = self.account

        @decorators.scoped(roles=Roles.SELF_SERVICE)
        def protected():
            """A protected function."""
            return 'ok'

        self.assertEqual(protected(), 'ok')
        self.assertEqual(mock_request.account, self.account)


class TestLimited(TestCase):
    """Tests for :func:`.decorators.limited`."""

    @mock.patch(f'{decorators.__name__}.RateLimiter')
    @mock.patch(f'{decorators.__name__}.request')
    def test_keyed_by_address(self, mock_request, mock_RateLimiter):
        mock_request.auth = None
        mock_request.remote_addr = '10.0.0.1'
        limiter = mock_RateLimiter.current_limiter.return_value
        limiter.allow.return_value = True

        @decorators.limited('login')
        def protected():
            return 'ok'

        self.assertEqual(protected(), 'ok')
        limiter.allow.assert_called_once_with('login', 'addr:10.0.0.1')

    @mock.patch(f'{decorators.__name__}.RateLimiter')
    @mock.patch(f'{decorators.__name__}.request')
    def test_keyed_by_account(self, mock_request, mock_RateLimiter):
        account = domain.Account(account_id='abc-123', email='a@x.com',
                                 name='A', role=Roles.HOUSEHOLD)
        mock_request.auth = session_for(account)
        limiter = mock_RateLimiter.current_limiter.return_value
        limiter.allow.return_value = True

        @decorators.limited('change-password')
        def protected():
            return 'ok'

        protected()
        limiter.allow.assert_called_once_with('change-password',
                                              'account:abc-123')

    @mock.patch(f'{decorators.__name__}.RateLimiter')
    @mock.patch(f'{decorators.__name__}.request')
    def test_limited(self, mock_request, mock_RateLimiter):
        mock_request.auth = None
        mock_request.remote_addr = '10.0.0.1'
        mock_RateLimiter.current_limiter.return_value.allow.return_value = \
            False

        @decorators.limited('login')
        def protected():
            """Never reached."""
            raise AssertionError('should not be called')

        with self.assertRaises(RateLimited):
            protected()
