"""Tests for :mod:`zoints.services.ratelimit`."""

from unittest import TestCase, mock

import fakeredis
import redis

from ..ratelimit import RateLimiter
from ...tests.util import temporary_app


class Clock(object):
    """A clock that only moves when told to."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSlidingWindow(TestCase):
    """N requests per rolling window, per key."""

    def setUp(self):
        self.clock = Clock()
        self.client = fakeredis.FakeStrictRedis(server=fakeredis.FakeServer())
        self.limiter = RateLimiter(self.client, limit=5, window=60,
                                   clock=self.clock)

    def test_limit_exceeded(self):
        """The sixth request in a minute is rejected."""
        for _ in range(5):
            self.assertTrue(self.limiter.allow('login', '10.0.0.1'))
            self.clock.now += 1
        self.assertFalse(self.limiter.allow('login', '10.0.0.1'))

    def test_window_slides(self):
        """Once the oldest requests leave the window, requests are allowed."""
        for _ in range(5):
            self.assertTrue(self.limiter.allow('login', '10.0.0.1'))
        self.assertFalse(self.limiter.allow('login', '10.0.0.1'))
        self.clock.now += 61
        self.assertTrue(self.limiter.allow('login', '10.0.0.1'))

    def test_keys_are_independent(self):
        """Exhausting one scope or address does not affect the others."""
        for _ in range(6):
            self.limiter.allow('login', '10.0.0.1')
        self.assertFalse(self.limiter.allow('login', '10.0.0.1'))
        self.assertTrue(self.limiter.allow('reset', '10.0.0.1'))
        self.assertTrue(self.limiter.allow('login', '10.0.0.2'))

    def test_key_expires(self):
        """Counters do not outlive the window."""
        self.limiter.allow('login', '10.0.0.1')
        ttl = self.client.ttl(RateLimiter.key('login', '10.0.0.1'))
        self.assertGreater(ttl, 0)
        self.assertLessEqual(ttl, 61)


class TestUnavailableStore(TestCase):
    """The counter store cannot be reached."""

    def setUp(self):
        self.client = mock.MagicMock()
        self.client.pipeline.return_value.execute.side_effect = \
            redis.exceptions.ConnectionError('nope')

    def test_fails_open(self):
        """By default the request is allowed, and the condition logged."""
        limiter = RateLimiter(self.client)
        with self.assertLogs('zoints.services.ratelimit', level='WARNING'):
            self.assertTrue(limiter.allow('login', '10.0.0.1'))

    def test_fails_closed(self):
        limiter = RateLimiter(self.client, fail_open=False)
        with self.assertLogs('zoints.services.ratelimit', level='ERROR'):
            self.assertFalse(limiter.allow('login', '10.0.0.1'))


class TestApplicationLimiter(TestCase):
    """Configuration from the application."""

    def test_fake_store(self):
        with temporary_app(RATE_LIMIT_REQUESTS='2') as app:
            limiter = RateLimiter.get_limiter(app)
            self.assertTrue(limiter.allow('login', 'foo'))
            self.assertTrue(limiter.allow('login', 'foo'))
            self.assertFalse(limiter.allow('login', 'foo'))
            # Limiters for the same app share the counter store.
            self.assertFalse(RateLimiter.get_limiter(app)
                             .allow('login', 'foo'))

    def test_real_store_configuration(self):
        with temporary_app(REDIS_FAKE=False, REDIS_HOST='redis.local',
                           REDIS_PORT='6380', RATE_LIMIT_FAIL_OPEN=False) \
                as app:
            with mock.patch(f'{RateLimiter.__module__}.redis.Redis') as Redis:
                limiter = RateLimiter.get_limiter(app)
            self.assertEqual(Redis.call_args[1]['host'], 'redis.local')
            self.assertEqual(Redis.call_args[1]['port'], 6380)
            self.assertFalse(limiter._fail_open)
