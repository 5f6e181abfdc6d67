"""
Sliding-window rate limiting, backed by Redis.

Each (scope, identity) pair gets a sorted set of request timestamps. A
request is allowed if, after discarding entries older than the window, no
more than ``limit`` entries remain including its own. Scopes keep the
endpoint classes apart, so exhausting the login budget does not lock an
address out of password reset.

If Redis cannot be reached the limiter fails open by default: the request
is allowed and the degraded condition is logged. Set
``RATE_LIMIT_FAIL_OPEN = 0`` to deny instead.
"""

import logging
import time
import uuid
from typing import Callable, Optional

import redis
from flask import Flask, current_app, g

logger = logging.getLogger(__name__)


class RateLimiter(object):
    """
    Counts requests per key in a rolling window.

    The Redis client is thread safe and connections are attached at the
    time a command is executed. This class simply provides a container for
    configuration.
    """

    def __init__(self, client: redis.Redis, limit: int = 5,
                 window: int = 60, fail_open: bool = True,
                 clock: Callable[[], float] = time.time) -> None:
        self.r = client
        self._limit = limit
        self._window = window
        self._fail_open = fail_open
        self._clock = clock

    @staticmethod
    def key(scope: str, identity: str) -> str:
        return f'ratelimit:{scope}:{identity}'

    def allow(self, scope: str, identity: str) -> bool:
        """
        Record a request and decide whether it may proceed.

        Parameters
        ----------
        scope : str
            Endpoint class, e.g. ``login``.
        identity : str
            Client address or account id.

        Returns
        -------
        bool

        """
        key = self.key(scope, identity)
        now = self._clock()
        member = f'{now}:{uuid.uuid4().hex}'
        try:
            pipe = self.r.pipeline(transaction=True)
            pipe.zremrangebyscore(key, 0, now - self._window)
            pipe.zadd(key, {member: now})
            pipe.zcard(key)
            pipe.expire(key, int(self._window) + 1)
            _, _, count, _ = pipe.execute()
        except redis.exceptions.RedisError as e:
            if self._fail_open:
                logger.warning('Rate limiter degraded, allowing request: %s',
                               e)
                return True
            logger.error('Rate limiter unavailable, denying request: %s', e)
            return False
        if count > self._limit:
            logger.info('Rate limit exceeded for %s', scope)
            return False
        return True

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Set default configuration parameters for an application instance."""
        app.config.setdefault('REDIS_HOST', 'localhost')
        app.config.setdefault('REDIS_PORT', '6379')
        app.config.setdefault('REDIS_DATABASE', '0')
        app.config.setdefault('REDIS_TOKEN', None)
        app.config.setdefault('REDIS_FAKE', False)
        app.config.setdefault('RATE_LIMIT_REQUESTS', '5')
        app.config.setdefault('RATE_LIMIT_WINDOW', '60')
        app.config.setdefault('RATE_LIMIT_FAIL_OPEN', True)
        if app.config['REDIS_FAKE']:
            import fakeredis
            app.extensions['zoints.fake_redis'] = fakeredis.FakeServer()

    @classmethod
    def get_limiter(cls, app: Optional[Flask] = None) -> 'RateLimiter':
        """Get a new limiter for the application's counter store."""
        if app is None:
            app = current_app
        config = app.config
        if config.get('REDIS_FAKE'):
            import fakeredis
            server = app.extensions.get('zoints.fake_redis')
            client = fakeredis.FakeStrictRedis(server=server)
        else:
            client = redis.Redis(host=config['REDIS_HOST'],
                                 port=int(config['REDIS_PORT']),
                                 db=int(config['REDIS_DATABASE']),
                                 password=config.get('REDIS_TOKEN'),
                                 socket_timeout=1,
                                 socket_connect_timeout=1)
        return cls(client,
                   limit=int(config['RATE_LIMIT_REQUESTS']),
                   window=int(config['RATE_LIMIT_WINDOW']),
                   fail_open=bool(config['RATE_LIMIT_FAIL_OPEN']))

    @classmethod
    def current_limiter(cls) -> 'RateLimiter':
        """Get/create :class:`.RateLimiter` for this context."""
        if 'rate_limiter' not in g:
            g.rate_limiter = cls.get_limiter()
        limiter: RateLimiter = g.rate_limiter
        return limiter
