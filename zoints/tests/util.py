"""Testing helpers."""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from flask import Flask

from .. import domain
from ..auth import tokens
from ..factory import create_web_app
from ..services import accounts, util

TEST_CONFIG: Dict[str, Any] = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'CREATE_DB': False,
    'JWT_SECRET': 'foosecret',
    'SESSION_DURATION': '86400',
    'FIELD_ENCRYPTION_SECRET': 'barsecret',
    'FIELD_ENCRYPTION_SALT': 'bazsalt',
    'FIELD_CIPHER_FAIL_SOFT': True,
    'REDIS_FAKE': True,
    'RATE_LIMIT_REQUESTS': '100',
    'RATE_LIMIT_WINDOW': '60',
    'SMTP_HOST': None,
    'SMTP_USER': None,
    'SMTP_PASS': None,
    'LOGLEVEL': 40,
}

PASSWORD = 'correct horse battery'


def new_app(**overrides: Any) -> Flask:
    """Build an app on a fresh in-memory database, with tables created."""
    config = dict(TEST_CONFIG)
    config.update(overrides)
    app = create_web_app(config)
    with app.app_context():
        util.create_all()
    return app


@contextmanager
def temporary_app(**overrides: Any) -> Generator[Flask, None, None]:
    """Provide an app context on an in-memory database."""
    app = new_app(**overrides)
    with app.app_context():
        try:
            yield app
        finally:
            util.drop_all()


def make_account(email: str, role: str = domain.Roles.HOUSEHOLD,
                 name: str = 'Jane User', password: Optional[str] = PASSWORD,
                 balance: int = 0, **profile: Any) -> domain.Account:
    """Create an account, optionally with a starting balance."""
    account = accounts.create(email, name, role, password=password,
                              **profile)
    if balance:
        account = accounts.update(account.account_id, {'balance': balance})
    return account


def auth_header(app: Flask, account: domain.Account) -> Dict[str, str]:
    """Bearer token header for a fresh session on ``account``."""
    token, _ = tokens.issue(account, app.config['JWT_SECRET'],
                            int(app.config['SESSION_DURATION']))
    return {'Authorization': f'Bearer {token}'}
