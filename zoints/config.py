"""Flask configuration."""
import secrets
import os

#################### Relational store ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite:///zoints.db')
SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', 0)))
"""Create tables and seed the system configuration on start-up."""


#################### Sessions ####################
JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Secret used to sign session tokens (HS256)."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '86400')
"""Session token validity, in seconds."""


#################### Field encryption ####################
FIELD_ENCRYPTION_SECRET = os.environ.get('FIELD_ENCRYPTION_SECRET',
                                         secrets.token_urlsafe(32))
"""Server secret from which the bank field key is derived.

Must be stable across instances and restarts, or previously encrypted
values become unreadable."""

FIELD_ENCRYPTION_SALT = os.environ.get('FIELD_ENCRYPTION_SALT',
                                       'zoints-field-cipher')

FIELD_CIPHER_FAIL_SOFT = bool(int(os.environ.get('FIELD_CIPHER_FAIL_SOFT', 1)))
"""Return the stored value when decryption fails, instead of raising."""


#################### One-time passcodes ####################
OTP_SIGNUP_TTL = os.environ.get('OTP_SIGNUP_TTL', '900')
OTP_RESET_TTL = os.environ.get('OTP_RESET_TTL', '600')
OTP_CHANGE_TTL = os.environ.get('OTP_CHANGE_TTL', '600')
OTP_LENGTH = os.environ.get('OTP_LENGTH', '6')


#################### Rate limiting ####################
RATE_LIMIT_REQUESTS = os.environ.get('RATE_LIMIT_REQUESTS', '5')
RATE_LIMIT_WINDOW = os.environ.get('RATE_LIMIT_WINDOW', '60')
RATE_LIMIT_FAIL_OPEN = bool(int(os.environ.get('RATE_LIMIT_FAIL_OPEN', 1)))
"""Allow requests when the counter store is unreachable."""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_TOKEN = os.environ.get('REDIS_TOKEN', None)
"""This is the token used in the AUTH procedure."""

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', 0)))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta."""


#################### Mail ####################
SMTP_HOST = os.environ.get('SMTP_HOST')
"""If not set, passcode mail runs in simulation mode and nothing is sent."""

SMTP_PORT = os.environ.get('SMTP_PORT', '587')
SMTP_USER = os.environ.get('SMTP_USER')
SMTP_PASS = os.environ.get('SMTP_PASS')
SMTP_SECURE = os.environ.get('SMTP_SECURE', 'false') == 'true'
SMTP_FROM = os.environ.get('SMTP_FROM',
                           '"Zilcycler Support" <noreply@zilcycler.com>')


#################### Ledger ####################
DEFAULT_WASTE_RATE = os.environ.get('DEFAULT_WASTE_RATE', '10')
"""Payout rate for categories with neither a rate nor an ``Other`` rate."""


#################### Minor configs ##############################
SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))

LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))

VERSION = '0.1.0'
