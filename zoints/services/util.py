"""Helpers and Flask application integration."""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator

from flask import Flask, g
from pytz import UTC
from sqlalchemy import text
from sqlalchemy.orm.session import Session

from .models import db, DBSystemConfig, DBWasteRate

logger = logging.getLogger(__name__)


def now() -> int:
    """Get the current epoch/unix time."""
    return epoch(datetime.now(tz=UTC))


def epoch(t: datetime) -> int:
    """Convert a :class:`.datetime` to UNIX time."""
    delta = t - datetime.fromtimestamp(0, tz=UTC)
    return int(delta.total_seconds())


def from_epoch(t: int) -> datetime:
    """Get a :class:`datetime` from an UNIX timestamp."""
    return datetime.fromtimestamp(t, tz=UTC)


def new_id() -> str:
    """Server-generated identifier; never reused."""
    return str(uuid.uuid4())


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """
    Context manager for database transaction.

    Nested blocks join the outermost one, which alone commits or rolls back.
    Anything raised inside the block, including timeouts delivered as
    :class:`BaseException`, leaves the store in its pre-transaction state.
    """
    depth = g.get('_transaction_depth', 0)
    g._transaction_depth = depth + 1
    try:
        yield db.session
        if depth == 0:
            db.session.commit()
    except BaseException as e:
        if depth == 0:
            logger.warning('Transaction failed, rolling back: %s',
                           type(e).__name__)
            db.session.rollback()
        raise
    finally:
        g._transaction_depth = depth


def init_app(app: Flask) -> None:
    """Set configuration defaults and attach session to the application."""
    db.init_app(app)


def current_session() -> Session:
    """Get/create database session for this context."""
    return db.session


def create_all() -> None:
    """Create all tables in the database, and seed default rows."""
    db.create_all()
    with transaction() as session:
        if session.get(DBSystemConfig, DBSystemConfig.SINGLETON) is None:
            session.add(DBSystemConfig(config_id=DBSystemConfig.SINGLETON,
                                       maintenance_mode=False,
                                       allow_registrations=True,
                                       version=1))
        for category, rate, co2 in DBWasteRate.DEFAULTS:
            if session.get(DBWasteRate, category) is None:
                session.add(DBWasteRate(category=category, rate=rate,
                                        co2_saved_per_kg=co2))


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


def is_available(**kwargs: Any) -> bool:
    """Check our connection to the database."""
    try:
        db.session.execute(text("SELECT 1")).all()
    except Exception as e:
        logger.error('Encountered an error talking to database: %s', e)
        return False
    return True
