"""
Process-wide flags and waste rates.

Nothing here is cached: every call reads the store, so that all instances
see a flag change on their next request.
"""

import logging
import math
from typing import Dict, Mapping, Optional

from .. import domain
from . import util
from .models import DBSystemConfig, DBWasteRate

logger = logging.getLogger(__name__)


def _get_or_create(session) -> DBSystemConfig:
    db_config = session.get(DBSystemConfig, DBSystemConfig.SINGLETON)
    if db_config is None:
        db_config = DBSystemConfig(config_id=DBSystemConfig.SINGLETON,
                                   maintenance_mode=False,
                                   allow_registrations=True,
                                   version=1)
        session.add(db_config)
        session.flush()
    return db_config


def _to_domain(db_config: DBSystemConfig) -> domain.SystemConfig:
    return domain.SystemConfig(
        maintenance_mode=bool(db_config.maintenance_mode),
        allow_registrations=bool(db_config.allow_registrations),
        version=int(db_config.version)
    )


def get_system_config() -> domain.SystemConfig:
    """Read the current flags."""
    with util.transaction() as session:
        return _to_domain(_get_or_create(session))


def update_system_config(maintenance_mode: Optional[bool] = None,
                         allow_registrations: Optional[bool] = None) \
        -> domain.SystemConfig:
    """Set one or both flags. Every update bumps the version."""
    with util.transaction() as session:
        db_config = _get_or_create(session)
        if maintenance_mode is not None:
            db_config.maintenance_mode = bool(maintenance_mode)
        if allow_registrations is not None:
            db_config.allow_registrations = bool(allow_registrations)
        db_config.version = DBSystemConfig.version + 1
        session.add(db_config)
        session.flush()
        session.refresh(db_config)
        config = _to_domain(db_config)
    logger.info('System configuration updated to version %i', config.version)
    return config


def get_waste_rates() -> Dict[str, float]:
    """Rates by category, in zoints per kilogram."""
    with util.transaction() as session:
        return {row.category: float(row.rate)
                for row in session.query(DBWasteRate).all()}


def update_waste_rates(rates: Mapping[str, float]) -> Dict[str, float]:
    """
    Insert or replace the rate for each given category.

    Raises
    ------
    :class:`ValueError`
        If a rate is not a finite, non-negative number.

    """
    cleaned: Dict[str, float] = {}
    for category, rate in rates.items():
        if not category:
            raise ValueError('Category is required')
        if isinstance(rate, bool):
            raise ValueError(f'Invalid rate for {category}')
        try:
            value = float(rate)
        except (TypeError, ValueError) as e:
            raise ValueError(f'Invalid rate for {category}') from e
        if not math.isfinite(value) or value < 0:
            raise ValueError(f'Invalid rate for {category}')
        cleaned[str(category)] = value

    with util.transaction() as session:
        for category, value in cleaned.items():
            db_rate = session.get(DBWasteRate, category)
            if db_rate is None:
                db_rate = DBWasteRate(category=category, co2_saved_per_kg=0.0)
            db_rate.rate = value
            session.add(db_rate)
    logger.info('Updated waste rates for %s', ', '.join(sorted(cleaned)))
    return get_waste_rates()
