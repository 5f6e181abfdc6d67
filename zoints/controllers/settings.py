"""Controllers for health, system flags and waste rates."""

from typing import Any, Mapping

from http import HTTPStatus as status

from ..errors import BadRequest
from ..services import sysconfig, util
from .util import ResponseData, payload_of


def health() -> ResponseData:
    """Liveness, and whether the store answers."""
    if util.is_available():
        return {'status': 'ok', 'database': True}, status.OK, {}
    return {'status': 'degraded', 'database': False}, \
        status.SERVICE_UNAVAILABLE, {}


def get_config() -> ResponseData:
    data = {
        'sysConfig': sysconfig.get_system_config().to_json(),
        'wasteRates': sysconfig.get_waste_rates()
    }
    return data, status.OK, {}


def update_config(payload: Mapping[str, Any]) -> ResponseData:
    """Set ``maintenanceMode`` and/or ``allowRegistrations``."""
    flags = {}
    for key, name in (('maintenanceMode', 'maintenance_mode'),
                      ('allowRegistrations', 'allow_registrations')):
        if key not in payload:
            continue
        if not isinstance(payload[key], bool):
            raise BadRequest(f'{key} must be a boolean')
        flags[name] = payload[key]
    config = sysconfig.update_system_config(**flags)
    return {'sysConfig': config.to_json()}, status.OK, {}


def update_rates(payload: Mapping[str, Any]) -> ResponseData:
    """Upsert ``{"rates": {category: rate}}``."""
    rates = payload_of(payload.get('rates'))
    if not rates:
        raise BadRequest('rates are required')
    try:
        updated = sysconfig.update_waste_rates(rates)
    except ValueError as e:
        raise BadRequest(str(e)) from e
    return {'wasteRates': updated}, status.OK, {}
