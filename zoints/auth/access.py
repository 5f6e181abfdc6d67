"""
Field-level visibility and write permissions for account records.

Both directions are explicit allow-lists keyed by the requester's relation to
the target: staff and admins, the owner, or anyone else. A field that is not
on the list for the requester is not shown, or not written.
"""

import logging
from typing import Any, Dict, Mapping

from .. import domain
from ..domain import Roles
from .exceptions import NotAuthorized

logger = logging.getLogger(__name__)

RESTRICTED_FIELDS = ('id', 'name', 'role', 'avatar', 'isActive', 'industry',
                     'esgScore')
"""What any authenticated requester may see of someone else's account."""

OWNER_WRITABLE = ('name', 'phone', 'address', 'gender', 'industry', 'avatar',
                  'bankDetails')
"""Profile fields an owner may change on their own account."""

PRIVILEGED_WRITABLE = OWNER_WRITABLE + ('zointsBalance', 'isActive', 'role',
                                        'esgScore')
"""Fields staff and admins may change on any account."""

FIELD_NAMES = {
    'name': 'name',
    'phone': 'phone',
    'address': 'address',
    'gender': 'gender',
    'industry': 'industry',
    'avatar': 'avatar',
    'bankDetails': 'bank',
    'zointsBalance': 'balance',
    'isActive': 'is_active',
    'role': 'role',
    'esgScore': 'esg_score',
}
"""Request field name to account field name."""

BANK_FIELDS = {
    'bankName': 'bank_name',
    'accountNumber': 'account_number',
    'accountName': 'account_name',
}


def sees_full_record(requester: domain.Account, target_id: str) -> bool:
    return requester.is_privileged or requester.account_id == target_id


def project(requester: domain.Account,
            target: domain.Account) -> Dict[str, Any]:
    """Representation of ``target`` that ``requester`` is allowed to see."""
    data = target.to_json()
    if sees_full_record(requester, target.account_id):
        return data
    return {field: data[field] for field in RESTRICTED_FIELDS}


def writable_fields(requester: domain.Account, target_id: str) -> tuple:
    """
    Request fields ``requester`` may write on account ``target_id``.

    Raises
    ------
    :class:`NotAuthorized`
        The requester is neither privileged nor the owner.

    """
    if requester.is_privileged:
        return PRIVILEGED_WRITABLE
    if requester.account_id == target_id:
        return OWNER_WRITABLE
    raise NotAuthorized('Cannot update another account')


def filter_updates(requester: domain.Account, target_id: str,
                   updates: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Reduce a requested update to what ``requester`` may write.

    Fields outside the requester's allow-list are dropped, not rejected.
    The result is keyed by account field name, ready for
    :func:`.accounts.update`.

    Raises
    ------
    :class:`NotAuthorized`
    :class:`ValueError`
        An allowed field has a value of the wrong shape.

    """
    allowed = writable_fields(requester, target_id)
    cleaned: Dict[str, Any] = {}
    for field, value in updates.items():
        if field not in allowed:
            logger.debug('Dropping %s from update by %s', field,
                         requester.account_id)
            continue
        cleaned[FIELD_NAMES[field]] = _validate(field, value)
    return cleaned


def _validate(field: str, value: Any) -> Any:
    if field == 'zointsBalance':
        if isinstance(value, bool) or not isinstance(value, int) \
                or value < 0:
            raise ValueError('zointsBalance must be a non-negative integer')
        return value
    if field == 'isActive':
        if not isinstance(value, bool):
            raise ValueError('isActive must be a boolean')
        return value
    if field == 'role':
        if value not in Roles.ALL:
            raise ValueError(f'Unknown role: {value}')
        return value
    if field == 'bankDetails':
        if not isinstance(value, Mapping):
            raise ValueError('bankDetails must be an object')
        bank = {BANK_FIELDS[key]: val for key, val in value.items()
                if key in BANK_FIELDS}
        for val in bank.values():
            if val is not None and not isinstance(val, str):
                raise ValueError('bankDetails values must be strings')
        return bank
    if field == 'name' and not value:
        raise ValueError('name cannot be empty')
    if value is not None and not isinstance(value, str):
        raise ValueError(f'{field} must be a string')
    return value
