"""Controllers for reading, creating and updating accounts."""

import logging
from typing import Any, Mapping

from wtforms import Form, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional

from http import HTTPStatus as status

from .. import domain
from ..auth import access
from ..auth.exceptions import NotAuthorized
from ..domain import Roles
from ..errors import BadRequest, Conflict, Forbidden, NotFound
from ..services import accounts
from ..services.exceptions import EmailAlreadyRegistered, NoSuchAccount
from .util import ResponseData, payload_of, require_string, validated

logger = logging.getLogger(__name__)


class CreateAccountForm(Form):
    """Administrative account creation; any role, password set directly."""

    email = StringField('Email', validators=[DataRequired(), Email()])
    name = StringField('Name', validators=[DataRequired(), Length(max=255)])
    role = SelectField('Role', choices=[(r, r) for r in Roles.ALL])
    password = PasswordField('Password', validators=[Optional(),
                                                     Length(min=8, max=128)])
    phone = StringField('Phone', validators=[Optional(), Length(max=50)])


def list_users(requester: domain.Account) -> ResponseData:
    """Every account, each projected for the requester."""
    users = [access.project(requester, account)
             for account in accounts.list_accounts()]
    return {'users': users}, status.OK, {}


def get_user(requester: domain.Account, user_id: str) -> ResponseData:
    account = accounts.find_by_id(user_id)
    if account is None:
        raise NotFound('No such user')
    return {'user': access.project(requester, account)}, status.OK, {}


def create_user(requester: domain.Account,
                payload: Mapping[str, Any]) -> ResponseData:
    """Create an account of any role on behalf of an administrator."""
    form = validated(CreateAccountForm, payload)
    try:
        account = accounts.create(form.email.data, form.name.data,
                                  form.role.data,
                                  password=form.password.data or None,
                                  phone=form.phone.data or None)
    except EmailAlreadyRegistered as e:
        raise Conflict('Email is already registered') from e
    logger.info('%s created %s account %s', requester.account_id,
                account.role, account.account_id)
    return {'user': account.to_json()}, status.CREATED, {}


def update_user(requester: domain.Account,
                payload: Mapping[str, Any]) -> ResponseData:
    """
    Apply ``{"id": ..., "updates": {...}}`` as far as the requester may.

    Fields the requester may not write are dropped. Updating someone else's
    account without staff or admin rights is forbidden.
    """
    target_id = require_string(payload, 'id')
    updates = payload_of(payload.get('updates'))
    try:
        cleaned = access.filter_updates(requester, target_id, updates)
    except NotAuthorized as e:
        raise Forbidden() from e
    except ValueError as e:
        raise BadRequest(str(e)) from e

    try:
        if cleaned:
            account = accounts.update(target_id, cleaned)
        else:
            account = accounts.get_account(target_id)
    except NoSuchAccount as e:
        raise NotFound('No such user') from e
    if cleaned:
        logger.info('%s updated %s on %s', requester.account_id,
                    ', '.join(sorted(cleaned)), target_id)
    return {'user': access.project(requester, account)}, status.OK, {}
