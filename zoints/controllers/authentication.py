"""
Controllers for logging in, registration, and password recovery.

A successful login issues a signed session token that the client sends back
as a bearer token. Every flow that changes a credential first proves control
of the email address with a one-time passcode, which is consumed in the same
transaction as the change it authorizes.
"""

import logging
from typing import Any, Dict, Mapping

from flask import current_app
from retry import retry
from wtforms import Form, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp

from http import HTTPStatus as status

from .. import domain
from ..auth import tokens
from ..domain import Purposes, Roles
from ..errors import Conflict, Internal, InvalidCredentials, \
    InvalidOrExpiredCode, ServiceUnavailable
from ..services import accounts, mail, passcodes, sysconfig, util
from ..services.authenticate import authenticate
from ..services.exceptions import AuthenticationFailed, \
    EmailAlreadyRegistered, MailDeliveryFailed, Unavailable
from .util import ResponseData, validated

logger = logging.getLogger(__name__)

PASSWORD_LENGTH = Length(min=8, max=128,
                         message='Password must be 8 to 128 characters')
CODE_FORMAT = Regexp(r'^[0-9]{4,10}$', message='Code must be numeric')


class LoginForm(Form):
    """Log in form."""

    email = StringField('Email', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])


class EmailForm(Form):
    """Request a passcode."""

    email = StringField('Email', validators=[DataRequired(), Email()])
    name = StringField('Name', validators=[Optional()])


class RegistrationForm(Form):
    """Create an account with a signup passcode."""

    email = StringField('Email', validators=[DataRequired(), Email()])
    otp = StringField('Code', validators=[DataRequired(), CODE_FORMAT])
    password = PasswordField('Password',
                             validators=[DataRequired(), PASSWORD_LENGTH])
    name = StringField('Name', validators=[DataRequired(), Length(max=255)])
    role = SelectField('Role', choices=[(r, r) for r in Roles.SELF_SERVICE],
                       default=Roles.HOUSEHOLD)
    phone = StringField('Phone', validators=[Optional(), Length(max=50)])
    gender = StringField('Gender', validators=[Optional(), Length(max=50)])
    address = StringField('Address', validators=[Optional()])
    industry = StringField('Industry', validators=[Optional(),
                                                   Length(max=100)])


class ResetPasswordForm(Form):
    """Set a new password with a reset passcode."""

    email = StringField('Email', validators=[DataRequired()])
    otp = StringField('Code', validators=[DataRequired(), CODE_FORMAT])
    new_password = PasswordField('New password',
                                 validators=[DataRequired(), PASSWORD_LENGTH])


class CurrentPasswordForm(Form):
    current_password = PasswordField('Current password',
                                     validators=[DataRequired()])


class ChangePasswordForm(Form):
    otp = StringField('Code', validators=[DataRequired(), CODE_FORMAT])
    new_password = PasswordField('New password',
                                 validators=[DataRequired(), PASSWORD_LENGTH])


# These are broken out to add retry logic.
@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _do_authn(email: str, password: str) -> domain.Account:
    return authenticate(email=email, password=password)


def _start_session(account: domain.Account) -> Dict[str, Any]:
    config = current_app.config
    token, session = tokens.issue(account, config['JWT_SECRET'],
                                  int(config['SESSION_DURATION']))
    logger.debug('Started session for %s', account.account_id)
    return {'token': token, 'expiresIn': session.expires,
            'user': account.to_json()}


def _send(email: str, name: str, code: str, purpose: str) -> bool:
    try:
        return mail.send_passcode(email, name, code, purpose,
                                  passcodes.ttl_for(purpose))
    except MailDeliveryFailed as e:
        raise Internal('Failed to send email') from e


def login(payload: Mapping[str, Any]) -> ResponseData:
    """
    Log in with email and password.

    Returns
    -------
    dict
        The session ``token`` and the full ``user`` record.
    int
        Status code.
    dict
        Headers to add to the response.

    """
    form = validated(LoginForm, payload)
    try:
        account = _do_authn(form.email.data, form.password.data)
    except AuthenticationFailed as e:
        logger.debug('Authentication failed: %s', e)
        raise InvalidCredentials() from e

    if sysconfig.get_system_config().maintenance_mode \
            and not account.is_privileged:
        logger.info('Login by %s refused during maintenance',
                    account.account_id)
        raise ServiceUnavailable('System is under maintenance')
    return _start_session(account), status.OK, {}


def verify(account: domain.Account, session: domain.Session) -> ResponseData:
    """Echo the identity behind a valid session."""
    data = {'valid': True, 'userId': account.account_id,
            'role': account.role, 'expiresIn': session.expires}
    return data, status.OK, {}


def send_verification(payload: Mapping[str, Any]) -> ResponseData:
    """Email a signup passcode to an address that is not yet registered."""
    form = validated(EmailForm, payload)
    if not sysconfig.get_system_config().allow_registrations:
        raise ServiceUnavailable('Registrations are currently closed')
    email = accounts.normalize_email(form.email.data)
    if accounts.email_exists(email):
        raise Conflict('Email is already registered')
    code = passcodes.issue(email, Purposes.SIGNUP)
    simulated = _send(email, form.name.data, code, Purposes.SIGNUP)
    return {'message': 'Verification code sent', 'simulated': simulated}, \
        status.OK, {}


def register(payload: Mapping[str, Any]) -> ResponseData:
    """
    Consume a signup passcode and create a household or organization.

    The passcode is only consumed if the account is created.
    """
    form = validated(RegistrationForm, payload)
    if not sysconfig.get_system_config().allow_registrations:
        raise ServiceUnavailable('Registrations are currently closed')
    email = accounts.normalize_email(form.email.data)
    role = form.role.data
    profile = {'phone': form.phone.data, 'gender': form.gender.data,
               'address': form.address.data}
    if role == Roles.ORGANIZATION:
        profile['industry'] = form.industry.data

    try:
        with util.transaction():
            if not passcodes.verify(email, Purposes.SIGNUP, form.otp.data):
                raise InvalidOrExpiredCode()
            account = accounts.create(email, form.name.data, role,
                                      password=form.password.data, **profile)
    except EmailAlreadyRegistered as e:
        raise Conflict('Email is already registered') from e
    return _start_session(account), status.CREATED, {}


def forgot_password(payload: Mapping[str, Any]) -> ResponseData:
    """
    Email a reset passcode, if the address belongs to an account.

    The response is the same whether or not it does.
    """
    form = validated(EmailForm, payload)
    email = accounts.normalize_email(form.email.data)
    account = accounts.find_by_email(email)
    if account is None:
        logger.debug('Reset requested for unknown address')
        simulated = not mail.is_configured()
    else:
        code = passcodes.issue(email, Purposes.RESET)
        simulated = _send(email, account.name, code, Purposes.RESET)
    data = {'message': 'If an account exists for this email, '
                       'a reset code has been sent',
            'simulated': simulated}
    return data, status.OK, {}


def reset_password(payload: Mapping[str, Any]) -> ResponseData:
    """Consume a reset passcode and set a new password."""
    form = validated(ResetPasswordForm, {
        'email': payload.get('email'),
        'otp': payload.get('otp'),
        'new_password': payload.get('newPassword')
    })
    email = accounts.normalize_email(form.email.data)
    account = accounts.find_by_email(email)
    if account is None:
        raise InvalidOrExpiredCode()
    with util.transaction():
        if not passcodes.verify(email, Purposes.RESET, form.otp.data):
            raise InvalidOrExpiredCode()
        accounts.set_password(account.account_id, form.new_password.data)
    logger.info('Password reset for %s', account.account_id)
    return {'success': True}, status.OK, {}


def change_password_initiate(account: domain.Account,
                             payload: Mapping[str, Any]) -> ResponseData:
    """Check the current password, then email a change passcode."""
    form = validated(CurrentPasswordForm, {
        'current_password': payload.get('currentPassword')
    })
    try:
        _do_authn(account.email, form.current_password.data)
    except AuthenticationFailed as e:
        raise InvalidCredentials('Current password is incorrect') from e
    code = passcodes.issue(account.email, Purposes.CHANGE)
    simulated = _send(account.email, account.name, code, Purposes.CHANGE)
    return {'message': 'Verification code sent', 'simulated': simulated}, \
        status.OK, {}


def change_password_confirm(account: domain.Account,
                            payload: Mapping[str, Any]) -> ResponseData:
    """Consume a change passcode and set a new password."""
    form = validated(ChangePasswordForm, {
        'otp': payload.get('otp'),
        'new_password': payload.get('newPassword')
    })
    with util.transaction():
        if not passcodes.verify(account.email, Purposes.CHANGE,
                                form.otp.data):
            raise InvalidOrExpiredCode()
        accounts.set_password(account.account_id, form.new_password.data)
    logger.info('Password changed for %s', account.account_id)
    return {'success': True}, status.OK, {}


class LoginForm(Form):
    """Log in form."""

    email = StringField('Email', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])


class EmailForm(Form):
    """Request a passcode."""

    email = StringField('Email', validators=[DataRequired(), Email()])
    name = StringField('Name', validators=[Optional()])


class RegistrationForm(Form):
    """Create an account with a signup passcode."""

    email = StringField('Email', validators=[DataRequired(), Email()])
    otp = StringField('Code', validators=[DataRequired(), CODE_FORMAT])
    password = PasswordField('Password',
                             validators=[DataRequired(), PASSWORD_LENGTH])
    name = StringField('Name', validators=[DataRequired(), Length(max=255)])
    role = SelectField('Role', choices=[(r, r) for r in Roles.SELF_SERVICE],
                       default=Roles.HOUSEHOLD)
    phone = StringField('Phone', validators=[Optional(), Length(max=50)])
    gender = StringField('Gender', validators=[Optional(), Length(max=50)])
    address = StringField('Address', validators=[Optional()])
    industry = StringField('Industry', validators=[Optional(),
                                                   Length(max=100)])


class ResetPasswordForm(Form):
    """Set a new password with a reset passcode."""

    email = StringField('Email', validators=[DataRequired()])
    otp = StringField('Code', validators=[DataRequired(), CODE_FORMAT])
    new_password = PasswordField('New password',
                                 validators=[DataRequired(), PASSWORD_LENGTH])


class CurrentPasswordForm(Form):
    current_password = PasswordField('Current password',
                                     validators=[DataRequired()])


class ChangePasswordForm(Form):
    otp = StringField('Code', validators=[DataRequired(), CODE_FORMAT])
    new_password = PasswordField('New password',
                                 validators=[DataRequired(), PASSWORD_LENGTH])


# These are broken out to add retry logic.
@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _do_authn(email: str, password: str) -> domain.Account:
    return authenticate(email=email, password=password)


def _start_session(account: domain.Account) -> Dict[str, Any]:
    config = current_app.config
    token, session = tokens.issue(account, config['JWT_SECRET'],
                                  int(config['SESSION_DURATION']))
    logger.debug('Started session for %s', account.account_id)
    return {'token': token, 'expiresIn': session.expires,
            'user': account.to_json()}


def _send(email: str, name: str, code: str, purpose: str) -> bool:
    try:
        return mail.send_passcode(email, name, code, purpose,
                                  passcodes.ttl_for(purpose))
    except MailDeliveryFailed as e:
        raise Internal('Failed to send email') from e


def login(payload: Mapping[str, Any]) -> ResponseData:
    """
    Log in with email and password.

    Returns
    -------
    dict
        The session ``token`` and the full ``user`` record.
    int
        Status code.
    dict
        Headers to add to the response.

    """
    form = validated(LoginForm, payload)
    try:
        account = _do_authn(form.email.data, form.password.data)
    except AuthenticationFailed as e:
        logger.debug('Authentication failed: %s', e)
        raise InvalidCredentials() from e

    if sysconfig.get_system_config().maintenance_mode \
            and not account.is_privileged:
        logger.info('Login by %s refused during maintenance',
                    account.account_id)
        raise ServiceUnavailable('System is under maintenance')
    return _start_session(account), status.OK, {}


def verify(account: domain.Account, session: domain.Session) -> ResponseData:
    """Echo the identity behind a valid session."""
    data = {'valid': True, 'userId': account.account_id,
            'role': account.role, 'expiresIn': session.expires}
    return data, status.OK, {}


def send_verification(payload: Mapping[str, Any]) -> ResponseData:
    """Email a signup passcode to an address that is not yet registered."""
    form = validated(EmailForm, payload)
    if not sysconfig.get_system_config().allow_registrations:
        raise ServiceUnavailable('Registrations are currently closed')
    email = accounts.normalize_email(form.email.data)
    if accounts.email_exists(email):
        raise Conflict('Email is already registered')
    code = passcodes.issue(email, Purposes.SIGNUP)
    simulated = _send(email, form.name.data, code, Purposes.SIGNUP)
    return {'message': 'Verification code sent', 'simulated': simulated}, \
        status.OK, {}


def register(payload: Mapping[str, Any]) -> ResponseData:
    """
    Consume a signup passcode and create a household or organization.

    The passcode is only consumed if the account is created.
    """
    form = validated(RegistrationForm, payload)
    if not sysconfig.get_system_config().allow_registrations:
        raise ServiceUnavailable('Registrations are currently closed')
    email = accounts.normalize_email(form.email.data)
    role = form.role.data
    profile = {'phone': form.phone.data, 'gender': form.gender.data,
               'address': form.address.data}
    if role == Roles.ORGANIZATION:
        profile['industry'] = form.industry.data

    try:
        with util.transaction():
            if not passcodes.verify(email, Purposes.SIGNUP, form.otp.data):
                raise InvalidOrExpiredCode()
            account = accounts.create(email, form.name.data, role,
                                      password=form.password.data, **profile)
    except EmailAlreadyRegistered as e:
        raise Conflict('Email is already registered') from e
    return _start_session(account), status.CREATED, {}


def forgot_password(payload: Mapping[str, Any]) -> ResponseData:
    """
    Email a reset passcode, if the address belongs to an account.

    The response is the same whether or not it does.
    """
    form = validated(EmailForm, payload)
    email = accounts.normalize_email(form.email.data)
    account = accounts.find_by_email(email)
    if account is None:
        logger.debug('Reset requested for unknown address')
        simulated = not mail.is_configured()
    else:
        code = passcodes.issue(email, Purposes.RESET)
        simulated = _send(email, account.name, code, Purposes.RESET)
    data = {'message': 'If an account exists for this email, '
                       'a reset code has been sent',
            'simulated': simulated}
    return data, status.OK, {}


def reset_password(payload: Mapping[str, Any]) -> ResponseData:
    """Consume a reset passcode and set a new password."""
    form = validated(ResetPasswordForm, {
        'email': payload.get('email'),
        'otp': payload.get('otp'),
        'new_password': payload.get('newPassword')
    })
    email = accounts.normalize_email(form.email.data)
    account = accounts.find_by_email(email)
    if account is None:
        raise InvalidOrExpiredCode()
    with util.transaction():
        if not passcodes.verify(email, Purposes.RESET, form.otp.data):
            raise InvalidOrExpiredCode()
        accounts.set_password(account.account_id, form.new_password.data)
    logger.info('Password reset for %s', account.account_id)
    return {'success': True}, status.OK, {}


def change_password_initiate(account: domain.Account,
                             payload: Mapping[str, Any]) -> ResponseData:
    """Check the current password, then email a change passcode."""
    form = validated(CurrentPasswordForm, {
        'current_password': payload.get('currentPassword')
    })
    try:
        _do_authn(account.email, form.current_password.data)
    except AuthenticationFailed as e:
        raise InvalidCredentials('Current password is incorrect') from e
    code = passcodes.issue(account.email, Purposes.CHANGE)
    simulated = _send(account.email, account.name, code, Purposes.CHANGE)
    return {'message': 'Verification code sent', 'simulated': simulated}, \
        status.OK, {}


def change_password_confirm(account: domain.Account,
                            payload: Mapping[str, Any]) -> ResponseData:
    """Consume a change passcode and set a new password."""
    form = validated(ChangePasswordForm, {
        'otp': payload.get('otp'),
        'new_password': payload.get('newPassword')
    })
    with util.transaction():
        if not passcodes.verify(account.email, Purposes.CHANGE,
                                form.otp.data):
            raise InvalidOrExpiredCode()
        accounts.set_password(account.account_id, form.new_password.data)
    logger.info('Password changed for %s', account.account_id)
    return {'success': True}, status.OK, {}
