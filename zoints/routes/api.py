"""Routes for the Zoints JSON API."""

from typing import Any, Dict, Tuple

from flask import Blueprint, jsonify, request, Response

from ..auth.decorators import limited, scoped
from ..controllers import authentication, pickups, redemption, settings, \
    users
from ..controllers.util import payload_of
from ..domain import Roles

blueprint = Blueprint('api', __name__, url_prefix='')


def _json_payload() -> Dict[str, Any]:
    return payload_of(request.get_json(silent=True))


def _respond(data: Any, code: int, headers: Dict[str, str]) \
        -> Tuple[Response, int, Dict[str, str]]:
    return jsonify(data), code, headers


@blueprint.route('/health', methods=['GET'])
def health() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*settings.health())


@blueprint.route('/auth/login', methods=['POST'])
@limited('login')
def login() -> Tuple[Response, int, Dict[str, str]]:
    """Log in with email and password."""
    return _respond(*authentication.login(_json_payload()))


@blueprint.route('/auth/verify', methods=['GET'])
@scoped()
def verify() -> Tuple[Response, int, Dict[str, str]]:
    """Check the session token on the request."""
    return _respond(*authentication.verify(request.account, request.auth))


@blueprint.route('/auth/send-verification', methods=['POST'])
@limited('signup')
def send_verification() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*authentication.send_verification(_json_payload()))


@blueprint.route('/auth/register', methods=['POST'])
@limited('register')
def register() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*authentication.register(_json_payload()))


@blueprint.route('/auth/forgot-password', methods=['POST'])
@limited('reset')
def forgot_password() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*authentication.forgot_password(_json_payload()))


@blueprint.route('/auth/reset-password', methods=['POST'])
@limited('reset')
def reset_password() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*authentication.reset_password(_json_payload()))


@blueprint.route('/auth/change-password/initiate', methods=['POST'])
@scoped()
@limited('change-password')
def change_password_initiate() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*authentication.change_password_initiate(
        request.account, _json_payload()))


@blueprint.route('/auth/change-password/confirm', methods=['POST'])
@scoped()
@limited('change-password')
def change_password_confirm() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*authentication.change_password_confirm(
        request.account, _json_payload()))


@blueprint.route('/users', methods=['GET'])
@scoped()
def list_users() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*users.list_users(request.account))


@blueprint.route('/users', methods=['POST'])
@scoped(roles=[Roles.ADMIN])
def create_user() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*users.create_user(request.account, _json_payload()))


@blueprint.route('/users', methods=['PUT'])
@scoped()
def update_user() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*users.update_user(request.account, _json_payload()))


@blueprint.route('/users/<string:user_id>', methods=['GET'])
@scoped()
def get_user(user_id: str) -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*users.get_user(request.account, user_id))


@blueprint.route('/pickups', methods=['GET'])
@scoped()
def list_pickups() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*pickups.list_pickups(request.account))


@blueprint.route('/pickups', methods=['POST'])
@scoped(roles=[Roles.HOUSEHOLD, Roles.ORGANIZATION, Roles.STAFF,
               Roles.ADMIN])
def create_pickup() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*pickups.create_pickup(request.account, _json_payload()))


@blueprint.route('/pickups', methods=['PUT'])
@scoped(roles=[Roles.COLLECTOR, Roles.STAFF, Roles.ADMIN])
def update_pickup() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*pickups.update_pickup(request.account, _json_payload()))


@blueprint.route('/redemption', methods=['GET'])
@scoped()
def list_redemptions() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*redemption.list_redemptions(request.account))


@blueprint.route('/redemption', methods=['POST'])
@scoped()
def create_redemption() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*redemption.create_redemption(request.account,
                                                  _json_payload()))


@blueprint.route('/redemption', methods=['PUT'])
@scoped(roles=Roles.PRIVILEGED)
def update_redemption() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*redemption.update_redemption(request.account,
                                                  _json_payload()))


@blueprint.route('/config', methods=['GET'])
def get_config() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*settings.get_config())


@blueprint.route('/config/update', methods=['POST'])
@scoped(roles=[Roles.ADMIN])
def update_config() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*settings.update_config(_json_payload()))


@blueprint.route('/rates/update', methods=['POST'])
@scoped(roles=[Roles.ADMIN])
def update_rates() -> Tuple[Response, int, Dict[str, str]]:
    return _respond(*settings.update_rates(_json_payload()))
