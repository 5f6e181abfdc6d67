"""Provides tools for working with authenticated sessions."""

import logging
from typing import Optional

from flask import Flask, request

from . import access, decorators, tokens
from .exceptions import ExpiredToken, InvalidToken
from .. import domain
from ..services import util

logger = logging.getLogger(__name__)


class Auth(object):
    """
    Attaches session information to the request.

    Intended for use in a Flask application factory, for example:

    .. code-block:: python

       from flask import Flask
       from zoints.auth import Auth
       from zoints.routes import api


       def create_web_app() -> Flask:
          app = Flask('zoints')
          app.config.from_object(config)
          Auth(app)
          app.register_blueprint(api.blueprint)
          return app

    A bearer token in the ``Authorization`` header is verified and its claims
    attached as ``request.auth``. A missing, malformed or expired token
    leaves ``request.auth`` as ``None``; routes that need a session reject
    the request through :func:`.decorators.scoped`.
    """

    def __init__(self, app: Optional[Flask] = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Attach :meth:`.load_session` to the Flask app.

        Parameters
        ----------
        app : :class:`Flask`

        """
        self.app = app
        self.app.before_request(self.load_session)

        @self.app.teardown_request
        def teardown_request(exception: Optional[BaseException]) -> None:
            if exception:
                util.current_session().rollback()

    @staticmethod
    def get_token() -> Optional[str]:
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        if scheme.lower() != 'bearer' or not token.strip():
            return None
        return token.strip()

    def load_session(self) -> None:
        """Look for a valid session token, and attach it to the request."""
        session: Optional[domain.Session] = None
        token = self.get_token()
        if token is not None:
            try:
                session = tokens.decode(token, self.app.config['JWT_SECRET'])
            except ExpiredToken:
                logger.debug('Session token has expired')
            except InvalidToken as e:
                logger.debug('Session token is not valid: %s', e)
        request.auth = session
