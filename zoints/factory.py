"""Application factory for the Zoints API."""

from typing import Any, Mapping, Optional

from flask import Flask

from . import config as default_config
from .app_logging import setup_logger
from .auth import Auth
from .errors import register_error_handlers
from .routes import api
from .services import util
from .services.ratelimit import RateLimiter


def create_web_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Initialize and configure the Zoints application.

    Parameters
    ----------
    config : mapping
        Overrides for :mod:`zoints.config`.

    """
    app = Flask('zoints')
    app.config.from_object(default_config)
    if config:
        app.config.update(config)

    setup_logger(app.config['LOGLEVEL'])
    util.init_app(app)
    RateLimiter.init_app(app)
    Auth(app)   # Handles sessions and authn/z.
    app.register_blueprint(api.blueprint)
    register_error_handlers(app)

    if app.config['CREATE_DB']:
        with app.app_context():
            util.create_all()
    return app
