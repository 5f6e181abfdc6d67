"""Web Server Gateway Interface entry-point."""

import os

__flask_app__ = None


def application(environ, start_response):    # type: ignore
    """WSGI application."""
    for key, value in environ.items():
        # Only string values are configuration; the rest is server state
        # like ``wsgi.input``.
        if key == 'SERVER_NAME' or not isinstance(value, str):
            continue
        os.environ[key] = value

    global __flask_app__
    if __flask_app__ is None:
        # Imported here so that zoints.config sees the environ copied above.
        from zoints.factory import create_web_app
        __flask_app__ = create_web_app()
    return __flask_app__(environ, start_response)
