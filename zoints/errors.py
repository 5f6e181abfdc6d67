"""
HTTP exceptions for each kind of failure the API reports.

Every exception carries a ``kind``, which is what clients see in the
``error`` field of the response body. Anything that is not one of these (or
another :class:`HTTPException`) is reported as ``Internal``.
"""

import logging
from typing import Tuple

from flask import Flask, jsonify, Response
from werkzeug import exceptions

from http import HTTPStatus as status

logger = logging.getLogger(__name__)


class InvalidCredentials(exceptions.Unauthorized):
    kind = 'InvalidCredentials'
    description = 'Invalid email or password'


class Unauthorized(exceptions.Unauthorized):
    kind = 'Unauthorized'
    description = 'Not a valid session'


class Forbidden(exceptions.Forbidden):
    kind = 'Forbidden'
    description = 'Access denied'


class NotFound(exceptions.NotFound):
    kind = 'NotFound'


class Conflict(exceptions.Conflict):
    kind = 'Conflict'


class InvalidOrExpiredCode(exceptions.BadRequest):
    kind = 'InvalidOrExpiredCode'
    description = 'Invalid or expired code'


class BadRequest(exceptions.BadRequest):
    kind = 'BadRequest'


class InsufficientFunds(exceptions.UnprocessableEntity):
    kind = 'InsufficientFunds'
    description = 'Insufficient balance'


class RateLimited(exceptions.TooManyRequests):
    kind = 'RateLimited'
    description = 'Too many requests, please try again later'


class ServiceUnavailable(exceptions.ServiceUnavailable):
    kind = 'ServiceUnavailable'


class Internal(exceptions.InternalServerError):
    kind = 'Internal'
    description = 'Internal server error'


def handle_http_exception(error: exceptions.HTTPException) \
        -> Tuple[Response, int]:
    """Render an HTTP exception as ``{"error": kind, "reason": ...}``."""
    kind = getattr(error, 'kind', type(error).__name__)
    code = error.code or status.INTERNAL_SERVER_ERROR
    if code >= status.INTERNAL_SERVER_ERROR:
        logger.error('%s: %s', kind, error.description)
    else:
        logger.debug('%s: %s', kind, error.description)
    response = jsonify({'error': kind, 'reason': error.description})
    if code == status.UNAUTHORIZED:
        response.headers['WWW-Authenticate'] = 'Bearer'
    return response, code


def handle_unexpected(error: Exception) -> Tuple[Response, int]:
    """Log the failure, and tell the caller nothing about it."""
    if isinstance(error, exceptions.HTTPException):
        return handle_http_exception(error)
    logger.exception('Unhandled exception: %s', type(error).__name__)
    return handle_http_exception(Internal())


def register_error_handlers(app: Flask) -> None:
    """Render every error raised by a request as JSON."""
    app.register_error_handler(exceptions.HTTPException,
                               handle_http_exception)
    app.register_error_handler(Exception, handle_unexpected)
