"""Exceptions for session tokens and access decisions."""


class InvalidToken(ValueError):
    """Token in request isn't valid."""


class ExpiredToken(InvalidToken):
    """Token has expired."""


class NotAuthorized(RuntimeError):
    """The requester may not perform this action on the target account."""
