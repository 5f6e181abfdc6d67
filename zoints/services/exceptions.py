"""Exceptions."""


class Unavailable(RuntimeError):
    """The relational store could not be reached."""


class NoSuchAccount(RuntimeError):
    """Account does not exist."""


class AuthenticationFailed(RuntimeError):
    """Failed to authenticate account with provided credentials."""


class PasswordAuthenticationFailed(RuntimeError):
    """Password is not correct."""


class EmailAlreadyRegistered(RuntimeError):
    """An account with this email already exists."""


class CipherError(RuntimeError):
    """A stored envelope could not be decrypted."""


class InsufficientFunds(RuntimeError):
    """The debit would drive the balance negative."""


class NoSuchPickup(RuntimeError):
    """Pickup does not exist."""


class NoSuchRedemption(RuntimeError):
    """Redemption request does not exist."""


class InvalidTransition(RuntimeError):
    """The record is not in a state that permits this change."""


class MailDeliveryFailed(RuntimeError):
    """The passcode email could not be sent."""
