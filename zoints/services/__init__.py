"""
Stateful services behind the dispatcher.

Everything that reads or writes the relational store or the counter store
lives here: accounts and credentials, the field cipher, one-time passcodes,
the rate limiter, the balance ledger, and the system configuration row.
Services raise the exceptions in :mod:`.exceptions`; translating them into
responses is the job of :mod:`zoints.controllers`.
"""

from .util import init_app, create_all, drop_all, current_session, \
    transaction, is_available
