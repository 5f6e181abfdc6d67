"""Provide methods for working with accounts (the credential store)."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError

from .. import domain
from . import cipher, passwords, util
from .exceptions import EmailAlreadyRegistered, NoSuchAccount, Unavailable
from .models import DBAccount

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = ('name', 'phone', 'avatar', 'gender', 'address', 'industry',
                  'esg_score', 'role', 'is_active', 'balance')
"""Columns that :func:`update` writes directly, besides bank details."""

PROFILE_FIELDS = ('phone', 'gender', 'address', 'industry', 'esg_score')
"""Optional columns accepted by :func:`create`."""


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively."""
    return (email or '').strip().lower()


def default_avatar(account_id: str) -> str:
    return f'https://i.pravatar.cc/150?u={account_id}'


def to_domain(db_account: DBAccount) -> domain.Account:
    """Build a :class:`.domain.Account`, decrypting the bank fields."""
    return domain.Account(
        account_id=db_account.account_id,
        email=db_account.email,
        name=db_account.name,
        role=db_account.role,
        phone=db_account.phone,
        avatar=db_account.avatar,
        balance=int(db_account.balance or 0),
        total_recycled_kg=float(db_account.total_recycled_kg or 0),
        is_active=bool(db_account.is_active),
        bank=domain.BankDetails(
            bank_name=db_account.bank_name,
            account_number=cipher.decrypt(db_account.account_number),
            account_name=db_account.account_name
        ),
        gender=db_account.gender,
        address=db_account.address,
        industry=db_account.industry,
        esg_score=db_account.esg_score,
        created_at=util.from_epoch(db_account.created_at)
        if db_account.created_at else None
    )


def email_exists(email: str) -> bool:
    """
    Determine whether an account with a particular address already exists.

    Parameters
    ----------
    email : str

    Returns
    -------
    bool

    """
    try:
        with util.transaction() as session:
            data = session.query(DBAccount.account_id) \
                .filter(DBAccount.email == normalize_email(email)) \
                .first()
    except OperationalError as e:
        raise Unavailable('Database is temporarily unavailable') from e
    return bool(data)


def find_by_email(email: str) -> Optional[domain.Account]:
    """Load an account by email address, or ``None``."""
    try:
        with util.transaction() as session:
            db_account = session.query(DBAccount) \
                .filter(DBAccount.email == normalize_email(email)) \
                .first()
            if db_account is None:
                return None
            return to_domain(db_account)
    except OperationalError as e:
        raise Unavailable('Database is temporarily unavailable') from e


def find_by_id(account_id: str) -> Optional[domain.Account]:
    """Load an account by id, or ``None``."""
    try:
        with util.transaction() as session:
            db_account = session.get(DBAccount, account_id)
            if db_account is None:
                return None
            return to_domain(db_account)
    except OperationalError as e:
        raise Unavailable('Database is temporarily unavailable') from e


def get_account(account_id: str) -> domain.Account:
    """Load an account by id."""
    account = find_by_id(account_id)
    if account is None:
        raise NoSuchAccount('Account does not exist')
    return account


def list_accounts() -> List[domain.Account]:
    """Load every account, newest first."""
    with util.transaction() as session:
        rows = session.query(DBAccount) \
            .order_by(DBAccount.created_at.desc()) \
            .all()
        return [to_domain(db_account) for db_account in rows]


def create(email: str, name: str, role: str, password: Optional[str] = None,
           **profile: Any) -> domain.Account:
    """
    Create a new account.

    Parameters
    ----------
    email : str
    name : str
    role : str
        One of :attr:`.domain.Roles.ALL`.
    password : str or None
        If omitted, the account cannot log in until a password is set
        through password reset.
    profile
        Optional ``phone``, ``avatar``, ``gender``, ``address``,
        ``industry``, ``esg_score``, and ``bank`` (:class:`.BankDetails`).

    Raises
    ------
    :class:`EmailAlreadyRegistered`

    """
    if role not in domain.Roles.ALL:
        raise ValueError(f'Unknown role: {role}')
    email = normalize_email(email)
    account_id = util.new_id()
    bank: domain.BankDetails = profile.pop('bank', None) or domain.BankDetails()
    db_account = DBAccount(
        account_id=account_id,
        email=email,
        name=name,
        role=role,
        password_hash=passwords.hash_password(password) if password else None,
        balance=0,
        total_recycled_kg=0.0,
        is_active=True,
        avatar=profile.pop('avatar', None) or default_avatar(account_id),
        bank_name=bank.bank_name,
        account_number=cipher.encrypt(bank.account_number),
        account_name=bank.account_name,
        created_at=util.now(),
        **{k: v for k, v in profile.items() if k in PROFILE_FIELDS}
    )
    try:
        with util.transaction() as session:
            if session.query(DBAccount.account_id) \
                    .filter(DBAccount.email == email).first():
                raise EmailAlreadyRegistered('Email is already registered')
            session.add(db_account)
            session.flush()
    except IntegrityError as e:
        raise EmailAlreadyRegistered('Email is already registered') from e
    logger.info('Created %s account %s', role, account_id)
    return to_domain(db_account)


def update(account_id: str, updates: Dict[str, Any]) -> domain.Account:
    """
    Apply a partial update to an account.

    ``updates`` uses domain field names, and must already have been filtered
    for what the requester may change. ``bank`` may be a
    :class:`.BankDetails` or a dict of its fields; the account number is
    encrypted before it is stored.
    """
    with util.transaction() as session:
        db_account = session.get(DBAccount, account_id)
        if db_account is None:
            raise NoSuchAccount('Account does not exist')
        for field, value in updates.items():
            if field == 'bank':
                _update_bank(db_account, value)
            elif field in MUTABLE_FIELDS:
                _update_field_if_changed(db_account, field, value)
            else:
                raise ValueError(f'Field {field} cannot be updated')
        session.add(db_account)
        session.flush()
        return to_domain(db_account)


def set_password(account_id: str, password: str) -> None:
    """Replace an account's password hash."""
    with util.transaction() as session:
        db_account = session.get(DBAccount, account_id)
        if db_account is None:
            raise NoSuchAccount('Account does not exist')
        db_account.password_hash = passwords.hash_password(password)
        session.add(db_account)


def _update_bank(db_account: DBAccount, bank: Any) -> None:
    if isinstance(bank, domain.BankDetails):
        bank = bank._asdict()
    if 'bank_name' in bank:
        _update_field_if_changed(db_account, 'bank_name', bank['bank_name'])
    if 'account_name' in bank:
        _update_field_if_changed(db_account, 'account_name',
                                 bank['account_name'])
    if 'account_number' in bank:
        db_account.account_number = cipher.encrypt(bank['account_number'])


def _update_field_if_changed(obj: Any, field: Any, update_with: Any) -> None:
    if getattr(obj, field) != update_with:
        setattr(obj, field, update_with)
