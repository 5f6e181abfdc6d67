"""Relational models for accounts, passcodes and the ledger."""

from sqlalchemy import Boolean, CheckConstraint, Column, Float, ForeignKey, \
    Integer, JSON, String, Text, text
from sqlalchemy.orm import relationship
from flask_sqlalchemy import SQLAlchemy

db: SQLAlchemy = SQLAlchemy()


class DBAccount(db.Model):  # type: ignore
    """
    One row per account.

    +-------------------+--------------+------+-----+---------+
    | Field             | Type         | Null | Key | Default |
    +-------------------+--------------+------+-----+---------+
    | account_id        | varchar(36)  | NO   | PRI | NULL    |
    | email             | varchar(255) | NO   | UNI | NULL    |
    | password_hash     | text         | YES  |     | NULL    |
    | balance           | int(11)      | NO   |     | 0       |
    | account_number    | text         | YES  |     | NULL    |
    | is_active         | tinyint(1)   | NO   |     | 1       |
    +-------------------+--------------+------+-----+---------+

    ``account_number`` holds a cipher envelope, or plaintext for rows written
    before field encryption was introduced.
    """

    __tablename__ = 'accounts'
    __table_args__ = (
        CheckConstraint('balance >= 0', name='ck_accounts_balance'),
    )

    account_id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, index=True)
    phone = Column(String(50))
    avatar = Column(Text)
    password_hash = Column(Text, nullable=True)
    balance = Column(Integer, nullable=False, server_default=text("0"))
    total_recycled_kg = Column(Float, nullable=False, server_default=text("0"))
    is_active = Column(Boolean, nullable=False, server_default=text("1"))
    bank_name = Column(String(100))
    account_number = Column(Text)
    account_name = Column(String(255))
    gender = Column(String(50))
    address = Column(Text)
    industry = Column(String(100))
    esg_score = Column(String(10))
    created_at = Column(Integer, nullable=False, server_default=text("0"))
    """Epoch time."""


class DBPasscode(db.Model):  # type: ignore
    """One live passcode per (email, purpose); a new issue overwrites it."""

    __tablename__ = 'passcodes'

    email = Column(String(255), primary_key=True)
    purpose = Column(String(16), primary_key=True)
    code = Column(String(10), nullable=False)
    expires_at = Column(Integer, nullable=False)
    """Epoch time."""


class DBPickup(db.Model):  # type: ignore
    """A scheduled collection."""

    __tablename__ = 'pickups'

    pickup_id = Column(String(36), primary_key=True)
    account_id = Column(ForeignKey('accounts.account_id'), nullable=False,
                        index=True)
    location = Column(Text, nullable=False)
    time = Column(String(50))
    date = Column(String(50))
    items = Column(Text)
    status = Column(String(50), nullable=False, server_default=text("'Pending'"))
    contact = Column(String(255))
    phone_number = Column(String(50))
    waste_image = Column(Text)
    driver = Column(ForeignKey('accounts.account_id'), nullable=True,
                    index=True)
    weight = Column(Float, nullable=False, server_default=text("0"))
    earned_zoints = Column(Integer, nullable=False, server_default=text("0"))
    collection_details = Column(JSON)
    created_at = Column(Integer, nullable=False, server_default=text("0"))

    account = relationship('DBAccount', foreign_keys=[account_id])


class DBPickupCredit(db.Model):  # type: ignore
    """
    Processed-marker for pickup payouts.

    The primary key guarantees that a pickup is credited at most once.
    """

    __tablename__ = 'pickup_credits'

    pickup_id = Column(ForeignKey('pickups.pickup_id'), primary_key=True)
    account_id = Column(ForeignKey('accounts.account_id'), nullable=False)
    amount = Column(Integer, nullable=False)
    credited_at = Column(Integer, nullable=False)


class DBRedemption(db.Model):  # type: ignore
    """A withdrawal request. The balance is debited when it is created."""

    __tablename__ = 'redemptions'
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_redemptions_amount'),
    )

    redemption_id = Column(String(36), primary_key=True)
    account_id = Column(ForeignKey('accounts.account_id'), nullable=False,
                        index=True)
    user_name = Column(String(255))
    kind = Column('type', String(50), nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String(50), nullable=False, server_default=text("'Pending'"))
    created_at = Column(Integer, nullable=False, server_default=text("0"))
    decided_at = Column(Integer, nullable=True)
    decided_by = Column(String(36), nullable=True)


class DBSystemConfig(db.Model):  # type: ignore
    """Single-row table of process-wide flags."""

    __tablename__ = 'system_config'

    SINGLETON = 1

    config_id = Column('id', Integer, primary_key=True)
    maintenance_mode = Column(Boolean, nullable=False, server_default=text("0"))
    allow_registrations = Column(Boolean, nullable=False,
                                 server_default=text("1"))
    version = Column(Integer, nullable=False, server_default=text("1"))


class DBWasteRate(db.Model):  # type: ignore
    """Zoints paid per kilogram, by waste category."""

    __tablename__ = 'waste_rates'

    DEFAULTS = [
        ('Plastic', 15.0, 1.5),
        ('Paper', 5.0, 0.9),
        ('Metal', 40.0, 5.0),
        ('Glass', 10.0, 0.3),
        ('Electronics', 100.0, 10.0),
        ('Organic', 2.0, 0.1)
    ]

    category = Column(String(100), primary_key=True)
    rate = Column(Float, nullable=False)
    co2_saved_per_kg = Column(Float, nullable=False, server_default=text("0"))
