"""Defines account and ledger concepts for the Zoints service."""

from typing import Any, Dict, List, NamedTuple, Optional
from datetime import datetime

from pytz import UTC


class Roles:
    """Account roles."""

    HOUSEHOLD = 'HOUSEHOLD'
    ORGANIZATION = 'ORGANIZATION'
    COLLECTOR = 'COLLECTOR'
    STAFF = 'STAFF'
    ADMIN = 'ADMIN'

    ALL = (HOUSEHOLD, ORGANIZATION, COLLECTOR, STAFF, ADMIN)
    PRIVILEGED = (STAFF, ADMIN)
    """Roles that may see and administer every account."""

    SELF_SERVICE = (HOUSEHOLD, ORGANIZATION)
    """Roles that may be obtained through public registration."""


class Purposes:
    """What a one-time passcode proves email ownership for."""

    SIGNUP = 'signup'
    RESET = 'reset'
    CHANGE = 'change'

    ALL = (SIGNUP, RESET, CHANGE)


class PickupStatus:
    PENDING = 'Pending'
    ASSIGNED = 'Assigned'
    COMPLETED = 'Completed'
    MISSED = 'Missed'

    ALL = (PENDING, ASSIGNED, COMPLETED, MISSED)


class RedemptionStatus:
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'

    ALL = (PENDING, APPROVED, REJECTED)


class RedemptionType:
    CASH = 'Cash'
    CHARITY = 'Charity'

    ALL = (CASH, CHARITY)


def _isoformat(t: Optional[datetime]) -> Optional[str]:
    if t is None:
        return None
    if t.tzinfo is None:
        t = t.replace(tzinfo=UTC)
    return t.isoformat()


class BankDetails(NamedTuple):
    """Payout details. ``account_number`` is plaintext here."""

    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None

    def to_json(self) -> Dict[str, Optional[str]]:
        return {
            'bankName': self.bank_name,
            'accountNumber': self.account_number,
            'accountName': self.account_name
        }


class Account(NamedTuple):
    """An account, as seen by the service (never carries a password hash)."""

    account_id: str
    email: str
    name: str
    role: str
    phone: Optional[str] = None
    avatar: Optional[str] = None

    balance: int = 0
    """Zoints balance. Never negative."""

    total_recycled_kg: float = 0.0
    """Lifetime recycled weight. Only grows, through pickup completion."""

    is_active: bool = True
    """Suspended accounts cannot authenticate."""

    bank: BankDetails = BankDetails()
    gender: Optional[str] = None
    address: Optional[str] = None
    industry: Optional[str] = None
    """Organizations only."""

    esg_score: Optional[str] = None
    """Organizations only, set by admins."""

    created_at: Optional[datetime] = None

    @property
    def is_privileged(self) -> bool:
        """Staff and admins administer every account."""
        return self.role in Roles.PRIVILEGED

    def to_json(self) -> Dict[str, Any]:
        """Full representation, including contact and bank data."""
        return {
            'id': self.account_id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'phone': self.phone,
            'avatar': self.avatar,
            'zointsBalance': self.balance,
            'totalRecycledKg': self.total_recycled_kg,
            'isActive': self.is_active,
            'gender': self.gender,
            'address': self.address,
            'industry': self.industry,
            'esgScore': self.esg_score,
            'bankDetails': self.bank.to_json(),
            'createdAt': _isoformat(self.created_at)
        }


class Session(NamedTuple):
    """Claims carried by a verified session token."""

    account_id: str
    role: str
    email: str
    start_time: datetime
    end_time: datetime

    @property
    def expires(self) -> int:
        """Number of seconds until the session expires."""
        return int((self.end_time - datetime.now(tz=UTC)).total_seconds())


class CollectionItem(NamedTuple):
    """One weighed category of a completed pickup."""

    category: str
    weight: float
    rate: float = 0.0
    earned: int = 0

    def to_json(self) -> Dict[str, Any]:
        return self._asdict()


class Pickup(NamedTuple):
    """A scheduled collection of recyclables from an account."""

    pickup_id: str
    account_id: str
    location: str
    status: str = PickupStatus.PENDING
    date: Optional[str] = None
    time: Optional[str] = None
    items: Optional[str] = None
    contact: Optional[str] = None
    phone_number: Optional[str] = None
    waste_image: Optional[str] = None
    driver: Optional[str] = None
    """Account id of the assigned collector."""

    weight: float = 0.0
    earned_zoints: int = 0
    collection_details: List[CollectionItem] = []
    created_at: Optional[datetime] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.pickup_id,
            'userId': self.account_id,
            'location': self.location,
            'status': self.status,
            'date': self.date,
            'time': self.time,
            'items': self.items,
            'contact': self.contact,
            'phoneNumber': self.phone_number,
            'wasteImage': self.waste_image,
            'driver': self.driver,
            'weight': self.weight,
            'earnedZoints': self.earned_zoints,
            'collectionDetails': [i.to_json() for i in self.collection_details],
            'createdAt': _isoformat(self.created_at)
        }


class Redemption(NamedTuple):
    """A request to withdraw zoints, debited at request time."""

    redemption_id: str
    account_id: str
    user_name: str
    kind: str
    amount: int
    status: str = RedemptionStatus.PENDING
    created_at: Optional[datetime] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.redemption_id,
            'userId': self.account_id,
            'userName': self.user_name,
            'type': self.kind,
            'amount': self.amount,
            'status': self.status,
            'date': _isoformat(self.created_at)
        }


class SystemConfig(NamedTuple):
    """Process-wide flags, read fresh from the store on every request."""

    maintenance_mode: bool = False
    allow_registrations: bool = True
    version: int = 1

    def to_json(self) -> Dict[str, Any]:
        return {
            'maintenanceMode': self.maintenance_mode,
            'allowRegistrations': self.allow_registrations,
            'version': self.version
        }
