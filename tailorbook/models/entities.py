"""
Core Data Models for TailorBook

These models define the schemas for every record kept in the shared
backend store: users, customers, orders, expenses, workers, worker
payments and accounts, plus the business settings singleton.

DESIGN DECISION: Stored documents are tolerated, not trusted.
Anything an older client may have written (missing lists, numeric ids,
date-only strings, legacy payment labels) is defaulted on load instead of
crashing the session. Unknown keys survive a load/save round trip.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional, Union
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
)

from tailorbook.models.common import (
    Money,
    OptionalDate,
    OptionalTimestamp,
    RecordId,
    StoredRecord,
    StringMap,
    Timestamp,
    list_or_empty,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class OrderStatus(str, Enum):
    """
    Production stages of an order.

    Listed in workflow order, but any stage may be set from any other.
    """
    BOOKED = "Booked"
    CUTTING = "Cutting"
    STITCHING = "Stitching"
    READY = "Ready"
    DELIVERED = "Delivered"


class PaymentSource(str, Enum):
    """How an order payment was taken."""
    ADVANCE = "Advance"
    PARTIAL = "Partial"


class AccountType(str, Enum):
    """Kinds of money pool."""
    CASH = "Cash"
    BANK = "Bank"
    MOBILE_WALLET = "Mobile Wallet"


class AssignmentRole(str, Enum):
    """Piece-work roles that can be assigned on an order."""
    CUTTER = "cutter"
    STITCHER = "stitcher"


def new_record_id(prefix: str) -> str:
    """Collision-resistant record id with a readable prefix."""
    return f"{prefix}-{uuid4().hex[:12]}"


# =============================================================================
# PEOPLE
# =============================================================================

class User(StoredRecord):
    """
    A login account.

    `permissions` empty means "no custom permissions": the role table
    applies. `password_hash` is only ever read by the auth service.
    """
    id: RecordId = Field(default_factory=lambda: new_record_id("U"))
    username: str = Field(..., min_length=1, max_length=64)
    password_hash: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("passwordHash", "password_hash", "password"),
        serialization_alias="passwordHash",
    )
    name: str = Field(..., min_length=1, max_length=255)
    role: str = Field(default="Staff", max_length=64)
    permissions: Annotated[list[str], BeforeValidator(list_or_empty)] = Field(
        default_factory=list
    )
    active: bool = True
    last_login: OptionalTimestamp = None


class MeasurementProfile(BaseModel):
    """One measured person under a customer record (e.g. a family member)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", str_strip_whitespace=True)

    name: str = Field(default="Default", max_length=120)
    measurement_data: StringMap = Field(
        default_factory=dict,
        validation_alias=AliasChoices("measurementData", "measurement_data", "data"),
        serialization_alias="measurementData",
    )
    styling_note: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("stylingNote", "styling_note", "styling"),
        serialization_alias="stylingNote",
    )


class Customer(StoredRecord):
    """A customer with any number of measurement profiles."""
    id: RecordId = Field(default_factory=lambda: new_record_id("C"))
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(default="", max_length=32)
    date_added: OptionalDate = None
    profiles: Annotated[list[MeasurementProfile], BeforeValidator(list_or_empty)] = Field(
        default_factory=list
    )


class Worker(StoredRecord):
    """A piece-rate worker (cutter, stitcher, ...)."""
    id: RecordId = Field(default_factory=lambda: new_record_id("W"))
    name: str = Field(..., min_length=1, max_length=255)
    roles: Annotated[list[str], BeforeValidator(list_or_empty)] = Field(default_factory=list)
    rate_per_suit: Money = Field(default=0)


# =============================================================================
# ORDERS
# =============================================================================

class OrderItem(StoredRecord):
    """A billed garment line."""
    type: str = Field(
        default="",
        validation_alias=AliasChoices("type", "name"),
        serialization_alias="type",
    )
    price: Money = Field(default=0)
    qty: int = Field(default=1, ge=0)
    note: Optional[str] = None


class Payment(StoredRecord):
    """
    Money received against an order.

    `mode` is the label older data used before payments carried an
    account id; the ledger still honours it.
    """
    date: OptionalTimestamp = None
    amount: Money = Field(default=0)
    source: Optional[Union[PaymentSource, str]] = Field(
        default=None, union_mode="left_to_right"
    )
    account_id: Optional[RecordId] = None
    mode: Optional[str] = None


class Assignments(StoredRecord):
    """Who cuts and who stitches an order, at what piece rate."""
    cutter: Optional[str] = None
    stitcher: Optional[str] = None
    cutter_rate: Money = Field(default=0)
    stitcher_rate: Money = Field(default=0)

    def worker_for(self, role: AssignmentRole) -> Optional[str]:
        return getattr(self, role.value)

    def rate_for(self, role: AssignmentRole) -> Money:
        return getattr(self, f"{role.value}_rate")


class OrderMeasurement(StoredRecord):
    """Measurements copied onto an order from a customer profile."""
    profile_name: str = ""
    measurements: StringMap = Field(default_factory=dict)
    styling: Optional[str] = None


def _assignments_or_default(value):
    return {} if value is None else value


class Order(StoredRecord):
    """
    A garment-production job.

    `id` is collision resistant; `order_number` is the human readable
    ORD-<Mon>-<YY>-<NNNN> label shown to staff and customers.
    Records written before the label existed used the label as id.
    """
    id: RecordId = Field(default_factory=lambda: new_record_id("O"))
    order_number: Optional[str] = None
    customer_id: RecordId = ""
    customer_name: str = ""
    customer_phone: str = ""
    status: Union[OrderStatus, str] = Field(
        default=OrderStatus.BOOKED, union_mode="left_to_right"
    )
    items_list: Annotated[list[OrderItem], BeforeValidator(list_or_empty)] = Field(
        default_factory=list,
        validation_alias=AliasChoices("itemsList", "items_list", "items"),
        serialization_alias="itemsList",
    )
    total_price: Money = Field(default=0)
    date: Timestamp = Field(default_factory=datetime.now)
    delivery_date: OptionalDate = None
    payments: Annotated[list[Payment], BeforeValidator(list_or_empty)] = Field(
        default_factory=list
    )
    assignments: Annotated[Assignments, BeforeValidator(_assignments_or_default)] = Field(
        default_factory=Assignments
    )
    measurements: Annotated[list[OrderMeasurement], BeforeValidator(list_or_empty)] = Field(
        default_factory=list
    )

    @property
    def display_number(self) -> str:
        return self.order_number or self.id


# =============================================================================
# MONEY OUT & ACCOUNTS
# =============================================================================

class Expense(StoredRecord):
    """
    A shop expense paid out of an account.

    `created_by` is the user who logged it; own-scope expense visibility
    is based on it.
    """
    id: RecordId = Field(default_factory=lambda: new_record_id("E"))
    category: str = Field(default="Others", max_length=120)
    amount: Money = Field(default=0)
    date: Timestamp = Field(default_factory=datetime.now)
    account_id: Optional[RecordId] = None
    note: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("note", "description"),
        serialization_alias="note",
    )
    mode: Optional[str] = None
    created_by: Optional[RecordId] = None


class WorkerPayment(StoredRecord):
    """A payout to a worker."""
    id: RecordId = Field(default_factory=lambda: new_record_id("WP"))
    worker_id: RecordId = ""
    amount: Money = Field(default=0)
    date: Timestamp = Field(default_factory=datetime.now)
    account_id: Optional[RecordId] = None


class Account(StoredRecord):
    """
    A named money pool. Its balance is always derived from transactions,
    never stored.
    """
    id: RecordId = Field(default_factory=lambda: new_record_id("acc"))
    name: str = Field(..., min_length=1, max_length=120)
    type: Union[AccountType, str] = Field(
        default=AccountType.CASH, union_mode="left_to_right"
    )


class BusinessSettings(StoredRecord):
    """Shop identity used for message templates and display."""
    business_name: str = "Designer Tailors"
    business_phone: str = ""
    business_whats_app: str = Field(
        default="",
        validation_alias=AliasChoices("businessWhatsApp", "businessWhatsapp", "business_whats_app"),
        serialization_alias="businessWhatsApp",
    )
    business_address: str = ""
    logo_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("logoPath", "businessLogo", "logo_path"),
        serialization_alias="logoPath",
    )


# =============================================================================
# WHOLE-STORE SNAPSHOT
# =============================================================================

# Wire names of the seven collections, in save order
COLLECTION_KEYS = {
    "users": "users",
    "customers": "customers",
    "orders": "orders",
    "expenses": "expenses",
    "workers": "workers",
    "worker_payments": "workerPayments",
    "accounts": "accounts",
}

COLLECTION_MODELS = {
    "users": User,
    "customers": Customer,
    "orders": Order,
    "expenses": Expense,
    "workers": Worker,
    "worker_payments": WorkerPayment,
    "accounts": Account,
}


class StateSnapshot(BaseModel):
    """
    All seven collections as one unit.

    This is the payload of both load_all and save_all: the store always
    moves the full state, never a partial one.
    """
    model_config = ConfigDict(populate_by_name=True)

    users: list[User] = Field(default_factory=list)
    customers: list[Customer] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    workers: list[Worker] = Field(default_factory=list)
    worker_payments: list[WorkerPayment] = Field(default_factory=list, alias="workerPayments")
    accounts: list[Account] = Field(default_factory=list)

    def collection(self, name: str) -> list:
        return getattr(self, name)

    def collection_documents(self, name: str) -> list[dict]:
        return [record.to_document() for record in self.collection(name)]

    def to_payload(self) -> dict[str, list[dict]]:
        """Wire payload keyed by collection wire name."""
        return {
            wire: self.collection_documents(name)
            for name, wire in COLLECTION_KEYS.items()
        }

    @classmethod
    def from_payload(
        cls,
        payload: Optional[dict],
        on_skip=None,
    ) -> "StateSnapshot":
        """
        Build a snapshot from stored documents.

        Missing collections become empty lists. Non-dict entries and
        records that fail validation are skipped; `on_skip(collection,
        document, error)` is called for each so the caller can log it.
        """
        payload = payload or {}
        collections = {}
        for name, wire in COLLECTION_KEYS.items():
            raw = payload.get(wire, payload.get(name))
            if not isinstance(raw, list):
                raw = []
            model = COLLECTION_MODELS[name]
            records = []
            for document in raw:
                if not isinstance(document, dict):
                    if on_skip:
                        on_skip(name, document, "not an object")
                    continue
                try:
                    records.append(model.model_validate(document))
                except ValidationError as e:
                    if on_skip:
                        on_skip(name, document, str(e))
            collections[name] = records
        return cls(**collections)
