"""
Core Data Models for the Client Ledger

These models define the strict schemas for everything the ledger holds and
everything it writes to storage. They are designed to:
1. Reject bad caller input with clear validation messages
2. Accept (and normalize) what older app versions left in storage
3. Serialize to the camelCase blob the mobile app already reads

DESIGN DECISION: Input models (ClientCreate, ClientUpdate, ExpenseCreate) are
strict. Stored entities (Client, Expense, LedgerSnapshot) run a "before"
normalization pass first, so one odd legacy value does not make a whole
ledger unreadable.
"""

import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from flowdesk.utils.dates import (
    age_from_birthdate,
    due_date_for,
    is_month_key,
    normalize_birthdate,
)
from flowdesk.utils.money import format_brl, safe_money_number


logger = structlog.get_logger(__name__)

SNAPSHOT_VERSION = 5
DEFAULT_CLIENT_TERM = "Cliente"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_entity_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentStatus(str, Enum):
    """
    Status of one client's obligation for one month.

    There is no partial state: a month is either paid or pending.
    """
    PAID = "paid"
    PENDING = "pending"


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"


# Spellings older app versions wrote for a paid month
_PAID_ALIASES = {"paid", "pago"}


class LedgerModel(BaseModel):
    """Base for every ledger model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentMetadata(LedgerModel):
    """
    Payment record of one client for one month.

    `date` and `value` are only meaningful while status is PAID; `value` is the
    amount snapshotted when the month was marked paid.
    """

    status: PaymentStatus = Field(
        default=PaymentStatus.PENDING,
        description="Paid or pending"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="When the payment was recorded as made"
    )
    value: Optional[float] = Field(
        default=None,
        ge=0,
        description="Amount actually paid"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last write to this record"
    )

    @model_validator(mode='before')
    @classmethod
    def normalize_legacy_entry(cls, data: Any) -> Any:
        """Older versions stored bare strings ("pago") or omitted updatedAt."""
        if data is None:
            return {"status": PaymentStatus.PENDING}
        if isinstance(data, str):
            data = {"status": data}
        if not isinstance(data, dict):
            return data

        data = dict(data)
        raw_status = data.get("status")
        if isinstance(raw_status, PaymentStatus):
            data["status"] = raw_status
        elif isinstance(raw_status, str) and raw_status.strip().lower() in _PAID_ALIASES:
            data["status"] = PaymentStatus.PAID
        else:
            data["status"] = PaymentStatus.PENDING
        if not data.get("updatedAt") and not data.get("updated_at"):
            data["updatedAt"] = utcnow()
        return data

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID


# =============================================================================
# CLIENTS
# =============================================================================

class ClientCreate(LedgerModel):
    """
    Fields a caller supplies to create a client.

    `id` and `payments` are owned by the ledger and ignored here.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name (required)"
    )
    location: Optional[str] = Field(default=None, max_length=300)
    phone: Optional[str] = Field(default=None, max_length=40)
    phone_raw: Optional[str] = Field(
        default=None,
        max_length=40,
        description="Phone exactly as typed"
    )
    days: list[str] = Field(
        default_factory=list,
        description="Weekday names on which the obligation recurs"
    )
    time: Optional[str] = Field(
        default=None,
        description="Default time of day"
    )
    day_times: dict[str, str] = Field(
        default_factory=dict,
        description="Per-day time overriding `time`"
    )
    value: float = Field(
        default=0.0,
        ge=0,
        description="Amount owed per period"
    )
    due_day: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Day of month the payment is due"
    )
    notifications_payment_opt_in: bool = False
    notifications_schedule_opt_in: bool = False

    @field_validator('days')
    @classmethod
    def dedupe_days(cls, v: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for day in v:
            day = day.strip()
            if day:
                seen.setdefault(day, None)
        return list(seen)


class ClientUpdate(LedgerModel):
    """
    Partial client update.

    Only fields explicitly set are applied (see `changes()`); `id`,
    `payments` and `valueFormatted` are not part of the update contract.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, max_length=300)
    phone: Optional[str] = Field(default=None, max_length=40)
    phone_raw: Optional[str] = Field(default=None, max_length=40)
    days: Optional[list[str]] = None
    time: Optional[str] = None
    day_times: Optional[dict[str, str]] = None
    value: Optional[float] = Field(default=None, ge=0)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    notifications_payment_opt_in: Optional[bool] = None
    notifications_schedule_opt_in: Optional[bool] = None

    @field_validator('name', 'value', 'due_day')
    @classmethod
    def reject_explicit_null(cls, v: Any, info) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return v

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually provided."""
        return self.model_dump(exclude_unset=True)


class Client(ClientCreate):
    """
    A person or business with a recurring obligation.

    `value_formatted` is derived from `value` on every read and can never be
    set on its own.
    """

    id: str = Field(
        default_factory=new_entity_id,
        min_length=1,
        description="Stable unique identifier"
    )
    payments: dict[str, PaymentMetadata] = Field(
        default_factory=dict,
        description="Month key (YYYY-MM) -> payment record"
    )

    @model_validator(mode='before')
    @classmethod
    def normalize_stored_client(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data.pop("valueFormatted", None)
        data.pop("value_formatted", None)

        data["value"] = safe_money_number(data.get("value") or 0, 0.0)
        due_day = safe_money_number(data.get("dueDay", data.pop("due_day", None)) or 0, 0.0)
        data["dueDay"] = max(1, min(31, int(due_day)))
        days = data.get("days")
        data["days"] = [d for d in days if isinstance(d, str)] if isinstance(days, list) else []
        day_times = data.get("dayTimes", data.pop("day_times", None))
        data["dayTimes"] = {
            day: time for day, time in day_times.items()
            if isinstance(day, str) and isinstance(time, str) and time.strip()
        } if isinstance(day_times, dict) else {}
        if not isinstance(data.get("payments"), dict):
            data["payments"] = {}
        return data

    @field_validator('payments')
    @classmethod
    def drop_malformed_month_keys(
        cls, v: dict[str, PaymentMetadata]
    ) -> dict[str, PaymentMetadata]:
        malformed = [key for key in v if not is_month_key(key)]
        if malformed:
            logger.warning("payment_keys_dropped", month_keys=malformed)
        return {key: record for key, record in v.items() if is_month_key(key)}

    @computed_field(alias="valueFormatted")
    @property
    def value_formatted(self) -> str:
        return format_brl(self.value)

    def time_for(self, day: str) -> Optional[str]:
        """Effective time of day for ``day``."""
        return self.day_times.get(day) or self.time

    def payment_for(self, month_key: str) -> Optional[PaymentMetadata]:
        return self.payments.get(month_key)

    def is_paid(self, month_key: str) -> bool:
        record = self.payments.get(month_key)
        return record is not None and record.is_paid

    def due_date_for(self, month_key: str) -> date:
        """Due date in the given month, clamped to the month's length."""
        return due_date_for(self.due_day, month_key)


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseCreate(LedgerModel):
    """Fields a caller supplies to record an expense."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    value: float = Field(..., ge=0)
    date: date
    category: Optional[str] = Field(
        default=None,
        description="Raw category key"
    )
    category_label: Optional[str] = Field(
        default=None,
        description="Category display label"
    )
    is_recurring: Optional[bool] = None


class Expense(ExpenseCreate):
    """A one-time or recurring outlay."""

    id: str = Field(default_factory=new_entity_id, min_length=1)

    @model_validator(mode='before')
    @classmethod
    def normalize_stored_expense(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["value"] = safe_money_number(data.get("value") or 0, 0.0)
        raw_date = data.get("date")
        # The app used to store full ISO timestamps here
        if isinstance(raw_date, str) and len(raw_date) > 10:
            data["date"] = raw_date[:10]
        return data


# =============================================================================
# PROFILE
# =============================================================================

class ProfileUpdate(LedgerModel):
    """
    Partial profile update.

    `email` doubles as the persistence identity; see LedgerStore.set_user_profile.
    """

    name: Optional[str] = None
    email: Optional[str] = Field(default=None, max_length=320)
    phone: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    birthdate: Optional[str] = None
    profession: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# =============================================================================
# SERIALIZED LEDGER
# =============================================================================

class LedgerSnapshot(LedgerModel):
    """
    The whole ledger of one identity, as written to storage.

    CRITICAL: This is always persisted in full; there is no delta format.
    """

    version: int = Field(default=SNAPSHOT_VERSION)
    clients: list[Client] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    client_term: str = Field(default=DEFAULT_CLIENT_TERM)
    user_name: str = ""
    user_email: str = ""
    user_phone: str = ""
    user_age: Optional[int] = None
    user_birthdate: str = ""
    user_profession: str = ""
    plan_tier: PlanTier = PlanTier.FREE
    notifications_enabled: bool = False

    @model_validator(mode='before')
    @classmethod
    def migrate_stored_state(cls, data: Any) -> Any:
        """Fill defaults for anything missing or mistyped in an older blob."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, info in cls.model_fields.items():
            if info.alias and name in data and info.alias not in data:
                data[info.alias] = data.pop(name)

        data["clients"] = _salvage(Client, data.get("clients"), "client")
        data["expenses"] = _salvage(Expense, data.get("expenses"), "expense")

        data["clientTerm"] = data.get("clientTerm") or DEFAULT_CLIENT_TERM
        for key in ("userName", "userEmail", "userPhone", "userProfession"):
            data[key] = str(data.get(key) or "")

        birthdate = normalize_birthdate(data.get("userBirthdate"))
        data["userBirthdate"] = birthdate
        data["userAge"] = _resolve_age(data.get("userAge"), birthdate)

        plan_tier = data.get("planTier")
        data["planTier"] = PlanTier.PRO if plan_tier in (PlanTier.PRO, "pro") else PlanTier.FREE
        data["notificationsEnabled"] = bool(data.get("notificationsEnabled"))
        data["version"] = SNAPSHOT_VERSION
        return data

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


def _salvage(model: type[LedgerModel], entries: Any, kind: str) -> list:
    """
    Validate stored entities one at a time.

    An entity that cannot be read is dropped with a warning instead of
    failing the whole ledger.
    """
    if not isinstance(entries, list):
        return []
    kept = []
    for index, entry in enumerate(entries):
        if isinstance(entry, model):
            kept.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        try:
            kept.append(model.model_validate(entry))
        except SchemaError as e:
            logger.warning(
                "ledger_entity_dropped",
                kind=kind,
                index=index,
                entity_id=entry.get("id"),
                errors=e.error_count(),
            )
    return kept


def _resolve_age(raw_age: Any, birthdate: str) -> Optional[int]:
    if isinstance(raw_age, int) and not isinstance(raw_age, bool):
        return raw_age
    derived = age_from_birthdate(birthdate)
    if derived is not None:
        return derived
    if raw_age is None:
        return None
    legacy = safe_money_number(raw_age, math.nan)
    return int(legacy) if math.isfinite(legacy) else None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in caller-supplied data."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'invalid_format')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )
