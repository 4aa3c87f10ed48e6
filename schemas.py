import re
from datetime import datetime, timezone
from typing import Annotated, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    StrictBool,
    conint,
    constr,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from database import Frequency

Amount = conint(strict=True, gt=0)

# YYYY-MM-DDTHH:MM:SS[.fff]Z, UTC only
ISO_DATETIME_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?Z$")


def check_email(value: str) -> str:
    """Reject malformed addresses but keep the caller's exact spelling."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"value is not a valid email address: {exc}")
    return value


Email = Annotated[str, AfterValidator(check_email)]


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a stored (naive UTC) timestamp as 2023-10-01T00:00:00.000Z."""
    if value is None:
        return None
    value = to_utc_naive(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel)

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, v):
        # optional fields may be omitted, never sent as null
        if v is None:
            raise ValueError("Field may be omitted but not null")
        return v


class DatedBody(RequestBody):
    @field_validator("date", mode="before", check_fields=False)
    @classmethod
    def require_iso_string(cls, v):
        if not isinstance(v, str) or not ISO_DATETIME_RE.match(v):
            raise ValueError("Expected an ISO 8601 UTC datetime like 2023-10-01T00:00:00.000Z")
        return v

    @field_validator("date", check_fields=False)
    @classmethod
    def normalize_date(cls, v):
        return to_utc_naive(v) if v is not None else v


class UserCreate(RequestBody):
    name: constr(min_length=1)
    email: Email
    password: constr(min_length=6)
    pin: constr(min_length=4, max_length=4)

    @field_validator("pin")
    @classmethod
    def pin_is_digits(cls, v: str) -> str:
        if not v.isascii() or not v.isdigit():
            raise ValueError("PIN must be 4 digits")
        return v


class UserLogin(RequestBody):
    email: Email
    password: constr(min_length=1)


class IncomeCreate(DatedBody):
    user_id: conint(strict=True)
    amount: Amount
    source: constr(min_length=1)
    date: datetime
    is_recurring: Optional[StrictBool] = None
    frequency: Optional[Frequency] = None


class IncomeUpdate(DatedBody):
    amount: Optional[Amount] = None
    source: Optional[constr(min_length=1)] = None
    date: Optional[datetime] = None
    is_recurring: Optional[StrictBool] = None
    frequency: Optional[Frequency] = None


class ExpenseCreate(DatedBody):
    user_id: conint(strict=True)
    amount: Amount
    category: constr(min_length=1)
    description: Optional[str] = None
    date: datetime


class ExpenseUpdate(DatedBody):
    amount: Optional[Amount] = None
    category: Optional[constr(min_length=1)] = None
    description: Optional[str] = None
    date: Optional[datetime] = None


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


class UserPublic(ResponseModel):
    id: int
    name: str
    email: str


class CurrentUser(UserPublic):
    """The authenticated principal resolved from a bearer token."""


class IncomeRead(ResponseModel):
    id: int
    user_id: int
    amount: int
    source: str
    date: datetime
    is_recurring: bool
    frequency: Frequency
    created_at: datetime

    @field_serializer("date", "created_at")
    def serialize_timestamp(self, value: datetime):
        return format_timestamp(value)


class ExpenseRead(ResponseModel):
    id: int
    user_id: int
    amount: int
    category: str
    description: Optional[str] = None
    date: datetime
    created_at: datetime

    @field_serializer("date", "created_at")
    def serialize_timestamp(self, value: datetime):
        return format_timestamp(value)
