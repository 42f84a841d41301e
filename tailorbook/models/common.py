"""
Shared field types for stored records.

Records come back from the backend store exactly as earlier versions of the
app wrote them: camelCase keys, numeric ids, date-only strings, timezone
suffixes, nulls where lists are expected. The annotated types below absorb
those differences on the way in so business code only ever sees clean
values.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def _coerce_id(value: Any) -> Any:
    # Older worker payments used a millisecond timestamp as id
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


def _coerce_money(value: Any) -> Any:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return Decimal("0")
    return value


def _coerce_timestamp(value: Any) -> Any:
    if value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and len(value) == 10:
        return f"{value}T00:00:00"
    return value


def _to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    # Mixed aware/naive values cannot be compared, keep everything local-naive
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    if value == "":
        return None
    return value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _stringify_values(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    return value


RecordId = Annotated[str, BeforeValidator(_coerce_id)]
Money = Annotated[Decimal, BeforeValidator(_coerce_money)]
Timestamp = Annotated[
    datetime,
    BeforeValidator(_coerce_timestamp),
    AfterValidator(_to_local_naive),
]
OptionalTimestamp = Annotated[
    Optional[datetime],
    BeforeValidator(_coerce_timestamp),
    AfterValidator(_to_local_naive),
]
OptionalDate = Annotated[Optional[date], BeforeValidator(_coerce_date)]
StringMap = Annotated[dict[str, str], BeforeValidator(_stringify_values)]


def list_or_empty(value: Any) -> Any:
    """Validator helper: stored nulls become empty lists."""
    return _none_to_list(value)


class StoredRecord(BaseModel):
    """
    Base for everything kept in the backend store.

    - Field names are snake_case in Python, camelCase on the wire
    - Unknown keys are kept and written back untouched
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        str_strip_whitespace=True,
    )

    def to_document(self) -> dict:
        """Serialize to the JSON document shape used by the backend store."""
        return self.model_dump(mode="json", by_alias=True)
