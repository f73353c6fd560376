"""
Shared model building blocks.

Every API-facing model speaks camelCase JSON (the web and mobile clients
expect ``nextDueDate``, ``createdById``...) while Python code uses
snake_case attribute names.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Generic, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

from budgety.utils.money import truncate_amount


T = TypeVar("T")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Base model with camelCase aliases and whitespace stripping."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# Money is truncated before validation and rendered as a JSON number.
_money_serializer = PlainSerializer(
    lambda v: float(v), return_type=float, when_used="json"
)

Money = Annotated[
    Decimal,
    BeforeValidator(truncate_amount),
    _money_serializer,
]

PositiveMoney = Annotated[
    Decimal,
    BeforeValidator(truncate_amount),
    Field(ge=Decimal("0.01"), max_digits=14, decimal_places=2),
    _money_serializer,
]

NonNegativeMoney = Annotated[
    Decimal,
    BeforeValidator(truncate_amount),
    Field(ge=Decimal("0"), max_digits=14, decimal_places=2),
    _money_serializer,
]

MonthString = Annotated[
    str,
    Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="Calendar month as YYYY-MM"),
]


class Page(ApiModel, Generic[T]):
    """One page of a paginated list."""

    data: list[T]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
