from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize a numeric value to cents"""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class APIModel(BaseModel):
    """Base schema with camelCase JSON field names"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def metadata_field(description: str = "Free-form key/value data") -> Any:
    # ORM objects expose the column as `meta`; JSON uses "metadata"
    return Field(
        None,
        validation_alias=AliasChoices("meta", "metadata"),
        serialization_alias="metadata",
        description=description,
    )
