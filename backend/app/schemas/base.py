"""
Shared Pydantic base for API payloads.

Entities travel as camelCase JSON (netProfit, customerPayment, ...) while the
Python side stays snake_case. Both spellings are accepted on input.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


def reject_null(value, info):
    """Field validator: an explicit null is not a valid update for a required column."""
    if value is None:
        raise ValueError(f"{info.field_name} may not be null")
    return value


class MessageResponse(BaseModel):
    success: bool = True
    message: str
