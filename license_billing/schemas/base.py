"""
Base schema classes with common configurations.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from license_billing.core.exceptions import ValidationError

__all__ = [
    "BaseSchema",
    "FrozenSchema",
    "build",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.

    Used for mutable inputs such as requests and search criteria.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        # Keep enums as Enum instances to retain full type information;
        # callers can still access `.value` if needed.
        use_enum_values=False,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class FrozenSchema(BaseModel):
    """
    Immutable value object.

    Records and drafts are never changed in place; a transition builds a
    new instance through ``model_copy(update=...)``.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=False,
        str_strip_whitespace=True,
        frozen=True,
    )


def build(schema: type, message: str = "Validation failed", **values: Any):
    """Construct ``schema`` and surface pydantic failures as ``ValidationError``."""
    try:
        return schema(**values)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, message) from e


def to_wire(values: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe copy of ``values`` (decimals and dates as strings)."""
    return {key: _wire_value(value) for key, value in values.items()}


def _wire_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return to_wire(value.model_dump())
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_wire_value(v) for v in value]
    if isinstance(value, dict):
        return to_wire(value)
    if isinstance(value, (str, int, bool)) or value is None:
        return value
    return str(value)
