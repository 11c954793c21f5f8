"""
Input checks run by the repository before any SQL is issued.
"""
from typing import Any, Iterable

from sqlalchemy import inspect as sa_inspect

from customer_platform.exceptions.base import ValidationError


def is_absent(value: Any) -> bool:
    """None or an empty string counts as a missing argument."""
    return value is None or (isinstance(value, str) and not value.strip())


def require_present(**arguments: Any) -> None:
    """
    Raise ValidationError for the first missing argument.

        require_present(entity_id=entity_id, session=session)
    """
    for name, value in arguments.items():
        if is_absent(value):
            raise ValidationError.for_field(name, None, "is required")


def mapped_attribute_names(model) -> set[str]:
    """Column attribute keys callers may read, write or filter on."""
    return {attr.key for attr in sa_inspect(model).column_attrs}


def find_unknown_model_kwargs(model, kwargs: Iterable[str]) -> list[str]:
    """
    Return the keys that are not mapped column attributes of `model`.
    - model: the SQLAlchemy model class (not instance)
    - kwargs: incoming field names
    """
    allowed = mapped_attribute_names(model)
    return [k for k in kwargs if k not in allowed]


def require_known_fields(model, entity_name: str, fields: Iterable[str], argument: str = "data") -> None:
    unknown = find_unknown_model_kwargs(model, fields)
    if unknown:
        raise ValidationError.for_field(
            argument,
            sorted(unknown),
            f"Unknown field(s) for {entity_name}: {', '.join(sorted(unknown))}",
        )


def require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError.for_field(name, value, "must be an integer >= 1")
    return value
