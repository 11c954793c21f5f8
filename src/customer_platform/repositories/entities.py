"""
Entity descriptors: which ORM model and which primary-key column belong to an
entity name.

The schema does not use one primary-key naming convention across tables
(`customer.customer_id`, `user.user_id`, ...), so the key column is looked up in
`PRIMARY_KEY_FIELDS`; any entity not listed there uses `DEFAULT_PRIMARY_KEY_FIELD`.
Entity names are table names.
"""
from dataclasses import dataclass
from typing import Type

import customer_platform.models  # noqa: F401  (registers the mapped classes)
from customer_platform.database.base import Base
from customer_platform.exceptions.base import ValidationError

DEFAULT_PRIMARY_KEY_FIELD = "id"

PRIMARY_KEY_FIELDS: dict[str, str] = {
    "customer": "customer_id",
    "account": "account_id",
    "user": "user_id",
    "user_has_account": "user_has_account_id",
}


def primary_key_field_for(entity_name: str) -> str:
    return PRIMARY_KEY_FIELDS.get(entity_name, DEFAULT_PRIMARY_KEY_FIELD)


@dataclass(frozen=True)
class EntityDescriptor:
    name: str
    primary_key_field: str

    @classmethod
    def for_entity(cls, entity_name: str) -> "EntityDescriptor":
        return cls(name=entity_name, primary_key_field=primary_key_field_for(entity_name))


def resolve_model(entity_name: str) -> Type[Base]:
    """
    Return the mapped class whose table is `entity_name`.

    Raises:
        ValidationError: no model is mapped to that table.
    """
    for mapper in Base.registry.mappers:
        if getattr(mapper.local_table, "name", None) == entity_name:
            return mapper.class_

    raise ValidationError.for_field("entity_name", entity_name, "Unknown entity")
