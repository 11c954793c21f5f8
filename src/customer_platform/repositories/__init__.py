from .entities import (
    DEFAULT_PRIMARY_KEY_FIELD,
    PRIMARY_KEY_FIELDS,
    EntityDescriptor,
    primary_key_field_for,
    resolve_model,
)
from .entity_repository import EntityRepository, PageOptions, PaginationResult
from .registry import RepositoryRegistry

__all__ = [
    "DEFAULT_PRIMARY_KEY_FIELD",
    "PRIMARY_KEY_FIELDS",
    "EntityDescriptor",
    "primary_key_field_for",
    "resolve_model",
    "EntityRepository",
    "PageOptions",
    "PaginationResult",
    "RepositoryRegistry",
]
