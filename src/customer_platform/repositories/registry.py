"""
Repository registry: one `EntityRepository` per entity name.

The registry is an ordinary object created by the composition root
(`main.create_app`) and handed to whoever needs repositories; there is no
module-level instance. Repositories are stateless, so sharing one instance per
entity across concurrent requests is safe, and the cache is only ever mutated by
insert-if-absent and explicit clearing.
"""
import logging
from typing import Any, Callable

from customer_platform.core.logging.operations import OperationSink, log_database_operation
from customer_platform.validators.repository_validators import require_present

from .entity_repository import DEFAULT_LIMIT, EntityRepository

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[str], EntityRepository[Any]]


class RepositoryRegistry:
    """
    Lazily builds and caches repositories.

    Args:
        factory: builds the repository for an entity name; defaults to
            `EntityRepository(name, sink=sink, default_limit=default_limit)`.
        sink: operation-logging sink given to the default factory.
        default_limit: `find_all` page size given to the default factory.
    """

    def __init__(
        self,
        factory: RepositoryFactory | None = None,
        *,
        sink: OperationSink = log_database_operation,
        default_limit: int = DEFAULT_LIMIT,
    ):
        self._factory = factory or (
            lambda name: EntityRepository(name, sink=sink, default_limit=default_limit)
        )
        self._repositories: dict[str, EntityRepository[Any]] = {}

    def get_repository(self, entity_name: str) -> EntityRepository[Any]:
        """
        Return the cached repository for `entity_name`, building it on first access.

        Raises:
            ValidationError: empty entity name, or an entity without a model.
        """
        require_present(entity_name=entity_name)

        repository = self._repositories.get(entity_name)
        if repository is None:
            # no await between the lookup and the insert: atomic on the event loop
            repository = self._repositories.setdefault(entity_name, self._factory(entity_name))
            logger.debug("registry.repository_created", extra={"entity": entity_name})
        return repository

    def clear_cache(self, entity_name: str | None = None) -> None:
        """
        Drop one cached repository, or all of them when no name is given.
        Meant for test isolation; repositories hold no state worth resetting.
        """
        if entity_name is None:
            self._repositories.clear()
        else:
            self._repositories.pop(entity_name, None)

    def cached_entities(self) -> list[str]:
        return sorted(self._repositories)

    def __contains__(self, entity_name: object) -> bool:
        return entity_name in self._repositories
