"""
Shared helpers for the in-memory repositories.

Entities are deep-copied on the way in and out so callers never hold a
reference to the stored object; a mutation only becomes visible after an
explicit save, the same as with a real store.
"""

import logging
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class MemoryRepositoryMixin(Generic[T]):
    storage_dict: Dict[str, T]
    entity_name: str
    logger: logging.Logger

    def get_entity(self, entity_id: str) -> Optional[T]:
        entity = self.storage_dict.get(entity_id)
        if entity is None:
            self.logger.debug(
                f"{self.entity_name} not found in memory",
                extra={"entity_id": entity_id},
            )
            return None
        return entity.model_copy(deep=True)

    def save_entity(self, entity_id: str, entity: T) -> None:
        self.storage_dict[entity_id] = entity.model_copy(deep=True)
        self.logger.debug(
            f"{self.entity_name} saved in memory",
            extra={"entity_id": entity_id},
        )

    def all_entities(self) -> List[T]:
        return [e.model_copy(deep=True) for e in self.storage_dict.values()]
