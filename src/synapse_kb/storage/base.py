"""Base repository interface."""
from abc import ABC, abstractmethod
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """Entity access contract shared by every repository."""

    @abstractmethod
    def create(self, entity: T) -> T:
        """Insert a new row. Raises ConflictError on a uniqueness violation."""

    @abstractmethod
    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[T]:
        """Return the entity or None."""

    @abstractmethod
    def update(self, entity: T) -> T:
        """Overwrite the row with the given record. Last writer wins."""

    @abstractmethod
    def list(self) -> List[T]:
        """Return all entities in the repository's natural order."""


class SoftDeleteRepository(Repository[T]):
    """Repositories for entities with an Active/Deleted lifecycle."""

    @abstractmethod
    def soft_delete(self, id: str) -> bool:
        """Flag the row deleted. Returns False if no row matched."""

    @abstractmethod
    def restore(self, id: str) -> bool:
        """Clear the deleted flag. Returns False if no row matched."""
