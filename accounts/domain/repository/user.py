"""User store interface."""

from abc import ABC, abstractmethod
from typing import Any, Literal, Mapping, Optional, Sequence

Document = dict[str, Any]


class UserStore(ABC):
    """Document store for user records.

    Records are JSON-like documents keyed by ``_id``. Filters and updates
    use a small document query language shared by all implementations:
    equality on dotted (array-aware) paths, ``$in``, ``$ne`` and
    ``$exists`` in filters, ``$set`` in updates, and ``$match``,
    ``$unwind``, ``$group`` and ``$sort`` pipeline stages.
    """

    @abstractmethod
    async def find_one(self, filter: Mapping[str, Any]) -> Optional[Document]:
        """Find the first record matching a filter.

        Args:
            filter: Document filter

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_one(self, document: Mapping[str, Any]) -> str:
        """Insert a new record.

        Args:
            document: Record without an ``_id``

        Returns:
            The identifier assigned by the store
        """
        pass

    @abstractmethod
    async def find_one_and_update(
        self,
        filter: Mapping[str, Any],
        update: Mapping[str, Any],
        *,
        upsert: bool = False,
        return_document: Literal["before", "after"] = "after",
    ) -> Optional[Document]:
        """Atomically update the first matching record.

        Args:
            filter: Document filter
            update: Update with a ``$set`` operator
            upsert: Insert a new record when nothing matches
            return_document: Return the record as it was before or after the update

        Returns:
            The record, or None when nothing matched and ``upsert`` is False
        """
        pass

    @abstractmethod
    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[Document]:
        """Run an aggregation pipeline over all records.

        Args:
            pipeline: Ordered pipeline stages

        Returns:
            The documents produced by the last stage
        """
        pass

    @abstractmethod
    async def delete_one(self, filter: Mapping[str, Any]) -> int:
        """Delete the first matching record.

        Args:
            filter: Document filter

        Returns:
            Number of deleted records (0 or 1)
        """
        pass
