"""In-memory user store for testing."""

import copy
from typing import Any, Literal, Mapping, Optional, Sequence
from uuid import uuid4

from accounts.domain.repository import Document, UserStore
from accounts.persistence.documents import apply_update, matches, run_pipeline


class InMemoryUserStore(UserStore):
    """In-memory implementation of UserStore for testing.

    Documents are copied on the way in and out, so callers never share
    state with the store.
    """

    def __init__(self, documents: Sequence[Mapping[str, Any]] = ()) -> None:
        self._documents: dict[str, Document] = {}
        for document in documents:
            document = copy.deepcopy(dict(document))
            document.setdefault("_id", str(uuid4()))
            self._documents[str(document["_id"])] = document

    @property
    def documents(self) -> list[Document]:
        """Copies of all stored documents."""
        return [copy.deepcopy(d) for d in self._documents.values()]

    def _first(self, filter: Mapping[str, Any]) -> Optional[Document]:
        return next((d for d in self._documents.values() if matches(d, filter)), None)

    async def find_one(self, filter: Mapping[str, Any]) -> Optional[Document]:
        document = self._first(filter)
        return copy.deepcopy(document) if document is not None else None

    async def insert_one(self, document: Mapping[str, Any]) -> str:
        stored = copy.deepcopy(dict(document))
        user_id = str(stored.get("_id") or uuid4())
        if user_id in self._documents:
            raise ValueError(f"Duplicate id: {user_id}")
        stored["_id"] = user_id
        self._documents[user_id] = stored
        return user_id

    async def find_one_and_update(
        self,
        filter: Mapping[str, Any],
        update: Mapping[str, Any],
        *,
        upsert: bool = False,
        return_document: Literal["before", "after"] = "after",
    ) -> Optional[Document]:
        current = self._first(filter)
        if current is None:
            if not upsert:
                return None
            seed = {k: v for k, v in filter.items() if not k.startswith("$") and "." not in k}
            user_id = await self.insert_one(apply_update(seed, update))
            return copy.deepcopy(self._documents[user_id]) if return_document == "after" else None

        updated = apply_update(current, update)
        updated["_id"] = current["_id"]
        self._documents[str(current["_id"])] = updated
        return copy.deepcopy(updated if return_document == "after" else current)

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[Document]:
        return run_pipeline(self._documents.values(), pipeline)

    async def delete_one(self, filter: Mapping[str, Any]) -> int:
        document = self._first(filter)
        if document is None:
            return 0
        del self._documents[str(document["_id"])]
        return 1
