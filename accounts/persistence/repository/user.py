"""PostgreSQL implementation of the user store."""

from typing import Any, Literal, Mapping, Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, insert, select
from sqlalchemy import update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

from accounts.domain.repository import Document, UserStore
from accounts.persistence.documents import apply_update, matches, run_pipeline
from accounts.persistence.mappers import (
    MIRRORED_COLUMNS,
    document_to_row,
    row_to_document,
)
from accounts.persistence.tables import users_table


def _narrowing(filter: Mapping[str, Any]) -> list[Any]:
    """SQL conditions implied by the mirrored parts of a filter.

    The full filter is still evaluated on each candidate document, so
    these only need to be necessary conditions.
    """
    clauses = []
    for path, condition in filter.items():
        column = MIRRORED_COLUMNS.get(path)
        if column is None:
            continue
        if isinstance(condition, Mapping):
            if set(condition) == {"$in"} and None not in condition["$in"]:
                clauses.append(column.in_([_column_value(path, v) for v in condition["$in"]]))
        elif condition is not None:
            clauses.append(column == _column_value(path, condition))
    return clauses


def _column_value(path: str, value: Any) -> Any:
    return str(value) if path == "_id" else value


class PostgresUserStore(UserStore):
    """PostgreSQL implementation of UserStore.

    Each user is one row holding the whole document as JSONB. Filters are
    narrowed in SQL through the mirrored columns, then evaluated on the
    candidate documents.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize store with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def _candidates(
        self, filter: Mapping[str, Any], for_update: bool = False
    ) -> list[Document]:
        stmt = select(users_table).where(*_narrowing(filter)).order_by(users_table.c.created_on)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return [row_to_document(row) for row in result.mappings().all()]

    async def _first(
        self, filter: Mapping[str, Any], for_update: bool = False
    ) -> Optional[Document]:
        candidates = await self._candidates(filter, for_update)
        return next((d for d in candidates if matches(d, filter)), None)

    async def find_one(self, filter: Mapping[str, Any]) -> Optional[Document]:
        return await self._first(filter)

    async def insert_one(self, document: Mapping[str, Any]) -> str:
        stored = dict(document)
        stored["_id"] = str(stored.get("_id") or uuid4())
        await self.session.execute(insert(users_table).values(**document_to_row(stored)))
        await self.session.flush()
        return stored["_id"]

    async def find_one_and_update(
        self,
        filter: Mapping[str, Any],
        update: Mapping[str, Any],
        *,
        upsert: bool = False,
        return_document: Literal["before", "after"] = "after",
    ) -> Optional[Document]:
        current = await self._first(filter, for_update=True)
        if current is None:
            if not upsert:
                return None
            seed = {k: v for k, v in filter.items() if not k.startswith("$") and "." not in k}
            created = apply_update(seed, update)
            created["_id"] = await self.insert_one(created)
            return created if return_document == "after" else None

        updated = apply_update(current, update)
        updated["_id"] = current["_id"]
        row = document_to_row(updated)
        row.pop("id")
        stmt = sql_update(users_table).where(users_table.c.id == current["_id"]).values(**row)
        await self.session.execute(stmt)
        await self.session.flush()
        return updated if return_document == "after" else current

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[Document]:
        # A leading $match can be narrowed in SQL like any filter
        first = pipeline[0] if pipeline else {}
        documents = await self._candidates(first.get("$match", {}))
        return run_pipeline(documents, pipeline)

    async def delete_one(self, filter: Mapping[str, Any]) -> int:
        document = await self._first(filter, for_update=True)
        if document is None:
            return 0
        await self.session.execute(
            delete(users_table).where(users_table.c.id == document["_id"])
        )
        await self.session.flush()
        return 1
