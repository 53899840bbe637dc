"""Integration tests for PostgresUserStore.

These tests need PostgreSQL reachable at ``DATABASE__URL``; they are
skipped when it is not set.
"""

import os
from uuid import uuid4

from dishka import AsyncContainer
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from accounts.domain.repository import UserStore
from accounts.persistence.database import create_schema
from tests.harness import create_env_fixture

pytestmark = pytest.mark.skipif(
    not os.environ.get("DATABASE__URL"), reason="DATABASE__URL is not set"
)

# Integration test fixture - real PostgreSQL store
integration_env = create_env_fixture(unmock={"persistence"})


@pytest_asyncio.fixture
async def store(integration_env: AsyncContainer) -> UserStore:
    engine = await integration_env.get(AsyncEngine)
    await create_schema(engine)
    return await integration_env.get(UserStore)


def user_document(email: str, **fields) -> dict:
    return {
        "type": "User",
        "first": "Ada",
        "last": "Lovelace",
        "emails": [{"primary": email, "verified": False}],
        "userStatus": "active",
        "archived": False,
        "createdOn": 1700000000000,
        **fields,
    }


class TestPostgresUserStore:
    """Integration tests for the JSONB-backed document store."""

    @pytest.mark.asyncio
    async def test_insert_and_find_by_nested_email(self, store: UserStore):
        email = f"{uuid4()}@example.com"

        user_id = await store.insert_one(user_document(email))
        found = await store.find_one({"emails.primary": email, "archived": {"$ne": True}})

        assert found["_id"] == user_id
        assert found["first"] == "Ada"

    @pytest.mark.asyncio
    async def test_update_keeps_mirrored_columns_in_sync(self, store: UserStore):
        email = f"{uuid4()}@example.com"
        user_id = await store.insert_one(user_document(email))
        token = f"token-{uuid4()}"

        updated = await store.find_one_and_update(
            {"_id": user_id}, {"$set": {"jwts": {"token": token}}}
        )
        found = await store.find_one({"jwts.token": token})

        assert updated["jwts"] == {"token": token}
        assert found["_id"] == user_id

    @pytest.mark.asyncio
    async def test_aggregate_and_delete(self, store: UserStore):
        email = f"{uuid4()}@example.com"
        user_id = await store.insert_one(user_document(email, type="Creator"))

        groups = await store.aggregate(
            [
                {"$match": {"_id": user_id}},
                {"$unwind": {"path": "$emails"}},
                {"$group": {"_id": "$type", "count": {"$sum": 1}}},
            ]
        )
        deleted = await store.delete_one({"emails.primary": email})

        assert groups == [{"_id": "Creator", "count": 1}]
        assert deleted == 1
        assert await store.find_one({"_id": user_id}) is None
