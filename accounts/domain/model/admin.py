"""Administrator variant of the user entity."""

from typing import Any, Iterable

import logfire
from pydantic import Field

from accounts.domain.error import ValidationError
from accounts.domain.model.user import User, now_ms
from accounts.domain.value import (
    PRIVILEGE_ORDER,
    AggregatedCounts,
    DeleteResult,
    UserGroup,
    UserSummary,
    UserVariant,
)

# Variants listed by default in administrative views
LISTED_VARIANTS = (UserVariant.ADMIN, UserVariant.CREATOR, UserVariant.USER)


class Admin(User):
    """User with administrative operations over the whole directory."""

    variant: UserVariant = Field(default=UserVariant.ADMIN, frozen=True)
    description: str = "This is an Admin user."

    async def list_users(
        self, user_types: Iterable[UserVariant | str] | None = None
    ) -> AggregatedCounts:
        """Count and list non-archived users grouped by status.

        Users without a primary email are not listed.
        """
        variants = [_variant(v) for v in (user_types or LISTED_VARIANTS)]
        pipeline = [
            {"$match": {"type": {"$in": [v.value for v in variants]}, "archived": {"$ne": True}}},
            {"$unwind": {"path": "$emails"}},
            {"$match": {"emails.primary": {"$exists": True}}},
            {
                "$group": {
                    "_id": "$userStatus",
                    "count": {"$sum": 1},
                    "users": {
                        "$push": {
                            "id": "$_id",
                            "primary_email": "$emails.primary",
                            "name": "$first",
                            "status": "$userStatus",
                        }
                    },
                }
            },
            {"$sort": {"_id": 1}},
        ]
        with logfire.span("admin.list_users", admin_id=self.id):
            groups = await self._context("list users").store.aggregate(pipeline)
            return _counts(groups)

    async def get_users_by_type(self, user_type: str = "all") -> AggregatedCounts:
        """Count and list non-archived users grouped by variant.

        Args:
            user_type: A variant name, or "all" for every variant

        Raises:
            ValidationError: If ``user_type`` is missing or unknown
        """
        if not user_type or user_type == "undefined":
            raise ValidationError("Missing required user type parameter.", fields=["user_type"])

        if user_type.lower() == "all":
            match: dict[str, Any] = {"type": {"$exists": True}, "archived": {"$ne": True}}
        else:
            match = {"type": _variant(user_type).value, "archived": {"$ne": True}}

        pipeline = [
            {"$match": match},
            {"$unwind": {"path": "$emails"}},
            {"$match": {"emails.primary": {"$exists": True}}},
            {
                "$group": {
                    "_id": "$type",
                    "count": {"$sum": 1},
                    "users": {
                        "$push": {
                            "id": "$_id",
                            "primary_email": "$emails.primary",
                            "name": "$first",
                            "status": "$userStatus",
                        }
                    },
                }
            },
            {"$sort": {"_id": 1}},
        ]
        with logfire.span("admin.get_users_by_type", admin_id=self.id, user_type=user_type):
            groups = await self._context("list users").store.aggregate(pipeline)
            return _counts(groups)

    async def delete_user(self, id_or_email: str) -> DeleteResult:
        """Permanently delete a record by id or primary email.

        Asset directories are left in place; archive the user first to
        keep them.
        """
        if not id_or_email:
            raise ValidationError("Missing required user id or email.", fields=["id_or_email"])
        if "@" in id_or_email:
            filter = {"emails.primary": id_or_email.strip()}
        else:
            filter = {"_id": id_or_email}

        with logfire.span("admin.delete_user", admin_id=self.id):
            deleted = await self._context("delete users").store.delete_one(filter)
            logfire.info("User deleted", admin_id=self.id, target=id_or_email, deleted=deleted)
            return DeleteResult(deleted_count=deleted)

    async def upgrade_user(self, user_id: str) -> bool:
        """Promote a user one step along the privilege order.

        Returns:
            False if the user does not exist or is already an Admin
        """
        store = self._context("upgrade users").store
        with logfire.span("admin.upgrade_user", admin_id=self.id, user_id=user_id):
            record = await store.find_one({"_id": user_id})
            if record is None:
                logfire.warn("User not found for upgrade", user_id=user_id)
                return False

            current = UserVariant.parse(record.get("type")) or UserVariant.USER
            position = PRIVILEGE_ORDER.index(current)
            if position == len(PRIVILEGE_ORDER) - 1:
                return False

            promoted = PRIVILEGE_ORDER[position + 1]
            result = await store.find_one_and_update(
                {"_id": user_id},
                {"$set": {"type": promoted.value, "updatedOn": now_ms()}},
            )
            if result is None:
                return False
            logfire.info(
                "User upgraded",
                user_id=user_id,
                previous=current.value,
                variant=promoted.value,
            )
            return True


def _variant(value: UserVariant | str) -> UserVariant:
    if isinstance(value, UserVariant):
        return value
    variant = UserVariant.parse(value)
    if variant is None:
        raise ValidationError(f"Unknown user type: {value}", fields=["user_type"])
    return variant


def _counts(groups: list[dict[str, Any]]) -> AggregatedCounts:
    return AggregatedCounts(
        groups=[
            UserGroup(
                key=group.get("_id"),
                count=group.get("count", 0),
                users=[
                    UserSummary(
                        id=str(user.get("id")),
                        primary_email=user.get("primary_email"),
                        name=user.get("name"),
                        status=user.get("status"),
                    )
                    for user in group.get("users", [])
                ],
            )
            for group in groups
        ]
    )
