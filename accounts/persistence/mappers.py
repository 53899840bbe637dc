"""Mappers between user documents and table rows."""

from typing import Any, Mapping

from accounts.persistence.documents import Document, get_path
from accounts.persistence.tables import users_table

# Document paths mirrored into indexed columns
MIRRORED_COLUMNS = {
    "_id": users_table.c.id,
    "type": users_table.c.type,
    "userStatus": users_table.c.user_status,
    "archived": users_table.c.archived,
    "emails.primary": users_table.c.primary_email,
    "username": users_table.c.username,
    "sessionId": users_table.c.session_id,
    "jwts.token": users_table.c.access_token,
}


def _first(document: Mapping[str, Any], path: str) -> Any:
    values = get_path(document, path)
    return values[0] if values else None


def document_to_row(document: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a user document (with ``_id``) to table column values."""
    body = {k: v for k, v in document.items() if k != "_id"}
    return {
        "id": str(document["_id"]),
        "type": document.get("type") or "User",
        "user_status": document.get("userStatus"),
        "archived": bool(document.get("archived")),
        "primary_email": _first(document, "emails.primary"),
        "username": document.get("username"),
        "session_id": document.get("sessionId"),
        "access_token": _first(document, "jwts.token"),
        "document": body,
        "created_on": document.get("createdOn"),
        "updated_on": document.get("updatedOn"),
    }


def row_to_document(row: Mapping[str, Any]) -> Document:
    """Convert a table row back to a user document."""
    document = dict(row["document"] or {})
    document["_id"] = row["id"]
    return document
