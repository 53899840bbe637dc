"""SQLAlchemy table definitions for accounts.

These table definitions match the schema defined in Alembic migrations.
"""

from sqlalchemy import BigInteger, Boolean, Column, Index, MetaData, String, Table, Text
from sqlalchemy.dialects.postgresql import JSONB

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# USERS TABLE
# ============================================================================
# The full user document lives in "document"; the other columns mirror the
# fields lookups and authentication filter on.
users_table = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("type", String(32), nullable=False, server_default="User"),
    Column("user_status", String(32), nullable=True),
    Column("archived", Boolean, nullable=False, server_default="false"),
    Column("primary_email", String(254), nullable=True),
    Column("username", String(255), nullable=True),
    Column("session_id", String(255), nullable=True),
    Column("access_token", Text, nullable=True),
    Column("document", JSONB, nullable=False),
    Column("created_on", BigInteger, nullable=True),  # epoch milliseconds
    Column("updated_on", BigInteger, nullable=True),
)

Index("idx_users_primary_email", users_table.c.primary_email)
Index("idx_users_username", users_table.c.username)
Index("idx_users_session_id", users_table.c.session_id)
Index("idx_users_access_token", users_table.c.access_token)
Index("idx_users_type_status", users_table.c.type, users_table.c.user_status)
