"""create_users

Create the users table: one JSONB document per account, with the fields
used by lookups and authentication mirrored into indexed columns.

Revision ID: 3c1f0a7d52e4
Revises:
Create Date: 2026-10-19 10:12:44.318204

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3c1f0a7d52e4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.String(32), nullable=False, server_default="User"),
        sa.Column("user_status", sa.String(32), nullable=True),
        sa.Column("archived", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("primary_email", sa.String(254), nullable=True),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("access_token", sa.Text, nullable=True),
        sa.Column("document", postgresql.JSONB, nullable=False),
        sa.Column("created_on", sa.BigInteger, nullable=True),
        sa.Column("updated_on", sa.BigInteger, nullable=True),
    )

    op.create_index("idx_users_primary_email", "users", ["primary_email"])
    op.create_index("idx_users_username", "users", ["username"])
    op.create_index("idx_users_session_id", "users", ["session_id"])
    op.create_index("idx_users_access_token", "users", ["access_token"])
    op.create_index("idx_users_type_status", "users", ["type", "user_status"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_users_type_status", table_name="users")
    op.drop_index("idx_users_access_token", table_name="users")
    op.drop_index("idx_users_session_id", table_name="users")
    op.drop_index("idx_users_username", table_name="users")
    op.drop_index("idx_users_primary_email", table_name="users")
    op.drop_table("users")
