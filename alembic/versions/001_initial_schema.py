"""Initial schema: portal users, sessions, token blacklist, devotee hierarchy.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # =========================================================================
    # Auth tables (portal/auth)
    # =========================================================================

    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.Text, unique=True, nullable=False),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("full_name", sa.Text),
        sa.Column("email", sa.Text),
        sa.Column("role", sa.Text, nullable=False),
        sa.Column("is_active", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(
            "role IN ('ADMIN', 'OFFICE', 'DISTRICT_SUPERVISOR')", name="ck_users_role"
        ),
    )

    op.create_table(
        "user_districts",
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("district_code", sa.Text, nullable=False),
        sa.Column("district_name", sa.Text),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("user_id", "district_code"),
    )

    # One row per user: the single-login invariant lives in the UNIQUE constraint
    op.create_table(
        "user_sessions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("session_token", sa.Text, nullable=False),
        sa.Column("expires_at", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("idx_user_sessions_expires_at", "user_sessions", ["expires_at"])

    op.create_table(
        "jwt_blacklist",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("token_hash", sa.Text, unique=True, nullable=False),
        sa.Column("expired_at", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("idx_jwt_blacklist_expired_at", "jwt_blacklist", ["expired_at"])

    # =========================================================================
    # Devotee hierarchy (core/hierarchy)
    # =========================================================================

    op.create_table(
        "devotees",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text),
        sa.Column("legal_name", sa.Text, nullable=False),
        sa.Column("district_code", sa.Text),
        sa.Column("leadership_role", sa.Text),
        sa.Column(
            "reporting_to_devotee_id",
            sa.Integer,
            sa.ForeignKey("devotees.id", ondelete="SET NULL"),
        ),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(
            "reporting_to_devotee_id IS NULL OR reporting_to_devotee_id != id",
            name="ck_devotees_no_self_report",
        ),
    )
    op.create_index("idx_devotees_district_code", "devotees", ["district_code"])
    op.create_index("idx_devotees_reporting_to", "devotees", ["reporting_to_devotee_id"])
    op.create_index("idx_devotees_leadership_role", "devotees", ["leadership_role"])

    op.create_table(
        "role_change_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("devotee_id", sa.Integer, sa.ForeignKey("devotees.id", ondelete="CASCADE"), nullable=False),
        sa.Column("previous_role", sa.Text),
        sa.Column("new_role", sa.Text),
        sa.Column("previous_reporting_to", sa.Integer),
        sa.Column("new_reporting_to", sa.Integer),
        sa.Column("changed_by", sa.Integer, nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("district_code", sa.Text),
        sa.Column("subordinates_transferred", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("idx_role_change_history_devotee_id", "role_change_history", ["devotee_id"])


def downgrade() -> None:
    op.drop_index("idx_role_change_history_devotee_id", table_name="role_change_history")
    op.drop_table("role_change_history")
    op.drop_index("idx_devotees_leadership_role", table_name="devotees")
    op.drop_index("idx_devotees_reporting_to", table_name="devotees")
    op.drop_index("idx_devotees_district_code", table_name="devotees")
    op.drop_table("devotees")
    op.drop_index("idx_jwt_blacklist_expired_at", table_name="jwt_blacklist")
    op.drop_table("jwt_blacklist")
    op.drop_index("idx_user_sessions_expires_at", table_name="user_sessions")
    op.drop_table("user_sessions")
    op.drop_table("user_districts")
    op.drop_table("users")
