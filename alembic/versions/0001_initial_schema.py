"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for Guardarr:
users, rules, user_rules, temporary_bypasses, applied_restrictions,
activity_log, settings.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("plex_id", sa.String(64), nullable=False, unique=True),
        sa.Column("plex_username", sa.String(255), nullable=False),
        sa.Column("plex_email", sa.String(255), nullable=True),
        sa.Column("plex_thumb", sa.String(500), nullable=True),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("is_home", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("is_restricted", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("deactivated", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- rules ---
    op.create_table(
        "rules",
        sa.Column("rule_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("days", sa.JSON, nullable=False),
        sa.Column("start_time", sa.Time, nullable=False),
        sa.Column("end_time", sa.Time, nullable=False),
        sa.Column("allowed_ratings", sa.JSON, nullable=False),
        sa.Column("blocked_ratings", sa.JSON, nullable=False),
        sa.Column("allowed_tv_ratings", sa.JSON, nullable=False),
        sa.Column("blocked_tv_ratings", sa.JSON, nullable=False),
        sa.Column("include_labels", sa.JSON, nullable=False),
        sa.Column("exclude_labels", sa.JSON, nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- user_rules (assignments) ---
    op.create_table(
        "user_rules",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("rule_id", sa.String(36), sa.ForeignKey("rules.rule_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- temporary_bypasses ---
    op.create_table(
        "temporary_bypasses",
        sa.Column("bypass_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.user_id", ondelete="CASCADE"),
                  nullable=False, unique=True),
        sa.Column("minutes", sa.Integer, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=False, server_default="admin"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_temporary_bypasses_expires_at", "temporary_bypasses", ["expires_at"])

    # --- applied_restrictions (no FKs: must outlive deleted users/rules) ---
    op.create_table(
        "applied_restrictions",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("rule_id", sa.String(36), primary_key=True),
        sa.Column("plex_id", sa.String(64), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("rule_name", sa.String(150), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- activity_log ---
    op.create_table(
        "activity_log",
        sa.Column("activity_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("plex_username", sa.String(255), nullable=True),
        sa.Column("rule_name", sa.String(150), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_log_action", "activity_log", ["action"])

    # --- settings ---
    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_index("ix_activity_log_action", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_table("applied_restrictions")
    op.drop_index("ix_temporary_bypasses_expires_at", table_name="temporary_bypasses")
    op.drop_table("temporary_bypasses")
    op.drop_table("user_rules")
    op.drop_table("rules")
    op.drop_table("users")
