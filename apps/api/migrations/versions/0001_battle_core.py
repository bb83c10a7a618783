"""battle core: users/recipes mirror, battles, entries, media, votes, admin_logs + append-only triggers

Revision ID: 0001_battle_core
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_battle_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ---- tables ----
    op.create_table(
        "users",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.CheckConstraint("role IN ('member', 'moderator', 'admin')", name="check_user_role"),
        sa.CheckConstraint("level >= 1", name="check_user_level"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "recipes",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("author_id", sa.Text(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_recipes_author_id", "recipes", ["author_id"], unique=False)

    op.create_table(
        "battles",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("dish_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rules", sa.Text(), nullable=True),
        sa.Column("starts_at", sa.Text(), nullable=False),
        sa.Column("ends_at", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="upcoming"),
        sa.Column("creator_id", sa.Text(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("status IN ('upcoming', 'active', 'closed')", name="check_battle_status"),
    )
    op.create_index("ix_battles_starts_at", "battles", ["starts_at"], unique=False)
    op.create_index("ix_battles_ends_at", "battles", ["ends_at"], unique=False)

    op.create_table(
        "battle_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("battle_id", sa.Text(), sa.ForeignKey("battles.id"), nullable=False),
        sa.Column("recipe_id", sa.Text(), sa.ForeignKey("recipes.id"), nullable=False),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.UniqueConstraint("battle_id", "recipe_id", name="uq_battle_entries_battle_recipe"),
    )
    op.create_index("ix_battle_entries_battle_id", "battle_entries", ["battle_id"], unique=False)
    op.create_index("ix_battle_entries_recipe_id", "battle_entries", ["recipe_id"], unique=False)

    op.create_table(
        "media",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("media_type", sa.Text(), nullable=False),
        sa.Column("file_size_bytes", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.Text(), nullable=True),
        sa.Column("uploaded_by", sa.Text(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("upload_ip", sa.Text(), nullable=True),
        sa.Column("video_hash", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.CheckConstraint("media_type IN ('image', 'video')", name="check_media_type"),
    )
    op.create_index("ix_media_uploaded_by", "media", ["uploaded_by"], unique=False)
    op.create_index("ix_media_video_hash", "media", ["video_hash"], unique=False)

    op.create_table(
        "battle_votes",
        sa.Column("battle_id", sa.Text(), sa.ForeignKey("battles.id"), primary_key=True),
        sa.Column("user_id", sa.Text(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("recipe_id", sa.Text(), sa.ForeignKey("recipes.id"), nullable=False),
        sa.Column("proof_media_id", sa.Text(), sa.ForeignKey("media.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("proof_verified_at", sa.Text(), nullable=True),
        sa.Column("verified_by", sa.Text(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_battle_votes_user_id", "battle_votes", ["user_id"], unique=False)
    op.create_index("ix_battle_votes_recipe_id", "battle_votes", ["recipe_id"], unique=False)
    op.create_index("ix_battle_votes_verified", "battle_votes", ["verified"], unique=False)

    op.create_table(
        "admin_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("admin_id", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("target_type", sa.Text(), nullable=False),
        sa.Column("target_id", sa.Text(), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("ip_address", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_admin_logs_admin_id", "admin_logs", ["admin_id"], unique=False)
    op.create_index("ix_admin_logs_created_at", "admin_logs", ["created_at"], unique=False)

    # ---- append-only triggers (SQLite) ----
    op.execute("""
    CREATE TRIGGER IF NOT EXISTS trg_admin_logs_no_update
    BEFORE UPDATE ON admin_logs
    BEGIN
      SELECT RAISE(ABORT, 'append-only: admin_logs cannot be updated');
    END;
    """)
    op.execute("""
    CREATE TRIGGER IF NOT EXISTS trg_admin_logs_no_delete
    BEFORE DELETE ON admin_logs
    BEGIN
      SELECT RAISE(ABORT, 'append-only: admin_logs cannot be deleted');
    END;
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_admin_logs_no_delete;")
    op.execute("DROP TRIGGER IF EXISTS trg_admin_logs_no_update;")

    op.drop_index("ix_admin_logs_created_at", table_name="admin_logs")
    op.drop_index("ix_admin_logs_admin_id", table_name="admin_logs")
    op.drop_table("admin_logs")

    op.drop_index("ix_battle_votes_verified", table_name="battle_votes")
    op.drop_index("ix_battle_votes_recipe_id", table_name="battle_votes")
    op.drop_index("ix_battle_votes_user_id", table_name="battle_votes")
    op.drop_table("battle_votes")

    op.drop_index("ix_media_video_hash", table_name="media")
    op.drop_index("ix_media_uploaded_by", table_name="media")
    op.drop_table("media")

    op.drop_index("ix_battle_entries_recipe_id", table_name="battle_entries")
    op.drop_index("ix_battle_entries_battle_id", table_name="battle_entries")
    op.drop_table("battle_entries")

    op.drop_index("ix_battles_ends_at", table_name="battles")
    op.drop_index("ix_battles_starts_at", table_name="battles")
    op.drop_table("battles")

    op.drop_index("ix_recipes_author_id", table_name="recipes")
    op.drop_table("recipes")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
