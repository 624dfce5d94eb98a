"""init schema (groups + users + files + shares)

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("groups"):
        op.create_table(
            "groups",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("name", sa.String(length=64), nullable=False),
            sa.Column("permissions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        )

    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("nickname", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("api_token", sa.Text(), nullable=True),
            sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id"), nullable=True),
            sa.Column(
                "share_links_in_profile",
                sa.String(length=16),
                nullable=False,
                server_default="public_only",
            ),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_users_username", "users", ["username"], unique=True)
        op.create_index("ix_users_group_id", "users", ["group_id"], unique=False)
        op.create_index("ix_users_is_active", "users", ["is_active"], unique=False)
        op.create_index("ix_users_created_at", "users", ["created_at"], unique=False)

    if not _table_exists("files"):
        op.create_table(
            "files",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("parent_id", sa.Integer(), sa.ForeignKey("files.id"), nullable=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("display_name", sa.String(length=255), nullable=True),
            sa.Column("type", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("size", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_files_owner_id", "files", ["owner_id"], unique=False)
        op.create_index("ix_files_parent_id", "files", ["parent_id"], unique=False)
        op.create_index("ix_files_created_at", "files", ["created_at"], unique=False)
        op.create_index("ix_files_updated_at", "files", ["updated_at"], unique=False)

    if not _table_exists("shares"):
        op.create_table(
            "shares",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("file_id", sa.Integer(), sa.ForeignKey("files.id"), nullable=True),
            sa.Column("password", sa.String(length=32), nullable=False, server_default=""),
            sa.Column("views", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("downloads", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("remain_downloads", sa.Integer(), nullable=True),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_shares_user_id", "shares", ["user_id"], unique=False)
        op.create_index("ix_shares_file_id", "shares", ["file_id"], unique=False)
        op.create_index("ix_shares_expires_at", "shares", ["expires_at"], unique=False)
        op.create_index("ix_shares_created_at", "shares", ["created_at"], unique=False)
        op.create_index("ix_shares_updated_at", "shares", ["updated_at"], unique=False)


def downgrade() -> None:
    op.drop_table("shares")
    op.drop_table("files")
    op.drop_table("users")
    op.drop_table("groups")
