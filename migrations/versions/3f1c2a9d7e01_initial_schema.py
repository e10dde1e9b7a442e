"""initial schema

Revision ID: 3f1c2a9d7e01
Revises:
Create Date: 2026-10-19 09:12:41.503118

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7e01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_ONLY = sa.text("status != 'ARCHIVED'")


def upgrade() -> None:
    """Create users, textures, mods, contributions, polls and fork jobs."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("github_login", sa.Text(), nullable=True, unique=True),
        sa.Column("github_token", sa.Text(), nullable=True),
    )
    op.create_table(
        "texture",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("aliases", sa.JSON(), nullable=False),
        sa.Column("file", sa.Text(), nullable=False),
        sa.Column("hash", sa.String(64), nullable=False, unique=True),
    )
    op.create_table(
        "mod",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("forge_id", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("authors", sa.JSON(), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
    )
    op.create_table(
        "mod_version",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("mod_id", sa.String(32), sa.ForeignKey("mod.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version", sa.Text(), nullable=False),
        sa.Column("mc_version", sa.Text(), nullable=False),
        sa.UniqueConstraint("mod_id", "version", name="uq_mod_version"),
    )
    op.create_table(
        "linked_texture",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "texture_id",
            sa.String(32),
            sa.ForeignKey("texture.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "mod_version_id",
            sa.String(32),
            sa.ForeignKey("mod_version.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_path", sa.Text(), nullable=False),
        sa.UniqueConstraint("mod_version_id", "asset_path", name="uq_linked_texture_path"),
    )
    op.create_table(
        "poll",
        sa.Column("id", sa.String(32), primary_key=True),
    )
    for table_name in ("poll_upvote", "poll_downvote"):
        op.create_table(
            table_name,
            sa.Column(
                "poll_id",
                sa.String(32),
                sa.ForeignKey("poll.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            sa.Column(
                "user_id",
                sa.String(32),
                sa.ForeignKey("user_account.id", ondelete="CASCADE"),
                primary_key=True,
            ),
        )
    op.create_table(
        "contribution",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "owner_id",
            sa.String(32),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "texture_id",
            sa.String(32),
            sa.ForeignKey("texture.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("resolution", sa.String(8), nullable=False),
        sa.Column("hash", sa.String(64), nullable=False),
        sa.Column("file", sa.Text(), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("mcmeta", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("poll_id", sa.String(32), sa.ForeignKey("poll.id"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "uq_contribution_active_hash",
        "contribution",
        ["hash"],
        unique=True,
        sqlite_where=ACTIVE_ONLY,
        postgresql_where=ACTIVE_ONLY,
    )
    op.create_index("ix_contribution_owner_resolution", "contribution", ["owner_id", "resolution"])
    op.create_table(
        "contribution_co_author",
        sa.Column(
            "contribution_id",
            sa.String(32),
            sa.ForeignKey("contribution.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "fork_job",
        sa.Column(
            "owner_id",
            sa.String(32),
            sa.ForeignKey("user_account.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("state", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("fork_job")
    op.drop_table("contribution_co_author")
    op.drop_index("ix_contribution_owner_resolution", table_name="contribution")
    op.drop_index("uq_contribution_active_hash", table_name="contribution")
    op.drop_table("contribution")
    op.drop_table("poll_downvote")
    op.drop_table("poll_upvote")
    op.drop_table("poll")
    op.drop_table("linked_texture")
    op.drop_table("mod_version")
    op.drop_table("mod")
    op.drop_table("texture")
    op.drop_table("user_account")
