"""content and aggregate tables

Revision ID: 5b1f0c2d9a47
Revises:
Create Date: 2026-10-18 09:12:44.510231

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from chorus_aggregates.db.types import UTCDateTime

# revision identifiers, used by Alembic.
revision: str = "5b1f0c2d9a47"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True)


def _fk(name: str, target: str, *, nullable: bool = False, primary_key: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Integer(),
        sa.ForeignKey(f"{target}.id", ondelete="CASCADE"),
        nullable=nullable,
        primary_key=primary_key,
    )


def _flag(name: str, default: bool = False) -> sa.Column:
    return sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.true() if default else sa.false())


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default="0")


def _published(name: str = "published") -> sa.Column:
    return sa.Column(name, UTCDateTime(), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    """Create base content tables and the aggregate tables derived from them."""
    op.create_table(
        "instance",
        _id(),
        sa.Column("domain", sa.Text(), nullable=False, unique=True),
        _published(),
    )
    op.create_table(
        "site",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        _fk("instance_id", "instance"),
        _published(),
    )
    op.create_table(
        "person",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        _fk("instance_id", "instance"),
        _flag("local", default=True),
        _published(),
    )
    op.create_table(
        "community",
        _id(),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        _fk("instance_id", "instance"),
        _flag("local", default=True),
        _published(),
    )
    op.create_table(
        "post",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        _fk("creator_id", "person"),
        _fk("community_id", "community"),
        _flag("deleted"),
        _flag("removed"),
        _flag("local", default=True),
        _flag("featured_community"),
        _flag("featured_local"),
        _published(),
    )
    op.create_index("ix_post_community_id", "post", ["community_id"])
    op.create_table(
        "comment",
        _id(),
        sa.Column("content", sa.Text(), nullable=False),
        _fk("creator_id", "person"),
        _fk("post_id", "post"),
        _flag("deleted"),
        _flag("removed"),
        _flag("local", default=True),
        _published(),
    )
    op.create_index("ix_comment_post_id", "comment", ["post_id"])

    for thing in ("post", "comment"):
        op.create_table(
            f"{thing}_like",
            _fk("person_id", "person", primary_key=True),
            _fk(f"{thing}_id", thing, primary_key=True),
            sa.Column("score", sa.SmallInteger(), nullable=False),
            _published(),
        )
        op.create_index(f"ix_{thing}_like_{thing}_id", f"{thing}_like", [f"{thing}_id"])
        op.create_table(
            f"{thing}_report",
            _id(),
            _fk("creator_id", "person"),
            _fk(f"{thing}_id", thing),
            sa.Column("reason", sa.Text(), nullable=False),
            _flag("resolved"),
            _fk("resolver_id", "person", nullable=True),
            _published(),
            sa.Column("updated", UTCDateTime(), nullable=True),
        )
        op.create_index(f"ix_{thing}_report_{thing}_id", f"{thing}_report", [f"{thing}_id"])
        op.create_table(
            f"mod_remove_{thing}",
            _id(),
            _fk("mod_person_id", "person"),
            _fk(f"{thing}_id", thing),
            sa.Column("reason", sa.Text(), nullable=True),
            _flag("removed", default=True),
            _published("when_"),
        )

    op.create_table(
        "post_aggregates",
        _fk("post_id", "post", primary_key=True),
        _counter("comments"),
        _counter("score"),
        _counter("upvotes"),
        _counter("downvotes"),
        sa.Column("controversy_rank", sa.Float(), nullable=False, server_default="0"),
        _published(),
        _published("newest_comment_time"),
        _published("newest_comment_time_necro"),
        _flag("featured_community"),
        _flag("featured_local"),
        _fk("community_id", "community"),
        _fk("creator_id", "person"),
        _fk("instance_id", "instance"),
    )
    op.create_index("ix_post_aggregates_community_id", "post_aggregates", ["community_id"])
    op.create_index("ix_post_aggregates_creator_id", "post_aggregates", ["creator_id"])
    op.create_table(
        "comment_aggregates",
        _fk("comment_id", "comment", primary_key=True),
        _counter("score"),
        _counter("upvotes"),
        _counter("downvotes"),
        sa.Column("controversy_rank", sa.Float(), nullable=False, server_default="0"),
        _published(),
    )
    op.create_table(
        "person_aggregates",
        _fk("person_id", "person", primary_key=True),
        _counter("post_count"),
        _counter("post_score"),
        _counter("comment_count"),
        _counter("comment_score"),
    )
    op.create_table(
        "community_aggregates",
        _fk("community_id", "community", primary_key=True),
        _counter("posts"),
        _counter("comments"),
        _published(),
    )
    op.create_table(
        "site_aggregates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False, server_default="1"),
        _fk("site_id", "site"),
        _counter("users"),
        _counter("comments"),
        _counter("communities"),
        sa.CheckConstraint("id = 1", name="ck_site_aggregates_singleton"),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    for table in (
        "site_aggregates",
        "community_aggregates",
        "person_aggregates",
        "comment_aggregates",
        "post_aggregates",
        "mod_remove_comment",
        "comment_report",
        "comment_like",
        "mod_remove_post",
        "post_report",
        "post_like",
        "comment",
        "post",
        "community",
        "person",
        "site",
        "instance",
    ):
        op.drop_table(table)
