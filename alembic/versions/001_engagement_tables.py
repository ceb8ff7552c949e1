"""Engagement tables: likes, bookmarks, enrollments, post views.

Revision ID: 001
Revises:
Create Date: 2026-10-19

community_posts, post_comments, lectures and studies already exist in
Supabase; they are created here only when missing (fresh dev databases).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


RELATION_TABLES = [
    # (table, entity column, entity type, referenced table)
    ("post_likes", "post_id", "bigint", "community_posts"),
    ("comment_likes", "comment_id", "bigint", "post_comments"),
    ("lecture_likes", "lecture_id", "bigint", "lectures"),
    ("post_bookmarks", "post_id", "bigint", "community_posts"),
    ("lecture_bookmarks", "lecture_id", "bigint", "lectures"),
    ("study_bookmarks", "study_id", "uuid", "studies"),
]


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS community_posts (
            id bigserial PRIMARY KEY,
            author_id uuid NOT NULL,
            title text NOT NULL,
            content text,
            category text,
            views integer NOT NULL DEFAULT 0,
            created_at timestamptz DEFAULT now(),
            updated_at timestamptz DEFAULT now()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS post_comments (
            id bigserial PRIMARY KEY,
            post_id bigint NOT NULL REFERENCES community_posts(id) ON DELETE CASCADE,
            parent_id bigint REFERENCES post_comments(id) ON DELETE CASCADE,
            author_id uuid NOT NULL,
            content text NOT NULL,
            created_at timestamptz DEFAULT now()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS lectures (
            id bigserial PRIMARY KEY,
            instructor_id uuid,
            title text NOT NULL,
            created_at timestamptz DEFAULT now()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS studies (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            owner_id uuid,
            title text NOT NULL,
            created_at timestamptz DEFAULT now()
        )
    """)

    for table, column, column_type, target in RELATION_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
            sa.Column(
                column,
                postgresql.UUID(as_uuid=False) if column_type == "uuid" else sa.BigInteger,
                sa.ForeignKey(f"{target}.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
            sa.Column(
                "created_at",
                postgresql.TIMESTAMP(timezone=True),
                server_default=sa.func.now(),
            ),
            sa.UniqueConstraint(column, "user_id", name=f"{table}_entity_user_unique"),
        )
        op.create_index(f"idx_{table}_user_id", table, ["user_id"])

    enrollment_status = postgresql.ENUM(
        "active", "completed", "cancelled", name="enrollment_status"
    )
    enrollment_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "lecture_enrollments",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "lecture_id",
            sa.BigInteger,
            sa.ForeignKey("lectures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(name="enrollment_status", create_type=False),
            nullable=False,
            server_default="active",
        ),
        sa.Column(
            "enrolled_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.func.now()
        ),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True)),
        sa.UniqueConstraint(
            "lecture_id", "user_id", name="lecture_enrollments_entity_user_unique"
        ),
    )
    op.create_index("idx_lecture_enrollments_user_id", "lecture_enrollments", ["user_id"])

    # Atomic server-side view increment; returns the new count (NULL if no such post)
    op.execute("""
        CREATE OR REPLACE FUNCTION increment_post_view(post_id bigint)
        RETURNS integer
        LANGUAGE sql
        AS $$
            UPDATE community_posts
            SET views = COALESCE(views, 0) + 1
            WHERE id = post_id
            RETURNING views
        $$
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS increment_post_view(bigint)")
    op.drop_index("idx_lecture_enrollments_user_id", table_name="lecture_enrollments")
    op.drop_table("lecture_enrollments")
    op.execute("DROP TYPE IF EXISTS enrollment_status")
    for table, _, _, _ in reversed(RELATION_TABLES):
        op.drop_index(f"idx_{table}_user_id", table_name=table)
        op.drop_table(table)
