"""SQLAlchemy Core table definitions for the engagement schema.

Users live in Supabase's ``auth.users``; ``user_id`` columns hold their UUIDs
and are not declared as foreign keys here.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from .enums import RelationKind, enrollment_status_enum

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. ENGAGEABLE ENTITIES
# =====================================================
community_posts = Table(
    "community_posts",
    metadata,
    Column("id", BigInteger, primary_key=True, autoincrement=True),
    Column("author_id", UUID(as_uuid=False), nullable=False),
    Column("title", Text, nullable=False),
    Column("content", Text),
    Column("category", Text),
    Column("views", Integer, nullable=False, server_default="0"),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
)

post_comments = Table(
    "post_comments",
    metadata,
    Column("id", BigInteger, primary_key=True, autoincrement=True),
    Column(
        "post_id",
        BigInteger,
        ForeignKey("community_posts.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("parent_id", BigInteger, ForeignKey("post_comments.id", ondelete="CASCADE")),
    Column("author_id", UUID(as_uuid=False), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_post_comments_post_id", "post_id"),
)

lectures = Table(
    "lectures",
    metadata,
    Column("id", BigInteger, primary_key=True, autoincrement=True),
    Column("instructor_id", UUID(as_uuid=False)),
    Column("title", Text, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)

studies = Table(
    "studies",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True, server_default=func.gen_random_uuid()),
    Column("owner_id", UUID(as_uuid=False)),
    Column("title", Text, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 2. RELATIONSHIP TABLES (one row per entity/user pair)
# =====================================================
def _relation_table(name: str, entity_column: str, entity_type, target: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", BigInteger, primary_key=True, autoincrement=True),
        Column(
            entity_column,
            entity_type,
            ForeignKey(target, ondelete="CASCADE"),
            nullable=False,
        ),
        Column("user_id", UUID(as_uuid=False), nullable=False),
        Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
        UniqueConstraint(entity_column, "user_id", name=f"{name}_entity_user_unique"),
        Index(f"idx_{name}_user_id", "user_id"),
    )


post_likes = _relation_table("post_likes", "post_id", BigInteger, "community_posts.id")
comment_likes = _relation_table("comment_likes", "comment_id", BigInteger, "post_comments.id")
lecture_likes = _relation_table("lecture_likes", "lecture_id", BigInteger, "lectures.id")
post_bookmarks = _relation_table("post_bookmarks", "post_id", BigInteger, "community_posts.id")
lecture_bookmarks = _relation_table(
    "lecture_bookmarks", "lecture_id", BigInteger, "lectures.id"
)
study_bookmarks = _relation_table(
    "study_bookmarks", "study_id", UUID(as_uuid=False), "studies.id"
)


# =====================================================
# 3. LECTURE ENROLLMENTS
# =====================================================
lecture_enrollments = Table(
    "lecture_enrollments",
    metadata,
    Column("id", BigInteger, primary_key=True, autoincrement=True),
    Column(
        "lecture_id",
        BigInteger,
        ForeignKey("lectures.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", UUID(as_uuid=False), nullable=False),
    Column("status", enrollment_status_enum, nullable=False, server_default="active"),
    Column("enrolled_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("completed_at", TIMESTAMP(timezone=True)),
    UniqueConstraint("lecture_id", "user_id", name="lecture_enrollments_entity_user_unique"),
    Index("idx_lecture_enrollments_user_id", "user_id"),
)


# Relation kind -> (table, entity column name)
RELATION_TABLES: dict[RelationKind, tuple[Table, str]] = {
    RelationKind.post_like: (post_likes, "post_id"),
    RelationKind.comment_like: (comment_likes, "comment_id"),
    RelationKind.lecture_like: (lecture_likes, "lecture_id"),
    RelationKind.post_bookmark: (post_bookmarks, "post_id"),
    RelationKind.lecture_bookmark: (lecture_bookmarks, "lecture_id"),
    RelationKind.study_bookmark: (study_bookmarks, "study_id"),
    RelationKind.lecture_enrollment: (lecture_enrollments, "lecture_id"),
}
