"""Query layer for database operations using SQLAlchemy Core."""

from .enrollments import (
    cancel_enrollment,
    complete_enrollment,
    count_enrollments,
    count_enrollments_many,
    enroll,
    get_enrolled_lecture_ids,
    get_enrollment_statuses,
    is_enrolled,
)
from .relations import (
    count_relations,
    count_relations_many,
    delete_relation,
    get_member_entity_ids,
    insert_relation,
    relation_exists,
)
from .views import get_view_counts, increment_post_view

__all__ = [
    # Relationship rows (likes, bookmarks)
    "relation_exists",
    "insert_relation",
    "delete_relation",
    "count_relations",
    "count_relations_many",
    "get_member_entity_ids",
    # Enrollments
    "is_enrolled",
    "enroll",
    "cancel_enrollment",
    "complete_enrollment",
    "count_enrollments",
    "count_enrollments_many",
    "get_enrolled_lecture_ids",
    "get_enrollment_statuses",
    # Views
    "increment_post_view",
    "get_view_counts",
]
