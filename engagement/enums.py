"""SQLAlchemy enum definitions for the engagement schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class RelationKind(str, enum.Enum):
    post_like = "post_like"
    comment_like = "comment_like"
    lecture_like = "lecture_like"
    post_bookmark = "post_bookmark"
    lecture_bookmark = "lecture_bookmark"
    study_bookmark = "study_bookmark"
    lecture_enrollment = "lecture_enrollment"


class EnrollmentStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


# =====================================================
# SQLAlchemy Enum Types
# These reference existing PostgreSQL types (create_type=False)
# =====================================================

enrollment_status_enum = SQLEnum(
    EnrollmentStatus, name="enrollment_status", create_type=False, native_enum=True
)
