"""Lecture enrollment queries using SQLAlchemy Core.

Cancelling an enrollment keeps the row with status ``cancelled``;
enrolling again reactivates it.
"""

from typing import Any, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import EnrollmentStatus
from ..tables import lecture_enrollments


def _is_enrolled():
    return lecture_enrollments.c.status != EnrollmentStatus.cancelled


async def is_enrolled(conn: AsyncConnection, lecture_id: int, user_id: str) -> bool:
    """Check whether the user has a non-cancelled enrollment for the lecture."""
    result = await conn.execute(
        select(lecture_enrollments.c.id)
        .where(lecture_enrollments.c.lecture_id == lecture_id)
        .where(lecture_enrollments.c.user_id == user_id)
        .where(_is_enrolled())
        .limit(1)
    )
    return result.first() is not None


async def enroll(conn: AsyncConnection, lecture_id: int, user_id: str) -> dict[str, Any]:
    """Create an active enrollment, or reactivate a cancelled one."""
    stmt = insert(lecture_enrollments).values(
        lecture_id=lecture_id,
        user_id=user_id,
        status=EnrollmentStatus.active,
        enrolled_at=func.now(),
    )
    stmt = stmt.on_conflict_do_update(
        constraint="lecture_enrollments_entity_user_unique",
        set_={
            "status": EnrollmentStatus.active,
            "enrolled_at": func.now(),
            "completed_at": None,
        },
        where=lecture_enrollments.c.status == EnrollmentStatus.cancelled,
    ).returning(lecture_enrollments)
    result = await conn.execute(stmt)
    row = result.mappings().first()
    return dict(row) if row else {}


async def cancel_enrollment(conn: AsyncConnection, lecture_id: int, user_id: str) -> bool:
    """
    Mark the user's enrollment as cancelled. No-op if absent or already cancelled.

    Returns:
        True if an enrollment was cancelled
    """
    result = await conn.execute(
        update(lecture_enrollments)
        .where(lecture_enrollments.c.lecture_id == lecture_id)
        .where(lecture_enrollments.c.user_id == user_id)
        .where(_is_enrolled())
        .values(status=EnrollmentStatus.cancelled)
    )
    return result.rowcount > 0


async def complete_enrollment(conn: AsyncConnection, lecture_id: int, user_id: str) -> bool:
    """
    Mark the user's active enrollment as completed and stamp completed_at.

    Returns:
        True if an active enrollment was completed
    """
    result = await conn.execute(
        update(lecture_enrollments)
        .where(lecture_enrollments.c.lecture_id == lecture_id)
        .where(lecture_enrollments.c.user_id == user_id)
        .where(lecture_enrollments.c.status == EnrollmentStatus.active)
        .values(status=EnrollmentStatus.completed, completed_at=func.now())
    )
    return result.rowcount > 0


async def count_enrollments(conn: AsyncConnection, lecture_id: int) -> int:
    """Count non-cancelled enrollments for a lecture."""
    result = await conn.execute(
        select(func.count())
        .select_from(lecture_enrollments)
        .where(lecture_enrollments.c.lecture_id == lecture_id)
        .where(_is_enrolled())
    )
    return result.scalar() or 0


async def count_enrollments_many(
    conn: AsyncConnection, lecture_ids: Iterable[int]
) -> dict[int, int]:
    """Count non-cancelled enrollments for many lectures in one query."""
    ids = list(lecture_ids)
    if not ids:
        return {}

    result = await conn.execute(
        select(lecture_enrollments.c.lecture_id, func.count().label("count"))
        .where(lecture_enrollments.c.lecture_id.in_(ids))
        .where(_is_enrolled())
        .group_by(lecture_enrollments.c.lecture_id)
    )
    counts = {lecture_id: 0 for lecture_id in ids}
    for row in result.mappings():
        counts[row["lecture_id"]] = row["count"]
    return counts


async def get_enrolled_lecture_ids(
    conn: AsyncConnection, user_id: str, lecture_ids: Iterable[int]
) -> set[int]:
    """Get which of the given lectures the user is enrolled in."""
    ids = list(lecture_ids)
    if not ids:
        return set()

    result = await conn.execute(
        select(lecture_enrollments.c.lecture_id)
        .where(lecture_enrollments.c.user_id == user_id)
        .where(lecture_enrollments.c.lecture_id.in_(ids))
        .where(_is_enrolled())
    )
    return {row["lecture_id"] for row in result.mappings()}


async def get_enrollment_statuses(
    conn: AsyncConnection, user_id: str, lecture_ids: Iterable[int]
) -> dict[int, EnrollmentStatus]:
    """Get the user's enrollment status per lecture, cancelled rows included."""
    ids = list(lecture_ids)
    if not ids:
        return {}

    result = await conn.execute(
        select(lecture_enrollments.c.lecture_id, lecture_enrollments.c.status)
        .where(lecture_enrollments.c.user_id == user_id)
        .where(lecture_enrollments.c.lecture_id.in_(ids))
    )
    return {
        row["lecture_id"]: EnrollmentStatus(row["status"]) for row in result.mappings()
    }
