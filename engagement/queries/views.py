"""Post view-count queries using SQLAlchemy Core."""

from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import community_posts


async def increment_post_view(conn: AsyncConnection, post_id: int) -> int | None:
    """
    Atomically increment a post's view counter server-side.

    Calls the ``increment_post_view`` database function.

    Returns:
        The new view count, or None if the post does not exist
    """
    result = await conn.execute(select(func.increment_post_view(post_id)))
    return result.scalar()


async def get_view_counts(
    conn: AsyncConnection, post_ids: Iterable[int]
) -> dict[int, int]:
    """Get the stored view counters for the given posts."""
    ids = list(post_ids)
    if not ids:
        return {}

    result = await conn.execute(
        select(community_posts.c.id, community_posts.c.views).where(
            community_posts.c.id.in_(ids)
        )
    )
    return {row["id"]: row["views"] or 0 for row in result.mappings()}
