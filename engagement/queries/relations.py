"""Relationship-row queries (likes, bookmarks) using SQLAlchemy Core.

Every relationship table has an entity column (``post_id``, ``comment_id``,
...) and a ``user_id`` column, unique per pair.
"""

from typing import Any, Iterable

from sqlalchemy import Table, delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncConnection


async def relation_exists(
    conn: AsyncConnection,
    table: Table,
    entity_column: str,
    entity_id: Any,
    user_id: str,
) -> bool:
    """Check whether the user holds the relation to the entity."""
    result = await conn.execute(
        select(table.c.id)
        .where(table.c[entity_column] == entity_id)
        .where(table.c.user_id == user_id)
        .limit(1)
    )
    return result.first() is not None


async def insert_relation(
    conn: AsyncConnection,
    table: Table,
    entity_column: str,
    entity_id: Any,
    user_id: str,
) -> bool:
    """
    Insert the relationship row if absent.

    Returns:
        True if a row was inserted, False if it already existed
    """
    stmt = (
        insert(table)
        .values({entity_column: entity_id, "user_id": user_id})
        .on_conflict_do_nothing(index_elements=[entity_column, "user_id"])
    )
    result = await conn.execute(stmt)
    return result.rowcount > 0


async def delete_relation(
    conn: AsyncConnection,
    table: Table,
    entity_column: str,
    entity_id: Any,
    user_id: str,
) -> bool:
    """
    Delete the relationship row. No-op if absent.

    Returns:
        True if a row was deleted
    """
    result = await conn.execute(
        delete(table)
        .where(table.c[entity_column] == entity_id)
        .where(table.c.user_id == user_id)
    )
    return result.rowcount > 0


async def count_relations(
    conn: AsyncConnection,
    table: Table,
    entity_column: str,
    entity_id: Any,
) -> int:
    """Count relationship rows for one entity."""
    result = await conn.execute(
        select(func.count()).select_from(table).where(table.c[entity_column] == entity_id)
    )
    return result.scalar() or 0


async def count_relations_many(
    conn: AsyncConnection,
    table: Table,
    entity_column: str,
    entity_ids: Iterable[Any],
) -> dict[Any, int]:
    """
    Count relationship rows for many entities in one aggregate query.

    Entities with no rows are included with a count of 0.
    """
    ids = list(entity_ids)
    if not ids:
        return {}

    column = table.c[entity_column]
    result = await conn.execute(
        select(column, func.count().label("count"))
        .where(column.in_(ids))
        .group_by(column)
    )
    counts = {entity_id: 0 for entity_id in ids}
    for row in result.mappings():
        counts[row[entity_column]] = row["count"]
    return counts


async def get_member_entity_ids(
    conn: AsyncConnection,
    table: Table,
    entity_column: str,
    user_id: str,
    entity_ids: Iterable[Any],
) -> set[Any]:
    """Get which of the given entities the user holds the relation to."""
    ids = list(entity_ids)
    if not ids:
        return set()

    column = table.c[entity_column]
    result = await conn.execute(
        select(column).where(table.c.user_id == user_id).where(column.in_(ids))
    )
    return {row[entity_column] for row in result.mappings()}
