"""
Remote mutation gateway.

Translates one logical operation (insert/delete a relationship row, count
rows, call the view-increment procedure) into one database call in its own
transaction. Database and transport errors come out as RemoteFailure.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncGenerator, Callable, Iterable, Protocol

import sentry_sdk
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from .database import get_transaction
from .enums import EnrollmentStatus, RelationKind
from .errors import RemoteFailure
from .projections import EntityId
from .queries import enrollments as enrollment_queries
from .queries import relations as relation_queries
from .queries import views as view_queries
from .tables import RELATION_TABLES

logger = logging.getLogger(__name__)

TransactionFactory = Callable[[], AsyncContextManager[AsyncConnection]]

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class RelationGateway(Protocol):
    """Remote capabilities one relation kind needs."""

    async def exists(self, entity_id: EntityId, user_id: str) -> bool: ...

    async def insert(self, entity_id: EntityId, user_id: str) -> None: ...

    async def delete(self, entity_id: EntityId, user_id: str) -> None: ...

    async def count(self, entity_id: EntityId) -> int: ...

    async def count_many(self, entity_ids: Iterable[EntityId]) -> dict[EntityId, int]: ...

    async def member_ids(
        self, user_id: str, entity_ids: Iterable[EntityId]
    ) -> set[EntityId]: ...


class EnrollmentGateway(RelationGateway, Protocol):
    """Relation capabilities plus the enrollment lifecycle."""

    async def complete(self, entity_id: EntityId, user_id: str) -> None: ...

    async def statuses(
        self, user_id: str, entity_ids: Iterable[EntityId]
    ) -> dict[EntityId, EnrollmentStatus]: ...


class CounterGateway(Protocol):
    """Remote capabilities for server-side counters (post views)."""

    # Returns the new count, or None when the entity does not exist
    async def increment(self, entity_id: EntityId) -> int | None: ...

    async def fetch_counts(self, entity_ids: Iterable[EntityId]) -> dict[EntityId, int]: ...


def is_unique_violation(error: IntegrityError) -> bool:
    """Check whether an IntegrityError is a unique-constraint violation."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == UNIQUE_VIOLATION


@asynccontextmanager
async def remote_call(operation: str) -> AsyncGenerator[None, None]:
    """Turn database/transport errors raised inside the block into RemoteFailure."""
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Remote {operation} failed: {e}")
        sentry_sdk.capture_exception(e)
        raise RemoteFailure(operation, e) from e


class SqlRelationGateway:
    """Likes and bookmarks: one row per (entity, user) in the kind's table."""

    def __init__(
        self,
        kind: RelationKind,
        transaction: TransactionFactory = get_transaction,
    ):
        if kind not in RELATION_TABLES:
            raise ValueError(f"No relationship table for {kind}")
        self.kind = kind
        self._table, self._entity_column = RELATION_TABLES[kind]
        self._transaction = transaction

    def _op(self, name: str) -> str:
        return f"{self.kind.value}.{name}"

    async def exists(self, entity_id: EntityId, user_id: str) -> bool:
        async with remote_call(self._op("exists")):
            async with self._transaction() as conn:
                return await relation_queries.relation_exists(
                    conn, self._table, self._entity_column, entity_id, user_id
                )

    async def insert(self, entity_id: EntityId, user_id: str) -> None:
        async with remote_call(self._op("insert")):
            try:
                async with self._transaction() as conn:
                    inserted = await relation_queries.insert_relation(
                        conn, self._table, self._entity_column, entity_id, user_id
                    )
            except IntegrityError as e:
                if not is_unique_violation(e):
                    raise
                inserted = False
        if not inserted:
            logger.info(f"{self.kind.value} {entity_id} already held by user {user_id}")

    async def delete(self, entity_id: EntityId, user_id: str) -> None:
        async with remote_call(self._op("delete")):
            async with self._transaction() as conn:
                await relation_queries.delete_relation(
                    conn, self._table, self._entity_column, entity_id, user_id
                )

    async def count(self, entity_id: EntityId) -> int:
        async with remote_call(self._op("count")):
            async with self._transaction() as conn:
                return await relation_queries.count_relations(
                    conn, self._table, self._entity_column, entity_id
                )

    async def count_many(self, entity_ids: Iterable[EntityId]) -> dict[EntityId, int]:
        async with remote_call(self._op("count_many")):
            async with self._transaction() as conn:
                return await relation_queries.count_relations_many(
                    conn, self._table, self._entity_column, entity_ids
                )

    async def member_ids(
        self, user_id: str, entity_ids: Iterable[EntityId]
    ) -> set[EntityId]:
        async with remote_call(self._op("member_ids")):
            async with self._transaction() as conn:
                return await relation_queries.get_member_entity_ids(
                    conn, self._table, self._entity_column, user_id, entity_ids
                )


class SqlEnrollmentGateway:
    """Lecture enrollments: leaving cancels the row instead of deleting it."""

    kind = RelationKind.lecture_enrollment

    def __init__(self, transaction: TransactionFactory = get_transaction):
        self._transaction = transaction

    async def exists(self, entity_id: Any, user_id: str) -> bool:
        async with remote_call("lecture_enrollment.exists"):
            async with self._transaction() as conn:
                return await enrollment_queries.is_enrolled(conn, entity_id, user_id)

    async def insert(self, entity_id: Any, user_id: str) -> None:
        async with remote_call("lecture_enrollment.insert"):
            async with self._transaction() as conn:
                await enrollment_queries.enroll(conn, entity_id, user_id)
        logger.info(f"User {user_id} enrolled in lecture {entity_id}")

    async def delete(self, entity_id: Any, user_id: str) -> None:
        async with remote_call("lecture_enrollment.delete"):
            async with self._transaction() as conn:
                cancelled = await enrollment_queries.cancel_enrollment(
                    conn, entity_id, user_id
                )
        if cancelled:
            logger.info(f"User {user_id} cancelled enrollment in lecture {entity_id}")

    async def count(self, entity_id: Any) -> int:
        async with remote_call("lecture_enrollment.count"):
            async with self._transaction() as conn:
                return await enrollment_queries.count_enrollments(conn, entity_id)

    async def count_many(self, entity_ids: Iterable[Any]) -> dict[Any, int]:
        async with remote_call("lecture_enrollment.count_many"):
            async with self._transaction() as conn:
                return await enrollment_queries.count_enrollments_many(conn, entity_ids)

    async def member_ids(self, user_id: str, entity_ids: Iterable[Any]) -> set[Any]:
        async with remote_call("lecture_enrollment.member_ids"):
            async with self._transaction() as conn:
                return await enrollment_queries.get_enrolled_lecture_ids(
                    conn, user_id, entity_ids
                )

    async def complete(self, entity_id: Any, user_id: str) -> None:
        async with remote_call("lecture_enrollment.complete"):
            async with self._transaction() as conn:
                completed = await enrollment_queries.complete_enrollment(
                    conn, entity_id, user_id
                )
        if completed:
            logger.info(f"User {user_id} completed lecture {entity_id}")
        else:
            logger.info(f"No active enrollment to complete: lecture {entity_id}, user {user_id}")

    async def statuses(
        self, user_id: str, entity_ids: Iterable[Any]
    ) -> dict[Any, EnrollmentStatus]:
        async with remote_call("lecture_enrollment.statuses"):
            async with self._transaction() as conn:
                return await enrollment_queries.get_enrollment_statuses(
                    conn, user_id, entity_ids
                )


class SqlViewGateway:
    """Post view counters backed by the increment_post_view database function."""

    def __init__(self, transaction: TransactionFactory = get_transaction):
        self._transaction = transaction

    async def increment(self, entity_id: Any) -> int | None:
        async with remote_call("post_view.increment"):
            async with self._transaction() as conn:
                return await view_queries.increment_post_view(conn, entity_id)

    async def fetch_counts(self, entity_ids: Iterable[Any]) -> dict[Any, int]:
        async with remote_call("post_view.fetch_counts"):
            async with self._transaction() as conn:
                return await view_queries.get_view_counts(conn, entity_ids)


def make_relation_gateway(kind: RelationKind) -> RelationGateway:
    """Build the SQL gateway for a relation kind."""
    if kind == RelationKind.lecture_enrollment:
        return SqlEnrollmentGateway()
    return SqlRelationGateway(kind)
