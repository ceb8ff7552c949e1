"""Tests for relationship, enrollment and view queries (statement shape, no DB)."""

from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.dialects import postgresql

from engagement.queries import enrollments, relations, views
from engagement.tables import comment_likes, post_likes, study_bookmarks


def _make_result(rows=None, rowcount=None, scalar=None):
    rows = rows or []
    mock_result = Mock()
    mock_result.first.return_value = rows[0] if rows else None
    mock_result.scalar.return_value = scalar
    mock_result.rowcount = len(rows) if rowcount is None else rowcount
    mock_mappings = Mock()
    mock_mappings.first.return_value = rows[0] if rows else None
    mock_mappings.__iter__ = Mock(return_value=iter(rows))
    mock_result.mappings.return_value = mock_mappings
    return mock_result


def _sql(mock_conn) -> str:
    stmt = mock_conn.execute.call_args[0][0]
    return str(stmt.compile(dialect=postgresql.dialect()))


USER = "8d0f8a52-6a1e-4b64-9a52-0c7f1d1c2a11"


class TestRelationQueries:
    """Test generic relationship-row queries."""

    @pytest.mark.asyncio
    async def test_insert_ignores_existing_pair(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(rowcount=0))

        inserted = await relations.insert_relation(mock_conn, post_likes, "post_id", 1, USER)

        assert inserted is False
        sql = _sql(mock_conn)
        assert "INSERT INTO post_likes" in sql
        assert "ON CONFLICT (post_id, user_id) DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_delete_filters_on_entity_and_user(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(rowcount=1))

        deleted = await relations.delete_relation(
            mock_conn, comment_likes, "comment_id", 9, USER
        )

        assert deleted is True
        sql = _sql(mock_conn)
        assert "DELETE FROM comment_likes" in sql
        assert "comment_likes.comment_id" in sql
        assert "comment_likes.user_id" in sql

    @pytest.mark.asyncio
    async def test_count_returns_zero_when_scalar_none(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(scalar=None))

        assert await relations.count_relations(mock_conn, post_likes, "post_id", 1) == 0

    @pytest.mark.asyncio
    async def test_count_many_groups_by_entity(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(
            return_value=_make_result([{"post_id": 2, "count": 4}])
        )

        counts = await relations.count_relations_many(mock_conn, post_likes, "post_id", [1, 2])

        assert counts == {1: 0, 2: 4}
        assert "GROUP BY post_likes.post_id" in _sql(mock_conn)

    @pytest.mark.asyncio
    async def test_count_many_empty_skips_query(self):
        mock_conn = AsyncMock()

        assert await relations.count_relations_many(mock_conn, post_likes, "post_id", []) == {}
        mock_conn.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_member_ids_with_string_entities(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(
            return_value=_make_result([{"study_id": "a"}, {"study_id": "c"}])
        )

        members = await relations.get_member_entity_ids(
            mock_conn, study_bookmarks, "study_id", USER, ["a", "b", "c"]
        )

        assert members == {"a", "c"}

    @pytest.mark.asyncio
    async def test_member_ids_empty_skips_query(self):
        mock_conn = AsyncMock()

        assert (
            await relations.get_member_entity_ids(mock_conn, post_likes, "post_id", USER, [])
            == set()
        )
        mock_conn.execute.assert_not_called()


class TestEnrollmentQueries:
    """Test lecture enrollment queries."""

    @pytest.mark.asyncio
    async def test_enroll_reactivates_cancelled_row(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(
            return_value=_make_result([{"lecture_id": 3, "status": "active"}])
        )

        row = await enrollments.enroll(mock_conn, 3, USER)

        assert row["status"] == "active"
        sql = _sql(mock_conn)
        assert "ON CONFLICT ON CONSTRAINT lecture_enrollments_entity_user_unique DO UPDATE" in sql

    @pytest.mark.asyncio
    async def test_enroll_when_already_active_returns_empty(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result([]))

        assert await enrollments.enroll(mock_conn, 3, USER) == {}

    @pytest.mark.asyncio
    async def test_cancel_is_an_update(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(rowcount=0))

        cancelled = await enrollments.cancel_enrollment(mock_conn, 3, USER)

        assert cancelled is False
        assert _sql(mock_conn).startswith("UPDATE lecture_enrollments SET status=")

    @pytest.mark.asyncio
    async def test_count_excludes_cancelled(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(scalar=6))

        assert await enrollments.count_enrollments(mock_conn, 3) == 6
        assert "lecture_enrollments.status !=" in _sql(mock_conn)

    @pytest.mark.asyncio
    async def test_enrolled_lecture_ids(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result([{"lecture_id": 3}]))

        assert await enrollments.get_enrolled_lecture_ids(mock_conn, USER, [3, 4]) == {3}

    @pytest.mark.asyncio
    async def test_complete_only_touches_active_enrollment(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(rowcount=1))

        assert await enrollments.complete_enrollment(mock_conn, 3, USER) is True
        sql = _sql(mock_conn)
        assert "completed_at=now()" in sql
        assert "lecture_enrollments.status = " in sql

    @pytest.mark.asyncio
    async def test_statuses_with_no_ids_skips_query(self):
        mock_conn = AsyncMock()

        assert await enrollments.get_enrollment_statuses(mock_conn, USER, []) == {}
        mock_conn.execute.assert_not_called()


class TestViewQueries:
    """Test post view queries."""

    @pytest.mark.asyncio
    async def test_increment_calls_database_function(self):
        mock_conn = AsyncMock()
        mock_conn.execute = AsyncMock(return_value=_make_result(scalar=101))

        assert await views.increment_post_view(mock_conn, 7) == 101
        assert "increment_post_view(" in _sql(mock_conn)

    @pytest.mark.asyncio
    async def test_view_counts_empty_skips_query(self):
        mock_conn = AsyncMock()

        assert await views.get_view_counts(mock_conn, []) == {}
        mock_conn.execute.assert_not_called()
