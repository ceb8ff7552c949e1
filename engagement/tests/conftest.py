"""Pytest fixtures for engagement tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from engagement.auth import AuthSession
from engagement.enums import EnrollmentStatus, RelationKind
from engagement.errors import RemoteFailure

TEST_SECRET = "test-secret-with-enough-bytes-for-hs256"
TEST_USER_ID = "8d0f8a52-6a1e-4b64-9a52-0c7f1d1c2a11"


def make_token(
    user_id: str = TEST_USER_ID,
    expires_in: timedelta = timedelta(hours=1),
    secret: str = TEST_SECRET,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


class FakeRelationGateway:
    """
    In-memory stand-in for a relationship table.

    - rows: set of (entity_id, user_id) pairs that exist remotely
    - base_counts: rows held by other users, per entity
    - fail_on: operation names that raise RemoteFailure
    - gates: operation name -> Future awaited before the operation runs
      (set a result to let it proceed, an exception to make it fail)
    """

    def __init__(self):
        self.rows: set[tuple] = set()
        self.base_counts: dict = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.gates: dict[str, asyncio.Future] = {}

    async def _enter(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        gate = self.gates.pop(op, None)
        if gate is not None:
            await gate
        if op in self.fail_on:
            raise RemoteFailure(op, ConnectionError("connection reset"))

    def _count(self, entity_id) -> int:
        mine = sum(1 for e, _ in self.rows if e == entity_id)
        return self.base_counts.get(entity_id, 0) + mine

    async def exists(self, entity_id, user_id) -> bool:
        await self._enter("exists", entity_id, user_id)
        return (entity_id, user_id) in self.rows

    async def insert(self, entity_id, user_id) -> None:
        await self._enter("insert", entity_id, user_id)
        self.rows.add((entity_id, user_id))

    async def delete(self, entity_id, user_id) -> None:
        await self._enter("delete", entity_id, user_id)
        self.rows.discard((entity_id, user_id))

    async def count(self, entity_id) -> int:
        await self._enter("count", entity_id)
        return self._count(entity_id)

    async def count_many(self, entity_ids) -> dict:
        ids = list(entity_ids)
        await self._enter("count_many", ids)
        return {entity_id: self._count(entity_id) for entity_id in ids}

    async def member_ids(self, user_id, entity_ids) -> set:
        ids = list(entity_ids)
        await self._enter("member_ids", user_id, ids)
        return {e for e in ids if (e, user_id) in self.rows}

    def ops(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeEnrollmentGateway(FakeRelationGateway):
    """
    FakeRelationGateway with enrollment statuses.

    - statuses_by_row: (lecture_id, user_id) -> EnrollmentStatus for rows
      that are not plain active enrollments (completed, cancelled)
    """

    def __init__(self):
        super().__init__()
        self.statuses_by_row: dict = {}

    async def insert(self, entity_id, user_id) -> None:
        await super().insert(entity_id, user_id)
        self.statuses_by_row.pop((entity_id, user_id), None)

    async def delete(self, entity_id, user_id) -> None:
        await super().delete(entity_id, user_id)
        self.statuses_by_row[(entity_id, user_id)] = EnrollmentStatus.cancelled

    async def complete(self, entity_id, user_id) -> None:
        await self._enter("complete", entity_id, user_id)
        if (entity_id, user_id) in self.rows:
            self.statuses_by_row[(entity_id, user_id)] = EnrollmentStatus.completed

    async def statuses(self, user_id, entity_ids) -> dict:
        ids = list(entity_ids)
        await self._enter("statuses", user_id, ids)
        result = {}
        for entity_id in ids:
            key = (entity_id, user_id)
            if key in self.statuses_by_row:
                result[entity_id] = self.statuses_by_row[key]
            elif key in self.rows:
                result[entity_id] = EnrollmentStatus.active
        return result


class FakeCounterGateway:
    """
    In-memory stand-in for the post view counter procedure.

    - missing: post ids that do not exist remotely (increment returns None)
    - gate: Future awaited before fetch_counts returns
    """

    def __init__(self):
        self.views: dict = {}
        self.calls: list[tuple] = []
        self.fail = False
        self.missing: set = set()
        self.gate: asyncio.Future | None = None

    async def increment(self, entity_id):
        self.calls.append(("increment", entity_id))
        if self.fail:
            raise RemoteFailure("post_view.increment", ConnectionError("timeout"))
        if entity_id in self.missing:
            return None
        self.views[entity_id] = self.views.get(entity_id, 0) + 1
        return self.views[entity_id]

    async def fetch_counts(self, entity_ids):
        ids = list(entity_ids)
        self.calls.append(("fetch_counts", ids))
        if self.gate is not None:
            gate, self.gate = self.gate, None
            await gate
        return {e: self.views[e] for e in ids if e in self.views}


@pytest.fixture
def gateway():
    return FakeRelationGateway()


@pytest.fixture
def gateway_factory():
    """Factory building one fake gateway per kind; built gateways are on .built."""
    built = {}

    def factory(kind):
        if kind == RelationKind.lecture_enrollment:
            built[kind] = FakeEnrollmentGateway()
        else:
            built[kind] = FakeRelationGateway()
        return built[kind]

    factory.built = built
    return factory


@pytest.fixture
def enrollment_gateway():
    return FakeEnrollmentGateway()


@pytest.fixture
def counter_gateway():
    return FakeCounterGateway()


@pytest.fixture
def user_id():
    return TEST_USER_ID


@pytest.fixture
def jwt_secret():
    return TEST_SECRET


@pytest.fixture
def token_factory():
    """Build signed access tokens: token_factory(user_id=..., expires_in=..., secret=...)."""
    return make_token


@pytest.fixture
def auth():
    """A signed-in session for TEST_USER_ID."""
    return AuthSession(make_token(), secret=TEST_SECRET)


@pytest.fixture
def anonymous_auth():
    return AuthSession(secret=TEST_SECRET)
