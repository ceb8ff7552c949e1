"""
Optimistic mutation coordinator.

A toggle (like, bookmark, enroll) is applied to the local projection store
immediately, then sent to the backend. On failure the store is restored to
the exact pre-toggle snapshot and the error is re-raised to the caller,
which owns user-visible feedback. Nothing is retried.

Overlapping toggles on the same entity are neither queued nor coalesced.
Each write to the store gets a version stamp; when a toggle settles it only
touches the store (rollback or counter reconciliation) if its own optimistic
write is still the latest one for that entity. Otherwise a newer toggle owns
the entry and the stale result is dropped.

Loads are bound to the user and store generation they started with. A load
that finishes after a sign-out or an account switch is discarded.
"""

import logging
from typing import Callable, Iterable

from .auth import AuthSession
from .enums import EnrollmentStatus, RelationKind
from .errors import InvariantViolation, Unauthenticated
from .gateway import EnrollmentGateway, RelationGateway
from .projections import EntityId, Projection, ProjectionStore

logger = logging.getLogger(__name__)


def _noop() -> None:
    pass


class OptimisticCoordinator:
    """Toggle one relation kind with immediate local feedback."""

    def __init__(
        self,
        kind: RelationKind,
        store: ProjectionStore,
        gateway: RelationGateway,
        auth: AuthSession,
    ):
        self.kind = kind
        self.store = store
        self._gateway = gateway
        self._auth = auth

    def status(self, entity_id: EntityId) -> Projection:
        """Current projection for rendering; unknown entities read as not-a-member, 0."""
        return self.store.get(entity_id) or Projection()

    def clear(self) -> None:
        """Drop cached state (logout, account switch)."""
        self.store.clear()

    def _still_current(self, generation: int, user_id: str | None) -> bool:
        """True if no clear() ran and the same user is signed in since a fetch began."""
        return (
            self.store.generation == generation
            and self._auth.current_user_id() == user_id
        )

    async def load(self, entity_id: EntityId) -> Projection:
        """
        Fetch membership and counter for one entity and initialize the store.

        Anonymous users get member=False; the counter is loaded either way.
        """
        generation = self.store.generation
        user_id = self._auth.current_user_id()
        counter = await self._gateway.count(entity_id)
        member = False
        if user_id is not None:
            member = await self._gateway.exists(entity_id, user_id)

        if not self._still_current(generation, user_id):
            logger.info(f"Discarding {self.kind.value} load for {entity_id}: session changed")
            return self.status(entity_id)

        self.store.initialize(entity_id, member, counter)
        return self.store.get(entity_id)

    async def load_many(self, entity_ids: Iterable[EntityId]) -> dict[EntityId, Projection]:
        """
        Initialize the store for a list view with one count query and one
        membership query instead of one round trip per entity.
        """
        ids = list(dict.fromkeys(entity_ids))
        if not ids:
            return {}

        generation = self.store.generation
        user_id = self._auth.current_user_id()
        counts = await self._gateway.count_many(ids)
        members: set[EntityId] = set()
        if user_id is not None:
            members = await self._gateway.member_ids(user_id, ids)

        if not self._still_current(generation, user_id):
            logger.info(f"Discarding {self.kind.value} load of {len(ids)} entries: session changed")
            return {}

        entries = {
            entity_id: Projection(member=entity_id in members, counter=counts.get(entity_id, 0))
            for entity_id in ids
        }
        self.store.batch_initialize(entries)
        return entries

    def _mark_toggled(self, entity_id: EntityId, after: Projection) -> Callable[[], None]:
        """Update state kept beside the store; returns a function that undoes it."""
        return _noop

    async def toggle(self, entity_id: EntityId) -> bool:
        """
        Flip the user's relation to an entity.

        Returns:
            The new membership (True = liked/bookmarked/enrolled)

        Raises:
            Unauthenticated: No signed-in user, or the session ended before the
                change was sent; the store is left as it was
            InvariantViolation: The entity was never loaded into the store
            RemoteFailure: The backend rejected the change; the store was rolled back
        """
        user_id = self._auth.require_user_id()

        before = self.store.get(entity_id)
        if before is None:
            raise InvariantViolation(
                f"{self.kind.value} {entity_id!r} toggled before it was loaded"
            )

        after = before.flipped()
        stamp = self.store.apply(entity_id, after)
        undo = self._mark_toggled(entity_id, after)

        try:
            await self._sync_remote(entity_id, user_id, after, stamp)
        except Exception:
            if self.store.version(entity_id) == stamp:
                self.store.apply(entity_id, before)
                undo()
                logger.info(f"Rolled back {self.kind.value} {entity_id} for user {user_id}")
            else:
                logger.info(
                    f"{self.kind.value} {entity_id} failed after a newer change; "
                    "keeping the newer state"
                )
            raise

        return after.member

    async def _sync_remote(
        self,
        entity_id: EntityId,
        user_id: str,
        after: Projection,
        stamp: int,
    ) -> None:
        exists = await self._gateway.exists(entity_id, user_id)
        if self._auth.current_user_id() != user_id:
            raise Unauthenticated("Session ended before the change was sent")

        if exists == after.member:
            # Another tab or device already made this change; take the server count
            logger.info(
                f"{self.kind.value} {entity_id} already {'set' if exists else 'unset'} "
                f"remotely for user {user_id}"
            )
            counter = await self._gateway.count(entity_id)
            if self.store.version(entity_id) == stamp:
                self.store.apply(entity_id, after.with_counter(counter))
            return

        if after.member:
            await self._gateway.insert(entity_id, user_id)
        else:
            await self._gateway.delete(entity_id, user_id)


class EnrollmentCoordinator(OptimisticCoordinator):
    """
    Lecture enrollments: the membership toggle plus a per-lecture status.

    Enrolling marks a lecture active, leaving marks it cancelled, and
    complete() moves an active enrollment to completed. Status changes are
    optimistic and roll back together with the membership projection.
    """

    def __init__(
        self,
        store: ProjectionStore,
        gateway: EnrollmentGateway,
        auth: AuthSession,
    ):
        super().__init__(RelationKind.lecture_enrollment, store, gateway, auth)
        self._gateway: EnrollmentGateway = gateway
        self._statuses: dict[EntityId, EnrollmentStatus] = {}

    def enrollment_status(self, lecture_id: EntityId) -> EnrollmentStatus | None:
        """The user's status for a lecture, or None if never enrolled (or not loaded)."""
        return self._statuses.get(lecture_id)

    def lectures_with_status(self, status: EnrollmentStatus) -> list[EntityId]:
        return [
            lecture_id for lecture_id, current in self._statuses.items() if current == status
        ]

    def clear(self) -> None:
        super().clear()
        self._statuses.clear()

    def _set_status(
        self, lecture_id: EntityId, status: EnrollmentStatus
    ) -> Callable[[], None]:
        missing = lecture_id not in self._statuses
        previous = self._statuses.get(lecture_id)
        self._statuses[lecture_id] = status

        def restore() -> None:
            if missing:
                self._statuses.pop(lecture_id, None)
            else:
                self._statuses[lecture_id] = previous

        return restore

    def _mark_toggled(self, entity_id: EntityId, after: Projection) -> Callable[[], None]:
        status = EnrollmentStatus.active if after.member else EnrollmentStatus.cancelled
        return self._set_status(entity_id, status)

    async def _load_statuses(self, lecture_ids: list[EntityId]) -> None:
        generation = self.store.generation
        user_id = self._auth.current_user_id()
        statuses: dict[EntityId, EnrollmentStatus] = {}
        if user_id is not None:
            statuses = await self._gateway.statuses(user_id, lecture_ids)

        if not self._still_current(generation, user_id):
            return
        for lecture_id in lecture_ids:
            if lecture_id in statuses:
                self._statuses[lecture_id] = statuses[lecture_id]
            else:
                self._statuses.pop(lecture_id, None)

    async def load(self, entity_id: EntityId) -> Projection:
        projection = await super().load(entity_id)
        await self._load_statuses([entity_id])
        return projection

    async def load_many(self, entity_ids: Iterable[EntityId]) -> dict[EntityId, Projection]:
        ids = list(dict.fromkeys(entity_ids))
        entries = await super().load_many(ids)
        if ids:
            await self._load_statuses(ids)
        return entries

    async def complete(self, lecture_id: EntityId) -> EnrollmentStatus:
        """
        Mark an enrolled lecture as completed.

        Returns:
            The new status (completed)

        Raises:
            Unauthenticated: No signed-in user; nothing was changed
            InvariantViolation: The lecture is not loaded or the user is not enrolled
            RemoteFailure: The backend rejected the change; the status was rolled back
        """
        user_id = self._auth.require_user_id()

        projection = self.store.get(lecture_id)
        if projection is None or not projection.member:
            raise InvariantViolation(f"lecture {lecture_id!r} completed without an enrollment")

        if self._statuses.get(lecture_id) == EnrollmentStatus.completed:
            return EnrollmentStatus.completed

        # Re-stamp the entry so a toggle landing meanwhile wins over this rollback
        stamp = self.store.apply(lecture_id, projection)
        restore = self._set_status(lecture_id, EnrollmentStatus.completed)

        try:
            await self._gateway.complete(lecture_id, user_id)
        except Exception:
            if self.store.version(lecture_id) == stamp:
                restore()
                logger.info(f"Rolled back completion of lecture {lecture_id} for user {user_id}")
            raise

        return EnrollmentStatus.completed
