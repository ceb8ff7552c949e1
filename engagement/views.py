"""
Session-scoped view counting for community posts.

A post's view counter is bumped at most once per session on this client.
This is a client-side guard only; counts are approximate across devices.
"""

import logging
from typing import Iterable, Mapping

from .gateway import CounterGateway
from .projections import EntityId, Projection, ProjectionStore

logger = logging.getLogger(__name__)


class ViewCounter:
    def __init__(self, store: ProjectionStore, gateway: CounterGateway):
        self.store = store
        self._gateway = gateway
        self._viewed: set[EntityId] = set()

    def count(self, entity_id: EntityId) -> int:
        projection = self.store.get(entity_id)
        return projection.counter if projection else 0

    def viewed_in_session(self, entity_id: EntityId) -> bool:
        return entity_id in self._viewed

    def seed(self, counts: Mapping[EntityId, int]) -> None:
        """Initialize counters from an already fetched post list."""
        self.store.batch_initialize(
            {entity_id: Projection(counter=views) for entity_id, views in counts.items()}
        )

    async def load_many(self, entity_ids: Iterable[EntityId]) -> dict[EntityId, int]:
        """Fetch stored view counters and seed the store with them."""
        generation = self.store.generation
        counts = await self._gateway.fetch_counts(list(entity_ids))
        if self.store.generation != generation:
            logger.info("Discarding view counts fetched before the session was reset")
            return {}
        self.seed(counts)
        return counts

    async def increment_view(self, entity_id: EntityId) -> bool:
        """
        Count a view of the entity once per session.

        Returns:
            True if the view was counted. False if it was already counted this
            session, or the post does not exist remotely (nothing is cached then)

        Raises:
            RemoteFailure: The increment failed; the counter and the session
                flag were rolled back so a later visit can try again
        """
        if entity_id in self._viewed:
            return False

        before = self.store.get(entity_id)
        self._viewed.add(entity_id)
        stamp = self.store.apply(entity_id, (before or Projection()).incremented())

        try:
            new_count = await self._gateway.increment(entity_id)
        except Exception:
            self._undo_view(entity_id, before, stamp)
            logger.warning(f"View increment failed for post {entity_id}; rolled back")
            raise

        if new_count is None:
            self._undo_view(entity_id, before, stamp)
            logger.warning(f"View not counted: post {entity_id} does not exist")
            return False

        if self.store.version(entity_id) == stamp:
            self.store.apply(entity_id, Projection(counter=new_count))
        return True

    def _undo_view(self, entity_id: EntityId, before: Projection | None, stamp: int) -> None:
        self._viewed.discard(entity_id)
        if self.store.version(entity_id) == stamp:
            if before is None:
                self.store.evict(entity_id)
            else:
                self.store.apply(entity_id, before)

    def reset_session(self) -> None:
        """Forget which posts were viewed this session; counters are kept."""
        self._viewed.clear()

    def clear(self) -> None:
        self._viewed.clear()
        self.store.clear()
