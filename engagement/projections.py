"""In-memory projections of relationship membership and counters.

A projection is the client's cached belief about one entity: whether the
signed-in user holds the relation (liked, bookmarked, enrolled) and the
aggregate counter shown next to it. Counters are cached reads, never
authoritative.
"""

import itertools
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Mapping, Union

EntityId = Union[int, str]


@dataclass(frozen=True)
class Projection:
    member: bool = False
    counter: int = 0

    def flipped(self) -> "Projection":
        """Membership negated; counter +1 on join, -1 (floored at 0) on leave."""
        if self.member:
            return Projection(member=False, counter=max(0, self.counter - 1))
        return Projection(member=True, counter=self.counter + 1)

    def incremented(self) -> "Projection":
        return replace(self, counter=self.counter + 1)

    def with_counter(self, counter: int) -> "Projection":
        return replace(self, counter=max(0, counter))


Change = Union[Projection, Callable[[Projection | None], Projection]]


class ProjectionStore:
    """
    Entity id -> Projection map for one relation kind.

    Every write gets a monotonic version stamp so a settling mutation can
    tell whether a newer write has landed on the same entity since its own.
    `generation` goes up on every clear(), so a fetch that started before a
    logout can tell its result no longer belongs here. All operations are
    synchronous.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._entries: dict[EntityId, Projection] = {}
        self._versions: dict[EntityId, int] = {}
        self._clock = itertools.count(1)
        self.generation = 0

    def get(self, entity_id: EntityId) -> Projection | None:
        return self._entries.get(entity_id)

    def version(self, entity_id: EntityId) -> int | None:
        return self._versions.get(entity_id)

    def _write(self, entity_id: EntityId, projection: Projection) -> int:
        stamp = next(self._clock)
        self._entries[entity_id] = projection
        self._versions[entity_id] = stamp
        return stamp

    def initialize(self, entity_id: EntityId, member: bool, counter: int) -> int:
        """Set a freshly fetched snapshot, overwriting any existing entry."""
        return self._write(entity_id, Projection(member=bool(member), counter=max(0, counter)))

    def batch_initialize(self, entries: Mapping[EntityId, Projection]) -> None:
        """Initialize many entries in one pass (list views)."""
        for entity_id, projection in entries.items():
            self.initialize(entity_id, projection.member, projection.counter)

    def apply(self, entity_id: EntityId, change: Change) -> int:
        """
        Apply a local mutation and return the new version stamp.

        Args:
            entity_id: Entity to update
            change: Either the new Projection, or a callable that receives the
                current projection (None if absent) and returns the new one

        Returns:
            Version stamp of this write
        """
        if callable(change):
            change = change(self._entries.get(entity_id))
        return self._write(entity_id, change)

    def evict(self, entity_id: EntityId) -> None:
        """Drop an entry (owning view went away, or the entity was deleted)."""
        self._entries.pop(entity_id, None)
        self._versions.pop(entity_id, None)

    def clear(self) -> None:
        """Drop every entry (logout or explicit invalidation)."""
        self._entries.clear()
        self._versions.clear()
        self.generation += 1

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EntityId]:
        return iter(self._entries)
