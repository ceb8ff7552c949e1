"""
Per-session engagement state.

An EngagementSession is created when the app (or a user session) starts and
handed to whatever needs likes, bookmarks, enrollments or view counts. It
owns one projection store and one coordinator per relation kind, plus the
post view counter. Signing out drops all cached state.
"""

import logging
from typing import Callable

from .auth import AuthSession
from .coordinator import EnrollmentCoordinator, OptimisticCoordinator
from .enums import RelationKind
from .gateway import CounterGateway, RelationGateway, SqlViewGateway, make_relation_gateway
from .projections import ProjectionStore
from .views import ViewCounter

logger = logging.getLogger(__name__)


class EngagementSession:
    def __init__(
        self,
        auth: AuthSession | None = None,
        gateway_factory: Callable[[RelationKind], RelationGateway] = make_relation_gateway,
        view_gateway: CounterGateway | None = None,
    ):
        self.auth = auth or AuthSession()
        self._coordinators: dict[RelationKind, OptimisticCoordinator] = {}
        for kind in RelationKind:
            store = ProjectionStore(kind.value)
            if kind == RelationKind.lecture_enrollment:
                coordinator = EnrollmentCoordinator(store, gateway_factory(kind), self.auth)
            else:
                coordinator = OptimisticCoordinator(kind, store, gateway_factory(kind), self.auth)
            self._coordinators[kind] = coordinator
        self.views = ViewCounter(
            ProjectionStore("post_view"),
            view_gateway if view_gateway is not None else SqlViewGateway(),
        )

    def coordinator(self, kind: RelationKind) -> OptimisticCoordinator:
        return self._coordinators[RelationKind(kind)]

    def store(self, kind: RelationKind) -> ProjectionStore:
        return self.coordinator(kind).store

    # Shorthands for the common kinds
    @property
    def post_likes(self) -> OptimisticCoordinator:
        return self._coordinators[RelationKind.post_like]

    @property
    def comment_likes(self) -> OptimisticCoordinator:
        return self._coordinators[RelationKind.comment_like]

    @property
    def post_bookmarks(self) -> OptimisticCoordinator:
        return self._coordinators[RelationKind.post_bookmark]

    @property
    def enrollments(self) -> EnrollmentCoordinator:
        return self._coordinators[RelationKind.lecture_enrollment]

    def sign_in(self, access_token: str) -> None:
        """Switch to a new user's token; cached membership belongs to the old one."""
        self.reset()
        self.auth.sign_in(access_token)

    def sign_out(self) -> None:
        self.auth.sign_out()
        self.reset()

    def reset(self) -> None:
        """Drop every cached projection and the session-viewed set."""
        for coordinator in self._coordinators.values():
            coordinator.clear()
        self.views.clear()
        logger.debug("Engagement session state cleared")
