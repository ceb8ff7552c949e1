"""
Optimistic engagement state for the learning/community platform.

Likes, bookmarks and lecture enrollments are flipped locally first and
reconciled with the Supabase Postgres backend; post views are counted once
per session.
"""

# Database (SQLAlchemy)
from .database import get_transaction, get_engine, close_engine, is_configured

# Types
from .enums import RelationKind, EnrollmentStatus
from .projections import EntityId, Projection, ProjectionStore

# Startup
from .config import init_runtime

# Errors
from .errors import EngagementError, Unauthenticated, RemoteFailure, InvariantViolation

# Auth session
from .auth import AuthSession, verify_access_token

# Remote gateway
from .gateway import (
    RelationGateway, EnrollmentGateway, CounterGateway,
    SqlRelationGateway, SqlEnrollmentGateway, SqlViewGateway, make_relation_gateway,
)

# Coordinators
from .coordinator import EnrollmentCoordinator, OptimisticCoordinator
from .views import ViewCounter
from .session import EngagementSession

__all__ = [
    # Database
    'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Types
    'RelationKind', 'EnrollmentStatus', 'EntityId', 'Projection', 'ProjectionStore',
    # Startup
    'init_runtime',
    # Errors
    'EngagementError', 'Unauthenticated', 'RemoteFailure', 'InvariantViolation',
    # Auth
    'AuthSession', 'verify_access_token',
    # Gateway
    'RelationGateway', 'EnrollmentGateway', 'CounterGateway',
    'SqlRelationGateway', 'SqlEnrollmentGateway', 'SqlViewGateway', 'make_relation_gateway',
    # Coordinators
    'OptimisticCoordinator', 'EnrollmentCoordinator', 'ViewCounter', 'EngagementSession',
]
