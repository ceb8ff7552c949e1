"""
Centralized configuration for the engagement layer.

Settings come from environment variables. Entry points load `.env` /
`.env.local` with python-dotenv before importing this module.
"""

import logging
import os

import sentry_sdk

logger = logging.getLogger(__name__)


def is_dev_mode() -> bool:
    """Check if running in development mode (DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_sql_echo() -> bool:
    """Check if SQL statements should be echoed (SQL_ECHO env)."""
    return os.getenv("SQL_ECHO", "").lower() == "true"


def get_jwt_secret() -> str | None:
    """Get the Supabase JWT secret used to verify access tokens."""
    return os.environ.get("SUPABASE_JWT_SECRET")


def get_jwt_audience() -> str:
    """Get the expected audience claim of Supabase access tokens."""
    return os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")


def configure_logging() -> None:
    """Set up root logging. DEBUG in dev mode, INFO otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if is_dev_mode() else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def init_sentry() -> bool:
    """
    Initialize Sentry error reporting if SENTRY_DSN is set.

    Returns:
        True if Sentry was initialized
    """
    dsn = os.environ.get("SENTRY_DSN")
    if not dsn:
        logger.info("SENTRY_DSN not set, error reporting disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=os.getenv(
            "SENTRY_ENVIRONMENT", "development" if is_dev_mode() else "production"
        ),
        traces_sample_rate=0.0,
    )
    return True


# Required environment variables
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string (Supabase)", True),
    ("SUPABASE_JWT_SECRET", "Secret used to verify Supabase access tokens", True),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        if os.environ.get(name):
            continue
        if required_in_dev:
            errors.append(f"  ✗ {name}: Not set ({description})")
        elif not in_dev:
            warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            logger.error(error)
        return False, warnings

    return True, warnings


def init_runtime() -> bool:
    """
    Startup hook for the host application.

    Configures logging, reports missing environment variables and starts
    Sentry. Call once after the environment has been loaded.

    Returns:
        False if a required environment variable is missing
    """
    configure_logging()
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        logger.warning(warning)
    init_sentry()
    return ok
