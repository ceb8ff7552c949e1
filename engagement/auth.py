"""
Session introspection for Supabase access tokens.

The backend issues HS256-signed JWTs whose ``sub`` claim is the user's UUID.
An expired or invalid token counts as signed out.
"""

import logging

import jwt

from .config import get_jwt_audience, get_jwt_secret
from .errors import Unauthenticated

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def verify_access_token(token: str, secret: str | None = None) -> dict | None:
    """
    Verify and decode a Supabase access token.

    Args:
        token: The JWT access token string
        secret: Signing secret (defaults to SUPABASE_JWT_SECRET)

    Returns:
        Decoded payload dict if valid, None if invalid or expired
    """
    secret = secret or get_jwt_secret()
    if not secret:
        raise ValueError("SUPABASE_JWT_SECRET environment variable not set")

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            audience=get_jwt_audience(),
        )
    except jwt.ExpiredSignatureError:
        logger.info("Access token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected access token: {e}")
        return None


class AuthSession:
    """Holds the current access token and answers "who is signed in"."""

    def __init__(self, access_token: str | None = None, secret: str | None = None):
        self._access_token = access_token
        self._secret = secret

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def sign_in(self, access_token: str) -> None:
        self._access_token = access_token

    def sign_out(self) -> None:
        self._access_token = None

    def current_user_id(self) -> str | None:
        """Return the signed-in user's id, or None if there is no valid session."""
        if not self._access_token:
            return None
        payload = verify_access_token(self._access_token, self._secret)
        if not payload:
            return None
        return payload.get("sub")

    def require_user_id(self) -> str:
        user_id = self.current_user_id()
        if user_id is None:
            raise Unauthenticated()
        return user_id
