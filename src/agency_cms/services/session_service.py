"""
Admin session handling for the single shared-secret login.

There is one role and one secret (`ADMIN_PASSWORD`). A successful login mints an opaque random
token that travels in the `admin_session` cookie for seven days.

Two validation modes are supported:

- `presence` (default): any non-empty cookie value is accepted. The token is not checked
  against server state.
- `store`: the token must exist in `admin_sessions` and be unexpired. Logout removes it.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from agency_cms.config import Settings
from agency_cms.database.content_store import ContentStore
from agency_cms.exceptions import AuthError
from agency_cms.managers.logging_manager import get_logger

logger = get_logger(prefix="[SessionGuard]")

TOKEN_BYTES = 32


class SessionService:
    def __init__(self, settings: Settings, store: Optional[ContentStore] = None):
        self.settings = settings
        self.store = store

    @property
    def cookie_name(self) -> str:
        return self.settings.ADMIN_SESSION_COOKIE

    @property
    def max_age(self) -> int:
        return self.settings.ADMIN_SESSION_DAYS * 24 * 60 * 60

    @property
    def validates_against_store(self) -> bool:
        return self.settings.ADMIN_SESSION_VALIDATION == "store" and self.store is not None

    def verify_password(self, password: Optional[str]) -> bool:
        """Exact match against `ADMIN_PASSWORD`; an unset secret never matches."""
        expected = self.settings.ADMIN_PASSWORD.get_secret_value()
        if not expected or password is None:
            return False
        return secrets.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))

    async def login(self, password: Optional[str]) -> str:
        """
        Check the password and mint a session token.

        Raises:
            AuthError: The password does not match.
        """
        if not self.verify_password(password):
            logger.warning("Admin login rejected: invalid password")
            raise AuthError("Invalid password")

        token = secrets.token_hex(TOKEN_BYTES)
        if self.validates_against_store:
            expires_at = datetime.now(timezone.utc) + timedelta(days=self.settings.ADMIN_SESSION_DAYS)
            await self.store.insert_session(token, expires_at)
        logger.info("Admin login succeeded (validation: %s)", self.settings.ADMIN_SESSION_VALIDATION)
        return token

    async def is_authenticated(self, token: Optional[str]) -> bool:
        if not token:
            return False
        if not self.validates_against_store:
            return True

        session = await self.store.find_session(token)
        if session is None:
            return False
        expires_at = session.get("expires_at")
        if expires_at is None:
            return False
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > datetime.now(timezone.utc)

    async def logout(self, token: Optional[str]) -> None:
        if token and self.validates_against_store:
            await self.store.delete_session(token)
        logger.info("Admin logged out")

    def cookie_options(self) -> Dict[str, Any]:
        """Keyword arguments for `Response.set_cookie`."""
        return {
            "key": self.cookie_name,
            "max_age": self.max_age,
            "httponly": True,
            "secure": self.settings.is_production,
            "samesite": "lax",
            "path": "/",
        }
