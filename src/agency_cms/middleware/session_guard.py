"""
Session guard middleware.

Every path under the admin prefix requires a session cookie, except the login page itself:

- admin pages (`/admin/...`) redirect to the login page with `307`;
- the admin API (`/api/admin/...`) answers `401 {"error": ...}`, except the auth endpoints.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, RedirectResponse

from agency_cms.exceptions import CMSError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.services.session_service import SessionService

logger = get_logger(prefix="[SessionGuard]")


def _under(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


class SessionGuardMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, session_service: SessionService):
        super().__init__(app)
        self.sessions = session_service
        self.settings = session_service.settings

    def _guarded(self, path: str) -> str:
        """Return `page`, `api` or an empty string when the path is public."""
        s = self.settings
        if _under(path, s.ADMIN_API_PREFIX):
            return "" if _under(path, s.ADMIN_AUTH_API_PREFIX) else "api"
        if _under(path, s.ADMIN_PREFIX):
            return "" if _under(path, s.ADMIN_LOGIN_PATH) else "page"
        return ""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        area = self._guarded(request.url.path)
        if not area:
            return await call_next(request)

        token = request.cookies.get(self.sessions.cookie_name)
        try:
            authenticated = await self.sessions.is_authenticated(token)
        except CMSError as e:
            logger.error("Session check for %s failed: %s", request.url.path, e.message)
            return JSONResponse(status_code=e.status_code, content=e.to_dict())
        if authenticated:
            return await call_next(request)

        logger.info("Unauthenticated request to %s blocked", request.url.path)
        if area == "api":
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})
        return RedirectResponse(url=self.settings.ADMIN_LOGIN_PATH, status_code=307)
