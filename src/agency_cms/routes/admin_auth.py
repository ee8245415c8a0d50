"""
Admin authentication endpoints.

- `POST /api/admin/auth/login` checks the shared secret and sets the session cookie.
- `GET /api/admin/auth/check` reports whether the request carries a valid session.
- `POST /api/admin/auth/logout` clears the cookie (and the stored session in `store` mode).

These paths sit under the auth API prefix and are never blocked by the session guard.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from agency_cms.exceptions import AuthError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.models.blog_models import LoginRequest
from agency_cms.routes.dependencies import get_session_service
from agency_cms.services.session_service import SessionService

logger = get_logger(prefix="[AuthRoutes]")

router = APIRouter(prefix="/api/admin/auth", tags=["Admin Auth"])


@router.post("/login")
async def login(body: LoginRequest, sessions: SessionService = Depends(get_session_service)):
    """Exchange the admin password for a session cookie."""
    token = await sessions.login(body.password)
    response = JSONResponse(content={"success": True})
    response.set_cookie(value=token, **sessions.cookie_options())
    return response


@router.get("/check")
async def check(request: Request, sessions: SessionService = Depends(get_session_service)):
    if not await sessions.is_authenticated(request.cookies.get(sessions.cookie_name)):
        raise AuthError("Not authenticated")
    return {"authenticated": True}


@router.post("/logout")
async def logout(request: Request, sessions: SessionService = Depends(get_session_service)):
    await sessions.logout(request.cookies.get(sessions.cookie_name))
    response = JSONResponse(content={"success": True})
    response.delete_cookie(key=sessions.cookie_name, path="/")
    return response
