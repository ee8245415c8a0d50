"""Tests for the session service, the guard middleware and the auth endpoints."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from agency_cms.exceptions import AuthError
from agency_cms.main import create_app
from agency_cms.services.session_service import SessionService

from conftest import make_settings


# ============================================================================
# Session service
# ============================================================================


def test_verify_password(settings):
    sessions = SessionService(settings)
    assert sessions.verify_password("letmein") is True
    assert sessions.verify_password("LETMEIN") is False
    assert sessions.verify_password(None) is False


def test_unset_password_never_matches(tmp_path):
    sessions = SessionService(make_settings(tmp_path, ADMIN_PASSWORD=""))
    assert sessions.verify_password("") is False
    assert sessions.verify_password("anything") is False


@pytest.mark.asyncio
async def test_login_mints_random_tokens(settings):
    sessions = SessionService(settings)
    first = await sessions.login("letmein")
    second = await sessions.login("letmein")
    assert len(first) == 64
    assert first != second

    with pytest.raises(AuthError):
        await sessions.login("wrong")


@pytest.mark.asyncio
async def test_presence_mode_accepts_any_non_empty_token(settings):
    sessions = SessionService(settings)
    assert await sessions.is_authenticated("anything-at-all") is True
    assert await sessions.is_authenticated("") is False
    assert await sessions.is_authenticated(None) is False


@pytest.mark.asyncio
async def test_store_mode_checks_persisted_sessions(tmp_path, store):
    sessions = SessionService(make_settings(tmp_path, ADMIN_SESSION_VALIDATION="store"), store)
    assert sessions.validates_against_store is True

    token = await sessions.login("letmein")
    assert await sessions.is_authenticated(token) is True
    assert await sessions.is_authenticated("forged") is False

    await sessions.logout(token)
    assert await sessions.is_authenticated(token) is False


@pytest.mark.asyncio
async def test_store_mode_rejects_expired_sessions(tmp_path, store):
    sessions = SessionService(make_settings(tmp_path, ADMIN_SESSION_VALIDATION="store"), store)
    await store.insert_session("old", datetime.now(timezone.utc) - timedelta(minutes=1))
    assert await sessions.is_authenticated("old") is False


def test_cookie_options(tmp_path):
    options = SessionService(make_settings(tmp_path, DEBUG=False)).cookie_options()
    assert options == {
        "key": "admin_session",
        "max_age": 7 * 24 * 60 * 60,
        "httponly": True,
        "secure": True,
        "samesite": "lax",
        "path": "/",
    }


# ============================================================================
# Guard middleware
# ============================================================================


@pytest.mark.asyncio
async def test_admin_page_without_cookie_redirects_to_login(client):
    response = await client.get("/admin/posts")
    assert response.status_code == 307
    assert response.headers["location"] == "/admin/login"


@pytest.mark.asyncio
async def test_any_non_empty_cookie_passes_the_guard(admin_client):
    response = await admin_client.get("/admin/posts")
    assert response.status_code == 200
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_admin_api_without_cookie_is_unauthorized(client):
    response = await client.get("/api/admin/posts")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_login_page_and_auth_api_are_not_guarded(client):
    response = await client.get("/admin/login")
    assert response.status_code == 200
    assert response.json() == {"authenticated": False, "login_url": "/api/admin/auth/login"}

    assert (await client.get("/api/admin/auth/check")).status_code == 401


@pytest.mark.asyncio
async def test_public_paths_are_not_guarded(client):
    assert (await client.get("/api/posts")).status_code == 200
    assert (await client.get("/administrator")).status_code == 404


# ============================================================================
# Auth endpoints
# ============================================================================


@pytest.mark.asyncio
async def test_login_sets_cookie_and_unlocks_admin(client):
    response = await client.post("/api/admin/auth/login", json={"password": "letmein"})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    set_cookie = response.headers["set-cookie"].lower()
    assert "admin_session=" in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie

    assert (await client.get("/api/admin/auth/check")).json() == {"authenticated": True}
    assert (await client.get("/api/admin/posts")).status_code == 200


@pytest.mark.asyncio
async def test_wrong_password_is_rejected(client):
    response = await client.post("/api/admin/auth/login", json={"password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid password"}
    assert "set-cookie" not in response.headers


@pytest.mark.asyncio
async def test_logout_clears_cookie(client):
    await client.post("/api/admin/auth/login", json={"password": "letmein"})
    response = await client.post("/api/admin/auth/logout")

    assert response.status_code == 200
    assert "admin_session" not in client.cookies
    assert (await client.get("/admin/posts")).status_code == 307


@pytest_asyncio.fixture
async def store_mode_client(tmp_path, store, blob_store):
    app = create_app(
        settings=make_settings(tmp_path, ADMIN_SESSION_VALIDATION="store"), store=store, blob_store=blob_store
    )
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.mark.asyncio
async def test_store_mode_rejects_forged_cookie(store_mode_client):
    store_mode_client.cookies.set("admin_session", "forged")
    assert (await store_mode_client.get("/api/admin/posts")).status_code == 401

    store_mode_client.cookies.clear()
    await store_mode_client.post("/api/admin/auth/login", json={"password": "letmein"})
    assert (await store_mode_client.get("/api/admin/posts")).status_code == 200
