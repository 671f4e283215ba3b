"""Account endpoints: register, login, logout, current user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from skillset_service.core.state import get_app_state
from skillset_service.routers.session import (
    clear_session_cookie,
    get_current_user,
    read_session_id,
    set_session_cookie,
)
from skillset_service.routers.validation import read_model
from skillset_service.schemas import CredentialsRequest, UserResponse
from skillset_service.services.auth_manager import public_user

router = APIRouter()


@router.post("/api/auth/register")
async def register(request: Request) -> JSONResponse:
    """Create an account and log it in."""
    body = await request.body()
    credentials = read_model(body, CredentialsRequest)

    state = get_app_state()
    if state.auth_manager is None:
        msg = "AuthManager not initialized"
        raise RuntimeError(msg)

    user, session_id = state.auth_manager.register(credentials.username, credentials.password)
    response = JSONResponse(status_code=200, content=user)
    set_session_cookie(response, session_id)
    return response


@router.post("/api/auth/login")
async def login(request: Request) -> JSONResponse:
    """Verify credentials and start a session."""
    body = await request.body()
    credentials = read_model(body, CredentialsRequest)

    state = get_app_state()
    if state.auth_manager is None:
        msg = "AuthManager not initialized"
        raise RuntimeError(msg)

    user, session_id = state.auth_manager.login(credentials.username, credentials.password)
    response = JSONResponse(status_code=200, content=user)
    set_session_cookie(response, session_id)
    return response


@router.post("/api/auth/logout")
async def logout(request: Request) -> JSONResponse:
    """End the caller's session. Succeeds even without one."""
    state = get_app_state()
    if state.auth_manager is None:
        msg = "AuthManager not initialized"
        raise RuntimeError(msg)

    state.auth_manager.logout(read_session_id(request))
    response = JSONResponse(status_code=200, content={"message": "Logged out successfully"})
    clear_session_cookie(response)
    return response


@router.get("/api/auth/me", response_model=UserResponse)
async def current_user(request: Request) -> dict[str, Any]:
    """Return the logged-in user."""
    return public_user(get_current_user(request))
