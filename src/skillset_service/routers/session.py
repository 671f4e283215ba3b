"""Session cookie helpers and caller resolution shared by routers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from skillset_service.core.exceptions import ServiceError
from skillset_service.core.state import get_app_state
from skillset_service.logging import bind_request_context

if TYPE_CHECKING:
    from fastapi import Request, Response


def read_session_id(request: Request) -> str | None:
    """Session identifier from the request cookie, if any."""
    state = get_app_state()
    return request.cookies.get(state.session_cookie_name)


def get_current_user(request: Request) -> dict[str, Any]:
    """
    Resolve the authenticated caller.

    Raises:
        ServiceError: UNAUTHORIZED (401), USER_NOT_FOUND (404)
    """
    state = get_app_state()
    if state.auth_manager is None:
        msg = "AuthManager not initialized"
        raise RuntimeError(msg)
    user = state.auth_manager.get_session_user(read_session_id(request))
    bind_request_context(user_id=user["user_id"])
    return user


def require_admin(request: Request) -> dict[str, Any]:
    """
    Resolve the caller and require the admin role.

    Raises:
        ServiceError: UNAUTHORIZED (401), FORBIDDEN (403)
    """
    user = get_current_user(request)
    if not user["is_admin"]:
        raise ServiceError("FORBIDDEN", "Admin access required", 403, {})
    return user


def set_session_cookie(response: Response, session_id: str) -> None:
    """Attach the session cookie to a response."""
    state = get_app_state()
    response.set_cookie(
        key=state.session_cookie_name,
        value=session_id,
        max_age=state.session_cookie_max_age,
        httponly=True,
        samesite="lax",
        secure=state.session_cookie_secure,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie on the client."""
    state = get_app_state()
    response.delete_cookie(
        key=state.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=state.session_cookie_secure,
        path="/",
    )
