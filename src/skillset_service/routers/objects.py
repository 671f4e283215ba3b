"""Object storage endpoints: upload URL issuance, signed writes, authorized reads."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from skillset_service.core.state import get_app_state
from skillset_service.routers.session import get_current_user

if TYPE_CHECKING:
    from skillset_service.services.object_gateway import ObjectGateway

router = APIRouter()


def _gateway() -> ObjectGateway:
    state = get_app_state()
    if state.object_gateway is None:
        msg = "ObjectGateway not initialized"
        raise RuntimeError(msg)
    return state.object_gateway


@router.post("/api/objects/upload")
async def request_upload_url(request: Request) -> dict[str, Any]:
    """Issue a signed, expiring upload URL for a fresh object path."""
    user = get_current_user(request)
    return _gateway().issue_upload_url(user["user_id"])


@router.put("/objects/{object_path:path}")
async def put_object(object_path: str, request: Request) -> dict[str, Any]:
    """Receive the raw bytes for a previously issued upload URL."""
    content_type = request.headers.get("content-type") or "application/octet-stream"
    return await _gateway().store_object(
        f"/objects/{object_path}",
        request.query_params.get("token"),
        request.stream(),
        content_type,
    )


@router.get("/objects/{object_path:path}")
async def get_object(object_path: str, request: Request) -> FileResponse:
    """Stream a stored object to its owner or an admin."""
    user = get_current_user(request)
    file_path, content_type = _gateway().resolve_object(user, f"/objects/{object_path}")
    return FileResponse(file_path, media_type=content_type)
