"""Upload lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from skillset_service.core.state import get_app_state
from skillset_service.routers.session import get_current_user, require_admin
from skillset_service.routers.validation import read_model
from skillset_service.schemas import (
    AdminUploadResponse,
    AttachFileRequest,
    CreateUploadRequest,
    CreateUploadResponse,
    UploadResponse,
)

if TYPE_CHECKING:
    from skillset_service.services.upload_workflow import UploadWorkflow

router = APIRouter()


def _workflow() -> UploadWorkflow:
    state = get_app_state()
    if state.upload_workflow is None:
        msg = "UploadWorkflow not initialized"
        raise RuntimeError(msg)
    return state.upload_workflow


# ---------------------------------------------------------------------------
# POST /api/uploads: start a task
# ---------------------------------------------------------------------------


@router.post("/api/uploads", response_model=CreateUploadResponse)
async def create_upload(request: Request) -> dict[str, Any]:
    """Create a validating upload for a task."""
    user = get_current_user(request)
    body = await request.body()
    payload = read_model(body, CreateUploadRequest)
    return _workflow().create(user["user_id"], payload.taskId)


# ---------------------------------------------------------------------------
# GET /api/uploads/me: caller's uploads
# ---------------------------------------------------------------------------


@router.get("/api/uploads/me", response_model=list[UploadResponse])
async def list_my_uploads(request: Request) -> list[dict[str, Any]]:
    """List the caller's uploads, newest first."""
    user = get_current_user(request)
    return _workflow().list_for_user(user["user_id"])


# ---------------------------------------------------------------------------
# PUT /api/uploads/{upload_id}/file: attach stored object
# ---------------------------------------------------------------------------


@router.put("/api/uploads/{upload_id}/file")
async def attach_file(upload_id: str, request: Request) -> dict[str, Any]:
    """Attach an uploaded object to the caller's upload."""
    user = get_current_user(request)
    body = await request.body()
    payload = read_model(body, AttachFileRequest)
    return _workflow().attach_file(user["user_id"], upload_id, payload.objectPath)


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


@router.post("/api/uploads/{upload_id}/validate")
async def validate_upload(upload_id: str, request: Request) -> dict[str, Any]:
    """Approve an upload and credit the reward (admin only)."""
    require_admin(request)
    return _workflow().validate(upload_id)


@router.post("/api/uploads/{upload_id}/cancel")
async def cancel_upload(upload_id: str, request: Request) -> dict[str, Any]:
    """Withdraw the caller's pending upload."""
    user = get_current_user(request)
    return _workflow().cancel(user["user_id"], upload_id)


@router.post("/api/uploads/{upload_id}/reject")
async def reject_upload(upload_id: str, request: Request) -> dict[str, Any]:
    """Reject a pending upload (admin only)."""
    require_admin(request)
    return _workflow().reject(upload_id)


# ---------------------------------------------------------------------------
# GET /api/admin/uploads: review queue
# ---------------------------------------------------------------------------


@router.get("/api/admin/uploads", response_model=list[AdminUploadResponse])
async def list_all_uploads(request: Request) -> list[dict[str, Any]]:
    """List every upload with username and task title (admin only)."""
    require_admin(request)
    return _workflow().list_with_details()
