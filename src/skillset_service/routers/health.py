"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from skillset_service.core.state import get_app_state
from skillset_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return statistics."""
    state = get_app_state()
    total_users = 0
    total_tasks = 0
    uploads_by_status: dict[str, int] = {}
    if state.store is not None:
        total_users = state.store.count_users()
        total_tasks = state.store.count_tasks()
    if state.upload_workflow is not None:
        uploads_by_status = state.upload_workflow.get_stats()
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_users=total_users,
        total_tasks=total_tasks,
        uploads_by_status=uploads_by_status,
    )
