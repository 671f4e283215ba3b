"""Task catalog endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from skillset_service.core.state import get_app_state
from skillset_service.schemas import TaskResponse

router = APIRouter()


@router.get("/api/tasks", response_model=list[TaskResponse])
async def list_tasks() -> list[dict[str, Any]]:
    """List every task in the catalog."""
    state = get_app_state()
    if state.task_catalog is None:
        msg = "TaskCatalog not initialized"
        raise RuntimeError(msg)

    return state.task_catalog.list_tasks()
