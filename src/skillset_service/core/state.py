"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skillset_service.clients.email_client import EmailClient
    from skillset_service.clients.price_client import PriceClient
    from skillset_service.services.auth_manager import AuthManager
    from skillset_service.services.object_gateway import ObjectGateway
    from skillset_service.services.session_manager import SessionManager
    from skillset_service.services.skillset_store import SkillsetStore
    from skillset_service.services.task_catalog import TaskCatalog
    from skillset_service.services.upload_workflow import UploadWorkflow


@dataclass
class AppState:
    """Runtime application state."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    store: SkillsetStore | None = None
    session_manager: SessionManager | None = None
    auth_manager: AuthManager | None = None
    task_catalog: TaskCatalog | None = None
    upload_workflow: UploadWorkflow | None = None
    object_gateway: ObjectGateway | None = None
    email_client: EmailClient | None = None
    price_client: PriceClient | None = None
    session_cookie_name: str = "skillset_session"
    session_cookie_max_age: int = 0
    session_cookie_secure: bool = False

    @property
    def uptime_seconds(self) -> float:
        """Calculate uptime in seconds."""
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        """ISO format start time."""
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")


# Global application state container
_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
