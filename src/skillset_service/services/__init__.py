"""Service layer components."""

from skillset_service.services.auth_manager import AuthManager
from skillset_service.services.object_gateway import ObjectGateway
from skillset_service.services.session_manager import SessionManager
from skillset_service.services.skillset_store import SkillsetStore
from skillset_service.services.task_catalog import TaskCatalog
from skillset_service.services.upload_workflow import UploadWorkflow

__all__ = [
    "AuthManager",
    "ObjectGateway",
    "SessionManager",
    "SkillsetStore",
    "TaskCatalog",
    "UploadWorkflow",
]
