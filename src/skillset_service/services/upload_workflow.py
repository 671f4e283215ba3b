"""Upload lifecycle: creation, file attachment, and admin decisions."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from skillset_service.core.exceptions import ServiceError
from skillset_service.logging import get_logger
from skillset_service.services.skillset_store import (
    DuplicateOpenUploadError,
    UploadOwnerMissingError,
    UploadStatusConflictError,
)

if TYPE_CHECKING:
    from skillset_service.services.object_gateway import ObjectGateway
    from skillset_service.services.skillset_store import SkillsetStore

STATUS_VALIDATING = "validating"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_CANCELLED = "cancelled"

UPLOAD_STATUSES = (STATUS_VALIDATING, STATUS_APPROVED, STATUS_REJECTED, STATUS_CANCELLED)

OBJECT_PATH_PREFIX = "/objects/"


def _now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def upload_to_response(row: dict[str, Any]) -> dict[str, Any]:
    """Convert an upload row to its API shape."""
    return {
        "id": row["upload_id"],
        "userId": row["user_id"],
        "taskId": row["task_id"],
        "status": row["status"],
        "fileUrl": row["file_url"],
        "uploadedAt": row["uploaded_at"],
    }


class UploadWorkflow:
    """
    Drives uploads through ``validating -> approved | rejected | cancelled``.

    Every transition is guarded on the current status being
    ``validating``; terminal states never move again. Approval and the
    reward credit are applied in a single store transaction.
    """

    def __init__(self, store: SkillsetStore, object_gateway: ObjectGateway) -> None:
        self._store = store
        self._object_gateway = object_gateway
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _load_upload(self, upload_id: str) -> dict[str, Any]:
        upload = self._store.get_upload(upload_id)
        if upload is None:
            raise ServiceError("UPLOAD_NOT_FOUND", "Upload not found", 404, {})
        return upload

    def _transition(self, upload: dict[str, Any], new_status: str) -> None:
        changed = self._store.update_upload_status(
            upload["upload_id"],
            new_status,
            _now_iso(),
            expected_status=STATUS_VALIDATING,
        )
        if changed == 0:
            current = self._store.get_upload(upload["upload_id"])
            current_status = current["status"] if current is not None else upload["status"]
            raise ServiceError(
                "INVALID_STATUS",
                f"Upload is already {current_status}",
                409,
                {"status": current_status},
            )

    # ------------------------------------------------------------------
    # Public methods: called by routers
    # ------------------------------------------------------------------

    def create(self, user_id: str, task_id: str) -> dict[str, Any]:
        """
        Start a task for a user.

        Reward and balance are applied at approval, so the returned
        ``reward`` and ``newBalance`` are always zero.

        Raises:
            ServiceError: TASK_NOT_FOUND, TASK_ALREADY_COMPLETED, PENDING_UPLOAD_EXISTS
        """
        task = self._store.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {})

        if self._store.has_upload_with_status(user_id, task_id, STATUS_APPROVED):
            raise ServiceError("TASK_ALREADY_COMPLETED", "Task already completed", 400, {})

        if self._store.has_upload_with_status(user_id, task_id, STATUS_VALIDATING):
            raise ServiceError(
                "PENDING_UPLOAD_EXISTS",
                "You have a pending upload for this task",
                400,
                {},
            )

        upload = {
            "upload_id": f"up-{uuid.uuid4()}",
            "user_id": user_id,
            "task_id": task_id,
            "status": STATUS_VALIDATING,
            "file_url": None,
            "uploaded_at": _now_iso(),
            "decided_at": None,
        }
        try:
            self._store.insert_upload(upload)
        except DuplicateOpenUploadError as exc:
            # Lost a race with a concurrent create; report the rule that fired.
            if self._store.has_upload_with_status(user_id, task_id, STATUS_APPROVED):
                raise ServiceError(
                    "TASK_ALREADY_COMPLETED", "Task already completed", 400, {}
                ) from exc
            raise ServiceError(
                "PENDING_UPLOAD_EXISTS",
                "You have a pending upload for this task",
                400,
                {},
            ) from exc

        self._logger.info(
            "Upload created",
            extra={"upload_id": upload["upload_id"], "user_id": user_id, "task_id": task_id},
        )
        return {"upload": upload_to_response(upload), "reward": 0, "newBalance": 0}

    def attach_file(self, user_id: str, upload_id: str, object_path: str | None) -> dict[str, Any]:
        """
        Attach a stored object to the caller's upload.

        Raises:
            ServiceError: INVALID_PAYLOAD, INVALID_OBJECT_PATH, UPLOAD_NOT_FOUND,
                          FORBIDDEN, OBJECT_NOT_FOUND, FILE_ALREADY_ATTACHED
        """
        if not object_path:
            raise ServiceError("INVALID_PAYLOAD", "objectPath is required", 400, {})

        if not object_path.startswith(OBJECT_PATH_PREFIX):
            raise ServiceError("INVALID_OBJECT_PATH", "Invalid object path format", 400, {})

        upload = self._load_upload(upload_id)
        if upload["user_id"] != user_id:
            raise ServiceError("FORBIDDEN", "Not authorized", 403, {})

        if not self._object_gateway.is_owned_by(object_path, user_id):
            raise ServiceError("FORBIDDEN", "Object was not issued to this user", 403, {})

        if not self._object_gateway.is_stored(object_path):
            raise ServiceError(
                "OBJECT_NOT_FOUND", "No file has been uploaded to this path", 404, {}
            )

        if self._store.set_upload_file_url(upload_id, object_path) == 0:
            raise ServiceError(
                "FILE_ALREADY_ATTACHED",
                "A file is already attached to this upload",
                409,
                {},
            )

        self._logger.info(
            "Upload file attached",
            extra={"upload_id": upload_id, "object_path": object_path},
        )
        return {"objectPath": object_path}

    def validate(self, upload_id: str) -> dict[str, Any]:
        """
        Approve an upload and credit the task reward to its owner.

        Raises:
            ServiceError: UPLOAD_NOT_FOUND, TASK_NOT_FOUND, INVALID_STATUS,
                          USER_NOT_FOUND (500)
        """
        upload = self._load_upload(upload_id)

        task = self._store.get_task(upload["task_id"])
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {})

        reward = int(task["reward"])
        try:
            new_balance = self._store.approve_upload_and_credit(
                upload_id,
                upload["user_id"],
                reward,
                _now_iso(),
            )
        except UploadStatusConflictError as exc:
            current = self._store.get_upload(upload_id)
            current_status = current["status"] if current is not None else upload["status"]
            raise ServiceError(
                "INVALID_STATUS",
                f"Upload is already {current_status}",
                409,
                {"status": current_status},
            ) from exc
        except UploadOwnerMissingError as exc:
            self._logger.error(
                "Upload owner missing during approval",
                extra={"upload_id": upload_id, "user_id": upload["user_id"]},
            )
            raise ServiceError("USER_NOT_FOUND", "User not found", 500, {}) from exc

        self._logger.info(
            "Upload approved",
            extra={
                "upload_id": upload_id,
                "user_id": upload["user_id"],
                "reward": reward,
                "new_balance": new_balance,
            },
        )
        return {"status": STATUS_APPROVED, "reward": reward, "newBalance": new_balance}

    def cancel(self, user_id: str, upload_id: str) -> dict[str, Any]:
        """
        Withdraw the caller's own pending upload.

        Raises:
            ServiceError: UPLOAD_NOT_FOUND, FORBIDDEN, INVALID_STATUS
        """
        upload = self._load_upload(upload_id)
        if upload["user_id"] != user_id:
            raise ServiceError("FORBIDDEN", "Not authorized", 403, {})

        self._transition(upload, STATUS_CANCELLED)
        self._logger.info("Upload cancelled", extra={"upload_id": upload_id})
        return {"status": STATUS_CANCELLED}

    def reject(self, upload_id: str) -> dict[str, Any]:
        """
        Reject a pending upload. Balance is untouched.

        Raises:
            ServiceError: UPLOAD_NOT_FOUND, INVALID_STATUS
        """
        upload = self._load_upload(upload_id)
        self._transition(upload, STATUS_REJECTED)
        self._logger.info("Upload rejected", extra={"upload_id": upload_id})
        return {"status": STATUS_REJECTED}

    def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        """The user's uploads, newest first."""
        return [upload_to_response(row) for row in self._store.list_uploads_for_user(user_id)]

    def list_with_details(self) -> list[dict[str, Any]]:
        """Every upload with username and task title, newest first."""
        return [
            {
                "id": row["upload_id"],
                "uploadedAt": row["uploaded_at"],
                "username": row["username"],
                "taskTitle": row["task_title"],
                "fileUrl": row["file_url"],
                "status": row["status"],
            }
            for row in self._store.list_uploads_with_details()
        ]

    def get_stats(self) -> dict[str, Any]:
        """Upload counts by status, with every known status present."""
        counts = self._store.count_uploads_by_status()
        return {status: counts.get(status, 0) for status in UPLOAD_STATUSES}
