"""Object storage gateway: signed upload URLs, disk-backed writes, and authorized reads."""

from __future__ import annotations

import os
import re
import time
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool

from skillset_service.clients.upload_url_signer import InvalidUploadTokenError
from skillset_service.core.exceptions import ServiceError
from skillset_service.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from skillset_service.clients.upload_url_signer import UploadUrlSigner
    from skillset_service.services.skillset_store import SkillsetStore

UPLOAD_ACTION = "object_upload"

_OBJECT_ID_RE = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"


def _now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _already_stored() -> ServiceError:
    return ServiceError("OBJECT_ALREADY_STORED", "Object has already been uploaded", 409, {})


class ObjectGateway:
    """
    Issues upload URLs and serves stored objects.

    Object paths look like ``/objects/<namespace>/<uuid4>``. Each issued
    path is recorded with the user it was issued to; reads are allowed to
    that user and to admins.
    """

    def __init__(
        self,
        store: SkillsetStore,
        signer: UploadUrlSigner,
        root_path: str,
        namespace: str,
        public_base_url: str,
        upload_url_ttl_seconds: int,
        max_object_size: int,
    ) -> None:
        self._store = store
        self._signer = signer
        self._root_path = Path(root_path)
        self._namespace = namespace
        self._public_base_url = public_base_url.rstrip("/")
        self._upload_url_ttl_seconds = upload_url_ttl_seconds
        self._max_object_size = max_object_size
        self._path_re = re.compile(rf"^/objects/{re.escape(namespace)}/({_OBJECT_ID_RE})$")
        self._logger = get_logger(__name__)

        (self._root_path / self._namespace).mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _file_for(self, object_path: str) -> Path | None:
        """Map a canonical object path to its file, or None if the path is not canonical."""
        match = self._path_re.match(object_path)
        if match is None:
            return None
        return self._root_path / self._namespace / match.group(1)

    async def _write_partial(self, partial_path: Path, chunks: AsyncIterator[bytes]) -> int:
        """Stream chunks into a scratch file, enforcing the size cap. Returns bytes written."""
        size = 0
        fh = await run_in_threadpool(partial_path.open, "wb")
        try:
            async for chunk in chunks:
                size += len(chunk)
                if size > self._max_object_size:
                    raise ServiceError(
                        "FILE_TOO_LARGE",
                        f"Object exceeds maximum size of {self._max_object_size} bytes",
                        413,
                        {},
                    )
                await run_in_threadpool(fh.write, chunk)
        finally:
            await run_in_threadpool(fh.close)
        return size

    # ------------------------------------------------------------------
    # Public methods
    # ------------------------------------------------------------------

    def issue_upload_url(self, owner_id: str) -> dict[str, str]:
        """Create a fresh object path for the owner and a signed, expiring URL to write it."""
        object_path = f"/objects/{self._namespace}/{uuid.uuid4()}"
        expires_at = int(time.time()) + self._upload_url_ttl_seconds

        self._store.insert_object(
            {
                "object_path": object_path,
                "owner_id": owner_id,
                "content_type": None,
                "size_bytes": None,
                "created_at": _now_iso(),
                "stored_at": None,
            }
        )

        token = self._signer.sign(
            {"action": UPLOAD_ACTION, "object_path": object_path, "exp": expires_at}
        )
        upload_url = f"{self._public_base_url}{object_path}?{urlencode({'token': token})}"

        self._logger.info(
            "Upload URL issued",
            extra={"object_path": object_path, "owner_id": owner_id, "expires_at": expires_at},
        )
        return {"uploadURL": upload_url, "objectPath": object_path}

    def is_owned_by(self, object_path: str, user_id: str) -> bool:
        """Whether the object path was issued to the given user."""
        record = self._store.get_object(object_path)
        return record is not None and record["owner_id"] == user_id

    def is_stored(self, object_path: str) -> bool:
        """Whether bytes have been written for the object path."""
        record = self._store.get_object(object_path)
        return record is not None and record["stored_at"] is not None

    async def store_object(
        self,
        object_path: str,
        token: str | None,
        chunks: AsyncIterator[bytes],
        content_type: str,
    ) -> dict[str, Any]:
        """
        Write the body of a signed upload request to disk.

        Objects are write-once: a second write to the same path is refused
        even while its upload URL is still valid.

        Raises:
            ServiceError: FORBIDDEN (missing/invalid token), UPLOAD_URL_EXPIRED,
                          OBJECT_NOT_FOUND, OBJECT_ALREADY_STORED, FILE_TOO_LARGE,
                          STORAGE_ERROR
        """
        if not token:
            raise ServiceError("FORBIDDEN", "Missing upload token", 403, {})

        try:
            payload = self._signer.verify(token)
        except InvalidUploadTokenError as exc:
            raise ServiceError("FORBIDDEN", "Invalid upload token", 403, {}) from exc

        if payload.get("action") != UPLOAD_ACTION or payload.get("object_path") != object_path:
            raise ServiceError("FORBIDDEN", "Upload token does not match this object", 403, {})

        expires_at = payload.get("exp")
        if not isinstance(expires_at, int) or expires_at <= int(time.time()):
            raise ServiceError("UPLOAD_URL_EXPIRED", "Upload URL has expired", 403, {})

        file_path = self._file_for(object_path)
        record = self._store.get_object(object_path) if file_path is not None else None
        if file_path is None or record is None:
            raise ServiceError("OBJECT_NOT_FOUND", "Object not found", 404, {})
        if record["stored_at"] is not None:
            raise _already_stored()

        partial_path = file_path.with_name(f"{file_path.name}.{uuid.uuid4().hex}.part")
        try:
            size = await self._write_partial(partial_path, chunks)
            # link() refuses an existing target, so only one writer can publish the file
            await run_in_threadpool(os.link, partial_path, file_path)
        except FileExistsError as exc:
            raise _already_stored() from exc
        except OSError as exc:
            self._logger.exception("Object write failed", extra={"object_path": object_path})
            raise ServiceError("STORAGE_ERROR", "Failed to store object", 500, {}) from exc
        finally:
            partial_path.unlink(missing_ok=True)

        if self._store.mark_object_stored(object_path, content_type, size, _now_iso()) == 0:
            raise _already_stored()
        self._logger.info("Object stored", extra={"object_path": object_path, "size": size})
        return {"objectPath": object_path, "size": size}

    def resolve_object(self, user: dict[str, Any], object_path: str) -> tuple[Path, str]:
        """
        Locate a stored object the user may read.

        Returns (file_path, content_type).

        Raises:
            ServiceError: OBJECT_NOT_FOUND, FORBIDDEN, STORAGE_ERROR
        """
        file_path = self._file_for(object_path)
        record = self._store.get_object(object_path) if file_path is not None else None
        if file_path is None or record is None:
            raise ServiceError("OBJECT_NOT_FOUND", "Object not found", 404, {})

        if record["owner_id"] != user["user_id"] and not user["is_admin"]:
            raise ServiceError("FORBIDDEN", "Not authorized", 403, {})

        try:
            if not file_path.is_file():
                raise ServiceError("OBJECT_NOT_FOUND", "Object not found", 404, {})
        except OSError as exc:
            self._logger.exception("Object lookup failed", extra={"object_path": object_path})
            raise ServiceError("STORAGE_ERROR", "Failed to read object", 500, {}) from exc

        content_type = record["content_type"] or "application/octet-stream"
        return file_path, str(content_type)
