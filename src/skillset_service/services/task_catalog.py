"""Read-only task catalog and out-of-band seeding."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from skillset_service.logging import get_logger

if TYPE_CHECKING:
    from skillset_service.services.skillset_store import SkillsetStore

VALID_DIFFICULTIES = ("Low", "Medium", "High")


def _now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def task_to_response(row: dict[str, Any]) -> dict[str, Any]:
    """Convert a task row to its API shape."""
    return {
        "id": row["task_id"],
        "title": row["title"],
        "difficulty": row["difficulty"],
        "reward": row["reward"],
        "description": row["description"],
    }


def load_seed_file(path: Path) -> list[dict[str, Any]]:
    """Load task seed entries from a YAML (or JSON) file.

    The file holds either a list of task mappings or a mapping with a
    ``tasks`` list. Each entry needs ``id``, ``title``, ``difficulty`` and
    ``reward``; ``description`` is optional.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not contain a task list.
    """
    if not path.exists():
        msg = f"Seed file not found: {path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())
    if isinstance(raw, dict):
        raw = raw.get("tasks")
    if not isinstance(raw, list):
        msg = f"Seed file must contain a list of tasks: {path}"
        raise ValueError(msg)
    return raw


class TaskCatalog:
    """Lists tasks and seeds the catalog."""

    def __init__(self, store: SkillsetStore) -> None:
        self._store = store
        self._logger = get_logger(__name__)

    def list_tasks(self) -> list[dict[str, Any]]:
        """All tasks, unfiltered and unpaginated, in insertion order."""
        return [task_to_response(row) for row in self._store.list_tasks()]

    def seed_tasks(self, entries: list[dict[str, Any]]) -> int:
        """
        Insert seed tasks that are not already present.

        Returns the number of tasks inserted.

        Raises:
            ValueError: If an entry is missing a field or has an invalid value.
        """
        inserted = 0
        for index, entry in enumerate(entries):
            for field_name in ("id", "title", "difficulty", "reward"):
                if field_name not in entry:
                    msg = f"Seed task #{index} is missing required field: {field_name}"
                    raise ValueError(msg)

            difficulty = entry["difficulty"]
            if difficulty not in VALID_DIFFICULTIES:
                msg = f"Seed task #{index} has invalid difficulty: {difficulty!r}"
                raise ValueError(msg)

            reward = entry["reward"]
            if not isinstance(reward, int) or isinstance(reward, bool) or reward <= 0:
                msg = f"Seed task #{index} reward must be a positive integer"
                raise ValueError(msg)

            created = self._store.insert_task(
                {
                    "task_id": str(entry["id"]),
                    "title": str(entry["title"]),
                    "difficulty": difficulty,
                    "reward": reward,
                    "description": entry.get("description"),
                    "created_at": _now_iso(),
                }
            )
            if created:
                inserted += 1

        self._logger.info(
            "Task catalog seeded",
            extra={"inserted": inserted, "total": self._store.count_tasks()},
        )
        return inserted
