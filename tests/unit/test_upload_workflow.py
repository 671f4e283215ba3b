"""Unit tests for UploadWorkflow state transitions."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from skillset_service.core.exceptions import ServiceError
from skillset_service.services.skillset_store import SkillsetStore
from skillset_service.services.upload_workflow import UploadWorkflow
from tests.helpers import SEED_TASKS


def _user(user_id: str, username: str) -> dict[str, object]:
    return {
        "user_id": user_id,
        "username": username,
        "password_hash": "hash",
        "balance": 0,
        "is_admin": 0,
        "created_at": "2026-01-01T00:00:00.000000Z",
    }


@pytest.fixture
def store(tmp_path):
    s = SkillsetStore(db_path=str(tmp_path / "skillset.db"))
    s.insert_user(_user("u-alice", "alice"))
    s.insert_user(_user("u-bob", "bob"))
    for task in SEED_TASKS:
        s.insert_task(
            {
                "task_id": task["id"],
                "title": task["title"],
                "difficulty": task["difficulty"],
                "reward": task["reward"],
                "description": task.get("description"),
                "created_at": "2026-01-01T00:00:00.000000Z",
            }
        )
    yield s
    s.close()


@pytest.fixture
def gateway() -> MagicMock:
    mock = MagicMock()
    mock.is_owned_by.return_value = True
    mock.is_stored.return_value = True
    return mock


@pytest.fixture
def workflow(store, gateway) -> UploadWorkflow:
    return UploadWorkflow(store=store, object_gateway=gateway)


@pytest.mark.unit
def test_create_returns_zero_reward_and_balance(workflow) -> None:
    result = workflow.create("u-alice", "1")
    assert result["reward"] == 0
    assert result["newBalance"] == 0
    assert result["upload"]["status"] == "validating"


@pytest.mark.unit
def test_create_blocks_pending_and_completed(workflow) -> None:
    upload_id = workflow.create("u-alice", "1")["upload"]["id"]
    with pytest.raises(ServiceError) as pending:
        workflow.create("u-alice", "1")
    assert pending.value.error == "PENDING_UPLOAD_EXISTS"

    workflow.validate(upload_id)
    with pytest.raises(ServiceError) as completed:
        workflow.create("u-alice", "1")
    assert completed.value.error == "TASK_ALREADY_COMPLETED"


@pytest.mark.unit
def test_validate_credits_once(workflow, store) -> None:
    upload_id = workflow.create("u-alice", "5")["upload"]["id"]

    assert workflow.validate(upload_id) == {"status": "approved", "reward": 200, "newBalance": 200}
    with pytest.raises(ServiceError) as exc_info:
        workflow.validate(upload_id)
    assert exc_info.value.status_code == 409
    assert store.get_user("u-alice")["balance"] == 200


@pytest.mark.unit
def test_terminal_states_admit_no_transitions(workflow) -> None:
    upload_id = workflow.create("u-alice", "1")["upload"]["id"]
    workflow.cancel("u-alice", upload_id)

    for action in (
        lambda: workflow.validate(upload_id),
        lambda: workflow.reject(upload_id),
        lambda: workflow.cancel("u-alice", upload_id),
    ):
        with pytest.raises(ServiceError) as exc_info:
            action()
        assert exc_info.value.error == "INVALID_STATUS"
        assert exc_info.value.details == {"status": "cancelled"}


@pytest.mark.unit
def test_cancel_requires_owner(workflow) -> None:
    upload_id = workflow.create("u-alice", "1")["upload"]["id"]
    with pytest.raises(ServiceError) as exc_info:
        workflow.cancel("u-bob", upload_id)
    assert exc_info.value.status_code == 403


@pytest.mark.unit
def test_attach_file_checks_object_ownership(workflow, gateway) -> None:
    upload_id = workflow.create("u-alice", "1")["upload"]["id"]
    gateway.is_owned_by.return_value = False

    with pytest.raises(ServiceError) as exc_info:
        workflow.attach_file("u-alice", upload_id, "/objects/uploads/other")
    assert exc_info.value.status_code == 403
    gateway.is_owned_by.assert_called_once_with("/objects/uploads/other", "u-alice")


@pytest.mark.unit
def test_attach_file_requires_written_object(workflow, gateway, store) -> None:
    upload_id = workflow.create("u-alice", "1")["upload"]["id"]
    gateway.is_stored.return_value = False

    with pytest.raises(ServiceError) as exc_info:
        workflow.attach_file("u-alice", upload_id, "/objects/uploads/empty")
    assert exc_info.value.status_code == 404
    assert exc_info.value.error == "OBJECT_NOT_FOUND"
    assert store.get_upload(upload_id)["file_url"] is None


@pytest.mark.unit
def test_attach_file_validates_path_before_lookup(workflow) -> None:
    with pytest.raises(ServiceError) as missing:
        workflow.attach_file("u-alice", "up-missing", None)
    assert missing.value.error == "INVALID_PAYLOAD"

    with pytest.raises(ServiceError) as bad_format:
        workflow.attach_file("u-alice", "up-missing", "/videos/x.mp4")
    assert bad_format.value.error == "INVALID_OBJECT_PATH"

    with pytest.raises(ServiceError) as not_found:
        workflow.attach_file("u-alice", "up-missing", "/objects/uploads/x")
    assert not_found.value.error == "UPLOAD_NOT_FOUND"


@pytest.mark.unit
def test_listings_and_stats(workflow) -> None:
    first = workflow.create("u-alice", "1")["upload"]["id"]
    workflow.create("u-bob", "3")
    workflow.reject(first)

    mine = workflow.list_for_user("u-alice")
    assert [upload["id"] for upload in mine] == [first]
    assert mine[0]["status"] == "rejected"

    detailed = workflow.list_with_details()
    assert {row["username"] for row in detailed} == {"alice", "bob"}

    assert workflow.get_stats() == {
        "validating": 1,
        "approved": 0,
        "rejected": 1,
        "cancelled": 0,
    }


# ---------------------------------------------------------------------------
# Races between separate connections to one database
# ---------------------------------------------------------------------------


def _outcomes(futures: list[Future]) -> tuple[list[dict], list[ServiceError]]:
    results = []
    errors = []
    for fut in futures:
        try:
            results.append(fut.result())
        except ServiceError as exc:
            errors.append(exc)
    return results, errors


def _run_together(calls: list) -> tuple[list[dict], list[ServiceError]]:
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        return call()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(run, call) for call in calls]
    return _outcomes(futures)


@pytest.fixture
def rival_workflows(tmp_path, store, gateway):
    stores = [SkillsetStore(db_path=str(tmp_path / "skillset.db")) for _ in range(4)]
    yield [UploadWorkflow(store=s, object_gateway=gateway) for s in stores]
    for s in stores:
        s.close()


@pytest.mark.unit
def test_concurrent_validations_credit_reward_once(workflow, store, rival_workflows) -> None:
    upload_id = workflow.create("u-alice", "5")["upload"]["id"]

    results, errors = _run_together(
        [lambda wf=wf: wf.validate(upload_id) for wf in rival_workflows]
    )

    assert results == [{"status": "approved", "reward": 200, "newBalance": 200}]
    assert [exc.error for exc in errors] == ["INVALID_STATUS"] * 3
    assert store.get_user("u-alice")["balance"] == 200


@pytest.mark.unit
def test_concurrent_creates_open_one_upload(store, rival_workflows) -> None:
    results, errors = _run_together(
        [lambda wf=wf: wf.create("u-alice", "1") for wf in rival_workflows]
    )

    assert len(results) == 1
    assert [exc.error for exc in errors] == ["PENDING_UPLOAD_EXISTS"] * 3
    assert len(store.list_uploads_for_user("u-alice")) == 1


@pytest.mark.unit
def test_concurrent_validations_of_different_tasks_keep_every_credit(
    workflow, store, rival_workflows
) -> None:
    upload_ids = [workflow.create("u-alice", task["id"])["upload"]["id"] for task in SEED_TASKS]

    results, errors = _run_together(
        [
            lambda wf=wf, upload_id=upload_id: wf.validate(upload_id)
            for wf, upload_id in zip(rival_workflows, upload_ids, strict=False)
        ]
    )

    assert errors == []
    assert len(results) == len(SEED_TASKS)
    total = sum(task["reward"] for task in SEED_TASKS)
    assert store.get_user("u-alice")["balance"] == total
    assert max(result["newBalance"] for result in results) == total
