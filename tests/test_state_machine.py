from __future__ import annotations

from dataclasses import replace

import pytest

from controlplane.app.errors import ConflictError, ErrorCode, StaleResultError
from controlplane.app.models.commands import CommandResult
from controlplane.app.models.resources import ResourceAction, ResourceStatus
from controlplane.app.repositories.resource_repository import StaleWriteError, StoredResource
from controlplane.app.services.state_machine import (
    SUPERSEDES,
    WRITE_ATTEMPTS,
    command_for,
    plan_action,
    resolve_result,
    retry_stale_writes,
)

BASE = StoredResource(
    resource_id="dep_1",
    kind="deployment",
    project="acme-shop",
    location="gke.cluster-rcf2",
    name="web-api",
    spec_json='{"type": "WebService", "image": "nginx", "port": 80}',
    revision=3,
    status=ResourceStatus.PENDING,
    action=ResourceAction.DEPLOY,
    pending_command="deployment.deploy",
    node_port=None,
    version=4,
    generation=4,
    created_at="2026-01-01T00:00:00+00:00",
    created_by="anonymous",
    updated_at="2026-01-01T00:00:00+00:00",
    success_at=None,
    deleted_at=None,
)


def _result(**fields: object) -> CommandResult:
    payload: dict[str, object] = {
        "kind": "deployment.deploy",
        "id": "dep_1",
        "generation": 4,
        "success": True,
    }
    payload.update(fields)
    return CommandResult.model_validate(payload)


def test_supersede_table() -> None:
    assert SUPERSEDES[ResourceAction.DEPLOY] == {ResourceAction.DEPLOY, ResourceAction.PAUSE}
    assert SUPERSEDES[ResourceAction.PAUSE] == frozenset()
    assert SUPERSEDES[ResourceAction.DELETE] == {
        ResourceAction.DEPLOY,
        ResourceAction.PAUSE,
        ResourceAction.CREATE,
    }
    assert SUPERSEDES[ResourceAction.CREATE] == {ResourceAction.CREATE}


def test_new_deploy_supersedes_outstanding_deploy() -> None:
    plan = plan_action("deployment", BASE, ResourceAction.DEPLOY)

    assert plan.command == "deployment.deploy"
    assert plan.superseded_action == ResourceAction.DEPLOY
    assert plan.superseded_command == "deployment.deploy"


def test_pause_never_supersedes() -> None:
    with pytest.raises(ConflictError) as exc_info:
        plan_action("deployment", BASE, ResourceAction.PAUSE)
    assert exc_info.value.code == ErrorCode.ACTION_PENDING


def test_deploy_cannot_supersede_outstanding_delete() -> None:
    deleting = replace(BASE, action=ResourceAction.DELETE, pending_command="deployment.delete")
    with pytest.raises(ConflictError):
        plan_action("deployment", deleting, ResourceAction.DEPLOY)


def test_acknowledged_resource_accepts_any_action() -> None:
    settled = replace(BASE, status=ResourceStatus.SUCCESS, pending_command=None)
    plan = plan_action("deployment", settled, ResourceAction.PAUSE)

    assert plan.command == "deployment.pause"
    assert plan.superseded_command is None


def test_delete_after_failed_cleanup_emits_cleanup_command() -> None:
    stuck = replace(
        BASE,
        status=ResourceStatus.ERROR_PENDING_CLEANUP_RESOURCE,
        action=ResourceAction.DELETE,
        pending_command=None,
    )
    assert plan_action("deployment", stuck, ResourceAction.DELETE).command == "deployment.cleanup"


def test_command_for_rejects_undefined_pairs() -> None:
    assert command_for("disk", ResourceAction.CREATE) == "disk.create"
    with pytest.raises(ValueError):
        command_for("disk", ResourceAction.PAUSE)


def test_successful_deploy_result() -> None:
    write = resolve_result(BASE, _result(revision=3, nodePort=30080))

    assert write.status == ResourceStatus.SUCCESS
    assert write.success is True
    assert write.deleted is False
    assert write.node_port == 30080


def test_successful_delete_result_marks_deleted() -> None:
    deleting = replace(BASE, action=ResourceAction.DELETE, pending_command="deployment.delete")
    write = resolve_result(deleting, _result(kind="deployment.delete"))

    assert write.deleted is True
    assert write.node_port is None


def test_failed_delete_with_cleanup_pending() -> None:
    deleting = replace(BASE, action=ResourceAction.DELETE, pending_command="deployment.delete")

    plain = resolve_result(deleting, _result(kind="deployment.delete", success=False))
    cleanup = resolve_result(
        deleting,
        _result(kind="deployment.delete", success=False, cleanupPending=True),
    )

    assert plain.status == ResourceStatus.ERROR
    assert cleanup.status == ResourceStatus.ERROR_PENDING_CLEANUP_RESOURCE


def test_failed_cleanup_stays_pending_cleanup() -> None:
    cleaning = replace(BASE, action=ResourceAction.DELETE, pending_command="deployment.cleanup")
    write = resolve_result(cleaning, _result(kind="deployment.cleanup", success=False))
    assert write.status == ResourceStatus.ERROR_PENDING_CLEANUP_RESOURCE


@pytest.mark.parametrize(
    "resource, result",
    [
        (replace(BASE, pending_command=None), _result()),
        (BASE, _result(kind="deployment.pause")),
        (BASE, _result(revision=2)),
        (BASE, _result(generation=3)),
        (BASE, _result(generation=3, revision=3)),
        (replace(BASE, generation=5), _result()),
    ],
)
def test_stale_results_are_rejected(resource: StoredResource, result: CommandResult) -> None:
    with pytest.raises(StaleResultError):
        resolve_result(resource, result)


def test_retry_stale_writes_retries_then_conflicts() -> None:
    calls: list[int] = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) < WRITE_ATTEMPTS:
            raise StaleWriteError("lost race")
        return "ok"

    assert retry_stale_writes(flaky) == "ok"
    assert len(calls) == WRITE_ATTEMPTS

    def always_stale() -> str:
        raise StaleWriteError("lost race")

    with pytest.raises(ConflictError) as exc_info:
        retry_stale_writes(always_stale)
    assert exc_info.value.code == ErrorCode.CONCURRENT_MODIFICATION
    assert exc_info.value.retryable is True
