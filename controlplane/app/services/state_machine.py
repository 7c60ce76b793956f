"""Status/action transitions shared by every resource kind.

Installing an action and applying a result are pure decisions here; the
repositories perform the compare-and-set writes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from controlplane.app.errors import ConflictError, ErrorCode, StaleResultError
from controlplane.app.models.commands import CommandKind, CommandResult
from controlplane.app.models.resources import ResourceAction, ResourceKind, ResourceStatus
from controlplane.app.repositories.resource_repository import (
    ResultWrite,
    StaleWriteError,
    StoredResource,
)

LOGGER = logging.getLogger("deploys.state")
WRITE_ATTEMPTS = 3

T = TypeVar("T")

# new action -> outstanding actions it may cancel
SUPERSEDES: dict[ResourceAction, frozenset[ResourceAction]] = {
    ResourceAction.DEPLOY: frozenset({ResourceAction.DEPLOY, ResourceAction.PAUSE}),
    ResourceAction.PAUSE: frozenset(),
    ResourceAction.DELETE: frozenset(
        {ResourceAction.DEPLOY, ResourceAction.PAUSE, ResourceAction.CREATE}
    ),
    ResourceAction.CREATE: frozenset({ResourceAction.CREATE}),
}

_COMMANDS: dict[tuple[ResourceKind, ResourceAction], CommandKind] = {
    ("deployment", ResourceAction.DEPLOY): "deployment.deploy",
    ("deployment", ResourceAction.PAUSE): "deployment.pause",
    ("deployment", ResourceAction.DELETE): "deployment.delete",
    ("disk", ResourceAction.CREATE): "disk.create",
    ("disk", ResourceAction.DELETE): "disk.delete",
    ("pullsecret", ResourceAction.CREATE): "pullsecret.create",
    ("pullsecret", ResourceAction.DELETE): "pullsecret.delete",
    ("workloadidentity", ResourceAction.CREATE): "workloadidentity.create",
    ("workloadidentity", ResourceAction.DELETE): "workloadidentity.delete",
    ("route", ResourceAction.CREATE): "route.create",
    ("route", ResourceAction.DELETE): "route.delete",
}


@dataclass(frozen=True)
class ActionPlan:
    action: ResourceAction
    command: CommandKind
    superseded_action: ResourceAction | None = None
    superseded_command: str | None = None


def command_for(
    kind: ResourceKind,
    action: ResourceAction,
    *,
    status: ResourceStatus | None = None,
) -> CommandKind:
    if (
        kind == "deployment"
        and action == ResourceAction.DELETE
        and status == ResourceStatus.ERROR_PENDING_CLEANUP_RESOURCE
    ):
        return "deployment.cleanup"
    try:
        return _COMMANDS[(kind, action)]
    except KeyError as exc:
        raise ValueError(f"action {action.value} is not defined for {kind}") from exc


def plan_action(
    kind: ResourceKind,
    current: StoredResource | None,
    action: ResourceAction,
) -> ActionPlan:
    """Decide whether `action` may be installed on `current`.

    Raises ConflictError when an outstanding action cannot be superseded.
    """
    if current is None:
        return ActionPlan(action=action, command=command_for(kind, action))

    command = command_for(kind, action, status=current.status)
    if not current.has_outstanding_command:
        return ActionPlan(action=action, command=command)

    if current.action not in SUPERSEDES[action]:
        raise ConflictError(ErrorCode.ACTION_PENDING)
    return ActionPlan(
        action=action,
        command=command,
        superseded_action=current.action,
        superseded_command=current.pending_command,
    )


def resolve_result(resource: StoredResource, result: CommandResult) -> ResultWrite:
    if resource.pending_command is None:
        raise StaleResultError("no outstanding command")
    if result.kind != resource.pending_command:
        raise StaleResultError(
            f"result kind {result.kind} does not match outstanding {resource.pending_command}"
        )
    if result.generation != resource.generation:
        raise StaleResultError(
            f"result generation {result.generation} does not match current {resource.generation}"
        )
    if (
        result.kind == "deployment.deploy"
        and result.revision is not None
        and result.revision != resource.revision
    ):
        raise StaleResultError(
            f"result revision {result.revision} does not match current {resource.revision}"
        )

    if result.success:
        return ResultWrite(
            status=ResourceStatus.SUCCESS,
            success=True,
            deleted=resource.action == ResourceAction.DELETE,
            node_port=result.node_port if result.kind == "deployment.deploy" else None,
            message=result.message,
        )

    status = ResourceStatus.ERROR
    if resource.action == ResourceAction.DELETE and (
        result.cleanup_pending or result.kind == "deployment.cleanup"
    ):
        status = ResourceStatus.ERROR_PENDING_CLEANUP_RESOURCE
    return ResultWrite(
        status=status,
        success=False,
        deleted=False,
        node_port=None,
        message=result.message,
    )


def retry_stale_writes(operation: Callable[[], T]) -> T:
    """Re-run a read-decide-write operation when its compare-and-set loses a race."""
    for attempt in range(1, WRITE_ATTEMPTS + 1):
        try:
            return operation()
        except StaleWriteError as exc:
            LOGGER.info("stale write attempt=%s reason=%s", attempt, exc)
    raise ConflictError(ErrorCode.CONCURRENT_MODIFICATION, retryable=True)
