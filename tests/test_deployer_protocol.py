from __future__ import annotations

import base64
import json
import sqlite3

import pytest

from controlplane.app.errors import ErrorCode, NotFoundError
from controlplane.app.models.commands import (
    CommandResult,
    DeploymentDeployCommand,
    DiskCreateCommand,
    GetCommandsRequest,
    PullSecretCreateCommand,
    SetResultsRequest,
)
from controlplane.app.models.requests import (
    DeploymentGetRequest,
    DiskCreateRequest,
    DiskUpdateRequest,
    PullSecretCreateRequest,
    PullSecretSpec,
    ResourceRefRequest,
)
from controlplane.app.models.resources import ResourceStatus
from controlplane.app.repositories.database import Database
from controlplane.app.services.locations import LocationRegistry
from controlplane.app.services.result_reconciler import ResultReconciler

from conftest import LOCATION, PROJECT, Services, build_services, deploy_request

WEB = {"type": "WebService", "image": "registry.example.com/shop:1", "port": 8080}


def _commands(services: Services, location: str = LOCATION) -> list:
    return services.deployer.get_commands(GetCommandsRequest(location=location))


def _result(
    kind: str,
    resource_id: str,
    generation: int = 1,
    **fields: object,
) -> CommandResult:
    payload: dict[str, object] = {
        "kind": kind,
        "id": resource_id,
        "generation": generation,
        "success": True,
    }
    payload.update(fields)
    return CommandResult.model_validate(payload)


def _set(services: Services, *results: CommandResult, location: str | None = LOCATION):
    return services.deployer.set_results(SetResultsRequest(location=location, results=list(results)))


def _get(services: Services, name: str = "web-api"):
    return services.deployments.get(DeploymentGetRequest(project=PROJECT, location=LOCATION, name=name))


def test_command_is_served_until_acknowledged(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))

    first = _commands(services)
    second = _commands(services)

    assert len(first) == 1
    assert first == second
    command = first[0]
    assert isinstance(command, DeploymentDeployCommand)
    assert command.revision == 1
    assert command.project_id == PROJECT
    assert command.location_id == LOCATION

    summary = _set(services, _result("deployment.deploy", command.id, revision=1))

    assert summary.applied == 1
    assert _commands(services) == []
    assert _get(services).status == ResourceStatus.SUCCESS


def test_commands_are_scoped_to_location(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    assert _commands(services, "gke.elsewhere") == []


def test_duplicate_result_is_ignored(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    command = _commands(services)[0]
    result = _result("deployment.deploy", command.id, revision=1, nodePort=30080)

    first = _set(services, result)
    after_first = _get(services)
    second = _set(services, result)
    after_second = _get(services)

    assert (first.applied, first.ignored) == (1, 0)
    assert (second.applied, second.ignored) == (0, 1)
    assert after_first == after_second


def test_result_for_superseded_revision_is_dropped(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    services.deployments.deploy(deploy_request(image="registry.example.com/shop:2"))

    summary = _set(
        services,
        _result("deployment.deploy", _commands(services)[0].id, revision=1, success=False),
    )

    current = _get(services)
    assert summary.ignored == 1
    assert current.revision == 2
    assert current.status == ResourceStatus.PENDING
    assert [command.revision for command in _commands(services)] == [2]


def test_unknown_resource_result_is_ignored(services: Services) -> None:
    summary = _set(services, _result("disk.create", "disk_missing"))
    assert (summary.applied, summary.ignored, summary.failed) == (0, 1, 0)


def test_result_from_other_location_is_ignored(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    command = _commands(services)[0]

    summary = _set(
        services,
        _result("deployment.deploy", command.id, revision=1),
        location="gke.elsewhere",
    )

    assert summary.ignored == 1
    assert _get(services).status == ResourceStatus.PENDING
    events = services.events.list_events(command.id)
    assert events[-1].event_type == "result_ignored"


def test_batch_results_apply_independently(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    services.deployments.deploy(deploy_request("worker-a", type="Worker", image="worker:1"))
    commands = {command.name: command for command in _commands(services)}

    summary = _set(
        services,
        _result("deployment.deploy", commands["web-api"].id, revision=1),
        _result("deployment.deploy", "dep_missing", revision=1),
        _result("deployment.deploy", commands["worker-a"].id, revision=1, success=False),
    )

    assert (summary.applied, summary.ignored) == (2, 1)
    assert _get(services).status == ResourceStatus.SUCCESS
    assert _get(services, "worker-a").status == ResourceStatus.ERROR


def test_node_port_is_recorded_from_deploy_result(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    command = _commands(services)[0]

    _set(services, _result("deployment.deploy", command.id, revision=1, nodePort=30080))

    item = _get(services)
    assert item.node_port == 30080
    assert item.success_at is not None


def test_failed_delete_with_cleanup_pending_then_cleanup(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    _set(services, _result("deployment.deploy", _commands(services)[0].id, revision=1))
    ref = ResourceRefRequest(project=PROJECT, location=LOCATION, name="web-api")

    services.deployments.delete(ref)
    delete_command = _commands(services)[0]
    assert delete_command.kind == "deployment.delete"
    _set(
        services,
        _result(
            "deployment.delete",
            delete_command.id,
            delete_command.generation,
            success=False,
            cleanupPending=True,
        ),
    )
    assert _get(services).status == ResourceStatus.ERROR_PENDING_CLEANUP_RESOURCE

    services.deployments.delete(ref)
    cleanup_command = _commands(services)[0]
    assert cleanup_command.kind == "deployment.cleanup"
    _set(services, _result("deployment.cleanup", cleanup_command.id, cleanup_command.generation))

    with pytest.raises(NotFoundError):
        _get(services)
    assert _commands(services) == []


def test_failed_result_keeps_resource_visible_with_error(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    command = _commands(services)[0]

    _set(services, _result("deployment.deploy", command.id, revision=1, success=False))

    item = _get(services)
    assert item.status == ResourceStatus.ERROR
    assert item.success_at is None
    assert _commands(services) == []


def test_pull_secret_command_carries_docker_config(services: Services) -> None:
    services.pull_secrets.create(
        PullSecretCreateRequest(
            project=PROJECT,
            location=LOCATION,
            name="registry",
            spec=PullSecretSpec(server="https://ghcr.io", username="bot", password="s3cret"),
        )
    )

    command = _commands(services)[0]
    assert isinstance(command, PullSecretCreateCommand)
    decoded = json.loads(base64.b64decode(command.value))
    auth = decoded["auths"]["https://ghcr.io"]
    assert auth["username"] == "bot"
    assert base64.b64decode(auth["auth"]).decode() == "bot:s3cret"


def test_deploy_command_expands_cloud_sql_sidecar(services: Services) -> None:
    services.deployments.deploy(
        deploy_request(
            **WEB,
            sidecars=[{"cloudSqlProxy": {"instance": "acme:asia:db", "credentials": "{}"}}],
        )
    )

    command = _commands(services)[0]
    assert isinstance(command, DeploymentDeployCommand)
    sidecar = command.sidecars[0]
    assert sidecar.name == "cloudsql-proxy"
    assert sidecar.port == 3300
    assert sidecar.args[0] == "acme:asia:db"
    assert "--credentials-file=/sidecar/cloudsqlproxy/credentials.json" in sidecar.args
    assert sidecar.mount_data == {"/sidecar/cloudsqlproxy/credentials.json": "{}"}


def test_get_commands_rejects_unknown_location(database: Database) -> None:
    restricted = build_services(database, locations=LocationRegistry(frozenset({LOCATION})))

    with pytest.raises(NotFoundError) as exc_info:
        restricted.deployer.get_commands(GetCommandsRequest(location="gke.elsewhere"))
    assert exc_info.value.code == ErrorCode.LOCATION_NOT_FOUND


def test_storage_failure_counts_as_failed_and_keeps_command(
    services: Services,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    command = _commands(services)[0]

    def broken_apply(self: ResultReconciler, result: CommandResult, *, location: str | None = None):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(ResultReconciler, "apply", broken_apply)
    summary = _set(services, _result("deployment.deploy", command.id, revision=1))

    assert summary.failed == 1
    monkeypatch.undo()
    assert [item.id for item in _commands(services)] == [command.id]


def test_late_disk_create_result_does_not_close_resize(services: Services) -> None:
    services.disks.create(DiskCreateRequest(project=PROJECT, location=LOCATION, name="data", size=5))
    original = _commands(services)[0]
    assert original.generation == 1

    services.disks.update(DiskUpdateRequest(project=PROJECT, location=LOCATION, name="data", size=10))
    summary = _set(services, _result("disk.create", original.id, original.generation))

    assert (summary.applied, summary.ignored) == (0, 1)
    pending = _commands(services)
    assert len(pending) == 1
    assert isinstance(pending[0], DiskCreateCommand)
    assert pending[0].size == 10
    assert pending[0].generation == 2

    summary = _set(services, _result("disk.create", original.id, pending[0].generation))
    assert summary.applied == 1
    assert _commands(services) == []


def test_late_deploy_result_without_revision_does_not_close_redeploy(services: Services) -> None:
    services.deployments.deploy(deploy_request(**WEB))
    first = _commands(services)[0]
    services.deployments.deploy(deploy_request(**{**WEB, "image": "registry.example.com/shop:2"}))

    summary = _set(services, _result("deployment.deploy", first.id, first.generation))

    assert summary.ignored == 1
    current = _get(services)
    assert current.revision == 2
    assert current.status == ResourceStatus.PENDING
    pending = _commands(services)
    assert [(command.revision, command.generation) for command in pending] == [(2, 2)]
    events = services.events.list_events(first.id)
    assert events[-1].event_type == "result_ignored"
