from __future__ import annotations

import base64
import json
import logging
from typing import Any

from controlplane.app.models.commands import (
    Command,
    DeploymentCleanupCommand,
    DeploymentDeleteCommand,
    DeploymentDeployCommand,
    DeploymentPauseCommand,
    DiskCreateCommand,
    DiskDeleteCommand,
    PullSecretCreateCommand,
    PullSecretDeleteCommand,
    RouteCreateCommand,
    RouteDeleteCommand,
    SidecarContainer,
    WorkloadIdentityCreateCommand,
    WorkloadIdentityDeleteCommand,
)
from controlplane.app.models.resources import (
    CloudSqlProxySidecar,
    DeploymentSpec,
    DeploymentType,
    RouteConfig,
    Sidecar,
)
from controlplane.app.repositories.resource_repository import ResourceRepository, StoredResource

LOGGER = logging.getLogger("deploys.commands")

CLOUD_SQL_PROXY_IMAGE = "gcr.io/cloud-sql-connectors/cloud-sql-proxy:2.7.0"
CLOUD_SQL_PROXY_DEFAULT_PORT = 3300
CLOUD_SQL_PROXY_CREDENTIALS_PATH = "/sidecar/cloudsqlproxy/credentials.json"


class CommandGenerator:
    def __init__(self, *, resource_repository: ResourceRepository) -> None:
        self._resources = resource_repository

    def outstanding_commands(self, location: str) -> list[Command]:
        commands: list[Command] = []
        for resource in self._resources.list_outstanding(location):
            try:
                commands.append(build_command(resource))
            except ValueError:
                LOGGER.exception(
                    "skipping undecodable command kind=%s id=%s",
                    resource.pending_command,
                    resource.resource_id,
                )
        return commands


def build_command(resource: StoredResource) -> Command:
    """Snapshot the outstanding command of `resource` with everything an agent needs."""
    identity: dict[str, Any] = {
        "id": resource.resource_id,
        "project_id": resource.project,
        "location_id": resource.location,
        "name": resource.name,
        "generation": resource.generation,
    }
    spec = resource.spec
    kind = resource.pending_command
    if kind == "deployment.deploy":
        deployment_spec = DeploymentSpec.model_validate(spec)
        return DeploymentDeployCommand(
            **identity,
            revision=resource.revision,
            type=_require_type(deployment_spec),
            spec=deployment_spec,
            sidecars=expand_sidecars(deployment_spec.sidecars),
        )
    if kind == "deployment.delete":
        return DeploymentDeleteCommand(**identity, **_deployment_ref(resource))
    if kind == "deployment.pause":
        return DeploymentPauseCommand(**identity, **_deployment_ref(resource))
    if kind == "deployment.cleanup":
        return DeploymentCleanupCommand(**identity, **_deployment_ref(resource))
    if kind == "disk.create":
        return DiskCreateCommand(**identity, size=int(spec.get("size", 0)))
    if kind == "disk.delete":
        return DiskDeleteCommand(**identity)
    if kind == "pullsecret.create":
        return PullSecretCreateCommand(**identity, value=pull_secret_value(spec))
    if kind == "pullsecret.delete":
        return PullSecretDeleteCommand(**identity)
    if kind == "workloadidentity.create":
        return WorkloadIdentityCreateCommand(**identity, gsa=str(spec.get("gsa", "")))
    if kind == "workloadidentity.delete":
        return WorkloadIdentityDeleteCommand(**identity)
    if kind == "route.create":
        raw_config = spec.get("config")
        return RouteCreateCommand(
            **identity,
            domain=str(spec.get("domain", "")),
            path=str(spec.get("path", "/")),
            target=str(spec.get("target", "")),
            config=RouteConfig.model_validate(raw_config) if raw_config else None,
        )
    if kind == "route.delete":
        return RouteDeleteCommand(
            **identity,
            domain=str(spec.get("domain", "")),
            path=str(spec.get("path", "/")),
        )
    raise ValueError(f"unknown command kind {kind!r}")


def _require_type(spec: DeploymentSpec) -> DeploymentType:
    if spec.type is None:
        raise ValueError("deployment spec has no type")
    return spec.type


def _deployment_ref(resource: StoredResource) -> dict[str, Any]:
    deployment_spec = DeploymentSpec.model_validate(resource.spec)
    return {"revision": resource.revision, "type": _require_type(deployment_spec)}


def expand_sidecars(sidecars: list[Sidecar]) -> list[SidecarContainer]:
    containers: list[SidecarContainer] = []
    for sidecar in sidecars:
        if sidecar.cloud_sql_proxy is not None:
            containers.append(cloud_sql_proxy_container(sidecar.cloud_sql_proxy))
    return containers


def cloud_sql_proxy_container(config: CloudSqlProxySidecar) -> SidecarContainer:
    port = config.port or CLOUD_SQL_PROXY_DEFAULT_PORT
    args = [config.instance, f"-p={port}", "--max-sigterm-delay=30"]
    mount_data: dict[str, str] = {}
    if config.credentials:
        args.append(f"--credentials-file={CLOUD_SQL_PROXY_CREDENTIALS_PATH}")
        mount_data[CLOUD_SQL_PROXY_CREDENTIALS_PATH] = config.credentials
    return SidecarContainer(
        name="cloudsql-proxy",
        image=CLOUD_SQL_PROXY_IMAGE,
        port=port,
        args=args,
        mount_data=mount_data,
    )


def pull_secret_value(spec: dict[str, Any]) -> str:
    """Base64 docker `config.json` for the stored pull secret."""
    raw_value = spec.get("value")
    if isinstance(raw_value, str) and raw_value:
        return raw_value

    server = str(spec.get("server", ""))
    username = str(spec.get("username", ""))
    password = str(spec.get("password", ""))
    auth = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    docker_config = {
        "auths": {
            server: {
                "username": username,
                "password": password,
                "auth": auth,
            }
        }
    }
    encoded = json.dumps(docker_config, sort_keys=True).encode("utf-8")
    return base64.b64encode(encoded).decode("ascii")
