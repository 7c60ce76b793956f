from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field, TypeAdapter

from controlplane.app.models.contracts import ApiModel
from controlplane.app.models.resources import (
    DeploymentSpec,
    DeploymentType,
    RouteConfig,
)
from controlplane.app.validation import Validator

CommandKind = Literal[
    "pullsecret.create",
    "pullsecret.delete",
    "workloadidentity.create",
    "workloadidentity.delete",
    "disk.create",
    "disk.delete",
    "deployment.deploy",
    "deployment.delete",
    "deployment.pause",
    "deployment.cleanup",
    "route.create",
    "route.delete",
]


class CommandBase(ApiModel):
    id: str
    project_id: str
    location_id: str
    name: str
    # Bumped on every installed action; echoed back on the result.
    generation: int


class PullSecretCreateCommand(CommandBase):
    kind: Literal["pullsecret.create"] = "pullsecret.create"
    value: str


class PullSecretDeleteCommand(CommandBase):
    kind: Literal["pullsecret.delete"] = "pullsecret.delete"


class WorkloadIdentityCreateCommand(CommandBase):
    kind: Literal["workloadidentity.create"] = "workloadidentity.create"
    gsa: str


class WorkloadIdentityDeleteCommand(CommandBase):
    kind: Literal["workloadidentity.delete"] = "workloadidentity.delete"


class DiskCreateCommand(CommandBase):
    kind: Literal["disk.create"] = "disk.create"
    size: int


class DiskDeleteCommand(CommandBase):
    kind: Literal["disk.delete"] = "disk.delete"


class SidecarContainer(ApiModel):
    name: str
    image: str
    port: int
    args: list[str] = Field(default_factory=list)
    mount_data: dict[str, str] = Field(default_factory=dict)


class DeploymentDeployCommand(CommandBase):
    kind: Literal["deployment.deploy"] = "deployment.deploy"
    revision: int
    type: DeploymentType
    spec: DeploymentSpec
    sidecars: list[SidecarContainer] = Field(default_factory=list)


class DeploymentDeleteCommand(CommandBase):
    kind: Literal["deployment.delete"] = "deployment.delete"
    revision: int
    type: DeploymentType


class DeploymentPauseCommand(CommandBase):
    kind: Literal["deployment.pause"] = "deployment.pause"
    revision: int
    type: DeploymentType


class DeploymentCleanupCommand(CommandBase):
    kind: Literal["deployment.cleanup"] = "deployment.cleanup"
    revision: int
    type: DeploymentType


class RouteCreateCommand(CommandBase):
    kind: Literal["route.create"] = "route.create"
    domain: str
    path: str
    target: str
    config: RouteConfig | None = None


class RouteDeleteCommand(CommandBase):
    kind: Literal["route.delete"] = "route.delete"
    domain: str
    path: str


Command = Annotated[
    PullSecretCreateCommand
    | PullSecretDeleteCommand
    | WorkloadIdentityCreateCommand
    | WorkloadIdentityDeleteCommand
    | DiskCreateCommand
    | DiskDeleteCommand
    | DeploymentDeployCommand
    | DeploymentDeleteCommand
    | DeploymentPauseCommand
    | DeploymentCleanupCommand
    | RouteCreateCommand
    | RouteDeleteCommand,
    Field(discriminator="kind"),
]

COMMAND_LIST_ADAPTER: TypeAdapter[list[Command]] = TypeAdapter(list[Command])


class CommandResult(ApiModel):
    """Outcome an agent reports for one command, correlated by (kind, id, generation)."""

    kind: CommandKind
    id: str
    generation: int
    success: bool
    revision: int | None = None
    node_port: int | None = None
    cleanup_pending: bool = False
    message: str | None = None


class GetCommandsRequest(ApiModel):
    location: str

    def check(self, v: Validator) -> None:
        v.location(self.location)


class SetResultsRequest(ApiModel):
    location: str | None = None
    results: list[CommandResult] = Field(default_factory=list)

    def check(self, v: Validator) -> None:
        if self.location is not None:
            v.location(self.location)
        for index, result in enumerate(self.results):
            v.must(bool(result.id.strip()), f"results[{index}].id required")
            if result.node_port is not None:
                v.must(
                    0 < result.node_port <= 65535,
                    f"results[{index}].nodePort invalid",
                )


class SetResultsSummary(ApiModel):
    applied: int = 0
    ignored: int = 0
    failed: int = 0
