from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field

from controlplane.app.models.contracts import ApiModel
from controlplane.app.validation import Validator, is_cron_schedule

ResourceKind = Literal["deployment", "disk", "pullsecret", "workloadidentity", "route"]


class ResourceStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"
    ERROR_PENDING_CLEANUP_RESOURCE = "error_pending_cleanup_resource"


class ResourceAction(StrEnum):
    CREATE = "create"
    DEPLOY = "deploy"
    PAUSE = "pause"
    DELETE = "delete"


class DeploymentType(StrEnum):
    WEB_SERVICE = "WebService"
    WORKER = "Worker"
    CRON_JOB = "CronJob"
    TCP_SERVICE = "TCPService"
    INTERNAL_TCP_SERVICE = "InternalTCPService"


class DeploymentProtocol(StrEnum):
    HTTP = "http"
    HTTPS = "https"
    H2C = "h2c"


PORT_REQUIRED_TYPES: frozenset[DeploymentType] = frozenset(
    {
        DeploymentType.WEB_SERVICE,
        DeploymentType.TCP_SERVICE,
        DeploymentType.INTERNAL_TCP_SERVICE,
    }
)


class DeploymentDisk(ApiModel):
    name: str = ""
    mount_path: str = ""
    sub_path: str = ""

    def check(self, v: Validator) -> None:
        v.must(bool(self.name), "disk name required")
        if self.name:
            v.name(self.name, message="disk name invalid")
        if v.must(bool(self.mount_path), "disk mount path required"):
            v.must(self.mount_path.startswith("/"), "disk mount path must be absolute path")
        if self.sub_path:
            v.must(not self.sub_path.startswith("/"), "disk sub path must be relative path")


class ResourceQuantity(ApiModel):
    cpu: str | None = None
    memory: str | None = None


class DeploymentResources(ApiModel):
    requests: ResourceQuantity = Field(default_factory=ResourceQuantity)
    limits: ResourceQuantity = Field(default_factory=ResourceQuantity)

    def check(self, v: Validator) -> None:
        v.quantity(self.requests.cpu, message="resources requests cpu invalid")
        v.quantity(self.requests.memory, message="resources requests memory invalid")
        v.quantity(self.limits.cpu, message="resources limits cpu invalid")
        v.quantity(self.limits.memory, message="resources limits memory invalid")


class CloudSqlProxySidecar(ApiModel):
    instance: str = ""
    port: int = 0
    credentials: str = ""

    def check(self, v: Validator) -> None:
        v.must(bool(self.instance.strip()), "instance is required")
        v.must(0 <= self.port <= 65535, "sidecar port invalid")


class Sidecar(ApiModel):
    cloud_sql_proxy: CloudSqlProxySidecar | None = None

    def configs(self) -> list[CloudSqlProxySidecar]:
        return [config for config in (self.cloud_sql_proxy,) if config is not None]

    def check(self, v: Validator) -> None:
        configs = self.configs()
        if v.must(len(configs) == 1, "sidecar must set exactly one config"):
            configs[0].check(v)


def check_sidecars(v: Validator, sidecars: list[Sidecar]) -> None:
    v.must(
        len(sidecars) <= v.rules.sidecars_max,
        f"sidecars must not exceed {v.rules.sidecars_max}",
    )
    for sidecar in sidecars:
        sidecar.check(v)


def check_replicas(v: Validator, min_replicas: int | None, max_replicas: int | None) -> None:
    limit = v.rules.replicas_max
    if min_replicas is not None:
        v.must(
            0 <= min_replicas <= limit,
            f"min replicas value must be in range [0, {limit}]",
        )
    if max_replicas is not None:
        v.must(
            0 <= max_replicas <= limit,
            f"max replicas value must be in range [0, {limit}]",
        )
    if min_replicas is not None and max_replicas is not None:
        v.must(max_replicas >= min_replicas, "max replicas must higher or equal min replicas")


class DeploymentSpec(ApiModel):
    """Fully merged desired state of one deployment revision."""

    type: DeploymentType | None = None
    image: str = ""
    min_replicas: int = 1
    max_replicas: int = 1
    port: int = 0
    protocol: DeploymentProtocol | None = None
    env: dict[str, str] = Field(default_factory=dict)
    command: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)
    workload_identity: str = ""
    pull_secret: str = ""
    disk: DeploymentDisk | None = None
    schedule: str = ""
    resources: DeploymentResources | None = None
    mount_data: dict[str, str] = Field(default_factory=dict)
    sidecars: list[Sidecar] = Field(default_factory=list)

    def check(self, v: Validator) -> None:
        v.must(self.type is not None, "type required")
        v.must(bool(self.image), "image required")
        check_replicas(v, self.min_replicas, self.max_replicas)
        if self.disk is not None:
            v.must(
                self.min_replicas == self.max_replicas,
                "using disk not support auto-scaling",
            )
        if self.type in PORT_REQUIRED_TYPES:
            v.must(self.port > 0, "port required")
        if self.type == DeploymentType.CRON_JOB:
            if v.must(bool(self.schedule), "schedule required"):
                v.must(is_cron_schedule(self.schedule), "schedule invalid")
        if self.protocol is not None and self.type is not None:
            v.must(
                self.type == DeploymentType.WEB_SERVICE,
                f"protocol not allowed for {self.type.value}",
            )
        check_sidecars(v, self.sidecars)


class ResourceItem(ApiModel):
    project: str
    location: str
    name: str
    status: ResourceStatus
    action: ResourceAction
    created_at: str
    created_by: str
    success_at: str | None = None


class DeploymentItem(ResourceItem):
    type: DeploymentType | None = None
    image: str = ""
    revision: int
    min_replicas: int
    max_replicas: int
    port: int = 0
    node_port: int | None = None
    spec: DeploymentSpec


class DeploymentRevisionItem(ApiModel):
    revision: int
    image: str
    status: ResourceStatus
    created_at: str
    created_by: str
    spec: DeploymentSpec


class DiskItem(ResourceItem):
    size: int


class PullSecretItem(ResourceItem):
    server: str = ""
    username: str = ""


class WorkloadIdentityItem(ResourceItem):
    gsa: str


class RouteBasicAuth(ApiModel):
    user: str = ""
    password: str = ""


class RouteForwardAuth(ApiModel):
    target: str = ""
    auth_request_headers: list[str] = Field(default_factory=list)
    auth_response_headers: list[str] = Field(default_factory=list)


class RouteConfig(ApiModel):
    basic_auth: RouteBasicAuth | None = None
    forward_auth: RouteForwardAuth | None = None


class RouteItem(ResourceItem):
    domain: str
    path: str
    target: str
    deployment: str = ""
    config: RouteConfig | None = None
