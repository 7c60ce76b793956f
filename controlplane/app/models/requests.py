from __future__ import annotations

from typing import Any

from pydantic import field_validator

from controlplane.app.models.contracts import ApiModel
from controlplane.app.models.resources import (
    DeploymentDisk,
    DeploymentProtocol,
    DeploymentResources,
    DeploymentType,
    RouteConfig,
    Sidecar,
    check_replicas,
    check_sidecars,
)
from controlplane.app.validation import (
    Validator,
    is_base64,
    is_cron_schedule,
    is_dns_name,
    is_http_url,
    is_service_account_email,
)


def _strip_whitespace(value: Any) -> Any:
    if isinstance(value, str):
        return "".join(value.split())
    return value


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


class ProjectScopedRequest(ApiModel):
    project: str
    location: str

    @field_validator("project", "location", mode="before")
    @classmethod
    def _strip_scope(cls, value: Any) -> Any:
        return _strip(value)

    def check(self, v: Validator) -> None:
        v.project(self.project)
        v.location(self.location)


class ResourceRefRequest(ProjectScopedRequest):
    name: str

    def check(self, v: Validator) -> None:
        super().check(v)
        v.name(self.name)


class ListRequest(ApiModel):
    project: str
    location: str | None = None

    def check(self, v: Validator) -> None:
        v.project(self.project)
        if self.location is not None:
            v.location(self.location)


class DeploymentDeployRequest(ResourceRefRequest):
    """Partial update: every omitted field is copied from the previous revision."""

    type: DeploymentType | None = None
    image: str | None = None
    min_replicas: int | None = None
    max_replicas: int | None = None
    port: int | None = None
    protocol: DeploymentProtocol | None = None
    env: dict[str, str] | None = None
    add_env: dict[str, str] | None = None
    remove_env: list[str] | None = None
    command: list[str] | None = None
    args: list[str] | None = None
    workload_identity: str | None = None
    pull_secret: str | None = None
    disk: DeploymentDisk | None = None
    schedule: str | None = None
    resources: DeploymentResources | None = None
    mount_data: dict[str, str] | None = None
    sidecars: list[Sidecar] | None = None

    @field_validator("image", mode="before")
    @classmethod
    def _strip_image(cls, value: Any) -> Any:
        return _strip_whitespace(value)

    @field_validator("schedule", "workload_identity", "pull_secret", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _strip(value)

    def check(self, v: Validator) -> None:
        super().check(v)
        if self.image is not None:
            if v.must(bool(self.image), "image required"):
                v.must(not self.image.endswith("@"), "image invalid")
        check_replicas(v, self.min_replicas, self.max_replicas)
        if self.port is not None:
            v.must(0 <= self.port <= 65535, "invalid port")
        if self.disk is not None:
            self.disk.check(v)
            if self.min_replicas is not None and self.max_replicas is not None:
                v.must(
                    self.min_replicas == self.max_replicas,
                    "using disk not support auto-scaling",
                )
        if self.env is not None:
            v.env_names(self.env)
        if self.add_env is not None:
            v.env_names(self.add_env, message="add env name invalid")
        if self.remove_env is not None:
            v.env_names(self.remove_env, message="remove env name invalid")
        if self.schedule:
            v.must(is_cron_schedule(self.schedule), "schedule invalid")
        if self.protocol is not None and self.type is not None:
            v.must(
                self.type == DeploymentType.WEB_SERVICE,
                f"protocol not allowed for {self.type.value}",
            )
        if self.workload_identity:
            v.name(self.workload_identity, message="workload identity invalid")
        if self.pull_secret:
            v.name(self.pull_secret, message="pull secret invalid")
        if self.resources is not None:
            self.resources.check(v)
        if self.mount_data is not None:
            v.mount_data(self.mount_data)
        if self.sidecars is not None:
            check_sidecars(v, self.sidecars)


class DeploymentGetRequest(ResourceRefRequest):
    revision: int = 0

    def check(self, v: Validator) -> None:
        super().check(v)
        v.must(self.revision >= 0, "invalid revision")


class DeploymentRollbackRequest(ResourceRefRequest):
    revision: int

    def check(self, v: Validator) -> None:
        super().check(v)
        v.must(self.revision >= 1, "invalid revision")


class DiskCreateRequest(ResourceRefRequest):
    size: int

    def check(self, v: Validator) -> None:
        super().check(v)
        v.must(self.size >= v.rules.disk_min_size, f"minimum disk size {v.rules.disk_min_size} Gi")
        v.must(self.size <= v.rules.disk_max_size, f"maximum disk size {v.rules.disk_max_size} Gi")


class DiskUpdateRequest(DiskCreateRequest):
    pass


class PullSecretSpec(ApiModel):
    server: str = ""
    username: str = ""
    password: str = ""

    def check(self, v: Validator) -> None:
        if v.must(bool(self.server), "server required"):
            v.must(is_http_url(self.server), "server invalid")
        v.must(bool(self.username), "username required")
        v.must(bool(self.password), "password required")


class PullSecretCreateRequest(ResourceRefRequest):
    spec: PullSecretSpec | None = None
    value: str | None = None

    def check(self, v: Validator) -> None:
        super().check(v)
        if not v.must(
            (self.spec is None) != (self.value is None),
            "exactly one of spec or value required",
        ):
            return
        if self.spec is not None:
            self.spec.check(v)
        if self.value is not None:
            v.must(is_base64(self.value), "value invalid")


class WorkloadIdentityCreateRequest(ResourceRefRequest):
    gsa: str

    @field_validator("gsa", mode="before")
    @classmethod
    def _strip_gsa(cls, value: Any) -> Any:
        return _strip(value)

    def check(self, v: Validator) -> None:
        super().check(v)
        if v.must(bool(self.gsa), "gsa required"):
            v.must(is_service_account_email(self.gsa), "gsa invalid")


class RouteRefRequest(ProjectScopedRequest):
    domain: str
    path: str = "/"

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def check(self, v: Validator) -> None:
        super().check(v)
        v.must(is_dns_name(self.domain), "domain invalid")
        v.must(self.path.startswith("/"), "path invalid")

    @property
    def route_name(self) -> str:
        return f"{self.domain}{self.path}"


class RouteCreateRequest(RouteRefRequest):
    deployment: str | None = None
    target: str | None = None
    config: RouteConfig | None = None

    def check(self, v: Validator) -> None:
        super().check(v)
        if v.must(
            (self.deployment is None) != (self.target is None),
            "exactly one of deployment or target required",
        ):
            if self.deployment is not None:
                v.name(self.deployment, message="deployment invalid")
            if self.target is not None:
                v.must(
                    self.target.startswith(v.rules.route_target_prefixes),
                    "target invalid",
                )
        if self.config is not None:
            basic_auth = self.config.basic_auth
            forward_auth = self.config.forward_auth
            v.must(
                basic_auth is None or forward_auth is None,
                "basic auth and forward auth are mutually exclusive",
            )
            if basic_auth is not None:
                v.must(bool(basic_auth.user), "basic auth user required")
                v.must(bool(basic_auth.password), "basic auth password required")
            if forward_auth is not None:
                v.must(is_http_url(forward_auth.target), "forward auth target invalid")

    @property
    def resolved_target(self) -> str:
        if self.deployment is not None:
            return f"deployment://{self.deployment}"
        return self.target or ""
