from __future__ import annotations

import logging
from typing import Any, ClassVar

from controlplane.app.errors import ConflictError, ErrorCode, NotFoundError
from controlplane.app.models.contracts import Empty, ItemList
from controlplane.app.models.requests import (
    DiskCreateRequest,
    DiskUpdateRequest,
    ListRequest,
    PullSecretCreateRequest,
    ResourceRefRequest,
    RouteCreateRequest,
    RouteRefRequest,
    WorkloadIdentityCreateRequest,
)
from controlplane.app.models.resources import (
    DiskItem,
    PullSecretItem,
    ResourceAction,
    ResourceKind,
    RouteConfig,
    RouteItem,
    WorkloadIdentityItem,
)
from controlplane.app.repositories.database import dump_json
from controlplane.app.repositories.resource_repository import ResourceRepository, StoredResource
from controlplane.app.services.locations import LocationRegistry
from controlplane.app.services.state_machine import (
    ActionPlan,
    plan_action,
    retry_stale_writes,
)
from controlplane.app.validation import Validatable, ValidationRules, run_validation
from controlplane.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("deploys.resources")

DEFAULT_ACTOR = "anonymous"


def resource_fields(resource: StoredResource) -> dict[str, Any]:
    return {
        "project": resource.project,
        "location": resource.location,
        "name": resource.name,
        "status": resource.status,
        "action": resource.action,
        "created_at": resource.created_at,
        "created_by": resource.created_by,
        "success_at": resource.success_at,
    }


class ResourceServiceBase:
    """Shared lifecycle for every resource kind: admit, look up, install actions."""

    kind: ClassVar[ResourceKind]
    not_found_code: ClassVar[ErrorCode]
    # Deployment spec field that references this kind by name.
    referenced_by: ClassVar[str | None] = None

    def __init__(
        self,
        *,
        resource_repository: ResourceRepository,
        rules: ValidationRules,
        locations: LocationRegistry,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._resources = resource_repository
        self._rules = rules
        self._locations = locations
        self._telemetry = telemetry or TelemetryClient.disabled()

    def _admit(self, request: Validatable, *, location: str | None) -> None:
        run_validation(request, self._rules)
        if location is not None:
            self._locations.require(location)

    def _find_live(self, *, project: str, location: str, name: str) -> StoredResource | None:
        return self._resources.get_live(self.kind, project=project, location=location, name=name)

    def _require_live(self, *, project: str, location: str, name: str) -> StoredResource:
        resource = self._find_live(project=project, location=location, name=name)
        if resource is None:
            raise NotFoundError(self.not_found_code)
        return resource

    def _list_live(self, request: ListRequest) -> list[StoredResource]:
        self._admit(request, location=request.location)
        return self._resources.list_live(
            self.kind,
            project=request.project,
            location=request.location,
        )

    def _create(
        self,
        *,
        project: str,
        location: str,
        name: str,
        spec_json: str,
        action: ResourceAction,
        actor: str,
        revision: int = 0,
    ) -> StoredResource:
        plan = plan_action(self.kind, None, action)
        stored = self._resources.create_resource(
            self.kind,
            project=project,
            location=location,
            name=name,
            spec_json=spec_json,
            action=plan.action,
            command=plan.command,
            actor=actor,
            revision=revision,
        )
        self._emit_installed(stored, plan)
        return stored

    def _install(
        self,
        current: StoredResource,
        action: ResourceAction,
        *,
        actor: str,
        spec_json: str | None = None,
        revision: int | None = None,
    ) -> StoredResource:
        plan = plan_action(self.kind, current, action)
        stored = self._resources.install_action(
            current,
            action=plan.action,
            command=plan.command,
            actor=actor,
            spec_json=spec_json,
            revision=revision,
        )
        self._emit_installed(stored, plan)
        return stored

    def _emit_installed(self, stored: StoredResource, plan: ActionPlan) -> None:
        LOGGER.info(
            "action installed kind=%s id=%s action=%s command=%s revision=%s",
            self.kind,
            stored.resource_id,
            plan.action.value,
            plan.command,
            stored.revision,
        )
        self._telemetry.emit(
            "resource.action.installed",
            kind=self.kind,
            resource_id=stored.resource_id,
            action=plan.action.value,
            command=plan.command,
            revision=stored.revision,
        )
        if plan.superseded_command is not None:
            LOGGER.info(
                "outstanding command cancelled kind=%s id=%s command=%s",
                self.kind,
                stored.resource_id,
                plan.superseded_command,
            )
            self._telemetry.emit(
                "resource.action.cancelled",
                kind=self.kind,
                resource_id=stored.resource_id,
                command=plan.superseded_command,
            )

    def _guard_not_deleting(self, current: StoredResource) -> None:
        if current.action == ResourceAction.DELETE:
            raise ConflictError(ErrorCode.ACTION_PENDING, "api: resource is being deleted")

    def _guard_not_referenced(self, current: StoredResource) -> None:
        if self.referenced_by is None:
            return
        for deployment in self._resources.list_live(
            "deployment",
            project=current.project,
            location=current.location,
        ):
            referenced = deployment.spec.get(self.referenced_by)
            if isinstance(referenced, dict):
                referenced = referenced.get("name")
            if referenced == current.name:
                raise ConflictError(
                    ErrorCode.CAN_NOT_DELETE,
                    f"api: can not delete, used by deployment {deployment.name}",
                )

    def _delete(self, *, project: str, location: str, name: str, actor: str) -> Empty:
        def operation() -> Empty:
            current = self._require_live(project=project, location=location, name=name)
            self._guard_not_referenced(current)
            self._install(current, ResourceAction.DELETE, actor=actor)
            return Empty()

        return retry_stale_writes(operation)

    def _create_unique(
        self,
        *,
        project: str,
        location: str,
        name: str,
        spec_json: str,
        actor: str,
    ) -> StoredResource:
        def operation() -> StoredResource:
            if self._find_live(project=project, location=location, name=name) is not None:
                raise ConflictError(ErrorCode.NAME_NOT_AVAILABLE)
            return self._create(
                project=project,
                location=location,
                name=name,
                spec_json=spec_json,
                action=ResourceAction.CREATE,
                actor=actor,
            )

        return retry_stale_writes(operation)


class DiskService(ResourceServiceBase):
    kind = "disk"
    not_found_code = ErrorCode.DISK_NOT_FOUND
    referenced_by = "disk"

    def create(self, request: DiskCreateRequest, *, actor: str = DEFAULT_ACTOR) -> DiskItem:
        self._admit(request, location=request.location)
        stored = self._create_unique(
            project=request.project,
            location=request.location,
            name=request.name,
            spec_json=dump_json({"size": request.size}),
            actor=actor,
        )
        return _disk_item(stored)

    def get(self, request: ResourceRefRequest) -> DiskItem:
        self._admit(request, location=None)
        return _disk_item(
            self._require_live(
                project=request.project,
                location=request.location,
                name=request.name,
            )
        )

    def list_disks(self, request: ListRequest) -> ItemList[DiskItem]:
        return ItemList[DiskItem](items=[_disk_item(item) for item in self._list_live(request)])

    def update(self, request: DiskUpdateRequest, *, actor: str = DEFAULT_ACTOR) -> DiskItem:
        self._admit(request, location=request.location)

        def operation() -> StoredResource:
            current = self._require_live(
                project=request.project,
                location=request.location,
                name=request.name,
            )
            self._guard_not_deleting(current)
            if request.size <= int(current.spec.get("size", 0)):
                raise ConflictError(ErrorCode.DISK_SIZE_MUST_SCALE_UP)
            return self._install(
                current,
                ResourceAction.CREATE,
                actor=actor,
                spec_json=dump_json({"size": request.size}),
            )

        return _disk_item(retry_stale_writes(operation))

    def delete(self, request: ResourceRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=None)
        return self._delete(
            project=request.project,
            location=request.location,
            name=request.name,
            actor=actor,
        )


class PullSecretService(ResourceServiceBase):
    kind = "pullsecret"
    not_found_code = ErrorCode.PULL_SECRET_NOT_FOUND
    referenced_by = "pull_secret"

    def create(
        self,
        request: PullSecretCreateRequest,
        *,
        actor: str = DEFAULT_ACTOR,
    ) -> PullSecretItem:
        self._admit(request, location=request.location)
        if request.spec is not None:
            spec: dict[str, Any] = request.spec.model_dump()
        else:
            spec = {"value": request.value}
        stored = self._create_unique(
            project=request.project,
            location=request.location,
            name=request.name,
            spec_json=dump_json(spec),
            actor=actor,
        )
        return _pull_secret_item(stored)

    def get(self, request: ResourceRefRequest) -> PullSecretItem:
        self._admit(request, location=None)
        return _pull_secret_item(
            self._require_live(
                project=request.project,
                location=request.location,
                name=request.name,
            )
        )

    def list_pull_secrets(self, request: ListRequest) -> ItemList[PullSecretItem]:
        return ItemList[PullSecretItem](
            items=[_pull_secret_item(item) for item in self._list_live(request)]
        )

    def delete(self, request: ResourceRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=None)
        return self._delete(
            project=request.project,
            location=request.location,
            name=request.name,
            actor=actor,
        )


class WorkloadIdentityService(ResourceServiceBase):
    kind = "workloadidentity"
    not_found_code = ErrorCode.WORKLOAD_IDENTITY_NOT_FOUND
    referenced_by = "workload_identity"

    def create(
        self,
        request: WorkloadIdentityCreateRequest,
        *,
        actor: str = DEFAULT_ACTOR,
    ) -> WorkloadIdentityItem:
        self._admit(request, location=request.location)
        stored = self._create_unique(
            project=request.project,
            location=request.location,
            name=request.name,
            spec_json=dump_json({"gsa": request.gsa}),
            actor=actor,
        )
        return _workload_identity_item(stored)

    def get(self, request: ResourceRefRequest) -> WorkloadIdentityItem:
        self._admit(request, location=None)
        return _workload_identity_item(
            self._require_live(
                project=request.project,
                location=request.location,
                name=request.name,
            )
        )

    def list_workload_identities(self, request: ListRequest) -> ItemList[WorkloadIdentityItem]:
        return ItemList[WorkloadIdentityItem](
            items=[_workload_identity_item(item) for item in self._list_live(request)]
        )

    def delete(self, request: ResourceRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=None)
        return self._delete(
            project=request.project,
            location=request.location,
            name=request.name,
            actor=actor,
        )


class RouteService(ResourceServiceBase):
    kind = "route"
    not_found_code = ErrorCode.ROUTE_NOT_FOUND

    def create(self, request: RouteCreateRequest, *, actor: str = DEFAULT_ACTOR) -> RouteItem:
        self._admit(request, location=request.location)
        if request.deployment is not None:
            deployment = self._resources.get_live(
                "deployment",
                project=request.project,
                location=request.location,
                name=request.deployment,
            )
            if deployment is None:
                raise NotFoundError(ErrorCode.DEPLOYMENT_NOT_FOUND)

        spec: dict[str, Any] = {
            "domain": request.domain,
            "path": request.path,
            "target": request.resolved_target,
            "config": request.config.model_dump() if request.config is not None else None,
        }
        stored = self._create_unique(
            project=request.project,
            location=request.location,
            name=request.route_name,
            spec_json=dump_json(spec),
            actor=actor,
        )
        return _route_item(stored)

    def get(self, request: RouteRefRequest) -> RouteItem:
        self._admit(request, location=None)
        return _route_item(
            self._require_live(
                project=request.project,
                location=request.location,
                name=request.route_name,
            )
        )

    def list_routes(self, request: ListRequest) -> ItemList[RouteItem]:
        return ItemList[RouteItem](items=[_route_item(item) for item in self._list_live(request)])

    def delete(self, request: RouteRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=None)
        return self._delete(
            project=request.project,
            location=request.location,
            name=request.route_name,
            actor=actor,
        )


def _disk_item(resource: StoredResource) -> DiskItem:
    return DiskItem(**resource_fields(resource), size=int(resource.spec.get("size", 0)))


def _pull_secret_item(resource: StoredResource) -> PullSecretItem:
    spec = resource.spec
    return PullSecretItem(
        **resource_fields(resource),
        server=str(spec.get("server") or ""),
        username=str(spec.get("username") or ""),
    )


def _workload_identity_item(resource: StoredResource) -> WorkloadIdentityItem:
    return WorkloadIdentityItem(
        **resource_fields(resource),
        gsa=str(resource.spec.get("gsa", "")),
    )


def _route_item(resource: StoredResource) -> RouteItem:
    spec = resource.spec
    target = str(spec.get("target", ""))
    config = RouteConfig.model_validate(spec["config"]) if spec.get("config") else None
    if config is not None and config.basic_auth is not None:
        config.basic_auth.password = ""
    return RouteItem(
        **resource_fields(resource),
        domain=str(spec.get("domain", "")),
        path=str(spec.get("path", "/")),
        target=target,
        deployment=target.removeprefix("deployment://") if target.startswith("deployment://") else "",
        config=config,
    )
