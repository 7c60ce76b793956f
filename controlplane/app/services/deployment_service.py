from __future__ import annotations

from controlplane.app.errors import ConflictError, ErrorCode, NotFoundError
from controlplane.app.models.contracts import Empty, ItemList
from controlplane.app.models.requests import (
    DeploymentDeployRequest,
    DeploymentGetRequest,
    DeploymentRollbackRequest,
    ListRequest,
    ResourceRefRequest,
)
from controlplane.app.models.resources import (
    DeploymentItem,
    DeploymentRevisionItem,
    DeploymentSpec,
    ResourceAction,
    ResourceStatus,
)
from controlplane.app.repositories.database import dump_json
from controlplane.app.repositories.resource_repository import ResourceRepository, StoredResource
from controlplane.app.repositories.revision_repository import (
    DeploymentRevision,
    RevisionRepository,
)
from controlplane.app.services.locations import LocationRegistry
from controlplane.app.services.resource_service import (
    DEFAULT_ACTOR,
    ResourceServiceBase,
    resource_fields,
)
from controlplane.app.services.spec_merge import merge_deployment_spec
from controlplane.app.services.state_machine import retry_stale_writes
from controlplane.app.validation import ValidationRules, run_validation
from controlplane.app.telemetry import TelemetryClient


class DeploymentService(ResourceServiceBase):
    """Revision manager: versioned deployment specs, rollback, pause and resume."""

    kind = "deployment"
    not_found_code = ErrorCode.DEPLOYMENT_NOT_FOUND

    def __init__(
        self,
        *,
        resource_repository: ResourceRepository,
        revision_repository: RevisionRepository,
        rules: ValidationRules,
        locations: LocationRegistry,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        super().__init__(
            resource_repository=resource_repository,
            rules=rules,
            locations=locations,
            telemetry=telemetry,
        )
        self._revisions = revision_repository

    def deploy(
        self,
        request: DeploymentDeployRequest,
        *,
        actor: str = DEFAULT_ACTOR,
    ) -> DeploymentItem:
        self._admit(request, location=request.location)

        def operation() -> StoredResource:
            current = self._find_live(
                project=request.project,
                location=request.location,
                name=request.name,
            )
            previous: DeploymentSpec | None = None
            if current is not None:
                if current.action == ResourceAction.DELETE:
                    raise ConflictError(ErrorCode.CAN_NOT_DEPLOY)
                previous = DeploymentSpec.model_validate(current.spec)
                if request.type is not None and previous.type not in (None, request.type):
                    raise ConflictError(ErrorCode.TYPE_NOT_ALLOW_CHANGE)

            merged = merge_deployment_spec(previous, request)
            run_validation(merged, self._rules)
            self._require_references(
                project=request.project,
                location=request.location,
                spec=merged,
            )
            spec_json = dump_json(merged.model_dump(mode="json"))
            if current is None:
                return self._create(
                    project=request.project,
                    location=request.location,
                    name=request.name,
                    spec_json=spec_json,
                    action=ResourceAction.DEPLOY,
                    actor=actor,
                    revision=1,
                )
            return self._install(
                current,
                ResourceAction.DEPLOY,
                actor=actor,
                spec_json=spec_json,
                revision=current.revision + 1,
            )

        return _deployment_item(retry_stale_writes(operation))

    def rollback(
        self,
        request: DeploymentRollbackRequest,
        *,
        actor: str = DEFAULT_ACTOR,
    ) -> DeploymentItem:
        self._admit(request, location=request.location)

        def operation() -> StoredResource:
            current = self._require_deployment(request)
            if current.action == ResourceAction.DELETE:
                raise ConflictError(ErrorCode.CAN_NOT_DEPLOY)
            target = self._revisions.get_revision(current.resource_id, request.revision)
            if target is None:
                raise NotFoundError(ErrorCode.REVISION_NOT_FOUND)
            self._require_references(
                project=current.project,
                location=current.location,
                spec=DeploymentSpec.model_validate(target.spec),
            )
            return self._install(
                current,
                ResourceAction.DEPLOY,
                actor=actor,
                spec_json=target.spec_json,
                revision=current.revision + 1,
            )

        return _deployment_item(retry_stale_writes(operation))

    def pause(self, request: ResourceRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=request.location)

        def operation() -> Empty:
            current = self._require_deployment(request)
            if current.action == ResourceAction.DELETE:
                raise ConflictError(ErrorCode.CAN_NOT_PAUSE)
            if current.has_outstanding_command:
                raise ConflictError(ErrorCode.ACTION_PENDING)
            if current.action != ResourceAction.DEPLOY:
                raise ConflictError(ErrorCode.CAN_NOT_PAUSE)
            self._install(current, ResourceAction.PAUSE, actor=actor)
            return Empty()

        return retry_stale_writes(operation)

    def resume(self, request: ResourceRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=request.location)

        def operation() -> Empty:
            current = self._require_deployment(request)
            if current.action != ResourceAction.PAUSE:
                raise ConflictError(ErrorCode.CAN_NOT_RESUME)
            self._install(current, ResourceAction.DEPLOY, actor=actor)
            return Empty()

        return retry_stale_writes(operation)

    def delete(self, request: ResourceRefRequest, *, actor: str = DEFAULT_ACTOR) -> Empty:
        self._admit(request, location=None)
        return self._delete(
            project=request.project,
            location=request.location,
            name=request.name,
            actor=actor,
        )

    def get(self, request: DeploymentGetRequest) -> DeploymentItem:
        self._admit(request, location=None)
        current = self._require_deployment(request)
        if request.revision == 0 or request.revision == current.revision:
            return _deployment_item(current)
        revision = self._revisions.get_revision(current.resource_id, request.revision)
        if revision is None:
            raise NotFoundError(ErrorCode.REVISION_NOT_FOUND)
        return _deployment_item(current, revision=revision)

    def list_deployments(self, request: ListRequest) -> ItemList[DeploymentItem]:
        return ItemList[DeploymentItem](
            items=[_deployment_item(item) for item in self._list_live(request)]
        )

    def list_revisions(self, request: ResourceRefRequest) -> ItemList[DeploymentRevisionItem]:
        self._admit(request, location=None)
        current = self._require_deployment(request)
        return ItemList[DeploymentRevisionItem](
            items=[
                _revision_item(revision)
                for revision in self._revisions.list_revisions(current.resource_id)
            ]
        )

    def _require_deployment(self, request: ResourceRefRequest) -> StoredResource:
        return self._require_live(
            project=request.project,
            location=request.location,
            name=request.name,
        )

    def _require_references(self, *, project: str, location: str, spec: DeploymentSpec) -> None:
        references = (
            ("disk", spec.disk.name if spec.disk is not None else "", ErrorCode.DISK_NOT_FOUND),
            ("pullsecret", spec.pull_secret, ErrorCode.PULL_SECRET_NOT_FOUND),
            (
                "workloadidentity",
                spec.workload_identity,
                ErrorCode.WORKLOAD_IDENTITY_NOT_FOUND,
            ),
        )
        for kind, name, code in references:
            if not name:
                continue
            found = self._resources.get_live(kind, project=project, location=location, name=name)
            if found is None or found.action == ResourceAction.DELETE:
                raise NotFoundError(code)


def _deployment_item(
    resource: StoredResource,
    *,
    revision: DeploymentRevision | None = None,
) -> DeploymentItem:
    fields = resource_fields(resource)
    if revision is not None:
        spec = DeploymentSpec.model_validate(revision.spec)
        revision_number = revision.revision
        fields["status"] = revision.status
        fields["created_at"] = revision.created_at
        fields["created_by"] = revision.created_by
    else:
        spec = DeploymentSpec.model_validate(resource.spec)
        revision_number = resource.revision
    return DeploymentItem(
        **fields,
        type=spec.type,
        image=spec.image,
        revision=revision_number,
        min_replicas=spec.min_replicas,
        max_replicas=spec.max_replicas,
        port=spec.port,
        node_port=resource.node_port,
        spec=spec,
    )


def _revision_item(revision: DeploymentRevision) -> DeploymentRevisionItem:
    spec = DeploymentSpec.model_validate(revision.spec)
    return DeploymentRevisionItem(
        revision=revision.revision,
        image=spec.image,
        status=ResourceStatus(revision.status),
        created_at=revision.created_at,
        created_by=revision.created_by,
        spec=spec,
    )
