from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from controlplane.app.api.common import get_actor, invoke, require_api_token
from controlplane.app.dependencies import (
    get_deployment_service,
    get_disk_service,
    get_pull_secret_service,
    get_route_service,
    get_workload_identity_service,
)
from controlplane.app.models.contracts import ApiResponse
from controlplane.app.models.requests import (
    DeploymentDeployRequest,
    DeploymentGetRequest,
    DeploymentRollbackRequest,
    DiskCreateRequest,
    DiskUpdateRequest,
    ListRequest,
    PullSecretCreateRequest,
    ResourceRefRequest,
    RouteCreateRequest,
    RouteRefRequest,
    WorkloadIdentityCreateRequest,
)
from controlplane.app.services.deployment_service import DeploymentService
from controlplane.app.services.resource_service import (
    DiskService,
    PullSecretService,
    RouteService,
    WorkloadIdentityService,
)

router = APIRouter(dependencies=[Depends(require_api_token)])

Actor = Annotated[str, Depends(get_actor)]
Deployments = Annotated[DeploymentService, Depends(get_deployment_service)]
Disks = Annotated[DiskService, Depends(get_disk_service)]
PullSecrets = Annotated[PullSecretService, Depends(get_pull_secret_service)]
WorkloadIdentities = Annotated[WorkloadIdentityService, Depends(get_workload_identity_service)]
Routes = Annotated[RouteService, Depends(get_route_service)]


@router.post(
    "/deployment.deploy",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_deploy",
)
def deployment_deploy(
    request: DeploymentDeployRequest,
    service: Deployments,
    actor: Actor,
) -> ApiResponse:
    return invoke("deployment.deploy", lambda: service.deploy(request, actor=actor))


@router.post(
    "/deployment.get",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_get",
)
def deployment_get(request: DeploymentGetRequest, service: Deployments) -> ApiResponse:
    return invoke("deployment.get", lambda: service.get(request))


@router.post(
    "/deployment.list",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_list",
)
def deployment_list(request: ListRequest, service: Deployments) -> ApiResponse:
    return invoke("deployment.list", lambda: service.list_deployments(request))


@router.post(
    "/deployment.revisions",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_revisions",
)
def deployment_revisions(request: ResourceRefRequest, service: Deployments) -> ApiResponse:
    return invoke("deployment.revisions", lambda: service.list_revisions(request))


@router.post(
    "/deployment.resume",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_resume",
)
def deployment_resume(
    request: ResourceRefRequest,
    service: Deployments,
    actor: Actor,
) -> ApiResponse:
    return invoke("deployment.resume", lambda: service.resume(request, actor=actor))


@router.post(
    "/deployment.pause",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_pause",
)
def deployment_pause(
    request: ResourceRefRequest,
    service: Deployments,
    actor: Actor,
) -> ApiResponse:
    return invoke("deployment.pause", lambda: service.pause(request, actor=actor))


@router.post(
    "/deployment.rollback",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_rollback",
)
def deployment_rollback(
    request: DeploymentRollbackRequest,
    service: Deployments,
    actor: Actor,
) -> ApiResponse:
    return invoke("deployment.rollback", lambda: service.rollback(request, actor=actor))


@router.post(
    "/deployment.delete",
    response_model=ApiResponse,
    tags=["deployment"],
    operation_id="deployment_delete",
)
def deployment_delete(
    request: ResourceRefRequest,
    service: Deployments,
    actor: Actor,
) -> ApiResponse:
    return invoke("deployment.delete", lambda: service.delete(request, actor=actor))


@router.post("/disk.create", response_model=ApiResponse, tags=["disk"], operation_id="disk_create")
def disk_create(request: DiskCreateRequest, service: Disks, actor: Actor) -> ApiResponse:
    return invoke("disk.create", lambda: service.create(request, actor=actor))


@router.post("/disk.get", response_model=ApiResponse, tags=["disk"], operation_id="disk_get")
def disk_get(request: ResourceRefRequest, service: Disks) -> ApiResponse:
    return invoke("disk.get", lambda: service.get(request))


@router.post("/disk.list", response_model=ApiResponse, tags=["disk"], operation_id="disk_list")
def disk_list(request: ListRequest, service: Disks) -> ApiResponse:
    return invoke("disk.list", lambda: service.list_disks(request))


@router.post("/disk.update", response_model=ApiResponse, tags=["disk"], operation_id="disk_update")
def disk_update(request: DiskUpdateRequest, service: Disks, actor: Actor) -> ApiResponse:
    return invoke("disk.update", lambda: service.update(request, actor=actor))


@router.post("/disk.delete", response_model=ApiResponse, tags=["disk"], operation_id="disk_delete")
def disk_delete(request: ResourceRefRequest, service: Disks, actor: Actor) -> ApiResponse:
    return invoke("disk.delete", lambda: service.delete(request, actor=actor))


@router.post(
    "/pullsecret.create",
    response_model=ApiResponse,
    tags=["pullsecret"],
    operation_id="pullsecret_create",
)
def pullsecret_create(
    request: PullSecretCreateRequest,
    service: PullSecrets,
    actor: Actor,
) -> ApiResponse:
    return invoke("pullsecret.create", lambda: service.create(request, actor=actor))


@router.post(
    "/pullsecret.get",
    response_model=ApiResponse,
    tags=["pullsecret"],
    operation_id="pullsecret_get",
)
def pullsecret_get(request: ResourceRefRequest, service: PullSecrets) -> ApiResponse:
    return invoke("pullsecret.get", lambda: service.get(request))


@router.post(
    "/pullsecret.list",
    response_model=ApiResponse,
    tags=["pullsecret"],
    operation_id="pullsecret_list",
)
def pullsecret_list(request: ListRequest, service: PullSecrets) -> ApiResponse:
    return invoke("pullsecret.list", lambda: service.list_pull_secrets(request))


@router.post(
    "/pullsecret.delete",
    response_model=ApiResponse,
    tags=["pullsecret"],
    operation_id="pullsecret_delete",
)
def pullsecret_delete(
    request: ResourceRefRequest,
    service: PullSecrets,
    actor: Actor,
) -> ApiResponse:
    return invoke("pullsecret.delete", lambda: service.delete(request, actor=actor))


@router.post(
    "/workloadidentity.create",
    response_model=ApiResponse,
    tags=["workloadidentity"],
    operation_id="workloadidentity_create",
)
def workloadidentity_create(
    request: WorkloadIdentityCreateRequest,
    service: WorkloadIdentities,
    actor: Actor,
) -> ApiResponse:
    return invoke("workloadidentity.create", lambda: service.create(request, actor=actor))


@router.post(
    "/workloadidentity.get",
    response_model=ApiResponse,
    tags=["workloadidentity"],
    operation_id="workloadidentity_get",
)
def workloadidentity_get(request: ResourceRefRequest, service: WorkloadIdentities) -> ApiResponse:
    return invoke("workloadidentity.get", lambda: service.get(request))


@router.post(
    "/workloadidentity.list",
    response_model=ApiResponse,
    tags=["workloadidentity"],
    operation_id="workloadidentity_list",
)
def workloadidentity_list(request: ListRequest, service: WorkloadIdentities) -> ApiResponse:
    return invoke("workloadidentity.list", lambda: service.list_workload_identities(request))


@router.post(
    "/workloadidentity.delete",
    response_model=ApiResponse,
    tags=["workloadidentity"],
    operation_id="workloadidentity_delete",
)
def workloadidentity_delete(
    request: ResourceRefRequest,
    service: WorkloadIdentities,
    actor: Actor,
) -> ApiResponse:
    return invoke("workloadidentity.delete", lambda: service.delete(request, actor=actor))


@router.post("/route.create", response_model=ApiResponse, tags=["route"], operation_id="route_create")
def route_create(request: RouteCreateRequest, service: Routes, actor: Actor) -> ApiResponse:
    return invoke("route.create", lambda: service.create(request, actor=actor))


@router.post("/route.get", response_model=ApiResponse, tags=["route"], operation_id="route_get")
def route_get(request: RouteRefRequest, service: Routes) -> ApiResponse:
    return invoke("route.get", lambda: service.get(request))


@router.post("/route.list", response_model=ApiResponse, tags=["route"], operation_id="route_list")
def route_list(request: ListRequest, service: Routes) -> ApiResponse:
    return invoke("route.list", lambda: service.list_routes(request))


@router.post("/route.delete", response_model=ApiResponse, tags=["route"], operation_id="route_delete")
def route_delete(request: RouteRefRequest, service: Routes, actor: Actor) -> ApiResponse:
    return invoke("route.delete", lambda: service.delete(request, actor=actor))
