from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from controlplane.app.api.common import invoke, require_deployer_token
from controlplane.app.dependencies import get_deployer_service
from controlplane.app.models.commands import GetCommandsRequest, SetResultsRequest
from controlplane.app.models.contracts import ApiResponse
from controlplane.app.services.deployer_service import DeployerService

router = APIRouter(dependencies=[Depends(require_deployer_token)])


@router.post(
    "/deployer.getCommands",
    response_model=ApiResponse,
    tags=["deployer"],
    operation_id="deployer_get_commands",
)
def deployer_get_commands(
    request: GetCommandsRequest,
    service: Annotated[DeployerService, Depends(get_deployer_service)],
) -> ApiResponse:
    return invoke("deployer.getCommands", lambda: service.get_commands(request))


@router.post(
    "/deployer.setResults",
    response_model=ApiResponse,
    tags=["deployer"],
    operation_id="deployer_set_results",
)
def deployer_set_results(
    request: SetResultsRequest,
    service: Annotated[DeployerService, Depends(get_deployer_service)],
) -> ApiResponse:
    return invoke("deployer.setResults", lambda: service.set_results(request))
