from __future__ import annotations

import secrets
from collections.abc import Callable
from typing import Annotated, Any

from fastapi import Depends, Header
from structlog.contextvars import bind_contextvars, reset_contextvars

from controlplane.app.config import AppSettings
from controlplane.app.dependencies import get_settings
from controlplane.app.errors import UnauthorizedError
from controlplane.app.models.contracts import ApiResponse, dump_result
from controlplane.app.services.resource_service import DEFAULT_ACTOR


def _bearer_token(authorization: str | None) -> str | None:
    if authorization is None:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _require_token(expected: str | None, authorization: str | None) -> None:
    if expected is None:
        return
    provided = _bearer_token(authorization)
    if provided is None or not secrets.compare_digest(provided, expected):
        raise UnauthorizedError()


def require_api_token(
    settings: Annotated[AppSettings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    _require_token(settings.api_token, authorization)


def require_deployer_token(
    settings: Annotated[AppSettings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    _require_token(settings.deployer_token, authorization)


def get_actor(x_deploys_actor: Annotated[str | None, Header()] = None) -> str:
    if x_deploys_actor is None or not x_deploys_actor.strip():
        return DEFAULT_ACTOR
    return x_deploys_actor.strip()


def invoke(method: str, operation: Callable[[], Any]) -> ApiResponse:
    context_tokens = bind_contextvars(api_method=method)
    try:
        return ApiResponse(ok=True, result=dump_result(operation()))
    finally:
        reset_contextvars(**context_tokens)
