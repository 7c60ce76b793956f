from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from controlplane.app.api.deployer_routes import router as deployer_router
from controlplane.app.api.routes import router
from controlplane.app.dependencies import get_database, get_settings, get_telemetry
from controlplane.app.errors import ControlPlaneError, ErrorCode
from controlplane.app.logging_config import configure_application_logging
from controlplane.app.models.contracts import ApiError, ApiResponse

LOGGER = logging.getLogger("deploys.api")


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    database = get_database()
    LOGGER.info("control plane started db_path=%s", database.path)
    yield


def _error_response(status_code: int, error: ApiError) -> JSONResponse:
    body = ApiResponse(ok=False, result=None, error=error)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
    )


async def control_plane_error_handler(_: Request, exc: Exception) -> Response:
    assert isinstance(exc, ControlPlaneError)
    if exc.status_code >= 500:
        LOGGER.error("request failed code=%s message=%s", exc.code.value, exc.message)
    else:
        LOGGER.info("request rejected code=%s message=%s", exc.code.value, exc.message)
    return _error_response(
        exc.status_code,
        ApiError(
            code=exc.code.value,
            message=exc.message,
            items=exc.items,
            retryable=exc.retryable,
        ),
    )


async def request_validation_error_handler(_: Request, exc: Exception) -> Response:
    assert isinstance(exc, RequestValidationError)
    items: list[str] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = str(error.get("msg", "invalid"))
        items.append(f"{'.'.join(location)}: {message}" if location else message)
    LOGGER.info("request rejected code=%s items=%s", ErrorCode.VALIDATION_FAILED.value, len(items))
    return _error_response(
        400,
        ApiError(
            code=ErrorCode.VALIDATION_FAILED.value,
            message="api: validate error",
            items=items,
        ),
    )


async def unhandled_error_handler(_: Request, exc: Exception) -> Response:
    LOGGER.error("unhandled error type=%s", type(exc).__name__, exc_info=exc)
    return _error_response(
        500,
        ApiError(
            code=ErrorCode.INTERNAL_ERROR.value,
            message="api: internal error",
            retryable=True,
        ),
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Deploys Control Plane API", version="0.1.0", lifespan=app_lifespan)

    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        incoming = (request.headers.get("X-Request-ID") or "").strip()
        request_id = incoming or str(uuid4())
        context_tokens = bind_contextvars(
            http_request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        try:
            with get_telemetry().span(
                "http.request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
            ) as finish:
                response = await call_next(request)
                finish["status_code"] = response.status_code
        finally:
            reset_contextvars(**context_tokens)
        response.headers["X-Request-ID"] = request_id
        return response

    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(ControlPlaneError, control_plane_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(deployer_router)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )

    return app


app = create_app()
