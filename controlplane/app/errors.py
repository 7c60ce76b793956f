from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable, machine-matchable error codes shared by the server and the CLI."""

    VALIDATION_FAILED = "validation_failed"
    UNAUTHORIZED = "unauthorized"
    INTERNAL_ERROR = "internal_error"
    TRANSPORT_ERROR = "transport_error"
    STALE_RESULT = "stale_result"

    # Not found.
    PROJECT_NOT_FOUND = "project_not_found"
    LOCATION_NOT_FOUND = "location_not_found"
    DEPLOYMENT_NOT_FOUND = "deployment_not_found"
    REVISION_NOT_FOUND = "revision_not_found"
    DISK_NOT_FOUND = "disk_not_found"
    PULL_SECRET_NOT_FOUND = "pull_secret_not_found"
    WORKLOAD_IDENTITY_NOT_FOUND = "workload_identity_not_found"
    ROUTE_NOT_FOUND = "route_not_found"

    # Conflicts.
    ACTION_PENDING = "action_pending"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    NAME_NOT_AVAILABLE = "name_not_available"
    CAN_NOT_DEPLOY = "can_not_deploy"
    CAN_NOT_PAUSE = "can_not_pause"
    CAN_NOT_RESUME = "can_not_resume"
    CAN_NOT_DELETE = "can_not_delete"
    TYPE_NOT_ALLOW_CHANGE = "type_not_allow_change"
    DISK_SIZE_MUST_SCALE_UP = "disk_size_must_scale_up"


DEFAULT_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "api: validate error",
    ErrorCode.UNAUTHORIZED: "api: unauthorized",
    ErrorCode.INTERNAL_ERROR: "api: internal error",
    ErrorCode.TRANSPORT_ERROR: "api: transport error",
    ErrorCode.STALE_RESULT: "api: stale result",
    ErrorCode.PROJECT_NOT_FOUND: "api: project not found",
    ErrorCode.LOCATION_NOT_FOUND: "api: location not available",
    ErrorCode.DEPLOYMENT_NOT_FOUND: "api: deployment not found",
    ErrorCode.REVISION_NOT_FOUND: "api: revision not found",
    ErrorCode.DISK_NOT_FOUND: "api: disk not found",
    ErrorCode.PULL_SECRET_NOT_FOUND: "api: pull secret not found",
    ErrorCode.WORKLOAD_IDENTITY_NOT_FOUND: "api: workload identity not found",
    ErrorCode.ROUTE_NOT_FOUND: "api: route not found",
    ErrorCode.ACTION_PENDING: "api: resource has a pending action",
    ErrorCode.CONCURRENT_MODIFICATION: "api: resource was modified concurrently",
    ErrorCode.NAME_NOT_AVAILABLE: "api: name not available",
    ErrorCode.CAN_NOT_DEPLOY: "api: can not deploy",
    ErrorCode.CAN_NOT_PAUSE: "api: can not pause",
    ErrorCode.CAN_NOT_RESUME: "api: can not resume",
    ErrorCode.CAN_NOT_DELETE: "api: can not delete",
    ErrorCode.TYPE_NOT_ALLOW_CHANGE: "api: type not allow to change",
    ErrorCode.DISK_SIZE_MUST_SCALE_UP: "api: disk size must scale up",
}


class ControlPlaneError(RuntimeError):
    status_code = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        *,
        retryable: bool = False,
        items: list[str] | None = None,
    ) -> None:
        resolved_message = message or DEFAULT_MESSAGES.get(code, str(code))
        super().__init__(resolved_message)
        self.code = code
        self.message = resolved_message
        self.retryable = retryable
        self.items = list(items) if items else []


class ValidationError(ControlPlaneError):
    """Carries every violated rule of a request; raised before any mutation."""

    status_code = 400

    def __init__(self, items: list[str]) -> None:
        super().__init__(ErrorCode.VALIDATION_FAILED, items=items)


class NotFoundError(ControlPlaneError):
    status_code = 404


class ConflictError(ControlPlaneError):
    status_code = 409


class UnauthorizedError(ControlPlaneError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__(ErrorCode.UNAUTHORIZED)


class TransportError(ControlPlaneError):
    """Network or transport failure between a client and the control plane."""

    status_code = 503

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.TRANSPORT_ERROR, message, retryable=True)


class StaleResultError(ControlPlaneError):
    """A result that no longer matches an outstanding command.

    Caught by the result reconciler and counted as ignored; it never reaches an
    exception handler.
    """

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.STALE_RESULT, message)
