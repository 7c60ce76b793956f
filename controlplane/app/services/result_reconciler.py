from __future__ import annotations

import logging
from typing import Literal

from controlplane.app.errors import StaleResultError
from controlplane.app.models.commands import CommandResult
from controlplane.app.repositories.event_repository import EventRepository
from controlplane.app.repositories.resource_repository import ResourceRepository
from controlplane.app.services.state_machine import WRITE_ATTEMPTS, resolve_result
from controlplane.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("deploys.reconciler")

ReconcileOutcome = Literal["applied", "ignored"]


class ResultReconciler:
    def __init__(
        self,
        *,
        resource_repository: ResourceRepository,
        event_repository: EventRepository,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._resources = resource_repository
        self._events = event_repository
        self._telemetry = telemetry or TelemetryClient.disabled()

    def apply(self, result: CommandResult, *, location: str | None = None) -> ReconcileOutcome:
        """Apply one agent result; stale or duplicate results are ignored, never raised."""
        for _ in range(WRITE_ATTEMPTS):
            resource = self._resources.get_by_id(result.id)
            try:
                if resource is None:
                    raise StaleResultError("unknown resource")
                if location is not None and resource.location != location:
                    raise StaleResultError(
                        f"resource belongs to location {resource.location}"
                    )
                write = resolve_result(resource, result)
            except StaleResultError as exc:
                self._ignore(result, reason=exc.message, known=resource is not None)
                return "ignored"

            if self._resources.apply_result(resource, write):
                LOGGER.info(
                    "result applied kind=%s id=%s status=%s",
                    result.kind,
                    result.id,
                    write.status.value,
                )
                self._telemetry.emit(
                    "deployer.result.applied",
                    kind=result.kind,
                    resource_id=result.id,
                    status=write.status.value,
                    success=result.success,
                )
                return "applied"

        self._ignore(result, reason="lost concurrent update", known=True)
        return "ignored"

    def _ignore(self, result: CommandResult, *, reason: str, known: bool) -> None:
        LOGGER.info(
            "ignoring stale result kind=%s id=%s reason=%s",
            result.kind,
            result.id,
            reason,
        )
        self._telemetry.emit(
            "deployer.result.ignored",
            kind=result.kind,
            resource_id=result.id,
            reason=reason,
        )
        if known:
            self._events.record(
                resource_id=result.id,
                event_type="result_ignored",
                action=result.kind.split(".", 1)[1],
                command=result.kind,
                detail={"reason": reason, "success": result.success},
            )
