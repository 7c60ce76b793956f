from __future__ import annotations

import logging
import sqlite3

from controlplane.app.models.commands import (
    Command,
    GetCommandsRequest,
    SetResultsRequest,
    SetResultsSummary,
)
from controlplane.app.services.command_generator import CommandGenerator
from controlplane.app.services.locations import LocationRegistry
from controlplane.app.services.result_reconciler import ResultReconciler
from controlplane.app.validation import ValidationRules, run_validation
from controlplane.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("deploys.deployer")


class DeployerService:
    """Pull-based protocol served to location agents."""

    def __init__(
        self,
        *,
        generator: CommandGenerator,
        reconciler: ResultReconciler,
        rules: ValidationRules,
        locations: LocationRegistry,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._generator = generator
        self._reconciler = reconciler
        self._rules = rules
        self._locations = locations
        self._telemetry = telemetry or TelemetryClient.disabled()

    def get_commands(self, request: GetCommandsRequest) -> list[Command]:
        run_validation(request, self._rules)
        self._locations.require(request.location)
        commands = self._generator.outstanding_commands(request.location)
        self._telemetry.emit(
            "deployer.commands.served",
            location=request.location,
            count=len(commands),
        )
        return commands

    def set_results(self, request: SetResultsRequest) -> SetResultsSummary:
        run_validation(request, self._rules)
        if request.location is not None:
            self._locations.require(request.location)

        summary = SetResultsSummary()
        for result in request.results:
            try:
                outcome = self._reconciler.apply(result, location=request.location)
            except sqlite3.Error:
                # The command stays outstanding and will be redelivered.
                LOGGER.exception(
                    "result application failed kind=%s id=%s",
                    result.kind,
                    result.id,
                )
                summary.failed += 1
                continue
            if outcome == "applied":
                summary.applied += 1
            else:
                summary.ignored += 1
        return summary
