from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import Any, Literal, Protocol

import structlog

TelemetrySinkName = Literal["none", "log"]
TelemetryValue = bool | int | float | str | None

# Substring match on the lowercased key. Covers credentials and workload config.
_REDACTED_KEY_FRAGMENTS: tuple[str, ...] = (
    "authorization",
    "credentials",
    "env",
    "mount_data",
    "password",
    "secret",
    "spec",
    "token",
    "value",
)
_REDACTED = "[redacted]"
_MAX_STRING_LENGTH = 160

LOGGER = logging.getLogger("deploys.telemetry")


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    """Writes each event as one structlog record on `deploys.telemetry`."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("deploys.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


_SINK_FACTORIES: dict[str, Callable[[], TelemetrySink]] = {
    "log": StructuredLogTelemetrySink,
}


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.emit(event_name=event_name, attributes=sanitize_attributes(attributes))

    @contextmanager
    def span(self, prefix: str, **attributes: Any) -> Iterator[dict[str, Any]]:
        """Emit `<prefix>.start`, then `<prefix>.finish` or `<prefix>.error` with `duration_ms`.

        The yielded dict collects extra attributes for the finish event.
        """
        finish_attributes: dict[str, Any] = {}
        started_at = perf_counter()
        self.emit(f"{prefix}.start", **attributes)
        try:
            yield finish_attributes
        except Exception as exc:
            self.emit(
                f"{prefix}.error",
                **attributes,
                duration_ms=_elapsed_ms(started_at),
                error_type=type(exc).__name__,
            )
            raise
        self.emit(
            f"{prefix}.finish",
            **attributes,
            **finish_attributes,
            duration_ms=_elapsed_ms(started_at),
        )


def build_telemetry_client(*, enabled: bool, sink: TelemetrySinkName) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    factory = _SINK_FACTORIES.get(sink)
    if factory is None:
        LOGGER.warning("unsupported telemetry sink requested; disabling telemetry sink=%s", sink)
        return TelemetryClient.disabled()
    return TelemetryClient(enabled=True, sink=factory())


def sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(fragment in key for fragment in _REDACTED_KEY_FRAGMENTS):
            sanitized[key] = _REDACTED
        else:
            sanitized[key] = _scalar(raw_value)
    return sanitized


def _scalar(value: Any) -> TelemetryValue:
    if isinstance(value, Enum):
        value = value.value
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) > _MAX_STRING_LENGTH:
            return f"{compact[:_MAX_STRING_LENGTH]}..."
        return compact
    return type(value).__name__


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)
