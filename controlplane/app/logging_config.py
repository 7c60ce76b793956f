from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from controlplane.app.config import AppSettings

LOG_FILE_NAME = "deploys-controlplane.log"
TELEMETRY_LOG_FILE_NAME = "deploys-controlplane-telemetry.log"
ROOT_LOGGER_NAME = "deploys"
TELEMETRY_LOGGER_NAME = f"{ROOT_LOGGER_NAME}.telemetry"

# uvicorn runs with log_config=None, so its loggers share our handlers.
_SERVER_LOGGER_LEVELS: dict[str, int] = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


@dataclass(frozen=True)
class LogFiles:
    application: Path
    telemetry: Path


def configure_application_logging(settings: AppSettings) -> LogFiles:
    """Route `deploys.*` and uvicorn logs to the console and JSON files under `log_dir`.

    Safe to call more than once; previously installed handlers are closed and
    replaced.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    files = LogFiles(
        application=settings.log_dir / LOG_FILE_NAME,
        telemetry=settings.log_dir / TELEMETRY_LOG_FILE_NAME,
    )

    _configure_structlog()

    console_handler = _stream_handler(sys.stdout, _resolve_log_level(settings.log_level))
    file_handler = _file_handler(files.application, logging.DEBUG)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    _install(root, logging.DEBUG, console_handler, file_handler)
    for name, level in _SERVER_LOGGER_LEVELS.items():
        _install(logging.getLogger(name), level, console_handler, file_handler)
    _install(
        logging.getLogger(TELEMETRY_LOGGER_NAME),
        logging.INFO,
        _file_handler(files.telemetry, logging.INFO),
    )

    root.info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        logging.getLevelName(console_handler.level),
        files.application,
        files.telemetry,
    )
    return files


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _install(logger: logging.Logger, level: int, *handlers: logging.Handler) -> None:
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def _stream_handler(stream: TextIO, level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(json_lines=False, colors=_is_tty(stream)))
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(json_lines=True, colors=False))
    return handler


def _build_formatter(*, json_lines: bool, colors: bool) -> structlog.stdlib.ProcessorFormatter:
    processors: list[Processor]
    if json_lines:
        processors = [
            _add_source_location,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=colors),
        ]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        ],
        processors=processors,
    )


def _add_source_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
    return event_dict


def _is_tty(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (OSError, ValueError):
        return False
