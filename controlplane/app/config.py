from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path(".deploys")

# Paths that follow DEPLOYS_DATA_DIR unless set explicitly.
_DATA_DIR_CHILDREN: dict[str, Path] = {
    "db_path": Path("state.db"),
    "log_dir": Path("logs"),
}
_PATH_FIELDS: tuple[str, ...] = ("data_dir", *_DATA_DIR_CHILDREN)
_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


def _child_default(field_name: str) -> Path:
    return DEFAULT_DATA_DIR / _DATA_DIR_CHILDREN[field_name]


def _child_note(field_name: str) -> str:
    return f"Defaults to `${{DEPLOYS_DATA_DIR}}/{_DATA_DIR_CHILDREN[field_name]}` when unset."


def _coerce_flag(value: Any, *, default: bool) -> bool:
    """Lenient boolean parsing; anything unrecognised falls back to `default`."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


class AppSettings(BaseSettings):
    """
    Runtime configuration of the control plane.

    Read once at start-up from `DEPLOYS_*` environment variables or `.env`.
    Validation limits are copied into `ValidationRules`, the location list into
    `LocationRegistry`.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEPLOYS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Storage.
    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Root runtime directory for the state database and logs.",
    )
    db_path: Path = Field(
        default=_child_default("db_path"),
        description=f"SQLite database file. {_child_note('db_path')}",
    )

    # HTTP server.
    host: str = Field(default="127.0.0.1", description="Bind address for `deploys-controlplane`.")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port for the API server.")

    # Access control.
    api_token: str | None = Field(
        default=None,
        description="Bearer token required by the public resource API. Open when unset.",
    )
    deployer_token: str | None = Field(
        default=None,
        description="Bearer token required by location agents on `deployer.*`. Open when unset.",
    )

    # Location registry.
    locations: str = Field(
        default="",
        description=(
            "Comma-separated list of location ids agents may serve. "
            "An empty list accepts any location."
        ),
    )

    # Validation limits.
    name_min_length: int = Field(default=3, ge=1, description="Minimum resource name length.")
    name_max_length: int = Field(default=27, ge=1, description="Maximum resource name length.")
    project_min_length: int = Field(default=6, ge=1, description="Minimum project id length.")
    project_max_length: int = Field(default=32, ge=1, description="Maximum project id length.")
    replicas_max: int = Field(
        default=20,
        ge=0,
        description="Upper bound for deployment min/max replicas.",
    )
    mount_data_item_max_bytes: int = Field(
        default=10 * 1024,
        ge=1,
        description="Each mount-data value must be strictly smaller than this many bytes.",
    )
    mount_data_total_max_bytes: int = Field(
        default=500 * 1024,
        ge=1,
        description="Aggregate mount-data size must be strictly smaller than this many bytes.",
    )
    sidecars_max: int = Field(default=2, ge=0, description="Maximum sidecars per deployment.")
    disk_min_size: int = Field(default=1, ge=1, description="Minimum disk size in GiB.")
    disk_max_size: int = Field(default=20, ge=1, description="Maximum disk size in GiB.")

    # Logging.
    log_dir: Path = Field(
        default=_child_default("log_dir"),
        description=f"Directory for control-plane log files. {_child_note('log_dir')}",
    )
    log_level: str = Field(default="INFO", description="Console log level.")

    # Telemetry.
    telemetry_enabled: bool = Field(default=True, description="Emit internal telemetry events.")
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="`log` writes telemetry through structlog; `none` discards it.",
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        normalized = value.strip().lower() if isinstance(value, str) else value
        if normalized not in ("none", "log"):
            raise ValueError("DEPLOYS_TELEMETRY_SINK must be set to: none, log.")
        return normalized

    @field_validator("locations", mode="before")
    @classmethod
    def _normalize_locations(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("DEPLOYS_LOCATIONS must be a comma-separated string.")
        return ",".join(part.strip() for part in value.split(",") if part.strip())

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _expand_paths(cls, value: Any) -> Any:
        if isinstance(value, str | Path):
            return Path(value).expanduser().resolve()
        return value

    @field_validator("telemetry_enabled", mode="before")
    @classmethod
    def _coerce_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        assert info.field_name is not None
        default = cls.model_fields[info.field_name].default
        return _coerce_flag(value, default=bool(default))

    @field_validator("api_token", "deployer_token", mode="before")
    @classmethod
    def _blank_token_is_unset(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @property
    def location_ids(self) -> tuple[str, ...]:
        return tuple(self.locations.split(",")) if self.locations else ()


def _limit_errors(settings: AppSettings) -> list[str]:
    pairs = (
        ("name_min_length", "name_max_length"),
        ("project_min_length", "project_max_length"),
        ("disk_min_size", "disk_max_size"),
        ("mount_data_item_max_bytes", "mount_data_total_max_bytes"),
    )
    return [
        f"DEPLOYS_{low.upper()} must not exceed DEPLOYS_{high.upper()}."
        for low, high in pairs
        if getattr(settings, low) > getattr(settings, high)
    ]


def load_settings() -> AppSettings:
    settings = AppSettings()
    relocated = {
        field_name: settings.data_dir / relative
        for field_name, relative in _DATA_DIR_CHILDREN.items()
        if field_name not in settings.model_fields_set
    }
    resolved = {
        field_name: Path(relocated.get(field_name, getattr(settings, field_name))).resolve()
        for field_name in _PATH_FIELDS
    }
    settings = settings.model_copy(update=resolved)

    errors = _limit_errors(settings)
    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid control-plane configuration:\n{bullets}")
    return settings
