"""Configuration management for deploysctl."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_ENDPOINT = "http://127.0.0.1:8080/"


def default_config_path() -> Path:
    return Path.home() / ".config" / "deploys" / "config.yaml"


def _clean(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


@dataclass
class Config:
    """deploysctl configuration."""

    endpoint: str = DEFAULT_ENDPOINT
    token: str | None = None
    auth_user: str | None = None
    auth_pass: str | None = None
    actor: str | None = None

    @classmethod
    def load(
        cls,
        path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Config":
        """Load config from ~/.config/deploys/config.yaml, then apply DEPLOYS_* overrides."""
        config_path = path or default_config_path()
        env = os.environ if environ is None else environ

        data: dict = {}
        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
                if isinstance(loaded, dict):
                    data = loaded

        return cls(
            endpoint=(
                _clean(env.get("DEPLOYS_ENDPOINT"))
                or _clean(data.get("endpoint"))
                or DEFAULT_ENDPOINT
            ),
            token=_clean(env.get("DEPLOYS_TOKEN")) or _clean(data.get("token")),
            auth_user=_clean(env.get("DEPLOYS_AUTH_USER")) or _clean(data.get("auth_user")),
            auth_pass=_clean(env.get("DEPLOYS_AUTH_PASS")) or _clean(data.get("auth_pass")),
            actor=_clean(env.get("DEPLOYS_ACTOR")) or _clean(data.get("actor")),
        )

    def save(self, path: Path | None = None) -> Path:
        """Save config to file."""
        config_path = path or default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {"endpoint": self.endpoint}
        for key in ("token", "auth_user", "auth_pass", "actor"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)
        return config_path
