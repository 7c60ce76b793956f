from __future__ import annotations

import base64
import binascii
import posixpath
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlparse

from controlplane.app.config import AppSettings
from controlplane.app.errors import ValidationError

NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")
ENV_NAME_PATTERN = re.compile(r"^[-._a-zA-Z][-._a-zA-Z0-9]*$")
CRON_SCHEDULE_PATTERN = re.compile(r"^((((\*(/\d+)?)|(\d+((-\d+)|(/\d+))?)),?)+\s?){5}$")
DNS_LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
QUANTITY_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?(m|Ki|Mi|Gi|Ti)?$")
GSA_SUFFIX = ".iam.gserviceaccount.com"
ROUTE_TARGET_PREFIXES: tuple[str, ...] = (
    "deployment://",
    "redirect://",
    "ipfs://",
    "ipns://",
    "dnslink://",
)


@dataclass(frozen=True)
class ValidationRules:
    name_min_length: int = 3
    name_max_length: int = 27
    project_min_length: int = 6
    project_max_length: int = 32
    replicas_max: int = 20
    mount_data_item_max_bytes: int = 10 * 1024
    mount_data_total_max_bytes: int = 500 * 1024
    sidecars_max: int = 2
    disk_min_size: int = 1
    disk_max_size: int = 20
    route_target_prefixes: tuple[str, ...] = ROUTE_TARGET_PREFIXES

    @classmethod
    def from_settings(cls, settings: AppSettings) -> ValidationRules:
        return cls(
            name_min_length=settings.name_min_length,
            name_max_length=settings.name_max_length,
            project_min_length=settings.project_min_length,
            project_max_length=settings.project_max_length,
            replicas_max=settings.replicas_max,
            mount_data_item_max_bytes=settings.mount_data_item_max_bytes,
            mount_data_total_max_bytes=settings.mount_data_total_max_bytes,
            sidecars_max=settings.sidecars_max,
            disk_min_size=settings.disk_min_size,
            disk_max_size=settings.disk_max_size,
        )


class Validator:
    """Collects every violated rule instead of stopping at the first one."""

    def __init__(self, rules: ValidationRules) -> None:
        self.rules = rules
        self._items: list[str] = []

    @property
    def items(self) -> list[str]:
        return list(self._items)

    @property
    def ok(self) -> bool:
        return not self._items

    def must(self, condition: bool, message: str) -> bool:
        if not condition:
            self._items.append(message)
        return condition

    def name(self, value: str, *, message: str = "name invalid") -> bool:
        return self.must(
            is_valid_name(
                value,
                min_length=self.rules.name_min_length,
                max_length=self.rules.name_max_length,
            ),
            message,
        )

    def project(self, value: str) -> bool:
        if not self.must(bool(value), "project required"):
            return False
        return self.must(
            is_valid_name(
                value,
                min_length=self.rules.project_min_length,
                max_length=self.rules.project_max_length,
            ),
            "project invalid",
        )

    def location(self, value: str) -> bool:
        return self.must(bool(value.strip()), "location required")

    def env_names(self, names: Iterable[str], *, message: str = "env name invalid") -> bool:
        return self.must(all(is_env_name(name) for name in names), message)

    def quantity(self, value: str | None, *, message: str) -> bool:
        if value is None:
            return True
        return self.must(is_quantity(value), message)

    def mount_data(self, data: Mapping[str, str]) -> None:
        total = 0
        for path, content in data.items():
            size = len(content.encode("utf-8"))
            total += size
            self.must(is_absolute_path(path), f"mount data path '{path}' must be absolute")
            self.must(
                size < self.rules.mount_data_item_max_bytes,
                f"mount data '{path}' must be smaller than {self.rules.mount_data_item_max_bytes} bytes",
            )
        self.must(
            total < self.rules.mount_data_total_max_bytes,
            f"mount data must be smaller than {self.rules.mount_data_total_max_bytes} bytes in total",
        )

    def raise_if_failed(self) -> None:
        if self._items:
            raise ValidationError(self._items)


class Validatable(Protocol):
    def check(self, v: Validator) -> None:
        ...


def run_validation(request: Validatable, rules: ValidationRules) -> None:
    validator = Validator(rules)
    request.check(validator)
    validator.raise_if_failed()


def is_valid_name(value: str, *, min_length: int, max_length: int) -> bool:
    if not min_length <= len(value) <= max_length:
        return False
    return NAME_PATTERN.fullmatch(value) is not None


def is_env_name(value: str) -> bool:
    return ENV_NAME_PATTERN.fullmatch(value) is not None


def is_cron_schedule(value: str) -> bool:
    return CRON_SCHEDULE_PATTERN.fullmatch(value) is not None


def is_quantity(value: str) -> bool:
    return QUANTITY_PATTERN.fullmatch(value) is not None


def is_absolute_path(value: str) -> bool:
    return posixpath.isabs(value)


def is_dns_name(value: str) -> bool:
    if not value or len(value) > 253:
        return False
    labels = value.lower().split(".")
    if len(labels) < 2:
        return False
    return all(DNS_LABEL_PATTERN.fullmatch(label) for label in labels)


def is_email(value: str) -> bool:
    return EMAIL_PATTERN.fullmatch(value) is not None


def is_service_account_email(value: str) -> bool:
    return is_email(value) and value.endswith(GSA_SUFFIX)


def is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_base64(value: str) -> bool:
    if not value:
        return False
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True
