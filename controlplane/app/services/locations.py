from __future__ import annotations

from dataclasses import dataclass

from controlplane.app.config import AppSettings
from controlplane.app.errors import ErrorCode, NotFoundError


@dataclass(frozen=True)
class LocationRegistry:
    """Read-only set of locations agents may serve; empty means any location."""

    location_ids: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls, settings: AppSettings) -> LocationRegistry:
        return cls(location_ids=frozenset(settings.location_ids))

    def is_open(self) -> bool:
        return not self.location_ids

    def require(self, location: str) -> None:
        if self.location_ids and location not in self.location_ids:
            raise NotFoundError(ErrorCode.LOCATION_NOT_FOUND)
