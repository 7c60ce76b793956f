from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ItemT = TypeVar("ItemT")


class ApiModel(BaseModel):
    """Wire model: camelCase on the wire, snake_case in Python, unknown fields rejected."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ApiError(ApiModel):
    code: str
    message: str
    items: list[str] = Field(default_factory=list)
    retryable: bool = False


class ApiResponse(ApiModel):
    ok: bool
    result: Any = None
    error: ApiError | None = None


class Empty(ApiModel):
    pass


class ItemList(ApiModel, Generic[ItemT]):
    items: list[ItemT] = Field(default_factory=list)


def dump_result(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True)
    if isinstance(result, list):
        return [dump_result(item) for item in result]
    if isinstance(result, dict):
        return {str(key): dump_result(value) for key, value in result.items()}
    return result
