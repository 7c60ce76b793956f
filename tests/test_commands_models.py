from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from controlplane.app.models.commands import (
    COMMAND_LIST_ADAPTER,
    CommandResult,
    DiskCreateCommand,
    RouteDeleteCommand,
)
from controlplane.app.models.contracts import dump_result

IDENTITY = {
    "id": "disk_1",
    "projectId": "acme-shop",
    "locationId": "gke.cluster-rcf2",
    "name": "data",
    "generation": 2,
}
UNCORRELATED = {key: value for key, value in IDENTITY.items() if key != "generation"}


def test_commands_decode_by_kind() -> None:
    commands = COMMAND_LIST_ADAPTER.validate_python(
        [
            {**IDENTITY, "kind": "disk.create", "size": 5},
            {**IDENTITY, "kind": "route.delete", "domain": "shop.example.com", "path": "/"},
        ]
    )

    assert isinstance(commands[0], DiskCreateCommand)
    assert isinstance(commands[1], RouteDeleteCommand)
    assert commands[0].size == 5


@pytest.mark.parametrize(
    "payload",
    [
        {**IDENTITY, "size": 5},
        {**IDENTITY, "kind": "disk.resize", "size": 5},
        {**IDENTITY, "kind": "disk.create", "size": 5, "extra": True},
        {**IDENTITY, "kind": "disk.create"},
        {**UNCORRELATED, "kind": "disk.create", "size": 5},
    ],
)
def test_malformed_commands_are_rejected(payload: dict[str, object]) -> None:
    with pytest.raises(PydanticValidationError):
        COMMAND_LIST_ADAPTER.validate_python([payload])


def test_commands_serialize_camel_case_with_kind() -> None:
    command = DiskCreateCommand(
        id="disk_1",
        project_id="acme-shop",
        location_id="gke.cluster-rcf2",
        name="data",
        generation=2,
        size=5,
    )

    assert dump_result([command]) == [{**IDENTITY, "kind": "disk.create", "size": 5}]


def test_result_kind_must_be_known() -> None:
    with pytest.raises(PydanticValidationError):
        CommandResult.model_validate(
            {"kind": "disk.resize", "id": "disk_1", "generation": 1, "success": True}
        )

    result = CommandResult.model_validate(
        {
            "kind": "deployment.delete",
            "id": "dep_1",
            "generation": 3,
            "success": False,
            "cleanupPending": True,
        }
    )
    assert result.cleanup_pending is True
    assert result.generation == 3


def test_result_requires_generation() -> None:
    with pytest.raises(PydanticValidationError):
        CommandResult.model_validate({"kind": "disk.create", "id": "disk_1", "success": True})
