from __future__ import annotations

from controlplane.app.models.resources import DeploymentSpec, DeploymentType
from controlplane.app.services.spec_merge import merge_deployment_spec

from conftest import deploy_request


def _previous() -> DeploymentSpec:
    return DeploymentSpec.model_validate(
        {
            "type": "WebService",
            "image": "registry.example.com/shop:1",
            "port": 8080,
            "minReplicas": 2,
            "maxReplicas": 4,
            "env": {"A": "1", "B": "2"},
            "args": ["--serve"],
        }
    )


def test_first_deploy_merges_onto_defaults() -> None:
    merged = merge_deployment_spec(None, deploy_request(type="Worker", image="worker:1"))

    assert merged.type == DeploymentType.WORKER
    assert merged.image == "worker:1"
    assert merged.min_replicas == 1
    assert merged.max_replicas == 1
    assert merged.env == {}


def test_omitted_fields_are_copied_from_previous_revision() -> None:
    merged = merge_deployment_spec(_previous(), deploy_request(image="registry.example.com/shop:2"))

    assert merged.image == "registry.example.com/shop:2"
    assert merged.type == DeploymentType.WEB_SERVICE
    assert merged.port == 8080
    assert merged.min_replicas == 2
    assert merged.max_replicas == 4
    assert merged.env == {"A": "1", "B": "2"}
    assert merged.args == ["--serve"]


def test_env_replace_then_add_then_remove() -> None:
    merged = merge_deployment_spec(
        _previous(),
        deploy_request(
            env={"C": "3", "D": "4"},
            addEnv={"D": "40", "E": "5"},
            removeEnv=["C", "MISSING"],
        ),
    )

    assert merged.env == {"D": "40", "E": "5"}


def test_add_and_remove_env_apply_to_previous_map() -> None:
    merged = merge_deployment_spec(
        _previous(),
        deploy_request(addEnv={"B": "20"}, removeEnv=["A"]),
    )

    assert merged.env == {"B": "20"}


def test_present_empty_list_replaces_previous_value() -> None:
    merged = merge_deployment_spec(_previous(), deploy_request(args=[]))
    assert merged.args == []


def test_merge_does_not_mutate_previous_spec() -> None:
    previous = _previous()
    merge_deployment_spec(previous, deploy_request(addEnv={"Z": "26"}))
    assert previous.env == {"A": "1", "B": "2"}
