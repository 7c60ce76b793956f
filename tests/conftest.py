from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from controlplane.app.dependencies import reset_cached_dependencies
from controlplane.app.main import create_app
from controlplane.app.models.requests import DeploymentDeployRequest
from controlplane.app.repositories.database import Database
from controlplane.app.repositories.event_repository import EventRepository
from controlplane.app.repositories.resource_repository import ResourceRepository
from controlplane.app.repositories.revision_repository import RevisionRepository
from controlplane.app.services.command_generator import CommandGenerator
from controlplane.app.services.deployer_service import DeployerService
from controlplane.app.services.deployment_service import DeploymentService
from controlplane.app.services.locations import LocationRegistry
from controlplane.app.services.resource_service import (
    DiskService,
    PullSecretService,
    RouteService,
    WorkloadIdentityService,
)
from controlplane.app.services.result_reconciler import ResultReconciler
from controlplane.app.validation import ValidationRules

PROJECT = "acme-shop"
LOCATION = "gke.cluster-rcf2"


@dataclass
class Services:
    resources: ResourceRepository
    revisions: RevisionRepository
    events: EventRepository
    deployments: DeploymentService
    disks: DiskService
    pull_secrets: PullSecretService
    workload_identities: WorkloadIdentityService
    routes: RouteService
    deployer: DeployerService


def build_services(db: Database, *, locations: LocationRegistry | None = None) -> Services:
    rules = ValidationRules()
    registry = locations or LocationRegistry()
    resources = ResourceRepository(db)
    revisions = RevisionRepository(db)
    events = EventRepository(db)
    return Services(
        resources=resources,
        revisions=revisions,
        events=events,
        deployments=DeploymentService(
            resource_repository=resources,
            revision_repository=revisions,
            rules=rules,
            locations=registry,
        ),
        disks=DiskService(resource_repository=resources, rules=rules, locations=registry),
        pull_secrets=PullSecretService(resource_repository=resources, rules=rules, locations=registry),
        workload_identities=WorkloadIdentityService(
            resource_repository=resources,
            rules=rules,
            locations=registry,
        ),
        routes=RouteService(resource_repository=resources, rules=rules, locations=registry),
        deployer=DeployerService(
            generator=CommandGenerator(resource_repository=resources),
            reconciler=ResultReconciler(resource_repository=resources, event_repository=events),
            rules=rules,
            locations=registry,
        ),
    )


def deploy_request(name: str = "web-api", **fields: object) -> DeploymentDeployRequest:
    payload: dict[str, object] = {"project": PROJECT, "location": LOCATION, "name": name}
    payload.update(fields)
    return DeploymentDeployRequest.model_validate(payload)


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return db


@pytest.fixture
def services(database: Database) -> Services:
    return build_services(database)


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("DEPLOYS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DEPLOYS_TELEMETRY_SINK", "none")
    monkeypatch.delenv("DEPLOYS_API_TOKEN", raising=False)
    monkeypatch.delenv("DEPLOYS_DEPLOYER_TOKEN", raising=False)
    monkeypatch.delenv("DEPLOYS_LOCATIONS", raising=False)
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
