from __future__ import annotations

from functools import lru_cache

from controlplane.app.config import AppSettings, load_settings
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
from controlplane.app.telemetry import TelemetryClient, build_telemetry_client
from controlplane.app.validation import ValidationRules


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_validation_rules() -> ValidationRules:
    return ValidationRules.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_location_registry() -> LocationRegistry:
    return LocationRegistry.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_resource_repository() -> ResourceRepository:
    return ResourceRepository(get_database())


@lru_cache(maxsize=1)
def get_deployment_service() -> DeploymentService:
    return DeploymentService(
        resource_repository=get_resource_repository(),
        revision_repository=RevisionRepository(get_database()),
        rules=get_validation_rules(),
        locations=get_location_registry(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_disk_service() -> DiskService:
    return DiskService(
        resource_repository=get_resource_repository(),
        rules=get_validation_rules(),
        locations=get_location_registry(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_pull_secret_service() -> PullSecretService:
    return PullSecretService(
        resource_repository=get_resource_repository(),
        rules=get_validation_rules(),
        locations=get_location_registry(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_workload_identity_service() -> WorkloadIdentityService:
    return WorkloadIdentityService(
        resource_repository=get_resource_repository(),
        rules=get_validation_rules(),
        locations=get_location_registry(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_route_service() -> RouteService:
    return RouteService(
        resource_repository=get_resource_repository(),
        rules=get_validation_rules(),
        locations=get_location_registry(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_deployer_service() -> DeployerService:
    resource_repository = get_resource_repository()
    return DeployerService(
        generator=CommandGenerator(resource_repository=resource_repository),
        reconciler=ResultReconciler(
            resource_repository=resource_repository,
            event_repository=EventRepository(get_database()),
            telemetry=get_telemetry(),
        ),
        rules=get_validation_rules(),
        locations=get_location_registry(),
        telemetry=get_telemetry(),
    )


def reset_cached_dependencies() -> None:
    get_deployer_service.cache_clear()
    get_route_service.cache_clear()
    get_workload_identity_service.cache_clear()
    get_pull_secret_service.cache_clear()
    get_disk_service.cache_clear()
    get_deployment_service.cache_clear()
    get_resource_repository.cache_clear()
    get_telemetry.cache_clear()
    get_location_registry.cache_clear()
    get_validation_rules.cache_clear()
    get_database.cache_clear()
    get_settings.cache_clear()
