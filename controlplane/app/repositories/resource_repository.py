from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, cast

from controlplane.app.models.resources import ResourceAction, ResourceKind, ResourceStatus
from controlplane.app.repositories.common import new_resource_id, utc_now_iso
from controlplane.app.repositories.database import (
    Database,
    load_object_dict,
    optional_int,
    optional_text,
)
from controlplane.app.repositories.event_repository import insert_event
from controlplane.app.repositories.revision_repository import (
    insert_revision,
    set_revision_status,
)

ID_PREFIXES: dict[str, str] = {
    "deployment": "dep",
    "disk": "disk",
    "pullsecret": "psec",
    "workloadidentity": "wid",
    "route": "route",
}

_RESOURCE_COLUMNS = """
    id, kind, project, location, name, spec_json, revision, status, action,
    pending_command, node_port, version, generation, created_at, created_by, updated_at,
    success_at, deleted_at
"""


class StaleWriteError(RuntimeError):
    """The row changed (or a live duplicate appeared) between read and write."""


@dataclass(frozen=True)
class StoredResource:
    resource_id: str
    kind: ResourceKind
    project: str
    location: str
    name: str
    spec_json: str
    revision: int
    status: ResourceStatus
    action: ResourceAction
    pending_command: str | None
    node_port: int | None
    version: int
    generation: int
    created_at: str
    created_by: str
    updated_at: str
    success_at: str | None
    deleted_at: str | None

    @property
    def spec(self) -> dict[str, Any]:
        return load_object_dict(self.spec_json)

    @property
    def has_outstanding_command(self) -> bool:
        return self.pending_command is not None


@dataclass(frozen=True)
class ResultWrite:
    status: ResourceStatus
    success: bool
    deleted: bool
    node_port: int | None
    message: str | None = None


class ResourceRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get_by_id(self, resource_id: str) -> StoredResource | None:
        with self._db.connection() as conn:
            row = conn.execute(
                f"SELECT {_RESOURCE_COLUMNS} FROM resources WHERE id = ?",
                (resource_id,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_resource(row)

    def get_live(
        self,
        kind: ResourceKind,
        *,
        project: str,
        location: str,
        name: str,
    ) -> StoredResource | None:
        with self._db.connection() as conn:
            row = conn.execute(
                f"""
                SELECT {_RESOURCE_COLUMNS}
                FROM resources
                WHERE kind = ? AND project = ? AND location = ? AND name = ?
                  AND deleted_at IS NULL
                """,
                (kind, project, location, name),
            ).fetchone()
        if row is None:
            return None
        return _row_to_resource(row)

    def list_live(
        self,
        kind: ResourceKind,
        *,
        project: str,
        location: str | None = None,
    ) -> list[StoredResource]:
        query = f"""
            SELECT {_RESOURCE_COLUMNS}
            FROM resources
            WHERE kind = ? AND project = ? AND deleted_at IS NULL
        """
        params: tuple[object, ...] = (kind, project)
        if location is not None:
            query += " AND location = ?"
            params = (*params, location)
        query += " ORDER BY location ASC, name ASC"

        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_resource(row) for row in rows]

    def list_outstanding(self, location: str) -> list[StoredResource]:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_RESOURCE_COLUMNS}
                FROM resources
                WHERE location = ? AND pending_command IS NOT NULL AND deleted_at IS NULL
                ORDER BY updated_at ASC
                """,
                (location,),
            ).fetchall()
        return [_row_to_resource(row) for row in rows]

    def create_resource(
        self,
        kind: ResourceKind,
        *,
        project: str,
        location: str,
        name: str,
        spec_json: str,
        action: ResourceAction,
        command: str,
        actor: str,
        revision: int = 0,
    ) -> StoredResource:
        resource_id = new_resource_id(ID_PREFIXES[kind])
        now_iso = utc_now_iso()
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO resources (
                        id, kind, project, location, name, spec_json, revision, status,
                        action, pending_command, node_port, version, generation, created_at,
                        created_by, updated_at, success_at, deleted_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, 1, 1, ?, ?, ?, NULL, NULL)
                    """,
                    (
                        resource_id,
                        kind,
                        project,
                        location,
                        name,
                        spec_json,
                        revision,
                        ResourceStatus.PENDING.value,
                        action.value,
                        command,
                        now_iso,
                        actor,
                        now_iso,
                    ),
                )
                if revision > 0:
                    insert_revision(
                        conn,
                        deployment_id=resource_id,
                        revision=revision,
                        spec_json=spec_json,
                        created_at=now_iso,
                        created_by=actor,
                    )
                insert_event(
                    conn,
                    resource_id=resource_id,
                    event_type="installed",
                    action=action.value,
                    command=command,
                    status=ResourceStatus.PENDING.value,
                    revision=revision or None,
                    actor=actor,
                )
        except sqlite3.IntegrityError as exc:
            raise StaleWriteError(f"{kind} {project}/{location}/{name} already exists") from exc

        created = self.get_by_id(resource_id)
        assert created is not None
        return created

    def install_action(
        self,
        resource: StoredResource,
        *,
        action: ResourceAction,
        command: str,
        actor: str,
        spec_json: str | None = None,
        revision: int | None = None,
    ) -> StoredResource:
        """Compare-and-set a new outstanding action onto `resource`.

        A still-outstanding command is recorded as cancelled in the same
        transaction. For deployments a new `revision` also appends an
        immutable revision row.
        """
        now_iso = utc_now_iso()
        next_spec_json = spec_json if spec_json is not None else resource.spec_json
        next_revision = revision if revision is not None else resource.revision
        with self._db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE resources
                SET spec_json = ?, revision = ?, status = ?, action = ?, pending_command = ?,
                    version = version + 1, generation = generation + 1, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    next_spec_json,
                    next_revision,
                    ResourceStatus.PENDING.value,
                    action.value,
                    command,
                    now_iso,
                    resource.resource_id,
                    resource.version,
                ),
            )
            if cursor.rowcount != 1:
                raise StaleWriteError(f"resource {resource.resource_id} changed concurrently")

            if resource.pending_command is not None:
                if resource.pending_command == "deployment.deploy":
                    set_revision_status(
                        conn,
                        deployment_id=resource.resource_id,
                        revision=resource.revision,
                        status=ResourceStatus.CANCELLED,
                        only_if_pending=True,
                    )
                insert_event(
                    conn,
                    resource_id=resource.resource_id,
                    event_type="cancelled",
                    action=resource.action.value,
                    command=resource.pending_command,
                    status=ResourceStatus.CANCELLED.value,
                    revision=resource.revision or None,
                    actor=actor,
                    detail={"superseded_by": command},
                )

            if revision is not None and revision != resource.revision:
                insert_revision(
                    conn,
                    deployment_id=resource.resource_id,
                    revision=revision,
                    spec_json=next_spec_json,
                    created_at=now_iso,
                    created_by=actor,
                )
            insert_event(
                conn,
                resource_id=resource.resource_id,
                event_type="installed",
                action=action.value,
                command=command,
                status=ResourceStatus.PENDING.value,
                revision=next_revision or None,
                actor=actor,
            )

        updated = self.get_by_id(resource.resource_id)
        assert updated is not None
        return updated

    def apply_result(self, resource: StoredResource, write: ResultWrite) -> bool:
        """Close the outstanding command of `resource`; False if it was already closed."""
        if resource.pending_command is None:
            return False

        now_iso = utc_now_iso()
        success_at = now_iso if write.success else resource.success_at
        node_port = write.node_port if write.node_port is not None else resource.node_port
        deleted_at = now_iso if write.deleted else None
        with self._db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE resources
                SET status = ?, pending_command = NULL, node_port = ?, success_at = ?,
                    deleted_at = ?, version = version + 1, updated_at = ?
                WHERE id = ? AND version = ? AND generation = ? AND pending_command = ?
                """,
                (
                    write.status.value,
                    node_port,
                    success_at,
                    deleted_at,
                    now_iso,
                    resource.resource_id,
                    resource.version,
                    resource.generation,
                    resource.pending_command,
                ),
            )
            if cursor.rowcount != 1:
                return False

            if resource.pending_command == "deployment.deploy":
                set_revision_status(
                    conn,
                    deployment_id=resource.resource_id,
                    revision=resource.revision,
                    status=write.status,
                )
            insert_event(
                conn,
                resource_id=resource.resource_id,
                event_type="result",
                action=resource.action.value,
                command=resource.pending_command,
                status=write.status.value,
                revision=resource.revision or None,
                detail={"message": write.message} if write.message else None,
            )
        return True


def _row_to_resource(row: sqlite3.Row) -> StoredResource:
    return StoredResource(
        resource_id=str(row["id"]),
        kind=cast(ResourceKind, str(row["kind"])),
        project=str(row["project"]),
        location=str(row["location"]),
        name=str(row["name"]),
        spec_json=str(row["spec_json"]),
        revision=int(row["revision"]),
        status=ResourceStatus(str(row["status"])),
        action=ResourceAction(str(row["action"])),
        pending_command=optional_text(row["pending_command"]),
        node_port=optional_int(row["node_port"]),
        version=int(row["version"]),
        generation=int(row["generation"]),
        created_at=str(row["created_at"]),
        created_by=str(row["created_by"]),
        updated_at=str(row["updated_at"]),
        success_at=optional_text(row["success_at"]),
        deleted_at=optional_text(row["deleted_at"]),
    )
