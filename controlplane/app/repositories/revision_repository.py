from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from controlplane.app.models.resources import ResourceAction, ResourceStatus
from controlplane.app.repositories.database import Database, load_object_dict


@dataclass(frozen=True)
class DeploymentRevision:
    deployment_id: str
    revision: int
    spec_json: str
    status: ResourceStatus
    action: ResourceAction
    created_at: str
    created_by: str

    @property
    def spec(self) -> dict[str, Any]:
        return load_object_dict(self.spec_json)


def insert_revision(
    conn: sqlite3.Connection,
    *,
    deployment_id: str,
    revision: int,
    spec_json: str,
    created_at: str,
    created_by: str,
) -> None:
    conn.execute(
        """
        INSERT INTO deployment_revisions
        (deployment_id, revision, spec_json, status, action, created_at, created_by)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            deployment_id,
            revision,
            spec_json,
            ResourceStatus.PENDING.value,
            ResourceAction.DEPLOY.value,
            created_at,
            created_by,
        ),
    )


def set_revision_status(
    conn: sqlite3.Connection,
    *,
    deployment_id: str,
    revision: int,
    status: ResourceStatus,
    only_if_pending: bool = False,
) -> None:
    query = "UPDATE deployment_revisions SET status = ? WHERE deployment_id = ? AND revision = ?"
    params: tuple[object, ...] = (status.value, deployment_id, revision)
    if only_if_pending:
        query += " AND status = ?"
        params = (*params, ResourceStatus.PENDING.value)
    conn.execute(query, params)


class RevisionRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get_revision(self, deployment_id: str, revision: int) -> DeploymentRevision | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT deployment_id, revision, spec_json, status, action, created_at, created_by
                FROM deployment_revisions
                WHERE deployment_id = ? AND revision = ?
                """,
                (deployment_id, revision),
            ).fetchone()
        if row is None:
            return None
        return _row_to_revision(row)

    def list_revisions(self, deployment_id: str) -> list[DeploymentRevision]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT deployment_id, revision, spec_json, status, action, created_at, created_by
                FROM deployment_revisions
                WHERE deployment_id = ?
                ORDER BY revision DESC
                """,
                (deployment_id,),
            ).fetchall()
        return [_row_to_revision(row) for row in rows]


def _row_to_revision(row: sqlite3.Row) -> DeploymentRevision:
    return DeploymentRevision(
        deployment_id=str(row["deployment_id"]),
        revision=int(row["revision"]),
        spec_json=str(row["spec_json"]),
        status=ResourceStatus(str(row["status"])),
        action=ResourceAction(str(row["action"])),
        created_at=str(row["created_at"]),
        created_by=str(row["created_by"]),
    )
