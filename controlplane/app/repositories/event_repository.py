from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from controlplane.app.repositories.common import new_resource_id, utc_now_iso
from controlplane.app.repositories.database import (
    Database,
    dump_json,
    load_object_dict,
    optional_int,
    optional_text,
)


@dataclass(frozen=True)
class ResourceEvent:
    event_id: str
    resource_id: str
    event_type: str
    action: str
    command: str | None
    status: str | None
    revision: int | None
    actor: str | None
    detail: dict[str, Any]
    created_at: str


def insert_event(
    conn: sqlite3.Connection,
    *,
    resource_id: str,
    event_type: str,
    action: str,
    command: str | None = None,
    status: str | None = None,
    revision: int | None = None,
    actor: str | None = None,
    detail: dict[str, Any] | None = None,
) -> str:
    event_id = new_resource_id("evt")
    conn.execute(
        """
        INSERT INTO resource_events
        (id, resource_id, event_type, action, command, status, revision, actor, detail_json, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            event_id,
            resource_id,
            event_type,
            action,
            command,
            status,
            revision,
            actor,
            dump_json(detail or {}),
            utc_now_iso(),
        ),
    )
    return event_id


class EventRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def record(
        self,
        *,
        resource_id: str,
        event_type: str,
        action: str,
        command: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> str:
        with self._db.connection() as conn:
            return insert_event(
                conn,
                resource_id=resource_id,
                event_type=event_type,
                action=action,
                command=command,
                detail=detail,
            )

    def list_events(self, resource_id: str) -> list[ResourceEvent]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, resource_id, event_type, action, command, status, revision,
                       actor, detail_json, created_at
                FROM resource_events
                WHERE resource_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (resource_id,),
            ).fetchall()

        return [
            ResourceEvent(
                event_id=str(row["id"]),
                resource_id=str(row["resource_id"]),
                event_type=str(row["event_type"]),
                action=str(row["action"]),
                command=optional_text(row["command"]),
                status=optional_text(row["status"]),
                revision=optional_int(row["revision"]),
                actor=optional_text(row["actor"]),
                detail=load_object_dict(row["detail_json"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]
