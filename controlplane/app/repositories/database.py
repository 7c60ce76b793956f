from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, cast

BUSY_TIMEOUT_SECONDS = 10.0

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS resources (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    project TEXT NOT NULL,
    location TEXT NOT NULL,
    name TEXT NOT NULL,
    spec_json TEXT NOT NULL,
    revision INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    action TEXT NOT NULL,
    pending_command TEXT NULL,
    node_port INTEGER NULL,
    version INTEGER NOT NULL DEFAULT 1,
    generation INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    created_by TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    success_at TEXT NULL,
    deleted_at TEXT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_resources_live_key
ON resources(kind, project, location, name)
WHERE deleted_at IS NULL;

CREATE INDEX IF NOT EXISTS idx_resources_pending_location
ON resources(location, pending_command)
WHERE pending_command IS NOT NULL AND deleted_at IS NULL;

CREATE TABLE IF NOT EXISTS deployment_revisions (
    deployment_id TEXT NOT NULL,
    revision INTEGER NOT NULL,
    spec_json TEXT NOT NULL,
    status TEXT NOT NULL,
    action TEXT NOT NULL,
    created_at TEXT NOT NULL,
    created_by TEXT NOT NULL,
    PRIMARY KEY (deployment_id, revision),
    FOREIGN KEY (deployment_id) REFERENCES resources(id)
);

CREATE TABLE IF NOT EXISTS resource_events (
    id TEXT PRIMARY KEY,
    resource_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    action TEXT NOT NULL,
    command TEXT NULL,
    status TEXT NULL,
    revision INTEGER NULL,
    actor TEXT NULL,
    detail_json TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_resource_events_resource
ON resource_events(resource_id, created_at);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, timeout=BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA_SQL)
            _maybe_add_generation_column(conn)


def _maybe_add_generation_column(conn: sqlite3.Connection) -> None:
    # Databases created before results were correlated by generation.
    if "generation" in _table_columns(conn, "resources"):
        return
    conn.execute("ALTER TABLE resources ADD COLUMN generation INTEGER NOT NULL DEFAULT 1")


def _table_columns(conn: sqlite3.Connection, table_name: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
    return {str(row["name"]) for row in rows}


def dump_json(value: dict[str, Any]) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=True)


def load_object_dict(raw: object) -> dict[str, Any]:
    if not isinstance(raw, str):
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, dict):
        raw_dict = cast(dict[object, Any], parsed)
        return {str(key): value for key, value in raw_dict.items()}
    return {}


def optional_text(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def optional_int(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None
