from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

import pytest

from controlplane.app.scripts import serve
from controlplane.app.scripts.export_openapi import main as export_openapi


def test_export_openapi_writes_schema(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    export_openapi()

    output = tmp_path / "openapi" / "openapi.json"
    assert output.exists()

    schema = cast(dict[str, Any], json.loads(output.read_text(encoding="utf-8")))
    assert schema["info"]["title"] == "Deploys Control Plane API"
    assert "/deployment.deploy" in schema["paths"]
    assert "/deployer.setResults" in schema["paths"]
    assert "/health" in schema["paths"]


def test_serve_passes_bind_options(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_run(app: str, **kwargs: Any) -> None:
        captured["app"] = app
        captured.update(kwargs)

    monkeypatch.setattr(serve.uvicorn, "run", fake_run)
    monkeypatch.setattr("sys.argv", ["deploys-controlplane", "--host", "0.0.0.0", "--port", "9000"])

    serve.main()

    assert captured["app"] == "controlplane.app.main:app"
    assert captured["host"] == "0.0.0.0"
    assert captured["port"] == 9000
