from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.error import URLError

import pytest
import yaml
from click.testing import CliRunner
from fastapi.testclient import TestClient

from controlplane.app.errors import TransportError
from deploysctl import client as client_module
from deploysctl.cli import main
from deploysctl.client import ApiClient, ApiClientError, _unwrap
from deploysctl.commands.common import CliState
from deploysctl.config import DEFAULT_ENDPOINT, Config
from deploysctl.output import format_age

BASE = ["-p", "acme-shop", "-l", "gke.cluster-rcf2"]


class _FakeClient:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._result = {} if result is None else result
        self._error = error

    def invoke(self, method: str, payload: dict[str, Any]) -> Any:
        self.calls.append((method, payload))
        if self._error is not None:
            raise self._error
        return self._result


class _TestClientInvoker:
    def __init__(self, client: TestClient) -> None:
        self._client = client

    def invoke(self, method: str, payload: dict[str, Any]) -> Any:
        response = self._client.post(f"/{method}", json=payload)
        return _unwrap(method, response.json())


def _run(fake: Any, *args: str) -> Any:
    return CliRunner().invoke(main, list(args), obj=CliState(client=fake))


def test_deploy_sends_only_given_options(tmp_path: Path) -> None:
    config_file = tmp_path / "app.yaml"
    config_file.write_text("debug: true\n", encoding="utf-8")
    fake = _FakeClient()

    result = _run(
        fake,
        "deployment",
        "deploy",
        *BASE,
        "-n",
        "web-api",
        "--image",
        "nginx:1",
        "--type",
        "WebService",
        "--port",
        "8080",
        "--add-env",
        "LOG_LEVEL=debug",
        "--remove-env",
        "OLD",
        "--disk",
        "data:/data",
        "--cpu-limit",
        "500m",
        "--mount-data",
        f"/etc/app.yaml={config_file}",
    )

    assert result.exit_code == 0, result.output
    assert "Deploying web-api" in result.output
    assert fake.calls == [
        (
            "deployment.deploy",
            {
                "project": "acme-shop",
                "location": "gke.cluster-rcf2",
                "name": "web-api",
                "image": "nginx:1",
                "type": "WebService",
                "port": 8080,
                "addEnv": {"LOG_LEVEL": "debug"},
                "removeEnv": ["OLD"],
                "disk": {"name": "data", "mountPath": "/data"},
                "resources": {"requests": {}, "limits": {"cpu": "500m"}},
                "mountData": {"/etc/app.yaml": "debug: true\n"},
            },
        )
    ]


def test_bad_pairs_are_usage_errors() -> None:
    fake = _FakeClient()
    result = _run(fake, "deployment", "deploy", *BASE, "-n", "web-api", "--env", "NOVALUE")

    assert result.exit_code == 2
    assert fake.calls == []


def test_list_renders_table() -> None:
    fake = _FakeClient(
        {"items": [{"name": "data", "size": 5, "status": "success", "action": "create"}]}
    )

    result = _run(fake, "disk", "list", "-p", "acme-shop")

    assert result.exit_code == 0, result.output
    assert "NAME" in result.output
    assert "data" in result.output
    assert "5Gi" in result.output
    assert fake.calls == [("disk.list", {"project": "acme-shop"})]


@pytest.mark.parametrize("output", ["json", "yaml"])
def test_list_renders_structured_output(output: str) -> None:
    items = [{"name": "web-api", "status": "pending"}]
    fake = _FakeClient({"items": items})

    result = _run(fake, "-o", output, "d", "list", "-p", "acme-shop")

    assert result.exit_code == 0, result.output
    loader = json.loads if output == "json" else yaml.safe_load
    assert loader(result.output) == items


def test_api_error_exits_with_items() -> None:
    fake = _FakeClient(
        error=ApiClientError("validation_failed", "api: validate error", ["name invalid"])
    )

    result = _run(fake, "disk", "create", *BASE, "-n", "x", "--size", "1")

    assert result.exit_code == 1
    assert "api: validate error" in result.output
    assert "name invalid" in result.output


def test_transport_error_is_marked_retryable() -> None:
    fake = _FakeClient(error=TransportError("disk.get: request failed: refused"))

    result = _run(fake, "disk", "get", *BASE, "-n", "data")

    assert result.exit_code == 1
    assert "(retryable)" in result.output


def test_pull_secret_value_skips_spec() -> None:
    fake = _FakeClient()

    result = _run(fake, "ps", "create", *BASE, "-n", "registry", "--value", "e30=")

    assert result.exit_code == 0, result.output
    assert fake.calls[0][1] == {
        "project": "acme-shop",
        "location": "gke.cluster-rcf2",
        "name": "registry",
        "value": "e30=",
    }


def test_route_create_builds_config() -> None:
    fake = _FakeClient()

    result = _run(
        fake,
        "route",
        "create",
        *BASE,
        "-d",
        "shop.example.com",
        "--deployment",
        "web-api",
        "--basic-auth",
        "admin:hunter2",
    )

    assert result.exit_code == 0, result.output
    payload = fake.calls[0][1]
    assert payload["path"] == "/"
    assert payload["config"] == {"basicAuth": {"user": "admin", "password": "hunter2"}}


def test_cli_against_running_app(client: TestClient) -> None:
    invoker = _TestClientInvoker(client)

    created = _run(invoker, "disk", "create", *BASE, "-n", "data", "--size", "5")
    listed = _run(invoker, "-o", "json", "disk", "list", "-p", "acme-shop")
    rejected = _run(invoker, "disk", "update", *BASE, "-n", "data", "--size", "2")

    assert created.exit_code == 0, created.output
    assert [item["size"] for item in json.loads(listed.output)] == [5]
    assert rejected.exit_code == 1
    assert "api: disk size must scale up" in rejected.output


def test_config_env_overrides_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    Config(endpoint="https://deploys.example.com/", token="file-token", actor="alice").save(path)

    from_file = Config.load(path, environ={})
    overridden = Config.load(path, environ={"DEPLOYS_TOKEN": "env-token", "DEPLOYS_ACTOR": " "})
    missing = Config.load(tmp_path / "missing.yaml", environ={})

    assert from_file.endpoint == "https://deploys.example.com/"
    assert from_file.token == "file-token"
    assert overridden.token == "env-token"
    assert overridden.actor == "alice"
    assert missing.endpoint == DEFAULT_ENDPOINT
    assert missing.token is None


def test_configure_writes_config(tmp_path: Path) -> None:
    path = tmp_path / "deploys" / "config.yaml"

    result = CliRunner().invoke(
        main,
        ["configure", "--endpoint", "https://deploys.example.com", "--config-path", str(path)],
    )

    assert result.exit_code == 0, result.output
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == {
        "endpoint": "https://deploys.example.com"
    }


def test_api_client_headers() -> None:
    bearer = ApiClient(endpoint="http://cp", token="abc", actor="alice").headers()
    basic = ApiClient(endpoint="http://cp", auth_user="bot", auth_pass="pw").headers()

    assert bearer["Authorization"] == "Bearer abc"
    assert bearer["X-Deploys-Actor"] == "alice"
    assert basic["Authorization"] == "Basic Ym90OnB3"
    assert "X-Deploys-Actor" not in basic


def test_api_client_unwraps_envelopes() -> None:
    assert _unwrap("disk.get", {"ok": True, "result": {"name": "data"}}) == {"name": "data"}

    with pytest.raises(ApiClientError) as exc_info:
        _unwrap(
            "disk.get",
            {"ok": False, "error": {"code": "disk_not_found", "message": "api: disk not found"}},
        )
    assert exc_info.value.error_code is not None
    assert exc_info.value.error_code.value == "disk_not_found"

    with pytest.raises(ApiClientError):
        _unwrap("disk.get", {"unexpected": True})


def test_api_client_network_failure_is_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(*_args: object, **_kwargs: object) -> None:
        raise URLError("connection refused")

    monkeypatch.setattr(client_module, "urlopen", refuse)

    with pytest.raises(TransportError) as exc_info:
        ApiClient(endpoint="http://127.0.0.1:9").invoke("disk.list", {"project": "acme-shop"})
    assert exc_info.value.retryable is True
    assert "connection refused" in exc_info.value.message


@pytest.mark.parametrize(
    ("timestamp", "expected"),
    [
        ("2026-10-19T11:59:30Z", "30s"),
        ("2026-10-19T11:15:00+00:00", "45m"),
        ("2026-10-19T02:00:00", "10h"),
        ("2026-10-16T12:00:00Z", "3d"),
        (None, "-"),
        ("not a date", "-"),
    ],
)
def test_format_age(timestamp: str | None, expected: str) -> None:
    now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
    assert format_age(timestamp, now=now) == expected
