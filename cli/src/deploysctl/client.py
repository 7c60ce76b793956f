"""HTTP client for the control plane's `POST /<method>` API."""

from __future__ import annotations

import base64
import json
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from controlplane.app.errors import ErrorCode, TransportError

from .config import Config

DEFAULT_TIMEOUT_SECONDS = 15.0


class ApiClientError(Exception):
    """An error envelope returned by the control plane."""

    def __init__(self, code: str, message: str, items: list[str] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.items = items or []

    @property
    def error_code(self) -> ErrorCode | None:
        try:
            return ErrorCode(self.code)
        except ValueError:
            return None


class Invoker(Protocol):
    def invoke(self, method: str, payload: dict[str, Any]) -> Any: ...


class ApiClient:
    def __init__(
        self,
        *,
        endpoint: str,
        token: str | None = None,
        auth_user: str | None = None,
        auth_pass: str | None = None,
        actor: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._endpoint = endpoint.rstrip("/") + "/"
        self._token = token
        self._auth_user = auth_user
        self._auth_pass = auth_pass
        self._actor = actor
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: Config) -> ApiClient:
        return cls(
            endpoint=config.endpoint,
            token=config.token,
            auth_user=config.auth_user,
            auth_pass=config.auth_pass,
            actor=config.actor,
        )

    def headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
        }
        if self._token is not None:
            headers["Authorization"] = f"Bearer {self._token}"
        elif self._auth_user is not None:
            credentials = f"{self._auth_user}:{self._auth_pass or ''}".encode("utf-8")
            headers["Authorization"] = f"Basic {base64.b64encode(credentials).decode('ascii')}"
        if self._actor is not None:
            headers["X-Deploys-Actor"] = self._actor
        return headers

    def invoke(self, method: str, payload: dict[str, Any]) -> Any:
        request = Request(
            url=f"{self._endpoint}{method}",
            data=json.dumps(payload, ensure_ascii=True).encode("utf-8"),
            headers=self.headers(),
            method="POST",
        )

        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw_body = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            response_body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            envelope = _decode_json_object(response_body)
            if envelope.get("error") is None:
                if exc.code >= 500 or exc.code in {408, 429}:
                    raise TransportError(f"{method}: HTTP {exc.code}") from exc
                raise ApiClientError(
                    ErrorCode.INTERNAL_ERROR.value,
                    f"{method}: HTTP {exc.code}",
                ) from exc
            return _unwrap(method, envelope)
        except (URLError, TimeoutError) as exc:
            reason = exc.reason if isinstance(exc, URLError) else exc
            raise TransportError(f"{method}: request failed: {reason}") from exc

        return _unwrap(method, _decode_json_object(raw_body))


def _decode_json_object(raw_body: str) -> dict[str, object]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, dict):
        return cast(dict[str, object], parsed)
    return {}


def _unwrap(method: str, envelope: dict[str, object]) -> Any:
    if "ok" not in envelope:
        raise ApiClientError(ErrorCode.INTERNAL_ERROR.value, f"{method}: malformed response")
    if envelope["ok"] is True:
        return envelope.get("result")

    error = envelope.get("error")
    if not isinstance(error, dict):
        raise ApiClientError(ErrorCode.INTERNAL_ERROR.value, f"{method}: request failed")
    error_dict = cast(dict[str, object], error)
    code = str(error_dict.get("code") or ErrorCode.INTERNAL_ERROR.value)
    message = str(error_dict.get("message") or code)
    raw_items = error_dict.get("items")
    items = [str(item) for item in raw_items] if isinstance(raw_items, list) else []
    if error_dict.get("retryable") is True and code == ErrorCode.TRANSPORT_ERROR.value:
        raise TransportError(message)
    raise ApiClientError(code, message, items)
