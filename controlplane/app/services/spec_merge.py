from __future__ import annotations

from controlplane.app.models.requests import DeploymentDeployRequest
from controlplane.app.models.resources import DeploymentSpec

# Request fields that replace the previous value outright when present.
_REPLACED_FIELDS: tuple[str, ...] = (
    "type",
    "image",
    "min_replicas",
    "max_replicas",
    "port",
    "protocol",
    "command",
    "args",
    "workload_identity",
    "pull_secret",
    "disk",
    "schedule",
    "resources",
    "mount_data",
    "sidecars",
)


def merge_deployment_spec(
    previous: DeploymentSpec | None,
    request: DeploymentDeployRequest,
) -> DeploymentSpec:
    """Three-way merge of a partial deploy request onto the previous revision.

    Precedence, in order: present fields replace, `env` replaces the whole
    map, `add_env` sets keys, `remove_env` deletes keys. Everything absent
    from the request is carried over from `previous`.
    """
    base = previous if previous is not None else DeploymentSpec()
    updates: dict[str, object] = {}
    for field_name in _REPLACED_FIELDS:
        value = getattr(request, field_name)
        if value is not None:
            updates[field_name] = value

    env = dict(request.env) if request.env is not None else dict(base.env)
    if request.add_env:
        env.update(request.add_env)
    for key in request.remove_env or ():
        env.pop(key, None)
    updates["env"] = env

    merged = base.model_copy(update=updates, deep=True)
    return DeploymentSpec.model_validate(merged.model_dump())
