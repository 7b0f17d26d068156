# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Helm values for the airbyte and ingress-nginx charts."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from packaging.version import InvalidVersion, Version

from abctl.config import InstallOptions
from abctl.constants import DOCKER_AUTH_SECRET_NAME, PSQL17_IMAGE_TAG

_V2 = Version("2.0.0")

_LOW_RESOURCE_LAUNCHER_VARS = (
    "CHECK_JOB_MAIN_CONTAINER_CPU_REQUEST",
    "CHECK_JOB_MAIN_CONTAINER_MEMORY_REQUEST",
    "DISCOVER_JOB_MAIN_CONTAINER_CPU_REQUEST",
    "DISCOVER_JOB_MAIN_CONTAINER_MEMORY_REQUEST",
    "SPEC_JOB_MAIN_CONTAINER_CPU_REQUEST",
    "SPEC_JOB_MAIN_CONTAINER_MEMORY_REQUEST",
    "SIDECAR_MAIN_CONTAINER_CPU_REQUEST",
    "SIDECAR_MAIN_CONTAINER_MEMORY_REQUEST",
)


def chart_is_v2_plus(version: str) -> bool:
    """True for chart versions >= 2.0.0; empty or unparsable versions are v1."""
    if not version:
        return False
    try:
        return Version(version.lstrip("v")) >= _V2
    except InvalidVersion:
        return False


def set_path(values: dict[str, Any], dotted: str, value: Any) -> None:
    """Set ``a.b.c`` in a nested dict, creating intermediate dicts."""
    *parents, leaf = dotted.split(".")
    node = values
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value


def merge_values(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into ``base`` in place; ``override`` wins."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge_values(current, value)
        else:
            base[key] = value
    return base


def load_values_file(path: str) -> dict[str, Any]:
    """Read a user values file; an empty path or empty file gives ``{}``.

    Raises:
        ValueError: If the file is unreadable or not a YAML mapping.
    """
    if not path:
        return {}
    try:
        data = yaml.safe_load(Path(path).read_text())
    except (OSError, yaml.YAMLError) as err:
        raise ValueError(f"failed to read values file {path}: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"values file {path} must contain a mapping")
    return data


def build_airbyte_values(opts: InstallOptions, chart_version: str) -> str:
    """Render the airbyte chart values for ``chart_version`` as YAML.

    Values set here have lower priority than anything in the user's
    ``--values`` file.

    Raises:
        ValueError: If the values file cannot be loaded.
    """
    v2 = chart_is_v2_plus(chart_version)
    vals: dict[str, Any] = {}

    if v2:
        set_path(vals, "server.env_vars.WEBAPP_URL", "http://airbyte-abctl-airbyte-server-svc:80")
    set_path(vals, "global.env_vars.AIRBYTE_INSTALLATION_ID", opts.installation_id)
    set_path(vals, "global.jobs.resources.limits.cpu", "3")
    set_path(vals, "global.jobs.resources.limits.memory", "4Gi")
    set_path(vals, "airbyte-bootloader.env_vars.PLATFORM_LOG_FORMAT", "json")

    if opts.local_storage:
        set_path(vals, "global.storage.type", "local")
    if opts.enable_psql17:
        set_path(vals, "postgresql.image.tag", PSQL17_IMAGE_TAG)
    if not opts.disable_auth:
        set_path(vals, "global.auth.enabled", "true")

    if opts.low_resource_mode:
        launcher = "workloadLauncher" if v2 else "workload-launcher"
        builder = "connectorBuilderServer" if v2 else "connector-builder-server"
        set_path(vals, "server.env_vars.JOB_RESOURCE_VARIANT_OVERRIDE", "lowresource")
        set_path(vals, "global.jobs.resources.requests.cpu", "0")
        set_path(vals, "global.jobs.resources.requests.memory", "0")
        set_path(vals, f"{builder}.enabled", "false")
        for var in _LOW_RESOURCE_LAUNCHER_VARS:
            set_path(vals, f"{launcher}.env_vars.{var}", "0")

    if opts.docker_auth:
        set_path(vals, "global.imagePullSecrets", [{"name": DOCKER_AUTH_SECRET_NAME}])

    if opts.insecure_cookies:
        key = "global.auth.security.cookieSecureSetting" if v2 else "global.auth.cookieSecureSetting"
        set_path(vals, key, "false")

    merge_values(vals, load_values_file(opts.values_file))
    return yaml.safe_dump(vals, sort_keys=True)


def build_nginx_values(port: int) -> str:
    """Ingress-nginx values: host ports 8080/8443 and a NodePort on ``port``."""
    values = {
        "controller": {
            "hostPort": {"enabled": True, "ports": {"http": 8080, "https": 8443}},
            "service": {
                "type": "NodePort",
                "ports": {"http": port},
                "httpsPort": {"enable": False},
            },
            "config": {
                "proxy-body-size": "10m",
                "proxy-read-timeout": "600",
                "proxy-send-timeout": "600",
                "http-port": 8080,
                "https-port": 8443,
            },
            "containerSecurityContext": {
                "allowPrivilegeEscalation": False,
                "runAsNonRoot": True,
                "runAsUser": 101,
                "capabilities": {"drop": ["ALL"], "add": ["NET_BIND_SERVICE"]},
            },
            "containerPort": {"http": 8080, "https": 8443, "healthz": 10254},
            "livenessProbe": _nginx_probe(),
            "readinessProbe": _nginx_probe(),
        }
    }
    return yaml.safe_dump(values, sort_keys=False)


def _nginx_probe() -> dict[str, Any]:
    return {
        "httpGet": {"path": "/healthz", "port": 10254, "scheme": "HTTP"},
        "initialDelaySeconds": 30,
        "periodSeconds": 10,
        "timeoutSeconds": 5,
        "failureThreshold": 10,
    }
