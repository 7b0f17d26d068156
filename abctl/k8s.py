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

"""Kubernetes access through kubectl."""

from __future__ import annotations

import base64
import json
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from abctl.constants import (
    DIAGNOSTIC_LOG_TAIL_LINES,
    DOCKER_AUTH_SECRET_NAME,
    KIND_DATA_MOUNT,
    PV_CAPACITY,
    PV_STORAGE_CLASS,
)
from abctl.errors import KubernetesError
from abctl.utils import popen_kubectl, run_kubectl


@dataclass(frozen=True)
class Pod:
    name: str
    phase: str


class KubernetesClient:
    """Thin kubectl wrapper bound to one kubeconfig/context.

    Args:
        kubeconfig: Kubeconfig path.
        kube_context: Context name inside the kubeconfig.
    """

    def __init__(self, kubeconfig: Path, kube_context: str) -> None:
        self.kubeconfig = kubeconfig
        self.kube_context = kube_context

    def _kubectl(self, *args: str, input: str | None = None) -> str:
        ok, stdout, stderr = run_kubectl(
            ["--kubeconfig", str(self.kubeconfig), "--context", self.kube_context, *args],
            input=input,
        )
        if not ok:
            raise KubernetesError(f"kubectl {args[0]} failed: {stderr.strip()}")
        return stdout

    def _popen(self, *args: str) -> subprocess.Popen:
        try:
            return popen_kubectl(["--kubeconfig", str(self.kubeconfig), "--context", self.kube_context, *args])
        except OSError as err:
            raise KubernetesError(f"unable to start kubectl {args[0]}: {err}") from err

    def _json(self, *args: str) -> Any:
        out = self._kubectl(*args, "-o", "json")
        try:
            return json.loads(out)
        except ValueError as err:
            raise KubernetesError(f"unable to parse kubectl {args[0]} output: {err}") from err

    def exists(self, kind: str, name: str, namespace: str | None = None) -> bool:
        args = ["--kubeconfig", str(self.kubeconfig), "--context", self.kube_context, "get", kind, name]
        if namespace:
            args += ["-n", namespace]
        ok, _, _ = run_kubectl(args)
        return ok

    def namespace_exists(self, namespace: str) -> bool:
        return self.exists("namespace", namespace)

    def namespace_create(self, namespace: str) -> None:
        if not self.namespace_exists(namespace):
            self._kubectl("create", "namespace", namespace)

    def namespace_delete(self, namespace: str) -> None:
        self._kubectl("delete", "namespace", namespace, "--ignore-not-found", "--wait=false")

    def persistent_volume_exists(self, name: str) -> bool:
        return self.exists("persistentvolume", name)

    def persistent_volume_create(self, name: str) -> None:
        """Create a host-path volume under the kind node's data mount."""
        self.apply({
            "apiVersion": "v1",
            "kind": "PersistentVolume",
            "metadata": {"name": name},
            "spec": {
                "capacity": {"storage": PV_CAPACITY},
                "accessModes": ["ReadWriteOnce"],
                "persistentVolumeReclaimPolicy": "Retain",
                "storageClassName": PV_STORAGE_CLASS,
                "hostPath": {"path": f"{KIND_DATA_MOUNT}/{name}", "type": "DirectoryOrCreate"},
            },
        })

    def persistent_volume_claim_exists(self, namespace: str, name: str) -> bool:
        return self.exists("persistentvolumeclaim", name, namespace)

    def persistent_volume_claim_create(self, namespace: str, name: str, volume_name: str) -> None:
        self.apply({
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "storageClassName": PV_STORAGE_CLASS,
                "volumeName": volume_name,
                "resources": {"requests": {"storage": PV_CAPACITY}},
            },
        }, namespace)

    def apply(self, manifest: dict[str, Any], namespace: str | None = None) -> None:
        """Create or update one object from a manifest dict."""
        args = ["apply", "-f", "-"]
        if namespace:
            args += ["-n", namespace]
        self._kubectl(*args, input=yaml.safe_dump(manifest))

    def secret_create_or_update(self, secret: dict[str, Any], namespace: str) -> None:
        self.apply(secret, namespace)

    def secret_apply_file(self, path: str, namespace: str) -> None:
        """Apply a secret manifest file.

        Raises:
            KubernetesError: If the file is unreadable, not a Secret, or kubectl fails.
        """
        try:
            manifest = yaml.safe_load(Path(path).read_text())
        except (OSError, yaml.YAMLError) as err:
            raise KubernetesError(f"unable to read secret file {path}: {err}") from err
        if not isinstance(manifest, dict) or manifest.get("kind") != "Secret":
            raise KubernetesError(f"secret file {path} does not contain a Secret")
        self.secret_create_or_update(manifest, namespace)

    def secret_delete_collection(self, namespace: str, secret_type: str) -> None:
        self._kubectl("delete", "secrets", "-n", namespace, "--field-selector", f"type={secret_type}")

    def secret_data(self, namespace: str, name: str) -> dict[str, str]:
        """Decoded ``data`` of a secret.

        Raises:
            KubernetesError: If the secret cannot be read or holds invalid base64.
        """
        data = self._json("get", "secret", name, "-n", namespace)
        try:
            return {
                key: base64.b64decode(value).decode()
                for key, value in (data.get("data") or {}).items()
            }
        except (ValueError, UnicodeDecodeError) as err:
            raise KubernetesError(f"unable to decode secret {name}: {err}") from err

    def secret_patch_data(self, namespace: str, name: str, values: dict[str, str]) -> None:
        """Merge ``values`` into a secret's data; other keys are kept."""
        encoded = {key: base64.b64encode(value.encode()).decode() for key, value in values.items()}
        self._kubectl(
            "patch", "secret", name, "-n", namespace,
            "--type", "merge", "-p", json.dumps({"data": encoded}),
        )

    def deployment_list(self, namespace: str) -> list[str]:
        data = self._json("get", "deployments", "-n", namespace)
        return [(item.get("metadata") or {}).get("name", "") for item in data.get("items", [])]

    def deployment_restart(self, namespace: str, name: str) -> None:
        self._kubectl("rollout", "restart", f"deployment/{name}", "-n", namespace)

    def events_watch(self, namespace: str) -> subprocess.Popen:
        """Stream events of ``namespace`` as JSON objects on the process stdout.

        Only events observed after the call are printed.
        """
        return self._popen("get", "events", "-n", namespace, "--watch-only", "-o", "json")

    def logs_stream(self, namespace: str, pod: str, since: datetime | None = None) -> subprocess.Popen:
        """Follow a pod's logs; the process exits when the container does."""
        args = ["logs", pod, "-n", namespace, "--follow"]
        if since is not None:
            args.append(f"--since-time={since.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')}")
        return self._popen(*args)

    def pod_list(self, namespace: str) -> list[Pod]:
        data = self._json("get", "pods", "-n", namespace)
        return [
            Pod(
                name=(item.get("metadata") or {}).get("name", ""),
                phase=(item.get("status") or {}).get("phase", ""),
            )
            for item in data.get("items", [])
        ]

    def logs_get(self, namespace: str, pod: str, tail: int = DIAGNOSTIC_LOG_TAIL_LINES) -> str:
        return self._kubectl("logs", pod, "-n", namespace, f"--tail={tail}")

    def service_ingresses(self, namespace: str, name: str) -> list[dict[str, Any]]:
        """LoadBalancer ingress entries of a service."""
        data = self._json("get", "service", name, "-n", namespace)
        return ((data.get("status") or {}).get("loadBalancer") or {}).get("ingress") or []


def docker_auth_secret(server: str, user: str, password: str, email: str = "") -> dict[str, Any]:
    """A ``kubernetes.io/dockerconfigjson`` secret for pulling private images."""
    auth = base64.b64encode(f"{user}:{password}".encode()).decode()
    config = {"auths": {server: {"username": user, "password": password, "email": email, "auth": auth}}}
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": DOCKER_AUTH_SECRET_NAME},
        "type": "kubernetes.io/dockerconfigjson",
        "data": {".dockerconfigjson": base64.b64encode(json.dumps(config).encode()).decode()},
    }
