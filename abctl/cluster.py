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

"""kind cluster lifecycle and bound-port discovery."""

from __future__ import annotations

import os
import tempfile
import threading
from collections.abc import Sequence
from pathlib import Path

import sh
import yaml

from abctl import logger
from abctl.config import ExtraVolumeMount
from abctl.constants import (
    DATA_DIR,
    ENV_KIND_PROVIDER,
    KIND_DATA_MOUNT,
    KIND_INGRESS_CONTAINER_PORT,
    KIND_NODE_IMAGE,
    KIND_WAIT_TIMEOUT,
)
from abctl.errors import ClusterError, DockerError
from abctl.runtime.provider import RuntimeProvider
from abctl.runtime.types import RuntimeKind
from abctl.utils import run_cancellable

_INGRESS_READY_PATCH = (
    "kind: InitConfiguration\n"
    "nodeRegistration:\n"
    "  kubeletExtraArgs:\n"
    '    node-labels: "ingress-ready=true"'
)


def build_kind_config(port: int, extra_mounts: Sequence[ExtraVolumeMount] = (), data_dir: Path = DATA_DIR) -> dict:
    """Kind cluster config: one control-plane node publishing ingress on ``port``."""
    mounts = [{"hostPath": str(data_dir), "containerPath": KIND_DATA_MOUNT}]
    mounts += [{"hostPath": m.host_path, "containerPath": m.container_path} for m in extra_mounts]
    return {
        "kind": "Cluster",
        "apiVersion": "kind.x-k8s.io/v1alpha4",
        "nodes": [
            {
                "role": "control-plane",
                "kubeadmConfigPatches": [_INGRESS_READY_PATCH],
                "extraMounts": mounts,
                "extraPortMappings": [{"containerPort": KIND_INGRESS_CONTAINER_PORT, "hostPort": port}],
            }
        ],
    }


class KindCluster:
    """A local kind cluster.

    Args:
        name: Cluster name.
        kubeconfig: Kubeconfig file kind writes the cluster credentials to.
        runtime: Container runtime kind should use; None leaves kind's default.
        data_dir: Host directory mounted as the local-path provisioner root.
        cancel: When set, the running kind process is terminated.
    """

    def __init__(
        self,
        name: str,
        kubeconfig: Path,
        runtime: RuntimeKind | None = None,
        data_dir: Path = DATA_DIR,
        cancel: threading.Event | None = None,
    ) -> None:
        self.name = name
        self.kubeconfig = kubeconfig
        self.runtime = runtime
        self.data_dir = data_dir
        self.cancel = cancel

    def _kind(self, *args: str) -> str:
        env = dict(os.environ)
        if self.runtime is not None and self.runtime is not RuntimeKind.AUTO:
            env[ENV_KIND_PROVIDER] = str(self.runtime)
        try:
            return run_cancellable(sh.kind, *args, cancel=self.cancel, _env=env)
        except sh.ErrorReturnCode as err:
            stderr = err.stderr.decode(errors="replace").strip() if err.stderr else ""
            raise ClusterError(f"kind {args[0]} failed: {stderr}") from err

    def exists(self) -> bool:
        """Whether kind reports a cluster with this name."""
        output = self._kind("get", "clusters")
        return self.name in output.split()

    def create(self, port: int, extra_mounts: Sequence[ExtraVolumeMount] = ()) -> None:
        """Create the cluster and wait for its control plane.

        Raises:
            ClusterError: If the data dir cannot be created or kind fails.
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.kubeconfig.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise ClusterError(f"unable to create directory {self.data_dir}: {err}") from err

        config = build_kind_config(port, extra_mounts, self.data_dir)
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", prefix="kind-", delete=False) as f:
            yaml.safe_dump(config, f, sort_keys=False)
            config_path = f.name
        try:
            logger.debug("creating kind cluster %s with config %s", self.name, config_path)
            self._kind(
                "create", "cluster",
                "--name", self.name,
                "--config", config_path,
                "--image", KIND_NODE_IMAGE,
                "--kubeconfig", str(self.kubeconfig),
                "--wait", KIND_WAIT_TIMEOUT,
            )
        finally:
            os.unlink(config_path)

    def delete(self) -> None:
        self._kind("delete", "cluster", "--name", self.name, "--kubeconfig", str(self.kubeconfig))


def cluster_port(provider: RuntimeProvider, cluster_name: str) -> int:
    """Host port bound to the cluster's ingress.

    Raises:
        DockerError: If the control-plane container is missing, not running,
            or has no port published on 0.0.0.0.
    """
    container = f"{cluster_name}-control-plane"
    info = provider.inspect_container(container)
    if info is None:
        raise DockerError(f"unable to inspect container {container}: not found")

    status = (info.get("State") or {}).get("Status") or "unknown"
    if status != "running":
        raise DockerError(f"container {container} is not running (status: {status})")

    bindings = (info.get("HostConfig") or {}).get("PortBindings") or {}
    for entries in bindings.values():
        for binding in entries or []:
            if binding.get("HostIp") == "0.0.0.0":
                try:
                    return int(binding.get("HostPort", ""))
                except ValueError as err:
                    raise DockerError(f"invalid port {binding.get('HostPort')!r} on container {container}") from err
    raise DockerError(f"no matching port found on container {container}")
