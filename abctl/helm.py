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

"""Helm client over the ``helm`` binary."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import sh
import yaml

from abctl import logger
from abctl.constants import AIRBYTE_CHART_NAME, DEFAULT_CHART_TIMEOUT, HELM_RELEASE_NOT_FOUND
from abctl.errors import HelmError
from abctl.utils import run_cancellable


@dataclass(frozen=True)
class ChartMetadata:
    name: str
    version: str
    app_version: str = ""


@dataclass(frozen=True)
class Release:
    """A deployed helm release as reported by ``helm get metadata``."""

    name: str
    namespace: str
    chart_name: str = ""
    chart_version: str = ""
    app_version: str = ""
    status: str = ""
    revision: int = 0

    @classmethod
    def from_metadata(cls, data: dict[str, Any]) -> Release:
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            chart_name=data.get("chart", ""),
            chart_version=data.get("version", ""),
            app_version=data.get("appVersion", ""),
            status=data.get("status", ""),
            revision=int(data.get("revision") or 0),
        )

    @classmethod
    def from_install(cls, data: dict[str, Any]) -> Release:
        """Parse the JSON ``helm upgrade --install -o json`` prints."""
        meta = (data.get("chart") or {}).get("metadata") or {}
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            chart_name=meta.get("name", ""),
            chart_version=meta.get("version", ""),
            app_version=meta.get("appVersion", ""),
            status=(data.get("info") or {}).get("status", ""),
            revision=int(data.get("version") or 0),
        )


@dataclass(frozen=True)
class ChartSpec:
    """What to install: release, chart location/version and values."""

    release_name: str
    chart_name: str
    namespace: str
    version: str = ""
    values_yaml: str = ""
    create_namespace: bool = True
    wait: bool = True
    timeout: str = DEFAULT_CHART_TIMEOUT


def is_release_not_found(err: HelmError) -> bool:
    return HELM_RELEASE_NOT_FOUND in str(err)


class HelmClient:
    """Runs helm against one kubeconfig/context.

    Every failure is raised as ``HelmError`` whose message carries helm's
    stderr, so callers can classify errors by message.

    Args:
        kubeconfig: Kubeconfig path passed with ``--kubeconfig``.
        kube_context: Context passed with ``--kube-context``.
        cancel: When set, the running helm process is terminated.
    """

    def __init__(self, kubeconfig: Path, kube_context: str, cancel: threading.Event | None = None) -> None:
        self.kubeconfig = kubeconfig
        self.kube_context = kube_context
        self.cancel = cancel

    def _helm(self, *args: str, stdin: str | None = None) -> str:
        cmd = sh.helm.bake("--kubeconfig", str(self.kubeconfig), "--kube-context", self.kube_context)
        try:
            if stdin is None:
                return run_cancellable(cmd, *args, cancel=self.cancel)
            return run_cancellable(cmd, *args, cancel=self.cancel, _in=stdin)
        except sh.ErrorReturnCode as err:
            stderr = err.stderr.decode(errors="replace").strip() if err.stderr else ""
            raise HelmError(f"helm {args[0]} failed: {stderr}", stderr=stderr) from err

    def add_or_update_chart_repo(self, name: str, url: str) -> None:
        self._helm("repo", "add", name, url, "--force-update")
        self._helm("repo", "update", name)

    def get_chart(self, location: str, version: str = "") -> ChartMetadata:
        """Fetch ``Chart.yaml`` metadata for a chart reference or path."""
        args = ["show", "chart", location]
        if version:
            args += ["--version", version]
        data = yaml.safe_load(self._helm(*args)) or {}
        return ChartMetadata(
            name=data.get("name", ""),
            version=str(data.get("version", "")),
            app_version=str(data.get("appVersion", "")),
        )

    def get_release(self, name: str, namespace: str) -> Release:
        """Fetch a release; a missing one raises ``HelmError`` with "not found"."""
        out = self._helm("get", "metadata", name, "-n", namespace, "-o", "json")
        return Release.from_metadata(json.loads(out))

    def install_or_upgrade_chart(self, spec: ChartSpec) -> Release:
        args = [
            "upgrade", "--install", spec.release_name, spec.chart_name,
            "-n", spec.namespace,
            "--timeout", spec.timeout,
            "-o", "json",
        ]
        if spec.create_namespace:
            args.append("--create-namespace")
        if spec.wait:
            args.append("--wait")
        if spec.version:
            args += ["--version", spec.version]
        if spec.values_yaml:
            args += ["-f", "-"]
            out = self._helm(*args, stdin=spec.values_yaml)
        else:
            out = self._helm(*args)
        return Release.from_install(json.loads(out))

    def uninstall_release_by_name(self, name: str, namespace: str) -> None:
        self._helm("uninstall", name, "-n", namespace, "--wait")

    def latest_chart_version(self, chart: str) -> str:
        """Latest stable version of a repo chart from the local repo index."""
        results = json.loads(self._helm("search", "repo", chart, "-o", "json"))
        for entry in results:
            if entry.get("name") == chart:
                return entry.get("version", "")
        raise HelmError(f"no entry for {chart} in repo index")


def locate_airbyte_chart(chart_version: str, chart_flag: str, helm: HelmClient) -> tuple[str, str]:
    """Resolve the airbyte chart location and version.

    An explicit ``--chart`` is used as is. Without a version the latest
    stable chart in the repo index is pinned; if that lookup fails helm's
    own resolution of ``airbyte/airbyte`` is used.

    Returns:
        Tuple of (chart location, version); the version may be empty.
    """
    logger.debug("getting helm chart %r with version %r", AIRBYTE_CHART_NAME, chart_version)
    if chart_flag:
        return chart_flag, chart_version
    if not chart_version:
        try:
            chart_version = helm.latest_chart_version(AIRBYTE_CHART_NAME)
            logger.debug("determined latest airbyte chart version: %s", chart_version)
        except (HelmError, ValueError) as err:
            logger.debug("error determining latest airbyte chart, falling back to default behavior: %s", err)
    return AIRBYTE_CHART_NAME, chart_version
