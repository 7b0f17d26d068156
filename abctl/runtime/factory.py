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

"""Typed API client construction.

Candidates are tried in order; a client is only handed out after a
successful ``ping`` against its own endpoint.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

import docker
import docker.errors
import requests.exceptions

from abctl import logger
from abctl.config import RuntimeConfig
from abctl.constants import ENV_DOCKER_HOST
from abctl.errors import ContainerRuntimeError, DockerError
from abctl.runtime.detector import (
    AutoDetector,
    DockerSocketDetector,
    PodmanSocketDetector,
    SocketDetector,
    current_goos,
)
from abctl.runtime.types import RuntimeKind

# docker-py surfaces connection problems as requests errors as well as its own.
PROBE_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException, OSError)


@dataclass(frozen=True)
class ProbeFailure:
    """One endpoint that failed its liveness probe."""

    runtime: RuntimeKind
    host: str
    reason: str


class ClientFactory:
    """Builds one ping-validated ``docker.DockerClient``.

    Args:
        config: Runtime configuration; loaded from the environment if omitted.
        detectors: Socket detector per concrete runtime kind.
        auto_detector: Detector used when the requested kind is AUTO.
        client_cls: Client class, ``docker.DockerClient`` by default.
        goos: Operating system identifier passed to the detectors.
        env: Environment consulted for the ``DOCKER_HOST`` override.
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        detectors: Mapping[RuntimeKind, SocketDetector] | None = None,
        auto_detector: AutoDetector | None = None,
        client_cls: type = docker.DockerClient,
        goos: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or RuntimeConfig()
        self.goos = goos or current_goos()
        self.detectors = dict(detectors) if detectors else {
            RuntimeKind.DOCKER: DockerSocketDetector(),
            RuntimeKind.PODMAN: PodmanSocketDetector(prefer_rootless=self.config.prefer_rootless),
        }
        self.auto_detector = auto_detector or AutoDetector(
            podman=self.detectors.get(RuntimeKind.PODMAN),
            docker=self.detectors.get(RuntimeKind.DOCKER),
            goos=self.goos,
        )
        self.client_cls = client_cls
        self.env = os.environ if env is None else env
        self.failures: list[ProbeFailure] = []
        self.endpoint = ""

    def create_client(self, kind: RuntimeKind) -> docker.DockerClient:
        """Return a validated client for ``kind`` (AUTO is detected first).

        Raises:
            DockerError: If detection fails or no candidate answers a ping.
        """
        client, _ = self.create_client_with_kind(kind)
        return client

    def create_client_with_kind(self, kind: RuntimeKind) -> tuple[docker.DockerClient, RuntimeKind]:
        """Like ``create_client`` but also returns the resolved runtime kind.

        An explicit socket skips detection; with AUTO its kind is guessed
        from the endpoint name.
        """
        if kind is RuntimeKind.AUTO and self.config.socket:
            kind = RuntimeKind.PODMAN if "podman" in self.config.socket else RuntimeKind.DOCKER
            logger.debug("explicit socket %s, assuming %s runtime", self.config.socket, kind)
        elif kind is RuntimeKind.AUTO:
            try:
                kind, _ = self.auto_detector.detect_runtime()
            except ContainerRuntimeError as err:
                raise DockerError(f"unable to detect container runtime: {err}") from err
            logger.debug("auto-detected %s runtime", kind)
        return self._create_for(kind), kind

    def candidates(self, kind: RuntimeKind) -> list[str]:
        """Endpoints to try for ``kind``, in order and without duplicates.

        An explicit socket is the only candidate and is used as is.
        Detected candidates are each replaced by ``DOCKER_HOST`` when that
        is set in the environment.
        """
        if self.config.socket:
            return [self.config.socket]
        try:
            detected = self.detectors[kind].detect_sockets(self.goos)
        except ContainerRuntimeError as err:
            raise DockerError(f"unable to detect {kind} sockets: {err}") from err
        hosts: list[str] = []
        for candidate in detected:
            host = self.resolve_host(candidate)
            if host not in hosts:
                hosts.append(host)
        return hosts

    def resolve_host(self, candidate: str) -> str:
        """A ``DOCKER_HOST`` in the environment replaces a detected candidate."""
        return self.env.get(ENV_DOCKER_HOST) or candidate

    def _create_for(self, kind: RuntimeKind) -> docker.DockerClient:
        failed: list[str] = []
        for host in self.candidates(kind):
            try:
                client = self._create_and_ping(host)
            except PROBE_ERRORS as err:
                self.failures.append(ProbeFailure(runtime=kind, host=host, reason=str(err)))
                failed.append(host)
                logger.debug("error connecting to %s host %s: %s", kind, host, err)
                continue
            self.endpoint = host
            return client
        raise DockerError(f"unable to create {kind} client (tried: {', '.join(failed) or 'no endpoints'})")

    def _create_and_ping(self, host: str) -> docker.DockerClient:
        client = self.client_cls(base_url=host, version="auto")
        try:
            client.ping()
        except PROBE_ERRORS:
            client.close()
            raise
        return client
