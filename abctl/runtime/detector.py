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

"""Socket detection for Docker and Podman.

Detectors only enumerate candidate endpoints; they never decide whether an
endpoint works. The ``AutoDetector`` does a cheap reachability check on the
candidates, and the client factory does the real liveness probe.
"""

from __future__ import annotations

import os
import stat
import sys
from collections.abc import Mapping
from pathlib import Path

from abctl import logger
from abctl.constants import (
    DOCKER_DESKTOP_DARWIN_SOCKET,
    DOCKER_DESKTOP_LINUX_SOCKET,
    DOCKER_SOCKET,
    DOCKER_WINDOWS_PIPE,
    ENV_XDG_RUNTIME_DIR,
    GOOS_DARWIN,
    GOOS_LINUX,
    GOOS_WINDOWS,
    PODMAN_MACHINE_DARWIN_SOCKET,
    PODMAN_ROOTFUL_SOCKET,
    PODMAN_ROOTLESS_SOCKET,
    PODMAN_WINDOWS_PIPE,
)
from abctl.errors import ContainerRuntimeError
from abctl.runtime.executor import DockerExecutor, PodmanExecutor
from abctl.runtime.types import RuntimeKind

UNIX_SCHEME = "unix://"


def current_goos() -> str:
    """Map ``sys.platform`` onto linux / darwin / windows."""
    if sys.platform.startswith("win"):
        return GOOS_WINDOWS
    if sys.platform == "darwin":
        return GOOS_DARWIN
    return GOOS_LINUX


def current_uid() -> int:
    getuid = getattr(os, "getuid", None)
    return getuid() if getuid else -1


def _dedupe(sockets: list[str]) -> list[str]:
    seen: set[str] = set()
    return [s for s in sockets if s and not (s in seen or seen.add(s))]


# ============================================================================
# Socket detectors
# ============================================================================

class SocketDetector:
    """Produces an ordered list of candidate endpoints for one runtime."""

    kind: RuntimeKind

    def detect_sockets(self, goos: str) -> list[str]:
        raise NotImplementedError


class DockerSocketDetector(SocketDetector):
    """Docker endpoints: the active CLI context first, then platform defaults.

    Args:
        executor: Docker CLI executor used to read the active context.
        home: Home directory for Docker Desktop socket paths.
    """

    kind = RuntimeKind.DOCKER

    def __init__(self, executor: DockerExecutor | None = None, home: Path | None = None) -> None:
        self.executor = executor or DockerExecutor()
        self.home = home or Path.home()

    def context_host(self) -> str:
        """Host of the active docker context, or empty if unavailable."""
        try:
            contexts = self.executor.docker_contexts()
        except ContainerRuntimeError as err:
            logger.debug("unable to inspect docker context: %s", err)
            return ""
        return contexts[0].host if contexts else ""

    def detect_sockets(self, goos: str) -> list[str]:
        sockets = [self.context_host()]
        if goos == GOOS_WINDOWS:
            sockets.append(DOCKER_WINDOWS_PIPE)
        elif goos == GOOS_DARWIN:
            sockets += [DOCKER_SOCKET, DOCKER_DESKTOP_DARWIN_SOCKET.format(home=self.home)]
        else:
            sockets += [DOCKER_SOCKET, DOCKER_DESKTOP_LINUX_SOCKET.format(home=self.home)]
        return _dedupe(sockets)


class PodmanSocketDetector(SocketDetector):
    """Podman endpoints.

    Order: configured connections, the rootless user socket (non-root only),
    the rootful socket, the podman machine socket on darwin, the Docker
    compatibility socket, and the named pipe on windows. With
    ``prefer_rootless=False`` the rootful socket moves ahead of the user one.

    Args:
        executor: Podman CLI executor used to list connections.
        home: Home directory for podman machine socket paths.
        uid: Effective uid; defaults to the current process uid.
        env: Environment used to read ``XDG_RUNTIME_DIR``.
        prefer_rootless: Try the user socket before the rootful one.
    """

    kind = RuntimeKind.PODMAN

    def __init__(
        self,
        executor: PodmanExecutor | None = None,
        home: Path | None = None,
        uid: int | None = None,
        env: Mapping[str, str] | None = None,
        prefer_rootless: bool = True,
    ) -> None:
        self.executor = executor or PodmanExecutor()
        self.home = home or Path.home()
        self.uid = current_uid() if uid is None else uid
        self.env = os.environ if env is None else env
        self.prefer_rootless = prefer_rootless

    def connection_uris(self) -> list[str]:
        try:
            connections = self.executor.podman_connections()
        except ContainerRuntimeError as err:
            logger.debug("unable to list podman connections: %s", err)
            return []
        return [conn.uri for conn in connections]

    def rootless_socket(self) -> str:
        runtime_dir = self.env.get(ENV_XDG_RUNTIME_DIR) or f"/run/user/{self.uid}"
        return PODMAN_ROOTLESS_SOCKET.format(runtime_dir=runtime_dir)

    def detect_sockets(self, goos: str) -> list[str]:
        sockets = self.connection_uris()

        local = [PODMAN_ROOTFUL_SOCKET]
        if self.uid != 0 and goos != GOOS_WINDOWS:
            if self.prefer_rootless:
                local.insert(0, self.rootless_socket())
            else:
                local.append(self.rootless_socket())
        sockets += local

        if goos == GOOS_DARWIN:
            sockets.append(PODMAN_MACHINE_DARWIN_SOCKET.format(home=self.home))
        sockets.append(DOCKER_SOCKET)
        if goos == GOOS_WINDOWS:
            sockets.append(PODMAN_WINDOWS_PIPE)
        return _dedupe(sockets)


# ============================================================================
# Auto detection
# ============================================================================

def socket_available(endpoint: str) -> bool:
    """Cheap reachability check.

    A ``unix://`` endpoint must exist and be a socket; other schemes
    (``npipe://``, ``tcp://``) cannot be checked without connecting and are
    assumed available.
    """
    if not endpoint.startswith(UNIX_SCHEME):
        return True
    try:
        mode = os.stat(endpoint[len(UNIX_SCHEME):]).st_mode
    except OSError as err:
        logger.debug("socket not accessible: %s (%s)", endpoint, err)
        return False
    return stat.S_ISSOCK(mode)


class AutoDetector:
    """Chooses between Podman and Docker; Podman is tried first."""

    def __init__(
        self,
        podman: PodmanSocketDetector | None = None,
        docker: DockerSocketDetector | None = None,
        goos: str | None = None,
    ) -> None:
        self.detectors: list[SocketDetector] = [podman or PodmanSocketDetector(), docker or DockerSocketDetector()]
        self.goos = goos or current_goos()

    def detect_runtime(self) -> tuple[RuntimeKind, list[str]]:
        """Return the first runtime with a reachable socket and its candidates.

        Raises:
            ContainerRuntimeError: If no runtime has a reachable socket.
        """
        logger.debug("starting runtime detection on %s", self.goos)
        for detector in self.detectors:
            try:
                sockets = detector.detect_sockets(self.goos)
            except ContainerRuntimeError as err:
                logger.debug("%s socket detection failed: %s", detector.kind, err)
                continue
            logger.debug("found %s sockets: %s", detector.kind, sockets)
            if any(socket_available(s) for s in sockets):
                logger.debug("%s runtime available", detector.kind)
                return detector.kind, sockets
            logger.debug("%s sockets found but not available", detector.kind)
        raise ContainerRuntimeError("no container runtime detected")
