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

"""Command executors that shell out to the docker / podman binaries.

The typed API client does not expose context/connection listing or the
host security block of ``podman info``, so those go through the CLI.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import sh

from abctl import logger
from abctl.errors import ContainerRuntimeError
from abctl.runtime.types import RuntimeInfo, RuntimeKind, lookup_ci


@dataclass(frozen=True)
class DockerContext:
    name: str
    host: str


@dataclass(frozen=True)
class PodmanConnection:
    name: str
    uri: str


# ============================================================================
# Executors
# ============================================================================

class CommandExecutor:
    """Runs ``<binary> <args...>`` and returns raw stdout bytes.

    Subclasses set ``runtime_name`` and the argument vectors for the
    context listing and info calls.
    """

    runtime_name = ""
    context_args: tuple[str, ...] = ()
    info_args: tuple[str, ...] = ("info", "--format", "json")

    def __init__(self, binary: str | None = None, timeout: float | None = None) -> None:
        self.binary = binary or self.runtime_name
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"{type(self).__name__}(binary={self.binary!r})"

    @property
    def kind(self) -> RuntimeKind:
        return RuntimeKind(self.runtime_name)

    def execute(self, *args: str) -> bytes:
        """Run the runtime binary with ``args``.

        Args:
            *args: Arguments passed to the binary (e.g. ``"info", "--format", "json"``).

        Returns:
            Captured stdout.

        Raises:
            ContainerRuntimeError: If the binary is missing, exits non-zero or times out.
        """
        operation = args[0] if args else ""
        try:
            command = sh.Command(self.binary)
        except sh.CommandNotFound as err:
            raise ContainerRuntimeError(f"'{self.binary}' not found on PATH", self.runtime_name, operation) from err

        try:
            result = command(*args, _tty_out=False, _timeout=self.timeout, _return_cmd=True)
        except sh.ErrorReturnCode as err:
            stderr = err.stderr.decode(errors="replace").strip() if err.stderr else ""
            raise ContainerRuntimeError(
                f"exited with code {err.exit_code}: {stderr}", self.runtime_name, operation,
            ) from err
        except sh.TimeoutException as err:
            raise ContainerRuntimeError("timed out", self.runtime_name, operation) from err
        return result.stdout

    def version(self) -> bytes:
        return self.execute("version")

    def context_inspect(self) -> bytes:
        return self.execute(*self.context_args)

    def info(self) -> bytes:
        return self.execute(*self.info_args)

    def runtime_info(self) -> RuntimeInfo:
        """Fetch and normalize ``info`` output.

        Raises:
            ContainerRuntimeError: If the call fails or the JSON is unparsable.
        """
        return RuntimeInfo.from_json(self.info(), self.runtime_name)

    def _context_json(self) -> list[dict]:
        raw = self.context_inspect()
        try:
            data = json.loads(raw) if raw.strip() else []
        except ValueError as err:
            raise ContainerRuntimeError(f"failed to parse output: {err}", self.runtime_name, self.context_args[0]) from err
        if not isinstance(data, list):
            raise ContainerRuntimeError("failed to parse output: expected a JSON list", self.runtime_name, self.context_args[0])
        return [entry for entry in data if isinstance(entry, dict)]


class DockerExecutor(CommandExecutor):
    runtime_name = "docker"
    context_args = ("context", "inspect")

    def docker_contexts(self) -> list[DockerContext]:
        """Parse ``docker context inspect`` for the active context."""
        contexts = []
        for entry in self._context_json():
            endpoints = lookup_ci(entry, "Endpoints", default={})
            docker_endpoint = lookup_ci(endpoints, "docker", default={}) if isinstance(endpoints, dict) else {}
            host = lookup_ci(docker_endpoint, "Host", default="") if isinstance(docker_endpoint, dict) else ""
            contexts.append(DockerContext(name=lookup_ci(entry, "Name", default=""), host=host))
        return contexts


class PodmanExecutor(CommandExecutor):
    runtime_name = "podman"
    context_args = ("system", "connection", "list", "--format", "json")

    def podman_connections(self) -> list[PodmanConnection]:
        """Parse ``podman system connection list`` output."""
        return [
            PodmanConnection(
                name=lookup_ci(entry, "Name", default=""),
                uri=lookup_ci(entry, "URI", default=""),
            )
            for entry in self._context_json()
        ]


# ============================================================================
# Selection
# ============================================================================

def executor_for(kind: RuntimeKind) -> CommandExecutor:
    """Return the executor for a concrete runtime kind.

    Raises:
        ValueError: If ``kind`` is AUTO.
    """
    if kind is RuntimeKind.DOCKER:
        return DockerExecutor()
    if kind is RuntimeKind.PODMAN:
        return PodmanExecutor()
    raise ValueError(f"no executor for runtime '{kind}'")


def auto_detect_executor() -> CommandExecutor:
    """Pick the first runtime CLI that answers ``version``; Podman is tried first.

    Raises:
        ContainerRuntimeError: If neither binary works.
    """
    for executor in (PodmanExecutor(), DockerExecutor()):
        try:
            executor.version()
        except ContainerRuntimeError as err:
            logger.debug("executor %s unavailable: %s", executor.runtime_name, err)
            continue
        return executor
    raise ContainerRuntimeError("no container runtime found (tried podman, docker)")
