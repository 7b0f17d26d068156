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

"""The runtime provider: a validated API client plus a CLI executor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import docker
import docker.errors

from abctl import logger
from abctl.config import RuntimeConfig
from abctl.errors import ContainerRuntimeError, DockerError
from abctl.runtime.detector import current_uid
from abctl.runtime.executor import CommandExecutor, auto_detect_executor, executor_for
from abctl.runtime.factory import PROBE_ERRORS, ClientFactory
from abctl.runtime.types import Capabilities, RuntimeInfo, RuntimeKind


@dataclass(frozen=True)
class RuntimeVersion:
    version: str
    arch: str
    platform: str
    runtime: str


class RuntimeProvider:
    """Owns one validated client and one command executor.

    The two are chosen independently and may disagree on the runtime; the
    client serves API calls and the executor serves CLI introspection.
    The provider closes the client when it is closed or used as a context
    manager.

    Args:
        runtime: Resolved runtime kind, never AUTO.
        client: Ping-validated API client.
        executor: Command executor for ``info``/context calls.
        config: Runtime configuration the provider was built from.
        endpoint: Host the client is bound to.
    """

    def __init__(
        self,
        runtime: RuntimeKind,
        client: docker.DockerClient,
        executor: CommandExecutor,
        config: RuntimeConfig,
        endpoint: str = "",
    ) -> None:
        if runtime is RuntimeKind.AUTO:
            raise ValueError("a provider must have a concrete runtime")
        self.runtime = runtime
        self.client = client
        self.executor = executor
        self.config = config
        self.endpoint = endpoint

    @classmethod
    def create(
        cls,
        kind: RuntimeKind = RuntimeKind.AUTO,
        config: RuntimeConfig | None = None,
        factory: ClientFactory | None = None,
        executor: CommandExecutor | None = None,
    ) -> RuntimeProvider:
        """Compose a provider for ``kind``.

        With AUTO the configured runtime is used; if that is AUTO as well the
        executor is auto-detected (or, with an explicit socket, matched to the
        client) and the provider takes its runtime from it. The client is
        closed if no executor can be chosen.

        Raises:
            DockerError: If no client could be created.
            ContainerRuntimeError: If executor auto-detection fails.
        """
        config = config or RuntimeConfig()
        if kind is RuntimeKind.AUTO:
            kind = config.runtime

        factory = factory or ClientFactory(config)
        client, client_kind = factory.create_client_with_kind(kind)

        try:
            if executor is None:
                if kind is not RuntimeKind.AUTO:
                    executor = executor_for(kind)
                elif config.socket:
                    executor = executor_for(client_kind)
                else:
                    executor = auto_detect_executor()
        except ContainerRuntimeError:
            client.close()
            raise
        if kind is RuntimeKind.AUTO:
            kind = executor.kind
        if kind is not client_kind:
            logger.debug("executor runtime %s differs from client runtime %s", kind, client_kind)
        return cls(kind, client, executor, config, endpoint=factory.endpoint)

    @classmethod
    def default(cls) -> RuntimeProvider:
        """Provider for the runtime selected by the environment, else AUTO."""
        config = RuntimeConfig()
        return cls.create(config.runtime, config=config)

    def __str__(self) -> str:
        return f"{self.runtime} provider"

    def __enter__(self) -> RuntimeProvider:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def system_info(self) -> RuntimeInfo:
        return self.executor.runtime_info()

    def capabilities(self) -> Capabilities:
        """Capabilities derived from a fresh ``info`` call.

        Introspection failures degrade to an all-false capability set.
        """
        try:
            info = self.system_info()
        except ContainerRuntimeError as err:
            logger.debug("unable to get runtime info: %s", err)
            return Capabilities()
        return Capabilities.from_info(info)

    def is_rootless(self) -> bool:
        """Rootless mode as reported by the runtime.

        Falls back to the configured preference when the runtime cannot be
        introspected: rootless if preferred and not running as root.
        """
        try:
            info = self.system_info()
        except ContainerRuntimeError as err:
            logger.debug("unable to determine rootless mode: %s", err)
            return self.config.prefer_rootless and current_uid() != 0
        return Capabilities.from_info(info).supports_rootless

    def version(self) -> RuntimeVersion:
        """Server version of the connected daemon.

        Raises:
            DockerError: If the daemon does not answer.
        """
        try:
            ver = self.client.version()
        except PROBE_ERRORS as err:
            raise DockerError(f"unable to determine server version: {err}") from err
        return RuntimeVersion(
            version=ver.get("Version", ""),
            arch=ver.get("Arch", ""),
            platform=(ver.get("Platform") or {}).get("Name", ""),
            runtime=str(self.runtime),
        )

    def inspect_container(self, name: str) -> dict[str, Any] | None:
        """Low-level inspect of a container, or None if it does not exist.

        Raises:
            DockerError: On any other API failure.
        """
        try:
            return self.client.api.inspect_container(name)
        except docker.errors.NotFound:
            return None
        except PROBE_ERRORS as err:
            raise DockerError(f"unable to inspect container {name}: {err}") from err
