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

"""Configuration classes and install options."""

from __future__ import annotations

import ipaddress
import re
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from abctl.constants import (
    DATA_DIR,
    DEFAULT_CHART_TIMEOUT,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_HTTP_PORT,
    DEFAULT_INSTALL_MAX_ATTEMPTS,
    DEFAULT_INSTALL_RETRY_DELAY_SECONDS,
    DEFAULT_KUBECONFIG,
    DEFAULT_NAMESPACE_DELETE_TIMEOUT_SECONDS,
    ENV_CONTAINER_HOST,
    ENV_DOCKER_HOST,
    ENV_KIND_PROVIDER,
    ENV_PREFER_ROOTFUL,
    ENV_RUNTIME,
    PSQL_VERSION_FILE,
    PV_MINIO,
    PV_PSQL,
)
from abctl.errors import AirbyteDirError, InvalidHostError, IpAddressForHostError
from abctl.runtime.types import RuntimeKind

_HOST_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


# ============================================================================
# Configuration classes
# ============================================================================

class RuntimeConfig(BaseSettings):
    """Container runtime selection, auto-loaded from the environment.

    Attributes:
        runtime: Requested runtime. ``ABCTL_CONTAINER_RUNTIME`` wins over
            kind's ``KIND_EXPERIMENTAL_PROVIDER``; unknown values mean AUTO.
        socket: Explicit endpoint. ``CONTAINER_HOST`` wins over ``DOCKER_HOST``.
            When set, socket detection is skipped entirely.
        prefer_rootful: Any non-empty ``ABCTL_PREFER_ROOTFUL`` value.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        env_ignore_empty=True,
        frozen=True,
        populate_by_name=True,
    )

    runtime: RuntimeKind = Field(
        default=RuntimeKind.AUTO,
        validation_alias=AliasChoices(ENV_RUNTIME, ENV_KIND_PROVIDER),
    )
    socket: str | None = Field(
        default=None,
        validation_alias=AliasChoices(ENV_CONTAINER_HOST, ENV_DOCKER_HOST),
    )
    prefer_rootful: str = Field(default="", validation_alias=ENV_PREFER_ROOTFUL)

    @field_validator("runtime", mode="before")
    @classmethod
    def _parse_runtime(cls, value: object) -> RuntimeKind:
        if isinstance(value, RuntimeKind):
            return value
        return RuntimeKind.parse(str(value))

    @property
    def prefer_rootless(self) -> bool:
        return not self.prefer_rootful


class LocalConfig(BaseSettings):
    """Local install configuration, auto-loaded from ABCTL_* env vars.

    Attributes:
        cluster_name: Name of the kind cluster.
        port: Host port the ingress is published on.
        kubeconfig: Kubeconfig file kind writes and helm/kubectl read.
        install_max_attempts: Chart install attempts while helm reports a
            stuck release.
        install_retry_delay: Seconds to wait between those attempts.
        chart_timeout: Helm ``--timeout`` for chart installs.
        namespace_delete_timeout: Seconds to wait for the airbyte namespace
            to disappear during a persisted uninstall.
    """

    model_config = SettingsConfigDict(env_prefix="ABCTL_", extra="ignore")

    cluster_name: str = DEFAULT_CLUSTER_NAME
    port: int = Field(default=DEFAULT_HTTP_PORT, ge=1, le=65535)
    kubeconfig: Path = DEFAULT_KUBECONFIG
    install_max_attempts: int = Field(default=DEFAULT_INSTALL_MAX_ATTEMPTS, ge=1, le=10)
    install_retry_delay: float = Field(default=DEFAULT_INSTALL_RETRY_DELAY_SECONDS, ge=0)
    chart_timeout: str = Field(default=DEFAULT_CHART_TIMEOUT, pattern=r"^\d+[smh]$")
    namespace_delete_timeout: float = Field(default=DEFAULT_NAMESPACE_DELETE_TIMEOUT_SECONDS, ge=0)

    @property
    def kube_context(self) -> str:
        return f"kind-{self.cluster_name}"


# ============================================================================
# Install options
# ============================================================================

@dataclass(frozen=True)
class ExtraVolumeMount:
    """A host directory mounted into the kind control-plane node."""

    host_path: str
    container_path: str

    @classmethod
    def parse(cls, value: str) -> ExtraVolumeMount:
        """Parse ``host:container``.

        Raises:
            ValueError: If either side is missing.
        """
        host, sep, container = value.rpartition(":")
        if not sep or not host or not container:
            raise ValueError(f"volume '{value}' is not of the form <HOST_PATH>:<GUEST_PATH>")
        return cls(host_path=host, container_path=container)


@dataclass(frozen=True)
class InstallOptions:
    """Options for one ``local install`` invocation.

    Attributes:
        chart_version: Airbyte chart version, or empty for latest.
        chart: Explicit chart reference (path or repo/name), or empty.
        values_file: User Helm values file merged over the generated values.
        secrets: Paths of Kubernetes secret manifests to apply.
        hosts: Hostnames the ingress should accept.
        extra_mounts: Additional kind node volume mounts.
        local_storage: Use local storage instead of the minio volume.
        enable_psql17: Whether the psql17 database volume layout is used.
        low_resource_mode: Run with reduced resource requests.
        insecure_cookies: Allow auth cookies over plain HTTP.
        disable_auth: Turn off the airbyte auth layer.
        installation_id: Value of ``AIRBYTE_INSTALLATION_ID``.
        docker_server: Registry server for the docker-auth secret.
        docker_user: Registry username.
        docker_pass: Registry password.
        docker_email: Registry email.
        no_browser: Skip launching the browser after install.
    """

    chart_version: str = ""
    chart: str = ""
    values_file: str = ""
    secrets: tuple[str, ...] = ()
    hosts: tuple[str, ...] = ()
    extra_mounts: tuple[ExtraVolumeMount, ...] = ()
    local_storage: bool = False
    enable_psql17: bool = True
    low_resource_mode: bool = False
    insecure_cookies: bool = False
    disable_auth: bool = False
    installation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    docker_server: str = "https://index.docker.io/v1/"
    docker_user: str = ""
    docker_pass: str = ""
    docker_email: str = ""
    no_browser: bool = False

    @property
    def docker_auth(self) -> bool:
        return bool(self.docker_user and self.docker_pass)


def validate_host(host: str) -> None:
    """Validate a ``--host`` value.

    Raises:
        IpAddressForHostError: If the value is an IP address.
        InvalidHostError: If the value is not a lowercase domain name.
    """
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        raise IpAddressForHostError()
    if not _HOST_PATTERN.match(host):
        raise InvalidHostError(f"invalid host - {host}")


def supports_minio(data_dir: Path = DATA_DIR) -> bool:
    """Whether a legacy minio volume exists from a previous install.

    Raises:
        AirbyteDirError: If the data directory cannot be inspected.
    """
    try:
        return (data_dir / PV_MINIO).is_dir()
    except OSError as err:
        raise AirbyteDirError(f"failed to determine if minio physical volume dir exists: {err}") from err


def enable_psql17(data_dir: Path = DATA_DIR) -> bool:
    """Whether the database volume is absent or already on PostgreSQL 17.

    Raises:
        AirbyteDirError: If the version file exists but cannot be read.
    """
    version_file = data_dir / PV_PSQL / PSQL_VERSION_FILE
    try:
        version = version_file.read_text().strip()
    except FileNotFoundError:
        return True
    except OSError as err:
        raise AirbyteDirError(f"failed to determine if any previous psql version exists: {err}") from err
    return version in ("", "17")
