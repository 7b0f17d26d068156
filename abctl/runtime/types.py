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

"""Runtime kinds, normalized runtime info and derived capabilities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from abctl.errors import ContainerRuntimeError

FEATURES = ("rootless", "cgroups", "seccomp", "apparmor", "selinux")


class RuntimeKind(Enum):
    """Container runtime flavor. ``AUTO`` is only ever a request value."""

    DOCKER = "docker"
    PODMAN = "podman"
    AUTO = "auto"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | None) -> RuntimeKind:
        """Parse a runtime name case-insensitively; unknown values mean AUTO."""
        if not value:
            return cls.AUTO
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.AUTO


# ============================================================================
# Runtime info
# ============================================================================

def lookup_ci(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Case-insensitive lookup of the first present key."""
    lowered = {k.lower(): v for k, v in data.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value is not None:
            return value
    return default


@dataclass(frozen=True)
class PodmanSecurityInfo:
    apparmor_enabled: bool = False
    rootless: bool = False
    seccomp_enabled: bool = False
    seccomp_profile_path: str = ""
    selinux_enabled: bool = False
    capabilities: str = ""


@dataclass(frozen=True)
class PodmanHostInfo:
    arch: str = ""
    os: str = ""
    cpus: int = 0
    mem_total: int = 0
    kernel: str = ""
    cgroup_version: str = ""
    security: PodmanSecurityInfo | None = None


@dataclass(frozen=True)
class RuntimeInfo:
    """System facts reported by ``<runtime> info --format json``.

    Docker reports a flat document (``CgroupVersion``, ``SecurityOptions``,
    ...), Podman nests most of it under ``host``. Both shapes parse into
    this one type; the Podman part is kept in ``host``.
    """

    cgroup_version: str = ""
    cgroup_controllers: list[str] = field(default_factory=list)
    architecture: str = ""
    cpus: int = 0
    mem_total: int = 0
    os_type: str = ""
    kernel_version: str = ""
    security_options: list[str] = field(default_factory=list)
    host: PodmanHostInfo | None = None

    @property
    def effective_cgroup_version(self) -> str:
        if self.cgroup_version:
            return self.cgroup_version
        return self.host.cgroup_version if self.host else ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuntimeInfo:
        host = None
        raw_host = lookup_ci(data, "host")
        if isinstance(raw_host, dict):
            security = None
            raw_sec = lookup_ci(raw_host, "security")
            if isinstance(raw_sec, dict):
                security = PodmanSecurityInfo(
                    apparmor_enabled=bool(lookup_ci(raw_sec, "apparmorEnabled", default=False)),
                    rootless=bool(lookup_ci(raw_sec, "rootless", default=False)),
                    seccomp_enabled=bool(lookup_ci(raw_sec, "seccompEnabled", default=False)),
                    seccomp_profile_path=lookup_ci(raw_sec, "seccompProfilePath", default=""),
                    selinux_enabled=bool(lookup_ci(raw_sec, "selinuxEnabled", default=False)),
                    capabilities=lookup_ci(raw_sec, "capabilities", default=""),
                )
            host = PodmanHostInfo(
                arch=lookup_ci(raw_host, "arch", default=""),
                os=lookup_ci(raw_host, "os", default=""),
                cpus=int(lookup_ci(raw_host, "cpus", default=0)),
                mem_total=int(lookup_ci(raw_host, "memTotal", default=0)),
                kernel=lookup_ci(raw_host, "kernel", default=""),
                cgroup_version=lookup_ci(raw_host, "cgroupVersion", "cgroupsVersion", default=""),
                security=security,
            )

        return cls(
            cgroup_version=lookup_ci(data, "cgroupVersion", default=""),
            cgroup_controllers=list(lookup_ci(data, "cgroupController", "cgroupControllers", default=[])),
            architecture=lookup_ci(data, "architecture", default=""),
            cpus=int(lookup_ci(data, "ncpu", default=0)),
            mem_total=int(lookup_ci(data, "memTotal", default=0)),
            os_type=lookup_ci(data, "osType", default=""),
            kernel_version=lookup_ci(data, "kernelVersion", default=""),
            security_options=list(lookup_ci(data, "securityOptions", default=[])),
            host=host,
        )

    @classmethod
    def from_json(cls, raw: bytes | str, runtime: str = "") -> RuntimeInfo:
        """Parse raw ``info`` output.

        Raises:
            ContainerRuntimeError: If the output is not a JSON object.
        """
        try:
            data = json.loads(raw)
        except ValueError as err:
            raise ContainerRuntimeError(f"failed to parse runtime info: {err}", runtime, "info") from err
        if not isinstance(data, dict):
            raise ContainerRuntimeError("failed to parse runtime info: expected a JSON object", runtime, "info")
        return cls.from_dict(data)


# ============================================================================
# Capabilities
# ============================================================================

@dataclass(frozen=True)
class Capabilities:
    """Boolean feature projection of a ``RuntimeInfo``."""

    supports_rootless: bool = False
    supports_cgroups: bool = False
    supports_seccomp: bool = False
    supports_apparmor: bool = False
    supports_selinux: bool = False
    cgroup_version: str = ""
    security_options: list[str] = field(default_factory=list)

    @classmethod
    def from_info(cls, info: RuntimeInfo) -> Capabilities:
        """Derive capabilities, preferring Podman's ``host.security`` block.

        Without it, the flat ``security_options`` strings are scanned
        case-insensitively (e.g. ``name=seccomp,profile=builtin``).
        """
        cgroup_version = info.effective_cgroup_version
        security = info.host.security if info.host else None
        if security is not None:
            return cls(
                supports_rootless=security.rootless,
                supports_cgroups=bool(cgroup_version),
                supports_seccomp=security.seccomp_enabled,
                supports_apparmor=security.apparmor_enabled,
                supports_selinux=security.selinux_enabled,
                cgroup_version=cgroup_version,
                security_options=list(info.security_options),
            )

        lowered = [opt.lower() for opt in info.security_options]

        def _any(needle: str) -> bool:
            return any(needle in opt for opt in lowered)

        return cls(
            supports_rootless=_any("rootless"),
            supports_cgroups=bool(cgroup_version),
            supports_seccomp=_any("seccomp"),
            supports_apparmor=_any("apparmor"),
            supports_selinux=_any("selinux"),
            cgroup_version=cgroup_version,
            security_options=list(info.security_options),
        )

    def supports_feature(self, feature: str) -> bool:
        name = feature.lower()
        if name not in FEATURES:
            return False
        return getattr(self, f"supports_{name}")

    def features(self) -> list[str]:
        return [name for name in FEATURES if getattr(self, f"supports_{name}")]

    def is_compatible_with(self, required: Capabilities) -> bool:
        """True if every feature ``required`` asks for is supported here."""
        return all(self.supports_feature(name) for name in required.features())
