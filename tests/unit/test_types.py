"""Unit tests for abctl.runtime.types module."""

from __future__ import annotations

import json
from itertools import product

import pytest

from abctl.errors import ContainerRuntimeError
from abctl.runtime.types import FEATURES, Capabilities, RuntimeInfo, RuntimeKind

DOCKER_INFO = {
    "CgroupVersion": "2",
    "Architecture": "x86_64",
    "NCPU": 8,
    "MemTotal": 16000000000,
    "OSType": "linux",
    "KernelVersion": "6.8.0",
    "SecurityOptions": ["name=apparmor", "name=seccomp,profile=builtin", "name=cgroupns"],
}

PODMAN_INFO = {
    "host": {
        "arch": "amd64",
        "os": "linux",
        "cpus": 4,
        "memTotal": 8000000000,
        "kernel": "6.8.0",
        "cgroupVersion": "v2",
        "security": {
            "apparmorEnabled": False,
            "rootless": True,
            "seccompEnabled": True,
            "seccompProfilePath": "/usr/share/containers/seccomp.json",
            "selinuxEnabled": True,
            "capabilities": "CAP_CHOWN",
        },
    },
}


class TestRuntimeKind:
    """Tests for RuntimeKind.parse."""

    @pytest.mark.parametrize(
        "value,expected",
        [("docker", RuntimeKind.DOCKER), ("PODMAN", RuntimeKind.PODMAN), (" auto ", RuntimeKind.AUTO),
         ("", RuntimeKind.AUTO), (None, RuntimeKind.AUTO), ("nerdctl", RuntimeKind.AUTO)],
    )
    def test_parse(self, value, expected):
        """Test case-insensitive parsing with AUTO fallback."""
        assert RuntimeKind.parse(value) is expected

    def test_str(self):
        """Test the string form is the runtime name."""
        assert str(RuntimeKind.PODMAN) == "podman"


class TestRuntimeInfo:
    """Tests for parsing runtime info output."""

    def test_docker_flat_document(self):
        """Test Docker's flat info document."""
        info = RuntimeInfo.from_json(json.dumps(DOCKER_INFO))
        assert info.cgroup_version == "2"
        assert info.cpus == 8
        assert info.host is None
        assert "name=apparmor" in info.security_options

    def test_podman_nested_document(self):
        """Test Podman's nested host block."""
        info = RuntimeInfo.from_json(json.dumps(PODMAN_INFO).encode())
        assert info.host.arch == "amd64"
        assert info.host.security.rootless is True
        assert info.effective_cgroup_version == "v2"

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]"])
    def test_invalid_output(self, raw):
        """Test unparsable output is tagged with runtime and operation."""
        with pytest.raises(ContainerRuntimeError) as exc_info:
            RuntimeInfo.from_json(raw, "docker")
        assert exc_info.value.runtime == "docker"
        assert exc_info.value.operation == "info"


class TestCapabilities:
    """Tests for capability derivation and compatibility."""

    def test_from_docker_security_options(self):
        """Test flat security options are scanned case-insensitively."""
        info = RuntimeInfo(security_options=["name=AppArmor", "name=seccomp,profile=builtin", "name=rootless"],
                           cgroup_version="2")
        caps = Capabilities.from_info(info)
        assert caps.supports_apparmor and caps.supports_seccomp and caps.supports_rootless
        assert caps.supports_cgroups
        assert not caps.supports_selinux

    def test_from_podman_security_block(self):
        """Test the Podman host.security block takes precedence."""
        caps = Capabilities.from_info(RuntimeInfo.from_dict(PODMAN_INFO))
        assert caps.supports_rootless
        assert caps.supports_seccomp
        assert caps.supports_selinux
        assert not caps.supports_apparmor
        assert caps.cgroup_version == "v2"

    def test_supports_feature(self):
        """Test feature lookup by name."""
        caps = Capabilities(supports_seccomp=True)
        assert caps.supports_feature("SECCOMP")
        assert not caps.supports_feature("rootless")
        assert not caps.supports_feature("gpu")

    def test_all_false_only_compatible_with_all_false(self):
        """Test an empty capability set only satisfies an empty requirement."""
        none = Capabilities()
        for flags in product([False, True], repeat=len(FEATURES)):
            required = Capabilities(**{f"supports_{name}": flag for name, flag in zip(FEATURES, flags)})
            assert none.is_compatible_with(required) is (not any(flags))

    def test_all_true_compatible_with_everything(self):
        """Test a full capability set satisfies every requirement."""
        full = Capabilities(**{f"supports_{name}": True for name in FEATURES})
        for flags in product([False, True], repeat=len(FEATURES)):
            required = Capabilities(**{f"supports_{name}": flag for name, flag in zip(FEATURES, flags)})
            assert full.is_compatible_with(required)

    def test_subset_compatibility(self):
        """Test absence of a requirement never blocks compatibility."""
        candidate = Capabilities(supports_rootless=True, supports_seccomp=True)
        assert candidate.is_compatible_with(Capabilities(supports_rootless=True))
        assert not candidate.is_compatible_with(Capabilities(supports_selinux=True))
