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

"""Error types raised by abctl.

``AbctlError`` subclasses are user-facing: each carries a ``help`` text the
CLI prints after the error message. The remaining exceptions are raised by
the collaborator wrappers (container runtime, helm, kind) and are usually
wrapped into an ``AbctlError`` by the caller with ``raise ... from err``.
"""

from __future__ import annotations

_REINSTALL_HINT = (
    'If this error persists, you may need to run the "abctl local uninstall" command\n'
    'before attempting to run the "abctl local install" command again.\n'
    "Your data will persist between the uninstall and install commands."
)
_PORT_HINT = (
    "This could be an indication that the ingress port is already in use by a different application.\n"
    "The ingress port can be changed by passing the flag --port."
)


# ============================================================================
# User-facing errors
# ============================================================================

class AbctlError(Exception):
    """Base class for errors that carry a remediation hint."""

    message = "abctl error"
    help = ""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class AirbyteDirError(AbctlError):
    message = "airbyte directory is inaccessible"
    help = (
        "The ~/.airbyte directory is inaccessible.\n"
        "You may need to remove this directory before trying your command again."
    )


class DockerError(AbctlError):
    message = "error communicating with docker"
    help = (
        "An error occurred while communicating with the container runtime daemon.\n"
        "Ensure that Docker (or Podman) is running and is accessible. "
        "You may need to upgrade to a newer version.\n"
        "For additional help please visit https://docs.docker.com/get-docker/"
    )


class HelmStuckError(AbctlError):
    message = "another helm operation (install/upgrade/rollback) is in progress"
    help = "An error occurred while attempting to run a helm install or upgrade.\n" + _REINSTALL_HINT


class KubernetesError(AbctlError):
    message = "error communicating with kubernetes"
    help = "An error occurred while communicating with the Kubernetes cluster.\n" + _REINSTALL_HINT


class IngressError(AbctlError):
    message = "error configuring ingress"
    help = "An error occurred while configuring ingress.\n" + _PORT_HINT


class PortError(AbctlError):
    message = "error verifying port availability"
    help = "An error occurred while verifying if the requested port is available.\n" + _PORT_HINT


class IpAddressForHostError(AbctlError):
    message = "invalid host - can't use an IP address"
    help = (
        "Looks like you provided an IP address to the --host flag.\n"
        "This won't work, because Kubernetes ingress rules require a lowercase domain name.\n"
        "By default, abctl will allow access from any hostname or IP, so you might not need the --host flag."
    )


class InvalidHostError(AbctlError):
    message = "invalid host"
    help = (
        'The --host flag expects a lowercase domain name, e.g. "example.com".\n'
        "IP addresses won't work. Ports won't work (e.g. example:8000). "
        "URLs won't work (e.g. http://example.com).\n"
        "By default, abctl will allow access from any hostname or IP, so you might not need the --host flag."
    )


class AirbyteAPIError(AbctlError):
    message = "error communicating with the airbyte api"
    help = (
        "An error occurred while communicating with the local Airbyte API.\n"
        "Ensure that Airbyte is installed and running with \"abctl local status\"."
    )


class BootloaderFailedError(AbctlError):
    message = "bootloader failed"
    help = (
        "The bootloader failed its initialization checks or migrations. "
        "Try running again with --verbose to see the full bootloader logs."
    )


# ============================================================================
# Collaborator errors
# ============================================================================

class ContainerRuntimeError(Exception):
    """A container runtime could not be detected or its CLI failed.

    Attributes:
        runtime: Runtime name (``docker``/``podman``), or empty when unknown.
        operation: The attempted operation (e.g. ``info``), or empty.
    """

    def __init__(self, message: str, runtime: str = "", operation: str = "") -> None:
        prefix = " ".join(part for part in (runtime, operation) if part)
        super().__init__(f"{prefix}: {message}" if prefix else message)
        self.runtime = runtime
        self.operation = operation


class HelmError(Exception):
    """A helm invocation exited non-zero.

    Attributes:
        stderr: Captured helm stderr.
        diagnostics: Pod/log excerpts attached after a failed install.
    """

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr
        self.diagnostics: list[str] = []


class ClusterError(Exception):
    """A kind cluster operation failed."""


class InstallCancelledError(Exception):
    """The install was cancelled before it could complete."""
