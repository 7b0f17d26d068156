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

"""Utility functions for kubectl, cancellable commands, port checks and command checks."""

from __future__ import annotations

import errno
import socket
import subprocess
import threading
from typing import Any

import sh

from abctl import logger
from abctl.constants import CANCEL_POLL_INTERVAL_SECONDS, KUBECTL_TIMEOUT_SECONDS, PRIVILEGED_PORT_LIMIT
from abctl.errors import InstallCancelledError, PortError


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    if not sh.which(cmd):
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.")


def run_cancellable(
    command: sh.Command,
    *args: Any,
    cancel: threading.Event | None = None,
    poll_interval: float = CANCEL_POLL_INTERVAL_SECONDS,
    **kwargs: Any,
) -> str:
    """Run an sh command, terminating it as soon as ``cancel`` is set.

    Without an event the command runs in the foreground.

    Args:
        command: sh command (possibly baked).
        *args: Command arguments.
        cancel: Event that stops the command when set.
        poll_interval: Seconds between checks of the running process.
        **kwargs: sh special keyword arguments (``_in``, ``_env``).

    Returns:
        The command's stdout.

    Raises:
        sh.ErrorReturnCode: If the command exits non-zero.
        InstallCancelledError: If ``cancel`` was set before the command finished.
    """
    if cancel is None:
        return str(command(*args, **kwargs))
    if cancel.is_set():
        raise InstallCancelledError(f"{command} cancelled before it started")

    proc = command(*args, _bg=True, _bg_exc=False, **kwargs)
    while proc.is_alive():
        if cancel.wait(poll_interval):
            logger.debug("terminating %s", command)
            proc.terminate()
            try:
                proc.wait()
            except sh.ErrorReturnCode as err:
                logger.debug("%s exited after termination: %s", command, err.exit_code)
            raise InstallCancelledError(f"{command} cancelled")
    proc.wait()
    return str(proc)


def run_kubectl(
    args: list[str],
    timeout: int = KUBECTL_TIMEOUT_SECONDS,
    input: str | None = None,
) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        timeout: Maximum seconds to wait for the command to complete.
        input: Text fed to kubectl's stdin (for ``apply -f -``).

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def popen_kubectl(args: list[str]) -> subprocess.Popen:
    """Start a long-running kubectl command (``--watch``, ``logs -f``) with its stdout piped as text.

    Raises:
        OSError: If kubectl cannot be started.
    """
    return subprocess.Popen(
        ["kubectl", *args],
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
    )


def port_available(port: int, host: str = "localhost") -> None:
    """Bind and immediately release ``host:port``.

    Privileged ports cannot be bound without root, so they are only warned
    about and assumed free.

    Raises:
        PortError: If the port is already in use or cannot be checked.
    """
    if port < PRIVILEGED_PORT_LIMIT:
        logger.warning("port %d is a privileged port; skipping availability check", port)
        return

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as err:
            if err.errno == errno.EADDRINUSE:
                raise PortError(f"port {port} is already in use") from err
            raise PortError(f"unable to check port {port}: {err}") from err
    logger.debug("port %d is available", port)
