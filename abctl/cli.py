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

"""
cli.py - Airbyte local installer CLI.

Subcommands:
    local      Manage the local installation (install, uninstall, status)
    runtime    Inspect the container runtime (info, sockets)

Examples:
    # Install the latest Airbyte chart on port 8000
    abctl local install

    # Install a pinned chart version on a different port
    abctl local install --chart-version 1.5.1 --port 9000

    # Remove everything, including persisted data
    abctl local uninstall --persisted

    # Show which container runtime would be used
    abctl runtime info

For detailed usage information, run: abctl --help
"""

from __future__ import annotations

import logging
import sys

import typer

from abctl import __version__, console
from abctl.commands import local_cmd, runtime_cmd
from abctl.errors import AbctlError

app = typer.Typer(
    help="Airbyte local installer.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"abctl {__version__}")
        raise typer.Exit()


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(local_cmd.app, name="local")
app.add_typer(runtime_cmd.app, name="runtime")


def report_error(err: Exception) -> None:
    """Print a fatal error, its diagnostics and its remediation hint."""
    console.print(f"[red]❌ {err}[/red]")
    for entry in getattr(err, "diagnostics", ()):
        console.print(entry, style="dim", markup=False, highlight=False)
    if isinstance(err, AbctlError) and err.help:
        console.print(f"[yellow]{err.help}[/yellow]", highlight=False)


def main() -> None:
    try:
        app()
    except Exception as e:
        report_error(e)
        sys.exit(1)


if __name__ == "__main__":
    main()
