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

"""Runtime subcommands (info, sockets)."""

from __future__ import annotations

import typer
from rich.panel import Panel

from abctl import console
from abctl.config import RuntimeConfig
from abctl.runtime.detector import (
    DockerSocketDetector,
    PodmanSocketDetector,
    current_goos,
    socket_available,
)
from abctl.runtime.provider import RuntimeProvider

app = typer.Typer(help="Inspect the container runtime.")


@app.command()
def info() -> None:
    """Show the detected container runtime and its capabilities."""
    with RuntimeProvider.default() as provider:
        version = provider.version()
        caps = provider.capabilities()
        rootless = provider.is_rootless()

    console.print(Panel.fit("Container runtime", style="bold blue"))
    console.print(f"  Runtime:   {provider.runtime}")
    console.print(f"  Endpoint:  {provider.endpoint or 'unknown'}")
    console.print(f"  Version:   {version.version} ({version.platform or 'unknown'}, {version.arch})")
    console.print(f"  Rootless:  {'yes' if rootless else 'no'}")
    console.print(f"  Cgroups:   {caps.cgroup_version or 'unknown'}")
    console.print(f"  Features:  {', '.join(caps.features()) or 'none'}")


@app.command()
def sockets() -> None:
    """List candidate sockets per runtime and whether they are reachable."""
    config = RuntimeConfig()
    goos = current_goos()
    if config.socket:
        console.print(f"[yellow]ℹ️  Explicit socket configured: {config.socket}[/yellow]")

    for detector in (PodmanSocketDetector(prefer_rootless=config.prefer_rootless), DockerSocketDetector()):
        console.print(Panel.fit(f"{detector.kind} sockets ({goos})", style="bold blue"))
        for endpoint in detector.detect_sockets(goos):
            if socket_available(endpoint):
                console.print(f"[green]✅ {endpoint}[/green]")
            else:
                console.print(f"  {endpoint}")
