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

"""Local subcommands (install, uninstall, status, credentials, deployments)."""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import typer

from abctl import console
from abctl.cluster import KindCluster
from abctl.config import (
    ExtraVolumeMount,
    InstallOptions,
    LocalConfig,
    enable_psql17,
    supports_minio,
)
from abctl.orchestrator import InstallOrchestrator
from abctl.runtime.provider import RuntimeProvider

app = typer.Typer(help="Manage the local Airbyte installation.")

_MINIO_MIGRATION_DOCS = (
    "https://docs.airbyte.com/platform/using-airbyte/getting-started/oss-quickstart"
    "#migrating-from-minio-to-local-storage"
)


@contextmanager
def _orchestrator(config: LocalConfig, title: str) -> Iterator[InstallOrchestrator]:
    """Orchestrator for one command; SIGTERM cancels retries and running kind or helm processes."""
    cancel = threading.Event()
    previous = signal.signal(signal.SIGTERM, lambda *_: cancel.set())
    try:
        with console.status(title) as status, RuntimeProvider.default() as provider:
            cluster = KindCluster(config.cluster_name, config.kubeconfig, runtime=provider.runtime, cancel=cancel)
            yield InstallOrchestrator(
                provider,
                cluster,
                config=config,
                reporter=status.update,
                cancel=cancel,
            )
    finally:
        signal.signal(signal.SIGTERM, previous)


def _parse_volumes(volumes: list[str]) -> tuple[ExtraVolumeMount, ...]:
    try:
        return tuple(ExtraVolumeMount.parse(v) for v in volumes)
    except ValueError as err:
        raise typer.BadParameter(str(err), param_hint="--volume") from err


@app.command()
def install(
    port: int | None = typer.Option(None, "--port", help="HTTP ingress port (overrides ABCTL_PORT)"),
    chart: str = typer.Option("", "--chart", help="Path or reference of the Airbyte Helm chart"),
    chart_version: str = typer.Option("", "--chart-version", help="Airbyte Helm chart version"),
    values: str = typer.Option("", "--values", help="Helm values file merged over the defaults"),
    secret: list[str] | None = typer.Option(None, "--secret", help="Kubernetes secret manifest to apply"),
    host: list[str] | None = typer.Option(None, "--host", help="Hostname the ingress should accept"),
    volume: list[str] | None = typer.Option(None, "--volume", help="Extra kind mount <HOST_PATH>:<GUEST_PATH>"),
    docker_server: str = typer.Option("https://index.docker.io/v1/", "--docker-server", help="Registry server"),
    docker_username: str = typer.Option("", "--docker-username", help="Registry username"),
    docker_password: str = typer.Option("", "--docker-password", help="Registry password"),
    docker_email: str = typer.Option("", "--docker-email", help="Registry email"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not launch the web-browser"),
    low_resource_mode: bool = typer.Option(False, "--low-resource-mode", help="Reduce resource requests"),
    insecure_cookies: bool = typer.Option(False, "--insecure-cookies", help="Allow cookies over plain HTTP"),
    disable_auth: bool = typer.Option(False, "--disable-auth", help="Disable Airbyte authentication"),
) -> None:
    """Install (or upgrade) Airbyte in a local kind cluster."""
    config = LocalConfig()
    if port is not None:
        config = config.model_copy(update={"port": port})
    extra_mounts = _parse_volumes(volume or [])

    minio = supports_minio()
    if minio:
        console.print(
            "[yellow]⚠️  Found MinIO physical volume. Consider migrating it to local storage "
            f"(see {_MINIO_MIGRATION_DOCS})[/yellow]"
        )
    psql17 = enable_psql17()
    if not psql17:
        console.print("[yellow]⚠️  Psql 13 detected. Consider upgrading to 17[/yellow]")

    opts = InstallOptions(
        chart_version=chart_version,
        chart=chart,
        values_file=values,
        secrets=tuple(secret or ()),
        hosts=tuple(host or ()),
        extra_mounts=extra_mounts,
        local_storage=not minio,
        enable_psql17=psql17,
        low_resource_mode=low_resource_mode,
        insecure_cookies=insecure_cookies,
        disable_auth=disable_auth,
        docker_server=docker_server,
        docker_user=docker_username,
        docker_pass=docker_password,
        docker_email=docker_email,
        no_browser=no_browser,
    )
    with _orchestrator(config, "Starting installation") as orchestrator:
        orchestrator.install(opts)


@app.command()
def uninstall(
    persisted: bool = typer.Option(False, "--persisted", help="Remove persisted data"),
) -> None:
    """Uninstall Airbyte and delete the local kind cluster."""
    with _orchestrator(LocalConfig(), "Starting uninstallation") as orchestrator:
        orchestrator.uninstall(persisted=persisted)
    console.print("[green]✅ Airbyte uninstallation complete[/green]")


@app.command()
def status() -> None:
    """Show the status of the local installation."""
    with _orchestrator(LocalConfig(), "Starting status check") as orchestrator:
        orchestrator.status()


@app.command()
def credentials(
    password: str = typer.Option("", "--password", help="Specify a new password to use for authentication"),
) -> None:
    """Get (or set) the credentials of the local installation."""
    with _orchestrator(LocalConfig(), "Retrieving credentials") as orchestrator:
        orchestrator.credentials(password=password)


@app.command()
def deployments(
    restart: str = typer.Option("", "--restart", help="Deployment to restart"),
) -> None:
    """List the Airbyte deployments, or restart one of them."""
    with _orchestrator(LocalConfig(), "Fetching deployments") as orchestrator:
        orchestrator.deployments(restart=restart)
