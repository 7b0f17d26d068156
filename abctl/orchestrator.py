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

"""Install orchestration: cluster, charts, bounded retry and diagnostics.

One ``install`` call runs ``check_prereqs -> ensure_cluster -> resolve_chart
-> install_chart`` sequentially. The only retried failure is helm's
"another operation is in progress" lock, classified by
``is_stuck_operation``.
"""

from __future__ import annotations

import shutil
import threading
import webbrowser
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.markup import escape
from rich.panel import Panel
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from abctl import console, logger
from abctl.airbyte_api import AirbyteAPI
from abctl.cluster import KindCluster, cluster_port
from abctl.config import ExtraVolumeMount, InstallOptions, LocalConfig, validate_host
from abctl.constants import (
    AIRBYTE_AUTH_SECRET_NAME,
    AIRBYTE_BOOTLOADER_POD,
    AIRBYTE_CHART_NAME,
    AIRBYTE_CHART_RELEASE,
    AIRBYTE_NAMESPACE,
    AIRBYTE_POD_PREFIX,
    AIRBYTE_REPO_NAME,
    AIRBYTE_REPO_URL,
    AIRBYTE_SERVER_DEPLOYMENT,
    DATA_DIR,
    DIAGNOSTIC_LOG_PREVIEW_CHARS,
    HELM_RELEASE_SECRET_TYPE,
    HELM_STUCK_SENTINEL,
    INGRESS_RATE_LIMITER_SENTINEL,
    NAMESPACE_POLL_INTERVAL_SECONDS,
    NGINX_CHART_NAME,
    NGINX_CHART_RELEASE,
    NGINX_CONTROLLER_SERVICE,
    NGINX_NAMESPACE,
    NGINX_REPO_NAME,
    NGINX_REPO_URL,
    PV_LOCAL,
    PV_MINIO,
    PV_PSQL,
    PVC_LOCAL,
    PVC_MINIO,
    PVC_PSQL,
    REQUIRED_COMMANDS,
    SECRET_CLIENT_ID_KEY,
    SECRET_CLIENT_SECRET_KEY,
    SECRET_PASSWORD_KEY,
)
from abctl.errors import (
    AirbyteDirError,
    BootloaderFailedError,
    HelmError,
    HelmStuckError,
    IngressError,
    InstallCancelledError,
    KubernetesError,
)
from abctl.events import EventWatcher
from abctl.helm import ChartMetadata, ChartSpec, HelmClient, Release, is_release_not_found, locate_airbyte_chart
from abctl.k8s import KubernetesClient, docker_auth_secret
from abctl.runtime.provider import RuntimeProvider
from abctl.utils import port_available, require_command
from abctl.values import build_airbyte_values, build_nginx_values

Reporter = Callable[[str], None]

_DEPLOYED = "deployed"
_POD_FAILED = "Failed"
_EMAIL_NOT_SET = "[not set]"


def is_stuck_operation(err: BaseException) -> bool:
    """Whether ``err`` is helm's transient release-lock failure."""
    text = str(err)
    if isinstance(err, HelmError):
        text = f"{text}\n{err.stderr}"
    return HELM_STUCK_SENTINEL in text


def _print_info(text: str) -> None:
    console.print(f"[yellow]ℹ️  {text}[/yellow]")


# ============================================================================
# Chart requests
# ============================================================================

class ChartAction(Enum):
    NONE = "none"
    INSTALL = "install"
    UNINSTALL = "uninstall"


@dataclass(frozen=True)
class ChartRequest:
    """One chart to install.

    Attributes:
        name: Short display name (``airbyte``, ``nginx``).
        repo_name: Helm repository name.
        repo_url: Helm repository URL.
        chart_name: Chart reference for display.
        chart_release: Release name.
        chart_loc: Chart location passed to helm.
        namespace: Target namespace.
        chart_version: Pinned chart version, or empty.
        values_yaml: Rendered values.
        uninstall_first: Compare with the existing release first and
            uninstall it if it differs.
    """

    name: str
    repo_name: str
    repo_url: str
    chart_name: str
    chart_release: str
    chart_loc: str
    namespace: str
    chart_version: str = ""
    values_yaml: str = ""
    uninstall_first: bool = False


@dataclass
class InstallAttempt:
    """Transient state of one ``install_chart`` call."""

    attempts: int = 0
    last_error: BaseException | None = None
    diagnostics: list[str] = field(default_factory=list)


def determine_chart_action(helm: HelmClient, chart: ChartMetadata, release_name: str, namespace: str) -> ChartAction:
    """Compare the existing release with the chart about to be installed.

    Returns:
        INSTALL if there is no release, NONE if the deployed release matches
        the chart version and app version, UNINSTALL otherwise.
    """
    try:
        rel = helm.get_release(release_name, namespace)
    except HelmError as err:
        if is_release_not_found(err):
            logger.debug("unable to find %s helm release", release_name)
            return ChartAction.INSTALL
        logger.debug("unable to fetch %s helm release: %s", release_name, err)
        return ChartAction.UNINSTALL

    if rel.status != _DEPLOYED:
        logger.debug("chart has the status of %s", rel.status)
        return ChartAction.UNINSTALL
    if rel.chart_version != chart.version:
        logger.debug("chart version (%s) does not match helm release (%s)", chart.version, rel.chart_version)
        return ChartAction.UNINSTALL
    if rel.app_version != chart.app_version:
        logger.debug("chart app-version (%s) does not match helm release (%s)", chart.app_version, rel.app_version)
        return ChartAction.UNINSTALL

    logger.debug("chart matched helm release %s (version %s)", release_name, rel.chart_version)
    return ChartAction.NONE


# ============================================================================
# Orchestrator
# ============================================================================

@dataclass(frozen=True)
class LocalStatus:
    port: int
    releases: list[Release]


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str
    client_id: str
    client_secret: str


class InstallOrchestrator:
    """Drives install, uninstall and status of the local deployment.

    Args:
        provider: Container runtime provider (readiness and port lookups).
        cluster: kind cluster collaborator.
        helm: Helm client; built from ``config`` if omitted.
        k8s: Kubernetes client; built from ``config`` if omitted.
        config: Local settings (port, retry bound, kubeconfig).
        reporter: Receives status text for phase transitions.
        cancel: Set to stop the install; also terminates a running helm process.
        launcher: Opens a URL in the browser; returns False on failure.
        data_dir: Host directory holding persistent volume data.
        event_watcher: Builds the namespace event watcher run during install.
        api_factory: Builds the Airbyte API client used by ``credentials``.
    """

    def __init__(
        self,
        provider: RuntimeProvider,
        cluster: KindCluster,
        helm: HelmClient | None = None,
        k8s: KubernetesClient | None = None,
        config: LocalConfig | None = None,
        reporter: Reporter | None = None,
        cancel: threading.Event | None = None,
        launcher: Callable[[str], bool] = webbrowser.open,
        data_dir: Path = DATA_DIR,
        event_watcher: Callable[..., EventWatcher] = EventWatcher,
        api_factory: Callable[..., AirbyteAPI] = AirbyteAPI,
    ) -> None:
        self.config = config or LocalConfig()
        self.cancel = cancel or threading.Event()
        self.provider = provider
        self.cluster = cluster
        self.helm = helm or HelmClient(self.config.kubeconfig, self.config.kube_context, cancel=self.cancel)
        self.k8s = k8s or KubernetesClient(self.config.kubeconfig, self.config.kube_context)
        self.report = reporter or _print_info
        self.launcher = launcher
        self.data_dir = data_dir
        self.event_watcher = event_watcher
        self.api_factory = api_factory
        self.port = self.config.port
        self.last_attempt = InstallAttempt()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def check_prereqs(self) -> None:
        """Required CLI tools exist and the container runtime answers.

        Raises:
            RuntimeError: If a required command is missing.
            DockerError: If the runtime does not respond.
        """
        console.print(Panel.fit("Checking prerequisites", style="bold blue"))
        for cmd in REQUIRED_COMMANDS:
            require_command(cmd)
        self.report(f"Checking for {self.provider.runtime} installation")
        version = self.provider.version()
        console.print(f"[green]✅ {version.runtime} - found; version: {version.version}[/green]")

    def ensure_cluster(self, extra_mounts: Sequence[ExtraVolumeMount] = ()) -> int:
        """Validate an existing cluster or create a new one.

        An existing cluster is never recreated; its bound port replaces the
        requested one. A new cluster is only created after the requested
        port was found free.

        Returns:
            The port the ingress is (or will be) published on.

        Raises:
            PortError: If the port is taken and no cluster exists yet.
            DockerError: If an existing cluster's port cannot be determined.
            ClusterError: If cluster creation fails.
        """
        name = self.cluster.name
        self.report(f"Checking for existing Kubernetes cluster '{name}'")
        if self.cluster.exists():
            console.print(f"[green]✅ Existing cluster '{name}' found[/green]")
            self.report(f"Validating existing cluster '{name}'")
            provided = self.port
            self.port = cluster_port(self.provider, name)
            if provided != self.port:
                console.print(
                    f"[yellow]⚠️  The existing cluster was found to be using port {self.port}, "
                    f"which differs from the provided port {provided}.\n"
                    "   The existing port will be used, as changing ports currently requires "
                    "the existing installation to be uninstalled first.[/yellow]"
                )
            console.print(f"[green]✅ Cluster '{name}' validation complete[/green]")
            return self.port

        _print_info(f"No existing cluster found, cluster '{name}' will be created")
        self.report(f"Checking if port {self.port} is available")
        port_available(self.port)
        console.print(f"[green]✅ Port {self.port} appears to be available[/green]")

        self.report(f"Creating cluster '{name}'")
        self.cluster.create(self.port, extra_mounts)
        console.print(f"[green]✅ Cluster '{name}' created[/green]")
        return self.port

    def resolve_chart(self, opts: InstallOptions) -> tuple[str, str]:
        """Airbyte chart location and the concrete version to install."""
        self.helm.add_or_update_chart_repo(AIRBYTE_REPO_NAME, AIRBYTE_REPO_URL)
        location, version = locate_airbyte_chart(opts.chart_version, opts.chart, self.helm)
        if not version:
            version = self.helm.get_chart(location).version
        return location, version

    def install_chart(self, req: ChartRequest) -> Release | None:
        """Install or upgrade one chart.

        Returns:
            The installed release, or None if a matching release was already
            deployed (only with ``uninstall_first``).

        Raises:
            HelmStuckError: If every attempt hit the helm release lock.
            InstallCancelledError: If cancelled before or during an attempt.
            HelmError: Any other helm failure, unchanged, after one attempt.
        """
        self.last_attempt = InstallAttempt()
        self.report(f"Configuring {req.name} Helm repository")
        self.helm.add_or_update_chart_repo(req.repo_name, req.repo_url)

        self.report(f"Fetching {req.chart_name} Helm Chart with version {req.chart_version or 'latest'}")
        chart = self.helm.get_chart(req.chart_loc, req.chart_version)

        if req.uninstall_first:
            action = determine_chart_action(self.helm, chart, req.chart_release, req.namespace)
            if action is ChartAction.NONE:
                console.print(
                    f"[green]✅ Found matching existing Helm Chart {req.chart_name}:\n"
                    f"  Name: {req.chart_name}\n  Namespace: {req.namespace}\n"
                    f"  Version: {chart.version}\n  AppVersion: {chart.app_version}[/green]"
                )
                return None
            if action is ChartAction.UNINSTALL:
                logger.debug("attempting to uninstall helm release %s", req.chart_release)
                self.helm.uninstall_release_by_name(req.chart_release, req.namespace)

        spec = ChartSpec(
            release_name=req.chart_release,
            chart_name=req.chart_loc,
            namespace=req.namespace,
            version=req.chart_version,
            values_yaml=req.values_yaml,
            timeout=self.config.chart_timeout,
        )
        release = self._install_with_retry(spec, chart)
        console.print(
            f"[green]✅ Installed Helm Chart {req.chart_name}:\n"
            f"  Name: {release.name}\n  Namespace: {release.namespace}\n"
            f"  Version: {release.chart_version}\n  AppVersion: {release.app_version}\n"
            f"  Release: {release.revision}[/green]"
        )
        return release

    def _install_with_retry(self, spec: ChartSpec, chart: ChartMetadata) -> Release:
        attempt = self.last_attempt

        def _attempt() -> Release:
            if self.cancel.is_set():
                raise InstallCancelledError(f"install of {spec.release_name} cancelled")
            attempt.attempts += 1
            _print_info(f"Starting Helm Chart installation of '{spec.chart_name}' (version: {chart.version})")
            self.report(
                f"Installing '{spec.chart_name}' (version: {chart.version}) Helm Chart "
                "(this may take several minutes)"
            )
            try:
                return self.helm.install_or_upgrade_chart(spec)
            except HelmError as err:
                attempt.last_error = err
                raise

        def _clear_release_lock(_state) -> None:
            try:
                self.k8s.secret_delete_collection(spec.namespace, HELM_RELEASE_SECRET_TYPE)
            except KubernetesError as err:
                logger.debug("unable to delete secrets %s: %s", HELM_RELEASE_SECRET_TYPE, err)

        retrying = Retrying(
            stop=stop_after_attempt(self.config.install_max_attempts),
            wait=wait_fixed(self.config.install_retry_delay),
            retry=retry_if_exception(is_stuck_operation),
            before_sleep=_clear_release_lock,
            sleep=self.cancel.wait,
        )
        try:
            return retrying(_attempt)
        except RetryError as err:
            raise HelmStuckError() from err.last_attempt.exception()

    def diagnose_failure(self, err: Exception) -> Exception:
        """Attach failed pod logs to ``err``; best effort, never raises.

        Returns:
            ``BootloaderFailedError`` if the bootloader is the only failed
            pod, otherwise ``err`` itself.
        """
        if self.cancel.is_set():
            return err
        try:
            pods = self.k8s.pod_list(AIRBYTE_NAMESPACE)
        except KubernetesError as list_err:
            logger.debug("unable to list pods for diagnostics: %s", list_err)
            return err

        failed = [pod.name for pod in pods if pod.phase == _POD_FAILED]
        if not failed:
            return err

        for pod in pods:
            # the db and minio pods are not release-name aware
            if not pod.name.startswith(AIRBYTE_POD_PREFIX):
                continue
            logger.debug("looking at %s (%s)", pod.name, pod.phase)
            try:
                logs = self.k8s.logs_get(AIRBYTE_NAMESPACE, pod.name)
            except KubernetesError as log_err:
                logger.debug("failed to get pod logs: %s", log_err)
                continue
            logger.debug("found logs: %s", logs[:DIAGNOSTIC_LOG_PREVIEW_CHARS])
            entry = f"{pod.name}.log:\n{logs}"
            self.last_attempt.diagnostics.append(entry)
            if isinstance(err, HelmError):
                err.diagnostics.append(entry)

        if failed == [AIRBYTE_BOOTLOADER_POD]:
            return BootloaderFailedError()
        return err

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def install(self, opts: InstallOptions) -> None:
        """Install (or upgrade) the local deployment end to end.

        Raises:
            AbctlError: Subclasses carry a remediation hint.
            HelmError: Chart install failures with diagnostics attached.
        """
        for host in opts.hosts:
            validate_host(host)

        self.check_prereqs()
        self.ensure_cluster(opts.extra_mounts)

        console.print(Panel.fit("Installing Airbyte", style="bold blue"))
        chart_loc, chart_version = self.resolve_chart(opts)
        values_yaml = build_airbyte_values(opts, chart_version)
        logger.debug("airbyte values:\n%s", values_yaml)

        with self.event_watcher(self.k8s, AIRBYTE_NAMESPACE, reporter=self.report):
            self._install_charts(opts, chart_loc, chart_version, values_yaml)

        url = f"http://localhost:{self.port}"
        for host in opts.hosts:
            _print_info(f"Ingress host configured: http://{host}:{self.port}")
        if opts.no_browser:
            console.print(f"[green]✅ Launching web-browser disabled. Airbyte should be accessible at\n  {url}[/green]")
        else:
            self.launch(url)
        console.print("[green]✅ Airbyte installation complete[/green]")

    def _install_charts(self, opts: InstallOptions, chart_loc: str, chart_version: str, values_yaml: str) -> None:
        self._prepare_namespace(opts)

        try:
            self.install_chart(ChartRequest(
                name="airbyte",
                repo_name=AIRBYTE_REPO_NAME,
                repo_url=AIRBYTE_REPO_URL,
                chart_name=AIRBYTE_CHART_NAME,
                chart_release=AIRBYTE_CHART_RELEASE,
                chart_loc=chart_loc,
                namespace=AIRBYTE_NAMESPACE,
                chart_version=chart_version,
                values_yaml=values_yaml,
            ))
        except HelmError as err:
            diagnosed = self.diagnose_failure(err)
            if diagnosed is not err:
                raise diagnosed from err
            raise

        self._install_nginx()

    def _prepare_namespace(self, opts: InstallOptions) -> None:
        self.report(f"Creating namespace '{AIRBYTE_NAMESPACE}'")
        self.k8s.namespace_create(AIRBYTE_NAMESPACE)

        if opts.local_storage:
            self._persistent_volume(PV_LOCAL, PVC_LOCAL)
        else:
            self._persistent_volume(PV_MINIO, PVC_MINIO)
        self._persistent_volume(PV_PSQL, PVC_PSQL)

        if opts.docker_auth:
            logger.debug("creating docker-auth secret")
            secret = docker_auth_secret(opts.docker_server, opts.docker_user, opts.docker_pass, opts.docker_email)
            self.k8s.secret_create_or_update(secret, AIRBYTE_NAMESPACE)

        for secret_file in opts.secrets:
            self.report(f"Creating secret from '{secret_file}'")
            self.k8s.secret_apply_file(secret_file, AIRBYTE_NAMESPACE)
            console.print(f"[green]✅ Secret from '{secret_file}' created or updated[/green]")

    def _persistent_volume(self, volume: str, claim: str) -> None:
        if not self.k8s.persistent_volume_exists(volume):
            self.report(f"Creating persistent volume '{volume}'")
            path = self.data_dir / volume
            try:
                # pre-created so the directory is owned by the invoking user
                path.mkdir(parents=True, exist_ok=True)
                self.k8s.persistent_volume_create(volume)
                path.chmod(0o777)
            except OSError as err:
                raise AirbyteDirError(f"unable to create persistent volume '{volume}': {err}") from err
        if not self.k8s.persistent_volume_claim_exists(AIRBYTE_NAMESPACE, claim):
            self.report(f"Creating persistent volume claim '{claim}'")
            self.k8s.persistent_volume_claim_create(AIRBYTE_NAMESPACE, claim, volume)

    def _install_nginx(self) -> None:
        try:
            self.install_chart(ChartRequest(
                name="nginx",
                repo_name=NGINX_REPO_NAME,
                repo_url=NGINX_REPO_URL,
                chart_name=NGINX_CHART_NAME,
                chart_release=NGINX_CHART_RELEASE,
                chart_loc=NGINX_CHART_NAME,
                namespace=NGINX_NAMESPACE,
                values_yaml=build_nginx_values(self.port),
                uninstall_first=True,
            ))
        except HelmError as err:
            if INGRESS_RATE_LIMITER_SENTINEL not in str(err):
                raise
            console.print(
                f"[yellow]⚠️  Encountered an error while installing the {NGINX_CHART_NAME} Helm Chart.\n"
                f"   This could be an indication that port {self.port} is not available.[/yellow]"
            )
            try:
                ingresses = self.k8s.service_ingresses(NGINX_NAMESPACE, NGINX_CONTROLLER_SERVICE)
            except KubernetesError as svc_err:
                logger.debug("unable to check ingress controller service: %s", svc_err)
                raise err
            if not ingresses:
                raise IngressError("could not install nginx chart") from err
            raise

    def launch(self, url: str) -> None:
        self.report(f"Attempting to launch web-browser for {url}")
        try:
            opened = self.launcher(url)
        except webbrowser.Error as err:
            logger.debug("failed to launch web-browser: %s", err)
            opened = False
        if not opened:
            console.print(
                f"[yellow]⚠️  Failed to launch web-browser.\n"
                f"   Please launch your web-browser to access {url}[/yellow]"
            )
            return
        console.print(f"[green]✅ Launched web-browser successfully for {url}[/green]")

    def check_runtime(self) -> None:
        self.report(f"Checking for {self.provider.runtime} installation")
        self.provider.version()

    def uninstall(self, persisted: bool = False) -> None:
        """Remove the cluster; with ``persisted`` also the releases and data.

        A missing cluster is not an error. Failures while removing persisted
        data are warned about and the cluster is deleted regardless.

        Raises:
            DockerError: If the container runtime does not respond.
            ClusterError: If the cluster cannot be deleted.
        """
        self.check_runtime()
        name = self.cluster.name
        self.report(f"Checking for existing Kubernetes cluster '{name}'")
        if not self.cluster.exists():
            console.print(f"[green]✅ Cluster '{name}' does not exist\nNo additional action required[/green]")
            return
        console.print(f"[green]✅ Existing cluster '{name}' found[/green]")

        if persisted:
            try:
                self._remove_releases()
            except (HelmError, KubernetesError) as err:
                console.print(
                    f"[yellow]⚠️  unable to complete uninstall: {err}\n"
                    "   will still attempt to uninstall the cluster[/yellow]"
                )

        self.report(f"Verifying uninstallation status of cluster '{name}'")
        self.cluster.delete()
        console.print(f"[green]✅ Uninstallation of cluster '{name}' completed successfully[/green]")

        if persisted:
            self.report(f"Removing persisted data in {self.data_dir}")
            try:
                shutil.rmtree(self.data_dir)
            except FileNotFoundError:
                pass
            except OSError as err:
                raise AirbyteDirError(f"unable to remove persisted data: {err}") from err
            console.print(f"[green]✅ Removed persisted data in {self.data_dir}[/green]")

    def _remove_releases(self) -> None:
        charts = (
            (AIRBYTE_CHART_NAME, AIRBYTE_CHART_RELEASE, AIRBYTE_NAMESPACE),
            (NGINX_CHART_NAME, NGINX_CHART_RELEASE, NGINX_NAMESPACE),
        )
        for chart, release, namespace in charts:
            self.report(f"Verifying {chart} Helm Chart installation status")
            try:
                self.helm.get_release(release, namespace)
            except HelmError as err:
                if not is_release_not_found(err):
                    raise
                console.print(f"[green]✅ Helm Chart {chart} is not installed[/green]")
                continue
            self.report(f"Uninstalling {chart} Helm Chart")
            self.helm.uninstall_release_by_name(release, namespace)
            console.print(f"[green]✅ Uninstalled {chart} Helm Chart[/green]")

        self.report(f"Deleting Kubernetes namespace '{AIRBYTE_NAMESPACE}'")
        self.k8s.namespace_delete(AIRBYTE_NAMESPACE)
        # namespace deletion does not block
        polling = Retrying(
            stop=stop_after_delay(self.config.namespace_delete_timeout),
            wait=wait_fixed(NAMESPACE_POLL_INTERVAL_SECONDS),
            retry=retry_if_result(bool),
            sleep=self.cancel.wait,
        )
        try:
            polling(self.k8s.namespace_exists, AIRBYTE_NAMESPACE)
        except RetryError as err:
            raise KubernetesError(f"could not delete namespace '{AIRBYTE_NAMESPACE}'") from err
        console.print(f"[green]✅ Namespace '{AIRBYTE_NAMESPACE}' deleted[/green]")

    def status(self) -> LocalStatus | None:
        """Report cluster port and release status.

        Returns:
            None if there is no cluster, otherwise the bound port and the
            releases that could be fetched.

        Raises:
            DockerError: If the runtime does not respond or the bound port
                cannot be determined.
        """
        self.check_runtime()
        name = self.cluster.name
        self.report(f"Checking for existing Kubernetes cluster '{name}'")
        if not self.cluster.exists():
            console.print("[yellow]⚠️  Airbyte does not appear to be installed locally[/yellow]")
            return None
        console.print(f"[green]✅ Existing cluster '{name}' found[/green]")

        self.report(f"Validating existing cluster '{name}'")
        self.port = cluster_port(self.provider, name)
        releases = []
        for release, namespace in ((AIRBYTE_CHART_RELEASE, AIRBYTE_NAMESPACE), (NGINX_CHART_RELEASE, NGINX_NAMESPACE)):
            self.report(f"Verifying {release} Helm Chart installation status")
            try:
                rel = self.helm.get_release(release, namespace)
            except HelmError as err:
                console.print(f"[yellow]⚠️  Could not get {release} release[/yellow]")
                logger.debug("could not get %s release: %s", release, err)
                continue
            releases.append(rel)
            _print_info(
                f"Found helm chart '{release}'\n  Status: {rel.status}\n"
                f"  Chart Version: {rel.chart_version}\n  App Version: {rel.app_version}"
            )
        _print_info(f"Airbyte should be accessible via http://localhost:{self.port}")
        return LocalStatus(port=self.port, releases=releases)

    def credentials(self, password: str = "") -> Credentials | None:
        """Print the instance admin credentials, optionally setting a new password.

        A changed password is written to the auth secret and the server
        deployment is restarted so it picks the new value up.

        Returns:
            None if there is no cluster, otherwise the current credentials.

        Raises:
            KubernetesError: If the auth secret cannot be read or updated.
            DockerError: If the bound port cannot be determined.
            AirbyteAPIError: If the organization email cannot be fetched.
        """
        name = self.cluster.name
        self.report(f"Checking for existing Kubernetes cluster '{name}'")
        if not self.cluster.exists():
            console.print("[red]❌ No existing cluster found[/red]")
            return None

        secret = self.k8s.secret_data(AIRBYTE_NAMESPACE, AIRBYTE_AUTH_SECRET_NAME)
        client_id = secret.get(SECRET_CLIENT_ID_KEY, "")
        client_secret = secret.get(SECRET_CLIENT_SECRET_KEY, "")
        self.port = cluster_port(self.provider, name)
        api = self.api_factory(f"http://localhost:{self.port}", client_id, client_secret)

        if password and password != secret.get(SECRET_PASSWORD_KEY, ""):
            _print_info("Updating password for authentication")
            self.k8s.secret_patch_data(AIRBYTE_NAMESPACE, AIRBYTE_AUTH_SECRET_NAME, {SECRET_PASSWORD_KEY: password})
            console.print("[green]✅ Password updated[/green]")
            secret = self.k8s.secret_data(AIRBYTE_NAMESPACE, AIRBYTE_AUTH_SECRET_NAME)

            self.report(f"Restarting {AIRBYTE_SERVER_DEPLOYMENT}")
            self.k8s.deployment_restart(AIRBYTE_NAMESPACE, AIRBYTE_SERVER_DEPLOYMENT)
            console.print(f"[green]✅ Restarted {AIRBYTE_SERVER_DEPLOYMENT}[/green]")

        creds = Credentials(
            email=api.get_org_email() or _EMAIL_NOT_SET,
            password=secret.get(SECRET_PASSWORD_KEY, ""),
            client_id=client_id,
            client_secret=client_secret,
        )
        console.print(f"[green]✅ Retrieving your credentials from '{AIRBYTE_AUTH_SECRET_NAME}'[/green]")
        _print_info(escape(
            f"Credentials:\n  Email: {creds.email}\n  Password: {creds.password}\n"
            f"  Client-Id: {creds.client_id}\n  Client-Secret: {creds.client_secret}"
        ))
        return creds

    def deployments(self, restart: str = "") -> list[str]:
        """List the Airbyte deployments, or restart one of them.

        Returns:
            The deployment names found, or ``[restart]`` after a restart.

        Raises:
            DockerError: If the container runtime does not respond.
            KubernetesError: If the deployments cannot be listed or restarted.
        """
        self.check_runtime()
        if not restart:
            self.report("Fetching deployments")
            names = self.k8s.deployment_list(AIRBYTE_NAMESPACE)
            if not names:
                _print_info("No deployments found")
                return []
            _print_info("Found the following deployments:" + "".join(f"\n  {name}" for name in names))
            return names

        self.report(f"Restarting deployment {restart}")
        try:
            self.k8s.deployment_restart(AIRBYTE_NAMESPACE, restart)
        except KubernetesError:
            console.print(f"[red]❌ Unable to restart airbyte deployment {restart}[/red]")
            raise
        console.print(f"[green]✅ Restarted deployment {restart}[/green]")
        return [restart]
