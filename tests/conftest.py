"""Shared fixtures for abctl unit tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from abctl.config import LocalConfig
from abctl.helm import ChartMetadata, Release
from abctl.orchestrator import InstallOrchestrator
from abctl.runtime.provider import RuntimeVersion
from abctl.runtime.types import RuntimeKind

RUNTIME_ENV_VARS = (
    "ABCTL_CONTAINER_RUNTIME",
    "KIND_EXPERIMENTAL_PROVIDER",
    "CONTAINER_HOST",
    "DOCKER_HOST",
    "ABCTL_PREFER_ROOTFUL",
    "XDG_RUNTIME_DIR",
    "ABCTL_PORT",
    "ABCTL_CLUSTER_NAME",
    "ABCTL_INSTALL_MAX_ATTEMPTS",
    "ABCTL_INSTALL_RETRY_DELAY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's runtime environment out of the tests."""
    for name in RUNTIME_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def provider():
    """A provider double whose runtime answers."""
    mock = MagicMock()
    mock.runtime = RuntimeKind.DOCKER
    mock.version.return_value = RuntimeVersion(version="27.0.1", arch="amd64", platform="Docker Engine", runtime="docker")
    return mock


@pytest.fixture
def cluster():
    mock = MagicMock()
    mock.name = "airbyte-abctl"
    mock.exists.return_value = False
    return mock


@pytest.fixture
def helm():
    mock = MagicMock()
    mock.get_chart.return_value = ChartMetadata(name="airbyte", version="1.5.1", app_version="1.5.1")
    mock.install_or_upgrade_chart.side_effect = lambda spec: Release(
        name=spec.release_name,
        namespace=spec.namespace,
        chart_version=spec.version or "1.5.1",
        app_version="1.5.1",
        status="deployed",
        revision=1,
    )
    return mock


@pytest.fixture
def k8s():
    mock = MagicMock()
    mock.persistent_volume_exists.return_value = False
    mock.persistent_volume_claim_exists.return_value = False
    mock.pod_list.return_value = []
    mock.namespace_exists.return_value = False
    return mock


@pytest.fixture
def local_config():
    return LocalConfig(install_max_attempts=3, install_retry_delay=0)


@pytest.fixture
def orchestrator(provider, cluster, helm, k8s, local_config, tmp_path):
    """Orchestrator wired to doubles; no tool, cluster or browser is touched."""
    event_watcher = MagicMock()
    event_watcher.return_value.__exit__.return_value = False
    return InstallOrchestrator(
        provider,
        cluster,
        helm=helm,
        k8s=k8s,
        config=local_config,
        reporter=lambda text: None,
        launcher=MagicMock(return_value=True),
        data_dir=tmp_path / "data",
        event_watcher=event_watcher,
        api_factory=MagicMock(),
    )
