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

"""Constants: chart coordinates, paths, socket conventions and defaults."""

from __future__ import annotations

from pathlib import Path

# -- Resolved paths --
USER_HOME = Path.home()
AIRBYTE_DIR = USER_HOME / ".airbyte"
ABCTL_DIR = AIRBYTE_DIR / "abctl"
DATA_DIR = ABCTL_DIR / "data"
DEFAULT_KUBECONFIG = ABCTL_DIR / "abctl.kubeconfig"

# -- Persistent volume directories (under DATA_DIR) --
PV_MINIO = "airbyte-minio-pv"
PV_LOCAL = "airbyte-local-pv"
PV_PSQL = "airbyte-volume-db"
PSQL_VERSION_FILE = "pgdata/PG_VERSION"
PSQL17_IMAGE_TAG = "1.7.0-17"
PV_CAPACITY = "500Gi"
PV_STORAGE_CLASS = "standard"

# -- Persistent volume claims (names match the airbyte chart) --
PVC_MINIO = "airbyte-minio-pv-claim-airbyte-minio-0"
PVC_LOCAL = "airbyte-storage-pvc"
PVC_PSQL = "airbyte-volume-db-airbyte-db-0"

# -- Airbyte chart --
AIRBYTE_CHART_NAME = "airbyte/airbyte"
AIRBYTE_CHART_RELEASE = "airbyte-abctl"
AIRBYTE_NAMESPACE = "airbyte-abctl"
AIRBYTE_REPO_NAME = "airbyte"
AIRBYTE_REPO_URL = "https://airbytehq.github.io/helm-charts"
AIRBYTE_BOOTLOADER_POD = "airbyte-abctl-airbyte-bootloader"
AIRBYTE_POD_PREFIX = "airbyte"
AIRBYTE_SERVER_DEPLOYMENT = "airbyte-abctl-server"

# -- Airbyte auth secret --
AIRBYTE_AUTH_SECRET_NAME = "airbyte-auth-secrets"
SECRET_PASSWORD_KEY = "instance-admin-password"
SECRET_CLIENT_ID_KEY = "instance-admin-client-id"
SECRET_CLIENT_SECRET_KEY = "instance-admin-client-secret"

# -- Airbyte API --
AIRBYTE_API_TOKEN_PATH = "/api/v1/applications/token"
AIRBYTE_API_ORGANIZATIONS_PATH = "/api/public/v1/organizations"
AIRBYTE_API_TIMEOUT_SECONDS = 10
AIRBYTE_DEFAULT_ORGANIZATION_ID = "00000000-0000-0000-0000-000000000000"

# -- Ingress-nginx chart --
NGINX_CHART_NAME = "nginx/ingress-nginx"
NGINX_CHART_RELEASE = "ingress-nginx"
NGINX_NAMESPACE = "ingress-nginx"
NGINX_REPO_NAME = "nginx"
NGINX_REPO_URL = "https://kubernetes.github.io/ingress-nginx"
NGINX_CONTROLLER_SERVICE = "ingress-nginx-controller"

DOCKER_AUTH_SECRET_NAME = "docker-auth"
HELM_RELEASE_SECRET_TYPE = "helm.sh/release.v1"

# -- Helm error signatures --
HELM_STUCK_SENTINEL = "another operation (install/upgrade/rollback) is in progress"
HELM_RELEASE_NOT_FOUND = "not found"
INGRESS_RATE_LIMITER_SENTINEL = "client rate limiter Wait returned an error"
IMAGE_PULL_FAILED_SENTINEL = "Failed to pull image"
RATE_LIMITED_SENTINEL = "429 Too Many Requests"

# -- Kind cluster defaults --
DEFAULT_CLUSTER_NAME = "airbyte-abctl"
DEFAULT_HTTP_PORT = 8000
KIND_NODE_IMAGE = "kindest/node:v1.29.8@sha256:d46b7aa29567e93b27f7531d258c372e829d7224b25e3fc6ffdefed12476d3aa"
KIND_WAIT_TIMEOUT = "5m"
KIND_DATA_MOUNT = "/var/local-path-provider"
KIND_INGRESS_CONTAINER_PORT = 80
PRIVILEGED_PORT_LIMIT = 1024

# -- Install defaults --
DEFAULT_INSTALL_MAX_ATTEMPTS = 3
DEFAULT_INSTALL_RETRY_DELAY_SECONDS = 0.0
DEFAULT_CHART_TIMEOUT = "60m"
DEFAULT_NAMESPACE_DELETE_TIMEOUT_SECONDS = 300.0
NAMESPACE_POLL_INTERVAL_SECONDS = 1
DIAGNOSTIC_LOG_TAIL_LINES = 100
DIAGNOSTIC_LOG_PREVIEW_CHARS = 50
KUBECTL_TIMEOUT_SECONDS = 30
CANCEL_POLL_INTERVAL_SECONDS = 0.5

# -- Event watcher --
EVENT_WARNING_COUNT_THRESHOLD = 5
BOOTLOADER_LOG_DELAY_SECONDS = 5.0
WATCHER_JOIN_TIMEOUT_SECONDS = 2.0

# -- Container runtime --
GOOS_LINUX = "linux"
GOOS_DARWIN = "darwin"
GOOS_WINDOWS = "windows"

DOCKER_SOCKET = "unix:///var/run/docker.sock"
DOCKER_DESKTOP_LINUX_SOCKET = "unix://{home}/.docker/desktop/docker-cli.sock"
DOCKER_DESKTOP_DARWIN_SOCKET = "unix://{home}/.docker/run/docker.sock"
DOCKER_WINDOWS_PIPE = "npipe:////./pipe/docker_engine"

PODMAN_ROOTFUL_SOCKET = "unix:///run/podman/podman.sock"
PODMAN_ROOTLESS_SOCKET = "unix://{runtime_dir}/podman/podman.sock"
PODMAN_MACHINE_DARWIN_SOCKET = (
    "unix://{home}/.local/share/containers/podman/machine/podman-machine-default/podman.sock"
)
PODMAN_WINDOWS_PIPE = "npipe:////./pipe/podman_engine"

ENV_RUNTIME = "ABCTL_CONTAINER_RUNTIME"
ENV_KIND_PROVIDER = "KIND_EXPERIMENTAL_PROVIDER"
ENV_CONTAINER_HOST = "CONTAINER_HOST"
ENV_DOCKER_HOST = "DOCKER_HOST"
ENV_PREFER_ROOTFUL = "ABCTL_PREFER_ROOTFUL"
ENV_XDG_RUNTIME_DIR = "XDG_RUNTIME_DIR"

# -- Required CLI tools --
REQUIRED_COMMANDS = ("kind", "helm", "kubectl")
