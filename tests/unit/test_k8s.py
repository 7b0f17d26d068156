"""Unit tests for abctl.k8s module."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from abctl.errors import KubernetesError
from abctl.k8s import KubernetesClient, docker_auth_secret


@pytest.fixture
def k8s():
    return KubernetesClient(Path("/tmp/abctl.kubeconfig"), "kind-airbyte-abctl")


class TestKubernetesClient:
    """Tests for kubectl-backed operations."""

    @patch("abctl.k8s.run_kubectl")
    def test_context_prefix(self, mock_run, k8s):
        """Test every call is bound to the kubeconfig and context."""
        mock_run.return_value = (True, "", "")
        k8s.namespace_delete("airbyte-abctl")
        args = mock_run.call_args.args[0]
        assert args[:4] == ["--kubeconfig", "/tmp/abctl.kubeconfig", "--context", "kind-airbyte-abctl"]
        assert args[4:] == ["delete", "namespace", "airbyte-abctl", "--ignore-not-found", "--wait=false"]

    @patch("abctl.k8s.run_kubectl")
    def test_failure_raises(self, mock_run, k8s):
        """Test a failed kubectl call carries its stderr."""
        mock_run.return_value = (False, "", "connection refused\n")
        with pytest.raises(KubernetesError, match="connection refused"):
            k8s.logs_get("airbyte-abctl", "airbyte-abctl-bootloader")

    @patch("abctl.k8s.run_kubectl")
    def test_exists(self, mock_run, k8s):
        """Test existence follows kubectl's exit status."""
        mock_run.return_value = (False, "", "NotFound")
        assert k8s.persistent_volume_exists("airbyte-local-pv") is False
        mock_run.return_value = (True, "", "")
        assert k8s.persistent_volume_claim_exists("airbyte-abctl", "airbyte-minio-pv-claim") is True
        assert mock_run.call_args.args[0][-2:] == ["-n", "airbyte-abctl"]

    @patch("abctl.k8s.run_kubectl")
    def test_namespace_create_skips_existing(self, mock_run, k8s):
        """Test an existing namespace is not created again."""
        mock_run.return_value = (True, "", "")
        k8s.namespace_create("airbyte-abctl")
        assert mock_run.call_count == 1

    @patch("abctl.k8s.run_kubectl")
    def test_pod_list(self, mock_run, k8s):
        """Test pod names and phases are parsed."""
        pods = {"items": [{"metadata": {"name": "airbyte-abctl-bootloader"}, "status": {"phase": "Failed"}}]}
        mock_run.return_value = (True, json.dumps(pods), "")
        result = k8s.pod_list("airbyte-abctl")
        assert [(p.name, p.phase) for p in result] == [("airbyte-abctl-bootloader", "Failed")]

    @patch("abctl.k8s.run_kubectl")
    def test_unparsable_output(self, mock_run, k8s):
        """Test non-JSON output is an error."""
        mock_run.return_value = (True, "not json", "")
        with pytest.raises(KubernetesError):
            k8s.pod_list("airbyte-abctl")

    @patch("abctl.k8s.run_kubectl")
    def test_persistent_volume_manifest(self, mock_run, k8s):
        """Test the volume points at the node's data mount."""
        mock_run.return_value = (True, "", "")
        k8s.persistent_volume_create("airbyte-local-pv")
        manifest = yaml.safe_load(mock_run.call_args.kwargs["input"])
        assert manifest["kind"] == "PersistentVolume"
        assert manifest["spec"]["hostPath"]["path"] == "/var/local-path-provider/airbyte-local-pv"

    @patch("abctl.k8s.run_kubectl")
    def test_secret_apply_file(self, mock_run, k8s, tmp_path):
        """Test a secret manifest is applied in the namespace."""
        path = tmp_path / "secret.yaml"
        path.write_text("apiVersion: v1\nkind: Secret\nmetadata:\n  name: creds\nstringData:\n  k: v\n")
        mock_run.return_value = (True, "", "")

        k8s.secret_apply_file(str(path), "airbyte-abctl")

        args = mock_run.call_args.args[0]
        assert args[4:] == ["apply", "-f", "-", "-n", "airbyte-abctl"]
        assert yaml.safe_load(mock_run.call_args.kwargs["input"])["metadata"]["name"] == "creds"

    @patch("abctl.k8s.run_kubectl")
    def test_secret_apply_file_rejects_other_kinds(self, mock_run, k8s, tmp_path):
        """Test a manifest that is not a Secret is refused."""
        path = tmp_path / "cm.yaml"
        path.write_text("kind: ConfigMap\n")
        with pytest.raises(KubernetesError, match="does not contain a Secret"):
            k8s.secret_apply_file(str(path), "airbyte-abctl")
        mock_run.assert_not_called()

    def test_secret_apply_missing_file(self, k8s, tmp_path):
        """Test an unreadable file is a KubernetesError."""
        with pytest.raises(KubernetesError):
            k8s.secret_apply_file(str(tmp_path / "missing.yaml"), "airbyte-abctl")

    @patch("abctl.k8s.run_kubectl")
    def test_service_ingresses(self, mock_run, k8s):
        """Test load balancer ingress entries are returned."""
        svc = {"status": {"loadBalancer": {"ingress": [{"ip": "172.18.0.2"}]}}}
        mock_run.return_value = (True, json.dumps(svc), "")
        assert k8s.service_ingresses("ingress-nginx", "ingress-nginx-controller") == [{"ip": "172.18.0.2"}]
        mock_run.return_value = (True, "{}", "")
        assert k8s.service_ingresses("ingress-nginx", "ingress-nginx-controller") == []

    @patch("abctl.k8s.run_kubectl")
    def test_secret_data(self, mock_run, k8s):
        """Test secret values are base64-decoded."""
        secret = {"data": {"instance-admin-password": base64.b64encode(b"pw").decode()}}
        mock_run.return_value = (True, json.dumps(secret), "")
        assert k8s.secret_data("airbyte-abctl", "airbyte-auth-secrets") == {"instance-admin-password": "pw"}
        assert mock_run.call_args.args[0][4:] == [
            "get", "secret", "airbyte-auth-secrets", "-n", "airbyte-abctl", "-o", "json"]

    @patch("abctl.k8s.run_kubectl")
    def test_secret_patch_data(self, mock_run, k8s):
        """Test new values are merged into the secret base64-encoded."""
        mock_run.return_value = (True, "", "")
        k8s.secret_patch_data("airbyte-abctl", "airbyte-auth-secrets", {"instance-admin-password": "pw"})
        args = mock_run.call_args.args[0][4:]
        assert args[:7] == ["patch", "secret", "airbyte-auth-secrets", "-n", "airbyte-abctl", "--type", "merge"]
        assert json.loads(args[-1]) == {"data": {"instance-admin-password": base64.b64encode(b"pw").decode()}}

    @patch("abctl.k8s.run_kubectl")
    def test_deployment_list(self, mock_run, k8s):
        """Test deployment names are returned."""
        deployments = {"items": [{"metadata": {"name": "airbyte-abctl-server"}}]}
        mock_run.return_value = (True, json.dumps(deployments), "")
        assert k8s.deployment_list("airbyte-abctl") == ["airbyte-abctl-server"]

    @patch("abctl.k8s.run_kubectl")
    def test_deployment_restart(self, mock_run, k8s):
        """Test a rollout restart is issued for the deployment."""
        mock_run.return_value = (True, "", "")
        k8s.deployment_restart("airbyte-abctl", "airbyte-abctl-server")
        assert mock_run.call_args.args[0][4:] == [
            "rollout", "restart", "deployment/airbyte-abctl-server", "-n", "airbyte-abctl"]

    @patch("abctl.k8s.popen_kubectl")
    def test_events_watch(self, mock_popen, k8s):
        """Test events are watched as JSON in the namespace."""
        assert k8s.events_watch("airbyte-abctl") is mock_popen.return_value
        args = mock_popen.call_args.args[0]
        assert args[:4] == ["--kubeconfig", "/tmp/abctl.kubeconfig", "--context", "kind-airbyte-abctl"]
        assert args[4:] == ["get", "events", "-n", "airbyte-abctl", "--watch-only", "-o", "json"]

    @patch("abctl.k8s.popen_kubectl")
    def test_logs_stream_since(self, mock_popen, k8s):
        """Test followed logs start at the given instant in UTC."""
        since = datetime(2024, 12, 20, 16, 32, 14, tzinfo=timezone.utc)
        k8s.logs_stream("airbyte-abctl", "airbyte-abctl-airbyte-bootloader", since)
        assert mock_popen.call_args.args[0][4:] == [
            "logs", "airbyte-abctl-airbyte-bootloader", "-n", "airbyte-abctl", "--follow",
            "--since-time=2024-12-20T16:32:14Z"]

    @patch("abctl.k8s.popen_kubectl", side_effect=FileNotFoundError("kubectl"))
    def test_stream_without_kubectl(self, _popen, k8s):
        """Test a missing kubectl binary is a KubernetesError."""
        with pytest.raises(KubernetesError, match="unable to start kubectl"):
            k8s.events_watch("airbyte-abctl")


class TestDockerAuthSecret:
    """Tests for the registry pull secret."""

    def test_dockerconfigjson(self):
        """Test the encoded config carries the credentials."""
        secret = docker_auth_secret("https://index.docker.io/v1/", "user", "pass", "u@example.com")
        assert secret["type"] == "kubernetes.io/dockerconfigjson"
        assert secret["metadata"]["name"] == "docker-auth"
        config = json.loads(base64.b64decode(secret["data"][".dockerconfigjson"]))
        entry = config["auths"]["https://index.docker.io/v1/"]
        assert entry["username"] == "user"
        assert base64.b64decode(entry["auth"]) == b"user:pass"
