"""Unit tests for abctl.values module."""

from __future__ import annotations

import pytest
import yaml

from abctl.config import InstallOptions
from abctl.values import (
    build_airbyte_values,
    build_nginx_values,
    chart_is_v2_plus,
    load_values_file,
    merge_values,
)


def _values(chart_version: str = "1.5.1", **overrides) -> dict:
    fields = dict(installation_id="install-1")
    fields.update(overrides)
    return yaml.safe_load(build_airbyte_values(InstallOptions(**fields), chart_version))


class TestChartIsV2Plus:
    """Tests for chart major version detection."""

    @pytest.mark.parametrize(
        "version,expected",
        [("", False), ("1.9.3", False), ("2.0.0", True), ("v2.1.0", True), ("2.0.0-alpha.1", False),
         ("not-a-version", False)],
    )
    def test_versions(self, version, expected):
        """Test semver comparison against 2.0.0."""
        assert chart_is_v2_plus(version) is expected


class TestBuildAirbyteValues:
    """Tests for airbyte chart values."""

    def test_base_values(self):
        """Test values every install carries."""
        vals = _values()
        assert vals["global"]["env_vars"]["AIRBYTE_INSTALLATION_ID"] == "install-1"
        assert vals["global"]["jobs"]["resources"]["limits"] == {"cpu": "3", "memory": "4Gi"}
        assert vals["airbyte-bootloader"]["env_vars"]["PLATFORM_LOG_FORMAT"] == "json"
        assert vals["global"]["auth"]["enabled"] == "true"
        assert vals["postgresql"]["image"]["tag"] == "1.7.0-17"
        assert "server" not in vals

    def test_v2_webapp_url(self):
        """Test v2 charts get the webapp url."""
        vals = _values("2.0.3")
        assert vals["server"]["env_vars"]["WEBAPP_URL"] == "http://airbyte-abctl-airbyte-server-svc:80"

    def test_storage_psql_and_auth_toggles(self):
        """Test local storage, psql13 and disabled auth."""
        vals = _values(local_storage=True, enable_psql17=False, disable_auth=True)
        assert vals["global"]["storage"]["type"] == "local"
        assert "postgresql" not in vals
        assert "auth" not in vals["global"]

    @pytest.mark.parametrize("version,launcher,builder", [
        ("1.5.1", "workload-launcher", "connector-builder-server"),
        ("2.0.0", "workloadLauncher", "connectorBuilderServer"),
    ])
    def test_low_resource_mode(self, version, launcher, builder):
        """Test low resource mode zeroes requests using the chart's key names."""
        vals = _values(version, low_resource_mode=True)
        assert vals["global"]["jobs"]["resources"]["requests"] == {"cpu": "0", "memory": "0"}
        assert vals[builder]["enabled"] == "false"
        assert vals[launcher]["env_vars"]["CHECK_JOB_MAIN_CONTAINER_CPU_REQUEST"] == "0"
        assert vals["server"]["env_vars"]["JOB_RESOURCE_VARIANT_OVERRIDE"] == "lowresource"

    def test_docker_auth(self):
        """Test registry credentials add the pull secret."""
        vals = _values(docker_user="u", docker_pass="p")
        assert vals["global"]["imagePullSecrets"] == [{"name": "docker-auth"}]

    def test_insecure_cookies(self):
        """Test the cookie key differs between v1 and v2 charts."""
        assert _values("1.5.1", insecure_cookies=True)["global"]["auth"]["cookieSecureSetting"] == "false"
        v2 = _values("2.0.0", insecure_cookies=True)
        assert v2["global"]["auth"]["security"]["cookieSecureSetting"] == "false"

    def test_values_file_wins(self, tmp_path):
        """Test the user values file overrides generated values."""
        values_file = tmp_path / "values.yaml"
        values_file.write_text("global:\n  auth:\n    enabled: false\n  extra: 1\n")
        vals = _values(values_file=str(values_file))
        assert vals["global"]["auth"]["enabled"] is False
        assert vals["global"]["extra"] == 1
        assert vals["global"]["env_vars"]["AIRBYTE_INSTALLATION_ID"] == "install-1"


class TestValuesHelpers:
    """Tests for values file helpers."""

    def test_merge_values_is_deep(self):
        """Test nested dicts are merged and scalars replaced."""
        base = {"a": {"b": 1, "c": 2}, "d": 1}
        assert merge_values(base, {"a": {"b": 5}, "d": {"e": 1}}) == {"a": {"b": 5, "c": 2}, "d": {"e": 1}}

    def test_load_missing_file(self, tmp_path):
        """Test an unreadable values file is a ValueError."""
        with pytest.raises(ValueError):
            load_values_file(str(tmp_path / "missing.yaml"))

    def test_load_non_mapping(self, tmp_path):
        """Test a values file must be a mapping."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_values_file(str(path))

    def test_load_empty(self, tmp_path):
        """Test empty input yields no values."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_values_file(str(path)) == {}
        assert load_values_file("") == {}


class TestBuildNginxValues:
    """Tests for ingress-nginx values."""

    def test_port(self):
        """Test the service publishes the requested port."""
        vals = yaml.safe_load(build_nginx_values(9000))
        controller = vals["controller"]
        assert controller["service"]["ports"]["http"] == 9000
        assert controller["hostPort"]["ports"] == {"http": 8080, "https": 8443}
        assert controller["config"]["http-port"] == 8080
