"""Tests for settings and cluster identity."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cluster_manager.config import ClusterIdentity, ClusterManagerSettings, MeshProfile
from cluster_manager.constants import ADDONS
from cluster_manager.errors import InvalidClusterName


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in ("ISTIO_VERSION", "ICM_ISTIO_VERSION", "ICM_CLUSTER_NAME", "ICM_ISTIO_PROFILE"):
            monkeypatch.delenv(var, raising=False)
        settings = ClusterManagerSettings()
        assert settings.istio_version == "1.25.1"
        assert settings.cluster_name == "istio-cluster"
        assert settings.istio_profile is MeshProfile.DEMO
        assert settings.addon_timeout == 180

    def test_istio_version_from_env_drives_addon_url(self, monkeypatch):
        monkeypatch.setenv("ISTIO_VERSION", "1.24.3")
        settings = ClusterManagerSettings()
        assert settings.istio_version == "1.24.3"
        assert settings.istio_major_minor == "1.24"
        assert settings.addon_manifest_url(ADDONS[0]) == (
            "https://raw.githubusercontent.com/istio/istio/release-1.24/samples/addons/prometheus.yaml"
        )

    def test_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("ICM_CLUSTER_NAME", "from-env")
        monkeypatch.setenv("ICM_ADDON_TIMEOUT", "30")
        settings = ClusterManagerSettings()
        assert settings.cluster_name == "from-env"
        assert settings.addon_timeout == 30

    def test_invalid_version_rejected(self, monkeypatch):
        monkeypatch.setenv("ISTIO_VERSION", "latest")
        with pytest.raises(ValidationError):
            ClusterManagerSettings()

    def test_invalid_profile_rejected(self, monkeypatch):
        monkeypatch.setenv("ICM_ISTIO_PROFILE", "ambient-everything")
        with pytest.raises(ValidationError):
            ClusterManagerSettings()


class TestClusterIdentity:
    def test_context_derived_from_name(self):
        assert ClusterIdentity("demo").context == "kind-demo"

    @pytest.mark.parametrize("name", ["", "Demo", "demo_1", "demo cluster", "demo/1"])
    def test_invalid_names(self, name):
        with pytest.raises(InvalidClusterName):
            ClusterIdentity(name)

    @pytest.mark.parametrize("name", ["dev.local", "istio-dev", "a", "1.2-x"])
    def test_names_kind_accepts(self, name):
        assert ClusterIdentity(name).context == f"kind-{name}"
