"""Tests for Istio and add-on installation."""

from __future__ import annotations

import logging

import pytest

from cluster_manager.components import install_addons, install_mesh, wait_for_pods_ready
from cluster_manager.config import ClusterIdentity, MeshProfile
from cluster_manager.constants import ADDONS, ANNOTATION_INSTALL_MODE, NS_ISTIO_SYSTEM
from cluster_manager.errors import (
    AddonApplyFailed,
    AddonReadinessTimeout,
    ClusterNotFound,
    MeshInstallFailed,
    MeshNotInstalled,
)
from cluster_manager.status import collect_status

DEMO = ClusterIdentity("demo")


@pytest.fixture
def cluster(runtime):
    return runtime.add_cluster("demo", 2)


class TestInstallMesh:
    def test_fresh_install(self, session, cluster, api, mesh):
        result = install_mesh(session, DEMO, MeshProfile.DEMO)
        assert mesh.installs == [("kind-demo", "demo", "1.25.1")]
        assert api.current == "kind-demo"
        assert result.upgraded is False
        assert result.injection_namespace == "default"
        assert {p.name.split("-7d")[0] for p in result.control_plane_pods} == {"istiod", "istio-ingressgateway"}
        assert cluster.namespaces[NS_ISTIO_SYSTEM]["annotations"][ANNOTATION_INSTALL_MODE] == "fresh"

    def test_reinstall_is_upgrade_and_label_stays_single(self, session, cluster, api, mesh):
        install_mesh(session, DEMO, "demo")
        result = install_mesh(session, DEMO, "demo")
        assert result.upgraded is True
        assert len(mesh.installs) == 2
        assert cluster.namespaces["default"]["labels"] == {"istio-injection": "enabled"}
        assert api.list_namespaces("kind-demo", "istio-injection=enabled") == ["default"]
        assert cluster.namespaces[NS_ISTIO_SYSTEM]["annotations"][ANNOTATION_INSTALL_MODE] == "upgrade"

    def test_unknown_cluster(self, session, mesh):
        with pytest.raises(ClusterNotFound):
            install_mesh(session, ClusterIdentity("ghost"))
        assert mesh.installs == []

    def test_installer_failure_is_not_retried(self, session, cluster, api, mesh):
        mesh.fail = True
        with pytest.raises(MeshInstallFailed):
            install_mesh(session, DEMO)
        assert len(mesh.installs) == 1
        assert api.label_calls == []

    def test_injection_label_failure(self, session, cluster, settings):
        session.settings = settings.model_copy(update={"injection_namespace": "missing"})
        with pytest.raises(MeshInstallFailed, match="missing"):
            install_mesh(session, DEMO)

    def test_custom_injection_namespace(self, session, cluster, settings):
        cluster.add_namespace("apps")
        session.settings = settings.model_copy(update={"injection_namespace": "apps"})
        install_mesh(session, DEMO)
        assert cluster.namespaces["apps"]["labels"] == {"istio-injection": "enabled"}
        assert cluster.namespaces["default"]["labels"] == {}


class TestInstallAddons:
    def test_requires_mesh(self, session, cluster, api):
        with pytest.raises(MeshNotInstalled):
            install_addons(session, DEMO)
        assert api.applied == []

    def test_unknown_cluster(self, session):
        with pytest.raises(ClusterNotFound):
            install_addons(session, ClusterIdentity("ghost"))

    def test_applies_all_in_order(self, session, cluster, api):
        install_mesh(session, DEMO)
        result = install_addons(session, DEMO)
        assert result.ready is True
        assert result.applied == ["prometheus", "grafana", "jaeger", "kiali"]
        assert [url.rsplit("/", 1)[-1] for url in api.applied] == [a.manifest for a in ADDONS]
        assert all("/release-1.25/samples/addons/" in url for url in api.applied)
        assert collect_status(session, DEMO).installed_addons == ["prometheus", "grafana", "jaeger", "kiali"]

    def test_third_failure_leaves_first_two(self, session, cluster, api):
        install_mesh(session, DEMO)
        api.fail_manifests = {"jaeger.yaml"}
        with pytest.raises(AddonApplyFailed) as exc_info:
            install_addons(session, DEMO)
        assert exc_info.value.addon == "jaeger"
        assert exc_info.value.applied == ["prometheus", "grafana"]
        assert len(api.applied) == 2

        report = collect_status(session, DEMO)
        assert report.addons == {"prometheus": True, "grafana": True, "jaeger": False, "kiali": False}

    def test_readiness_timeout_is_a_warning(self, session, cluster):
        install_mesh(session, DEMO)
        cluster.addon_pods_ready = False
        result = install_addons(session, DEMO)
        assert result.ready is False
        assert len(result.applied) == 4
        assert "not ready after 0s" in result.timeout_message
        assert "kiali" in result.timeout_message

    def test_readiness_timeout_reported_once(self, session, cluster, caplog):
        install_mesh(session, DEMO)
        cluster.addon_pods_ready = False
        with caplog.at_level(logging.DEBUG, logger="cluster_manager"):
            install_addons(session, DEMO)
        assert [r for r in caplog.records if r.levelno >= logging.WARNING] == []

    def test_reapply_is_idempotent(self, session, cluster):
        install_mesh(session, DEMO)
        install_addons(session, DEMO)
        install_addons(session, DEMO)
        assert sum(1 for p in cluster.pods if p.name.startswith("kiali-")) == 1


class TestWaitForPodsReady:
    def test_no_pods_times_out(self, session, cluster):
        with pytest.raises(AddonReadinessTimeout) as exc_info:
            wait_for_pods_ready(session, DEMO, NS_ISTIO_SYSTEM, 0)
        assert exc_info.value.pending == []

    def test_ready_pods_return(self, session, cluster):
        cluster.add_workload(NS_ISTIO_SYSTEM, "istiod")
        wait_for_pods_ready(session, DEMO, NS_ISTIO_SYSTEM, 0)
