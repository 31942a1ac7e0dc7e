"""Shared fixtures: in-memory kind, kubectl and istioctl fakes."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest
import yaml

from cluster_manager.clients import NodeInfo, PodInfo, ServiceInfo
from cluster_manager.config import ClusterManagerSettings
from cluster_manager.constants import KIND_CONTEXT_PREFIX, NS_ISTIO_SYSTEM, SIDECAR_CONTAINER_NAME
from cluster_manager.errors import (
    ClusterCreateFailed,
    ClusterDeleteFailed,
    ContextSwitchFailed,
    MeshInstallFailed,
    MissingDependency,
    ToolInvocationError,
)
from cluster_manager.prerequisites import PrerequisiteChecker, required_tools
from cluster_manager.session import Session


@dataclass
class FakeCluster:
    name: str
    config: dict
    nodes_ready: bool = True
    addon_pods_ready: bool = True
    namespaces: dict[str, dict] = field(default_factory=dict)
    deployments: set[tuple[str, str]] = field(default_factory=set)
    pods: list[PodInfo] = field(default_factory=list)

    def add_namespace(self, name: str) -> None:
        self.namespaces.setdefault(name, {"labels": {}, "annotations": {}})

    def add_workload(self, namespace: str, name: str, ready: bool = True, sidecar: bool = False) -> None:
        self.add_namespace(namespace)
        self.deployments.add((namespace, name))
        containers = (name, SIDECAR_CONTAINER_NAME) if sidecar else (name,)
        self.pods = [p for p in self.pods if not (p.namespace == namespace and p.name.startswith(f"{name}-"))]
        self.pods.append(PodInfo(namespace, f"{name}-7d9f8b6c5-abcde", "Running" if ready else "Pending",
                                 ready, containers))


class FakeRuntime:
    """In-memory kind."""

    def __init__(self) -> None:
        self.clusters: dict[str, FakeCluster] = {}
        self.create_calls: list[str] = []
        self.configs: dict[str, dict] = {}
        self.config_paths: list[Path] = []
        self.fail_create = False
        self.fail_delete = False

    def add_cluster(self, name: str, node_count: int = 1) -> FakeCluster:
        nodes = [{"role": "control-plane"}] + [{"role": "worker"}] * (node_count - 1)
        cluster = FakeCluster(name, {"name": name, "nodes": nodes})
        for namespace in ("default", "kube-system"):
            cluster.add_namespace(namespace)
        self.clusters[name] = cluster
        return cluster

    def list_clusters(self) -> list[str]:
        return sorted(self.clusters)

    def create_cluster(self, name: str, config_path: Path, wait: str) -> None:
        self.create_calls.append(name)
        self.config_paths.append(config_path)
        config = yaml.safe_load(config_path.read_text())
        self.configs[name] = config
        if self.fail_create:
            raise ClusterCreateFailed("Cluster creation failed: boom")
        if name in self.clusters:
            raise ClusterCreateFailed(f'node(s) already exist for a cluster with the name "{name}"')
        cluster = self.add_cluster(name)
        cluster.config = config

    def delete_cluster(self, name: str) -> None:
        if self.fail_delete:
            raise ClusterDeleteFailed(f"Could not delete cluster '{name}': boom")
        self.clusters.pop(name, None)

    def get_kubeconfig(self, name: str) -> str:
        return f"apiVersion: v1\nkind: Config\ncurrent-context: kind-{name}\n"

    def version(self) -> str:
        return "kind v0.27.0 go1.23.6 linux/amd64"


class FakeApi:
    """In-memory kubectl bound to a FakeRuntime."""

    def __init__(self, runtime: FakeRuntime) -> None:
        self.runtime = runtime
        self.current: str | None = None
        self.extra_contexts: list[str] = ["docker-desktop"]
        self.label_calls: list[tuple[str, str, str]] = []
        self.applied: list[str] = []
        self.fail_manifests: set[str] = set()

    def _cluster(self, context: str) -> FakeCluster:
        name = context.removeprefix(KIND_CONTEXT_PREFIX)
        if name not in self.runtime.clusters:
            raise ToolInvocationError(f"context {context} unreachable")
        return self.runtime.clusters[name]

    def use_context(self, context: str) -> None:
        if context not in self.list_contexts():
            raise ContextSwitchFailed(context, f'error: no context exists with the name: "{context}"')
        self.current = context

    def current_context(self) -> str | None:
        return self.current

    def list_contexts(self) -> list[str]:
        return [f"{KIND_CONTEXT_PREFIX}{name}" for name in self.runtime.clusters] + self.extra_contexts

    def cluster_info(self, context: str) -> str:
        self._cluster(context)
        return "Kubernetes control plane is running at https://127.0.0.1:6443\n"

    def get_namespace(self, context: str, namespace: str) -> dict | None:
        ns = self._cluster(context).namespaces.get(namespace)
        if ns is None:
            return None
        return {"metadata": {"name": namespace, "labels": dict(ns["labels"]),
                             "annotations": dict(ns["annotations"])}}

    def list_namespaces(self, context: str, selector: str | None = None) -> list[str]:
        namespaces = self._cluster(context).namespaces
        if not selector:
            return sorted(namespaces)
        key, value = selector.split("=", 1)
        return sorted(name for name, ns in namespaces.items() if ns["labels"].get(key) == value)

    def label_namespace(self, context: str, namespace: str, key: str, value: str) -> None:
        self.label_calls.append((namespace, key, value))
        ns = self._cluster(context).namespaces.get(namespace)
        if ns is None:
            raise ToolInvocationError(f'namespaces "{namespace}" not found')
        ns["labels"][key] = value

    def annotate_namespace(self, context: str, namespace: str, annotations: dict[str, str]) -> None:
        self._cluster(context).namespaces[namespace]["annotations"].update(annotations)

    def list_nodes(self, context: str) -> list[NodeInfo]:
        cluster = self._cluster(context)
        nodes = []
        workers = 0
        for node in cluster.config["nodes"]:
            if node["role"] == "control-plane":
                nodes.append(NodeInfo(f"{cluster.name}-control-plane", "control-plane", cluster.nodes_ready, "v1.32.2"))
            else:
                workers += 1
                suffix = "" if workers == 1 else str(workers)
                nodes.append(NodeInfo(f"{cluster.name}-worker{suffix}", "worker", cluster.nodes_ready, "v1.32.2"))
        return nodes

    def list_pods(self, context: str, namespace: str | None = None) -> list[PodInfo]:
        pods = self._cluster(context).pods
        return [p for p in pods if namespace is None or p.namespace == namespace]

    def list_services(self, context: str, namespace: str) -> list[ServiceInfo]:
        cluster = self._cluster(context)
        return [ServiceInfo(name, "ClusterIP", "10.96.0.10", ("80/TCP",))
                for ns, name in sorted(cluster.deployments) if ns == namespace]

    def deployment_exists(self, context: str, namespace: str, name: str) -> bool:
        return (namespace, name) in self._cluster(context).deployments

    def apply_manifest(self, context: str, source: str, namespace: str) -> None:
        cluster = self._cluster(context)
        manifest = source.rsplit("/", 1)[-1]
        if manifest in self.fail_manifests:
            raise ToolInvocationError(f"error: unable to read URL \"{source}\", server reported 404 Not Found")
        self.applied.append(source)
        cluster.add_workload(namespace, manifest.removesuffix(".yaml"), ready=cluster.addon_pods_ready)

    def version(self) -> str:
        return "Client Version: v1.32.2"


class FakeMesh:
    """In-memory istioctl bound to a FakeRuntime."""

    def __init__(self, runtime: FakeRuntime) -> None:
        self.runtime = runtime
        self.installs: list[tuple[str, str, str]] = []
        self.fail = False

    def install(self, context: str, profile: str, version: str) -> None:
        self.installs.append((context, profile, version))
        if self.fail:
            raise MeshInstallFailed("Istio install failed: Error: failed to install manifests")
        cluster = self.runtime.clusters[context.removeprefix(KIND_CONTEXT_PREFIX)]
        cluster.add_workload(NS_ISTIO_SYSTEM, "istiod")
        if profile in ("default", "demo"):
            cluster.add_workload(NS_ISTIO_SYSTEM, "istio-ingressgateway")

    def version(self) -> str:
        return "1.25.1"


class FakePrerequisites(PrerequisiteChecker):
    def __init__(self) -> None:
        super().__init__(which=lambda tool: f"/usr/local/bin/{tool}", ping=None)
        self.missing: set[str] = set()
        self.checked: list[str] = []

    def check(self, command: str) -> None:
        self.checked.append(command)
        for tool in required_tools(command):
            if tool in self.missing:
                raise MissingDependency(tool, "not found on PATH")

    def engine_version(self) -> str:
        return "27.3.1"


@pytest.fixture
def settings() -> ClusterManagerSettings:
    return ClusterManagerSettings(
        istio_version="1.25.1",
        cluster_name="istio-cluster",
        addon_timeout=0,
        node_ready_timeout=0,
        poll_interval=0,
    )


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def api(runtime: FakeRuntime) -> FakeApi:
    return FakeApi(runtime)


@pytest.fixture
def mesh(runtime: FakeRuntime) -> FakeMesh:
    return FakeMesh(runtime)


@pytest.fixture
def session(settings, runtime, api, mesh) -> Session:
    return Session(settings=settings, runtime=runtime, api=api, mesh=mesh, prerequisites=FakePrerequisites())
