# /*
# Copyright 2026 The Istio Cluster Manager Authors.
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

"""Capability interfaces for kind, kubectl and istioctl, and their CLI-backed implementations."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import sh

from cluster_manager import logger
from cluster_manager.constants import KUBECTL_APPLY_TIMEOUT, ROLE_CONTROL_PLANE, ROLE_WORKER, SIDECAR_CONTAINER_NAME
from cluster_manager.errors import (
    ClusterCreateFailed,
    ClusterDeleteFailed,
    ContextSwitchFailed,
    MeshInstallFailed,
    ToolInvocationError,
)
from cluster_manager.utils import error_output, run_kubectl

LABEL_ROLE_CONTROL_PLANE = "node-role.kubernetes.io/control-plane"


# ============================================================================
# Resource views
# ============================================================================

@dataclass(frozen=True)
class NodeInfo:
    """A cluster node as reported by the API server.

    Attributes:
        name: Node name (e.g. ``demo-control-plane``).
        role: ``control-plane`` or ``worker``.
        ready: Whether the Ready condition is True.
        version: kubelet version.
    """

    name: str
    role: str
    ready: bool
    version: str = ""


@dataclass(frozen=True)
class PodInfo:
    """A pod with the fields status and readiness checks need.

    Attributes:
        namespace: Pod namespace.
        name: Pod name.
        phase: Pod phase (Running, Pending, ...).
        ready: Whether the Ready condition is True.
        containers: Container names from the pod spec.
    """

    namespace: str
    name: str
    phase: str
    ready: bool
    containers: tuple[str, ...] = ()

    @property
    def has_sidecar(self) -> bool:
        """True if an ``istio-proxy`` container was injected."""
        return SIDECAR_CONTAINER_NAME in self.containers


@dataclass(frozen=True)
class ServiceInfo:
    """A service summary.

    Attributes:
        name: Service name.
        type: ClusterIP, NodePort or LoadBalancer.
        cluster_ip: Assigned cluster IP.
        ports: ``port/protocol`` entries, suffixed with ``:nodePort`` when set.
    """

    name: str
    type: str
    cluster_ip: str
    ports: tuple[str, ...] = ()


def _condition_true(conditions: list[dict] | None, kind: str) -> bool:
    return any(c.get("type") == kind and c.get("status") == "True" for c in conditions or [])


def parse_nodes(doc: dict) -> list[NodeInfo]:
    """Parse ``kubectl get nodes -o json`` output."""
    nodes = []
    for item in doc.get("items", []):
        metadata = item.get("metadata", {})
        status = item.get("status", {})
        labels = metadata.get("labels") or {}
        nodes.append(NodeInfo(
            name=metadata.get("name", ""),
            role=ROLE_CONTROL_PLANE if LABEL_ROLE_CONTROL_PLANE in labels else ROLE_WORKER,
            ready=_condition_true(status.get("conditions"), "Ready"),
            version=status.get("nodeInfo", {}).get("kubeletVersion", ""),
        ))
    return nodes


def parse_pods(doc: dict) -> list[PodInfo]:
    """Parse ``kubectl get pods -o json`` output."""
    pods = []
    for item in doc.get("items", []):
        metadata = item.get("metadata", {})
        status = item.get("status", {})
        pods.append(PodInfo(
            namespace=metadata.get("namespace", ""),
            name=metadata.get("name", ""),
            phase=status.get("phase", "Unknown"),
            ready=_condition_true(status.get("conditions"), "Ready"),
            containers=tuple(c.get("name", "") for c in item.get("spec", {}).get("containers", [])),
        ))
    return pods


def parse_services(doc: dict) -> list[ServiceInfo]:
    """Parse ``kubectl get services -o json`` output."""
    services = []
    for item in doc.get("items", []):
        spec = item.get("spec", {})
        ports = tuple(
            f"{p.get('port')}/{p.get('protocol', 'TCP')}"
            + (f":{p['nodePort']}" if p.get("nodePort") else "")
            for p in spec.get("ports", [])
        )
        services.append(ServiceInfo(
            name=item.get("metadata", {}).get("name", ""),
            type=spec.get("type", ""),
            cluster_ip=spec.get("clusterIP", ""),
            ports=ports,
        ))
    return services


# ============================================================================
# Capability interfaces
# ============================================================================

class ClusterRuntime(Protocol):
    """Create, delete and enumerate local clusters."""

    def list_clusters(self) -> list[str]: ...

    def create_cluster(self, name: str, config_path: Path, wait: str) -> None: ...

    def delete_cluster(self, name: str) -> None: ...

    def get_kubeconfig(self, name: str) -> str: ...

    def version(self) -> str: ...


class ApiClient(Protocol):
    """Kubernetes API access. Every cluster call names its context explicitly."""

    def use_context(self, context: str) -> None: ...

    def current_context(self) -> str | None: ...

    def list_contexts(self) -> list[str]: ...

    def cluster_info(self, context: str) -> str: ...

    def get_namespace(self, context: str, namespace: str) -> dict | None: ...

    def list_namespaces(self, context: str, selector: str | None = None) -> list[str]: ...

    def label_namespace(self, context: str, namespace: str, key: str, value: str) -> None: ...

    def annotate_namespace(self, context: str, namespace: str, annotations: dict[str, str]) -> None: ...

    def list_nodes(self, context: str) -> list[NodeInfo]: ...

    def list_pods(self, context: str, namespace: str | None = None) -> list[PodInfo]: ...

    def list_services(self, context: str, namespace: str) -> list[ServiceInfo]: ...

    def deployment_exists(self, context: str, namespace: str, name: str) -> bool: ...

    def apply_manifest(self, context: str, source: str, namespace: str) -> None: ...

    def version(self) -> str: ...


class MeshInstaller(Protocol):
    """Install or upgrade the mesh control plane."""

    def install(self, context: str, profile: str, version: str) -> None: ...

    def version(self) -> str: ...


# ============================================================================
# kind
# ============================================================================

class KindRuntime:
    """ClusterRuntime backed by the ``kind`` binary."""

    def list_clusters(self) -> list[str]:
        """Return the names of all kind clusters.

        Raises:
            ToolInvocationError: If ``kind get clusters`` fails.
        """
        try:
            output = str(sh.kind("get", "clusters"))
        except sh.ErrorReturnCode as err:
            raise ToolInvocationError(f"kind get clusters failed: {error_output(err)}") from err
        return [line.strip() for line in output.splitlines() if line.strip()]

    def create_cluster(self, name: str, config_path: Path, wait: str) -> None:
        """Run ``kind create cluster``, streaming its output to stderr.

        Args:
            name: Cluster name.
            config_path: Path of the rendered kind config.
            wait: Control-plane wait duration (e.g. ``120s``).

        Raises:
            ClusterCreateFailed: If kind exits non-zero.
        """
        logger.debug("kind create cluster --name %s --config %s", name, config_path)
        try:
            sh.kind(
                "create", "cluster",
                "--name", name,
                "--config", str(config_path),
                "--wait", wait,
                _out=sys.stderr,
                _err=sys.stderr,
            )
        except sh.ErrorReturnCode as err:
            raise ClusterCreateFailed(f"Cluster creation failed: {error_output(err)}") from err

    def delete_cluster(self, name: str) -> None:
        """Run ``kind delete cluster``.

        Raises:
            ClusterDeleteFailed: If kind exits non-zero.
        """
        try:
            sh.kind("delete", "cluster", "--name", name, _err=sys.stderr)
        except sh.ErrorReturnCode as err:
            raise ClusterDeleteFailed(f"Could not delete cluster '{name}': {error_output(err)}") from err

    def get_kubeconfig(self, name: str) -> str:
        """Return the raw kubeconfig YAML for ``name``."""
        try:
            return str(sh.kind("get", "kubeconfig", "--name", name))
        except sh.ErrorReturnCode as err:
            raise ToolInvocationError(f"kind get kubeconfig failed: {error_output(err)}") from err

    def version(self) -> str:
        return str(sh.kind("version")).strip()


# ============================================================================
# kubectl
# ============================================================================

class KubectlClient:
    """ApiClient backed by the ``kubectl`` binary."""

    def _get_json(self, args: list[str], context: str | None = None) -> dict:
        """Run a kubectl read with ``-o json`` and parse the result.

        Args:
            args: kubectl arguments without the output flag.
            context: kube context to target.

        Returns:
            The decoded JSON document.

        Raises:
            ToolInvocationError: If kubectl exits non-zero.
        """
        ok, stdout, stderr = run_kubectl([*args, "-o", "json"], context=context)
        if not ok:
            raise ToolInvocationError(f"kubectl {' '.join(args)} failed: {stderr.strip()[:500]}")
        return json.loads(stdout or "{}")

    def use_context(self, context: str) -> None:
        """Set the kubeconfig's current-context.

        Raises:
            ContextSwitchFailed: If kubectl does not know ``context``.
        """
        ok, _, stderr = run_kubectl(["config", "use-context", context])
        if not ok:
            raise ContextSwitchFailed(context, stderr.strip())

    def current_context(self) -> str | None:
        ok, stdout, _ = run_kubectl(["config", "current-context"])
        return stdout.strip() if ok and stdout.strip() else None

    def list_contexts(self) -> list[str]:
        ok, stdout, stderr = run_kubectl(["config", "get-contexts", "-o", "name"])
        if not ok:
            raise ToolInvocationError(f"kubectl config get-contexts failed: {stderr.strip()}")
        return [line.strip() for line in stdout.splitlines() if line.strip()]

    def cluster_info(self, context: str) -> str:
        ok, stdout, stderr = run_kubectl(["cluster-info"], context=context)
        if not ok:
            raise ToolInvocationError(f"kubectl cluster-info failed: {stderr.strip()}")
        return stdout

    def get_namespace(self, context: str, namespace: str) -> dict | None:
        """Return the namespace object, or None if it does not exist.

        Raises:
            ToolInvocationError: For any failure other than NotFound.
        """
        ok, stdout, stderr = run_kubectl(["get", "namespace", namespace, "-o", "json"], context=context)
        if ok:
            return json.loads(stdout)
        if "NotFound" in stderr:
            return None
        raise ToolInvocationError(f"kubectl get namespace {namespace} failed: {stderr.strip()}")

    def list_namespaces(self, context: str, selector: str | None = None) -> list[str]:
        args = ["get", "namespaces"]
        if selector:
            args += ["-l", selector]
        doc = self._get_json(args, context)
        return [item["metadata"]["name"] for item in doc.get("items", [])]

    def label_namespace(self, context: str, namespace: str, key: str, value: str) -> None:
        ok, _, stderr = run_kubectl(["label", "namespace", namespace, f"{key}={value}", "--overwrite"], context=context)
        if not ok:
            raise ToolInvocationError(f"Failed to label namespace {namespace}: {stderr.strip()}")

    def annotate_namespace(self, context: str, namespace: str, annotations: dict[str, str]) -> None:
        pairs = [f"{key}={value}" for key, value in annotations.items()]
        ok, _, stderr = run_kubectl(["annotate", "namespace", namespace, *pairs, "--overwrite"], context=context)
        if not ok:
            raise ToolInvocationError(f"Failed to annotate namespace {namespace}: {stderr.strip()}")

    def list_nodes(self, context: str) -> list[NodeInfo]:
        return parse_nodes(self._get_json(["get", "nodes"], context))

    def list_pods(self, context: str, namespace: str | None = None) -> list[PodInfo]:
        scope = ["-n", namespace] if namespace else ["--all-namespaces"]
        return parse_pods(self._get_json(["get", "pods", *scope], context))

    def list_services(self, context: str, namespace: str) -> list[ServiceInfo]:
        return parse_services(self._get_json(["get", "services", "-n", namespace], context))

    def deployment_exists(self, context: str, namespace: str, name: str) -> bool:
        """True if ``kubectl get deployment`` finds ``name`` in ``namespace``."""
        ok, _, _ = run_kubectl(["get", "deployment", name, "-n", namespace], context=context)
        return ok

    def apply_manifest(self, context: str, source: str, namespace: str) -> None:
        """Apply a manifest file or URL into ``namespace``.

        Args:
            context: kube context to target.
            source: Local path or URL passed to ``kubectl apply -f``.
            namespace: Target namespace.

        Raises:
            ToolInvocationError: If kubectl exits non-zero.
        """
        ok, stdout, stderr = run_kubectl(
            ["apply", "-f", source, "-n", namespace], context=context, timeout=KUBECTL_APPLY_TIMEOUT,
        )
        if not ok:
            raise ToolInvocationError(stderr.strip()[:500] or stdout.strip()[:500])
        logger.debug("kubectl apply %s: %s", source, stdout.strip())

    def version(self) -> str:
        ok, stdout, stderr = run_kubectl(["version", "--client"])
        if not ok:
            raise ToolInvocationError(f"kubectl version failed: {stderr.strip()}")
        return stdout.strip()


# ============================================================================
# istioctl
# ============================================================================

class IstioctlInstaller:
    """MeshInstaller backed by the ``istioctl`` binary."""

    def install(self, context: str, profile: str, version: str) -> None:
        """Run ``istioctl install`` against ``context``.

        Args:
            context: kube context to install into.
            profile: Istio profile name.
            version: Exported as ``ISTIO_VERSION`` for istioctl.

        Raises:
            MeshInstallFailed: If istioctl exits non-zero.
        """
        env ={**os.environ, "ISTIO_VERSION": version}
        try:
            sh.istioctl(
                "install",
                "--set", f"profile={profile}",
                "--context", context,
                "-y",
                _env=env,
                _out=sys.stderr,
                _err=sys.stderr,
            )
        except sh.ErrorReturnCode as err:
            raise MeshInstallFailed(f"Istio install failed: {error_output(err)}") from err

    def version(self) -> str:
        return str(sh.istioctl("version", "--remote=false")).strip()
