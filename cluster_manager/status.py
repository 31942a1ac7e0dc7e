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

"""Consolidated, read-only status of a cluster, its mesh and add-ons."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from rich.console import Console

from cluster_manager.clients import NodeInfo, PodInfo, ServiceInfo
from cluster_manager.cluster import ensure_cluster_exists
from cluster_manager.components import control_plane_pods
from cluster_manager.config import ClusterIdentity
from cluster_manager.constants import (
    ADDONS,
    ANNOTATION_INSTALL_MODE,
    ANNOTATION_PROFILE,
    ANNOTATION_VERSION,
    INJECTION_ENABLED,
    INJECTION_LABEL,
    NS_ISTIO_SYSTEM,
)
from cluster_manager.session import Session
from cluster_manager.tables import nodes_table, pods_table, services_table


@dataclass(frozen=True)
class MeshState:
    """Istio presence as recorded on the istio-system namespace.

    ``profile``, ``version`` and ``install_mode`` are empty when Istio was
    installed by something other than this tool.
    """

    installed: bool
    profile: str = ""
    version: str = ""
    install_mode: str = ""


@dataclass(frozen=True)
class StatusReport:
    """Point-in-time view of a cluster, built by ``collect_status``.

    Attributes:
        cluster: kind cluster name.
        context: kube context the reads targeted.
        exists: Whether kind knows the cluster.
        nodes: Cluster nodes.
        mesh: Istio presence and recorded install details.
        addons: Add-on name to installed flag, in install order.
        injected_namespaces: Namespaces labelled ``istio-injection=enabled``.
        sidecar_pods: (namespace, pod) pairs carrying an istio-proxy container.
        control_plane_pods: istiod and gateway pods.
        services: Services in istio-system.
    """

    cluster: str
    context: str
    exists: bool
    nodes: list[NodeInfo] = field(default_factory=list)
    mesh: MeshState = field(default_factory=lambda: MeshState(installed=False))
    addons: dict[str, bool] = field(default_factory=dict)
    injected_namespaces: list[str] = field(default_factory=list)
    sidecar_pods: list[tuple[str, str]] = field(default_factory=list)
    control_plane_pods: list[PodInfo] = field(default_factory=list)
    services: list[ServiceInfo] = field(default_factory=list)

    @property
    def installed_addons(self) -> list[str]:
        return [name for name, installed in self.addons.items() if installed]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["sidecar_pods"] = [{"namespace": ns, "pod": pod} for ns, pod in self.sidecar_pods]
        return data


def _mesh_state(namespace: dict | None) -> MeshState:
    if namespace is None:
        return MeshState(installed=False)
    annotations = namespace.get("metadata", {}).get("annotations") or {}
    return MeshState(
        installed=True,
        profile=annotations.get(ANNOTATION_PROFILE, ""),
        version=annotations.get(ANNOTATION_VERSION, ""),
        install_mode=annotations.get(ANNOTATION_INSTALL_MODE, ""),
    )


def collect_status(session: Session, identity: ClusterIdentity) -> StatusReport:
    """Build a fresh status report. Performs reads only.

    Missing Istio, add-ons or injected namespaces are reported as not
    installed rather than raised.

    Raises:
        ClusterNotFound: If kind does not know the cluster.
    """
    ensure_cluster_exists(session, identity)
    api = session.api
    context = identity.context

    mesh = _mesh_state(api.get_namespace(context, NS_ISTIO_SYSTEM))
    addons = {
        addon.name: mesh.installed and api.deployment_exists(context, NS_ISTIO_SYSTEM, addon.deployment)
        for addon in ADDONS
    }
    istio_pods = api.list_pods(context, NS_ISTIO_SYSTEM) if mesh.installed else []
    services = api.list_services(context, NS_ISTIO_SYSTEM) if mesh.installed else []
    sidecar_pods = [(pod.namespace, pod.name) for pod in api.list_pods(context) if pod.has_sidecar]

    return StatusReport(
        cluster=identity.name,
        context=context,
        exists=True,
        nodes=api.list_nodes(context),
        mesh=mesh,
        addons=addons,
        injected_namespaces=api.list_namespaces(context, f"{INJECTION_LABEL}={INJECTION_ENABLED}"),
        sidecar_pods=sidecar_pods,
        control_plane_pods=control_plane_pods(istio_pods),
        services=services,
    )


def render_status(report: StatusReport, console: Console) -> None:
    """Print ``report`` as colored sections."""
    console.print(f"[blue]→ Status for '{report.cluster}':[/blue]")
    console.print(f"[green]\u2705 Cluster '{report.cluster}' exists[/green] (context {report.context})")

    console.print(f"[blue]→ Nodes ({len(report.nodes)}):[/blue]")
    console.print(nodes_table(report.nodes))

    console.print("[blue]→ Istio status:[/blue]")
    if report.mesh.installed:
        details = ", ".join(
            f"{label} {value}" for label, value in (
                ("profile", report.mesh.profile),
                ("version", report.mesh.version),
                ("install mode", report.mesh.install_mode),
            ) if value
        )
        console.print(f"[green]\u2705 Istio is installed[/green]{f' ({details})' if details else ''}")
        console.print("[blue]→ Istio components:[/blue]")
        console.print(pods_table(report.control_plane_pods))
        console.print("[blue]→ Istio services:[/blue]")
        console.print(services_table(report.services))
    else:
        console.print("[yellow]\u26a0\ufe0f  Istio not installed[/yellow]")

    console.print("[blue]→ Istio add-ons:[/blue]")
    for name, installed in report.addons.items():
        state = "[green]\u2705 Installed[/green]" if installed else "[yellow]\u26a0\ufe0f  Not installed[/yellow]"
        console.print(f"  {name.capitalize():<11} {state}")

    console.print("[blue]→ Namespaces with Istio injection:[/blue]")
    for namespace in report.injected_namespaces or ["(none)"]:
        console.print(f"  {namespace}")

    console.print("[blue]→ Pods with Istio sidecars:[/blue]")
    for namespace, pod in report.sidecar_pods:
        console.print(f"  {namespace}/{pod}", markup=False, highlight=False)
    if not report.sidecar_pods:
        console.print("  (none)")
