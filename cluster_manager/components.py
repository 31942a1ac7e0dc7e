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

"""Istio control plane and observability add-on installation."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from cluster_manager import console
from cluster_manager.clients import PodInfo
from cluster_manager.cluster import ensure_cluster_exists
from cluster_manager.config import ClusterIdentity, MeshProfile
from cluster_manager.constants import (
    ADDONS,
    ANNOTATION_INSTALL_MODE,
    ANNOTATION_PROFILE,
    ANNOTATION_VERSION,
    CONTROL_PLANE_POD_PREFIXES,
    INJECTION_ENABLED,
    INJECTION_LABEL,
    INSTALL_MODE_FRESH,
    INSTALL_MODE_UPGRADE,
    NS_ISTIO_SYSTEM,
)
from cluster_manager.errors import (
    AddonApplyFailed,
    AddonReadinessTimeout,
    MeshInstallFailed,
    MeshNotInstalled,
    ToolInvocationError,
)
from cluster_manager.session import Session
from cluster_manager.tables import pods_table


@dataclass(frozen=True)
class MeshInstallResult:
    """Outcome of install-istio.

    Attributes:
        profile: Profile passed to istioctl.
        version: Istio version installed.
        upgraded: True if istio-system already existed (upgrade path).
        injection_namespace: Namespace labelled for sidecar injection.
        control_plane_pods: Pods in istio-system after the install.
    """

    profile: str
    version: str
    upgraded: bool
    injection_namespace: str
    control_plane_pods: list[PodInfo] = field(default_factory=list)


@dataclass(frozen=True)
class AddonInstallResult:
    """Outcome of install-addons.

    Attributes:
        applied: Add-ons whose manifests were applied, in order.
        ready: Whether all istio-system pods were Ready before the deadline.
        timeout_message: The readiness warning when ``ready`` is False.
    """

    applied: list[str]
    ready: bool
    timeout_message: str = ""


def control_plane_pods(pods: list[PodInfo]) -> list[PodInfo]:
    return [pod for pod in pods if pod.name.startswith(CONTROL_PLANE_POD_PREFIXES)]


# ============================================================================
# Istio
# ============================================================================

def install_mesh(session: Session, identity: ClusterIdentity, profile: MeshProfile | str | None = None) -> MeshInstallResult:
    """Install Istio, or upgrade it if istio-system already exists.

    After a successful install the injection namespace is labelled
    ``istio-injection=enabled`` (overwriting, so re-runs are no-ops) and
    istio-system is annotated with the profile, version and install mode.
    Failures are not retried.

    Args:
        session: Current session.
        identity: Target cluster.
        profile: Istio profile, or None for the configured default.

    Returns:
        The install result including control-plane pods.

    Raises:
        ClusterNotFound: If the cluster does not exist.
        MeshInstallFailed: If istioctl or the injection label fails.
    """
    settings = session.settings
    profile = MeshProfile(profile or settings.istio_profile).value
    version = settings.istio_version
    context = identity.context

    console.print(Panel.fit(
        f"Installing Istio {version} on cluster '{identity.name}' (profile '{profile}')", style="bold blue"))
    ensure_cluster_exists(session, identity)
    session.use(identity)

    upgraded = session.api.get_namespace(context, NS_ISTIO_SYSTEM) is not None
    if upgraded:
        console.print("[yellow]\u26a0\ufe0f  Istio already present - will attempt upgrade[/yellow]")

    session.mesh.install(context, profile, version)
    console.print("[green]\u2705 Istio control plane installed[/green]")

    namespace = settings.injection_namespace
    console.print(f"[blue]→ Enabling automatic sidecar injection for '{namespace}' namespace...[/blue]")
    try:
        session.api.label_namespace(context, namespace, INJECTION_LABEL, INJECTION_ENABLED)
        session.api.annotate_namespace(context, NS_ISTIO_SYSTEM, {
            ANNOTATION_PROFILE: profile,
            ANNOTATION_VERSION: version,
            ANNOTATION_INSTALL_MODE: INSTALL_MODE_UPGRADE if upgraded else INSTALL_MODE_FRESH,
        })
    except ToolInvocationError as err:
        raise MeshInstallFailed(str(err)) from err
    console.print(f"[green]\u2705 Automatic sidecar injection enabled for '{namespace}' namespace[/green]")

    pods = control_plane_pods(session.api.list_pods(context, NS_ISTIO_SYSTEM))
    console.print("[blue]→ Istio control plane pods:[/blue]")
    console.print(pods_table(pods))
    return MeshInstallResult(
        profile=profile,
        version=version,
        upgraded=upgraded,
        injection_namespace=namespace,
        control_plane_pods=pods,
    )


# ============================================================================
# Add-ons
# ============================================================================

def wait_for_pods_ready(session: Session, identity: ClusterIdentity, namespace: str, timeout: int) -> None:
    """Poll until every pod in ``namespace`` is Ready.

    Args:
        session: Current session.
        identity: Target cluster.
        namespace: Namespace whose pods to watch.
        timeout: Deadline in seconds.

    Raises:
        AddonReadinessTimeout: If pods are still pending at the deadline.
    """
    last_seen: list[PodInfo] = []

    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(session.settings.poll_interval),
        retry=retry_if_result(lambda ready: not ready),
    )
    def _all_ready() -> bool:
        nonlocal last_seen
        last_seen = session.api.list_pods(identity.context, namespace)
        return bool(last_seen) and all(pod.ready for pod in last_seen)

    try:
        _all_ready()
    except RetryError as err:
        pending = [pod.name for pod in last_seen if not pod.ready]
        raise AddonReadinessTimeout(namespace, timeout, pending) from err


def install_addons(session: Session, identity: ClusterIdentity) -> AddonInstallResult:
    """Apply prometheus, grafana, jaeger and kiali, then wait for readiness.

    Manifests are applied in order; a failure stops at that add-on and leaves
    the earlier ones installed. A readiness timeout is reported as a warning
    in the result rather than raised.

    Args:
        session: Current session.
        identity: Target cluster.

    Returns:
        The applied add-ons and readiness outcome.

    Raises:
        ClusterNotFound: If the cluster does not exist.
        MeshNotInstalled: If istio-system is missing (nothing is applied).
        AddonApplyFailed: If a manifest fails to apply.
    """
    settings = session.settings
    context = identity.context
    console.print(Panel.fit(
        f"Installing Istio {settings.istio_version} add-ons on '{identity.name}'", style="bold blue"))
    ensure_cluster_exists(session, identity)
    session.use(identity)

    if session.api.get_namespace(context, NS_ISTIO_SYSTEM) is None:
        raise MeshNotInstalled(identity.name)

    applied: list[str] = []
    for addon in ADDONS:
        url = settings.addon_manifest_url(addon)
        console.print(f"[blue]→ Applying {addon.manifest}[/blue]")
        try:
            session.api.apply_manifest(context, url, NS_ISTIO_SYSTEM)
        except ToolInvocationError as err:
            raise AddonApplyFailed(addon.name, applied, str(err)) from err
        applied.append(addon.name)

    console.print(f"[blue]→ Waiting up to {settings.addon_timeout}s for add-on pods...[/blue]")
    try:
        wait_for_pods_ready(session, identity, NS_ISTIO_SYSTEM, settings.addon_timeout)
    except AddonReadinessTimeout as err:
        console.print(f"[yellow]\u26a0\ufe0f  {err}[/yellow]")
        console.print("[yellow]   Pods may still become ready; check again with 'status'.[/yellow]")
        return AddonInstallResult(applied=applied, ready=False, timeout_message=str(err))

    console.print("[green]\u2705 Istio add-ons installation completed[/green]")
    addon_pods = [
        pod for pod in session.api.list_pods(context, NS_ISTIO_SYSTEM)
        if pod.name.startswith(tuple(addon.deployment for addon in ADDONS))
    ]
    console.print("[blue]→ Add-on pods:[/blue]")
    console.print(pods_table(addon_pods))
    console.print("[blue]→ Access UIs with port-forwarding:[/blue]")
    for addon in ADDONS:
        console.print(
            f"  {addon.name.capitalize():<11} kubectl port-forward svc/{addon.service} "
            f"-n {NS_ISTIO_SYSTEM} {addon.port_forward}",
            markup=False,
            highlight=False,
        )
    return AddonInstallResult(applied=applied, ready=True)
