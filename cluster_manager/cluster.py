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

"""kind cluster lifecycle: create, delete, list, context switching."""

from __future__ import annotations

from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from cluster_manager import console
from cluster_manager.config import ClusterIdentity
from cluster_manager.errors import ClusterCreateFailed, ClusterNotFound
from cluster_manager.session import Session
from cluster_manager.tables import nodes_table
from cluster_manager.topology import build_topology, topology_config_file


# ============================================================================
# Lookups
# ============================================================================

def list_clusters(session: Session) -> list[str]:
    """Return the names of all kind clusters on this host."""
    return session.runtime.list_clusters()


def cluster_exists(session: Session, identity: ClusterIdentity) -> bool:
    return identity.name in list_clusters(session)


def ensure_cluster_exists(session: Session, identity: ClusterIdentity) -> None:
    """Raise ClusterNotFound unless kind knows ``identity``."""
    if not cluster_exists(session, identity):
        raise ClusterNotFound(identity.name)


def list_contexts(session: Session) -> list[tuple[str, bool]]:
    """Return (context, is_current) pairs for every kubectl context."""
    current = session.api.current_context()
    return [(name, name == current) for name in session.api.list_contexts()]


def get_kubeconfig(session: Session, identity: ClusterIdentity) -> str:
    """Return the raw kubeconfig for ``identity``.

    Raises:
        ClusterNotFound: If the cluster does not exist.
    """
    ensure_cluster_exists(session, identity)
    return session.runtime.get_kubeconfig(identity.name)


# ============================================================================
# Cluster operations
# ============================================================================

def create_cluster(session: Session, identity: ClusterIdentity, node_count: int, node_image: str = "") -> None:
    """Create a kind cluster and switch the kube context to it.

    Existence is not pre-checked; kind rejects duplicate names itself.

    Args:
        session: Current session.
        identity: Cluster to create.
        node_count: Total nodes including the control plane.
        node_image: Optional kindest/node image for every node.

    Raises:
        InvalidTopology: If ``node_count`` is less than 1 (before kind runs).
        ClusterCreateFailed: If kind fails.
        ContextSwitchFailed: If the new context cannot be selected.
    """
    topology = build_topology(identity.name, node_count, node_image)
    console.print(Panel.fit(f"Creating kind cluster '{identity.name}' ({node_count} node(s))", style="bold blue"))
    if node_image:
        console.print(f"[yellow]Node image: {node_image}[/yellow]")

    with topology_config_file(topology) as config_path:
        session.runtime.create_cluster(identity.name, config_path, session.settings.kind_wait)
    console.print(f"[green]\u2705 Cluster '{identity.name}' created[/green]")

    use_cluster(session, identity)
    console.print("[blue]→ Cluster info:[/blue]")
    console.print(session.api.cluster_info(identity.context), markup=False, highlight=False)


def delete_cluster(session: Session, identity: ClusterIdentity) -> None:
    """Delete a kind cluster.

    Raises:
        ClusterDeleteFailed: If kind reports a failure.
    """
    console.print(f"[yellow]\u2139\ufe0f  Deleting kind cluster '{identity.name}'...[/yellow]")
    session.runtime.delete_cluster(identity.name)
    console.print(f"[green]\u2705 Cluster '{identity.name}' deleted[/green]")


def use_cluster(session: Session, identity: ClusterIdentity) -> None:
    """Switch the kube context to ``identity``.

    Raises:
        ContextSwitchFailed: If the derived context is unknown.
    """
    console.print(f"[blue]→ Switching kubectl context to {identity.context}[/blue]")
    session.use(identity)


def wait_for_nodes(session: Session, identity: ClusterIdentity) -> None:
    """Wait for every node to be Ready, up to ``settings.node_ready_timeout``.

    Raises:
        ClusterCreateFailed: If nodes are still not Ready at the deadline.
    """
    settings = session.settings
    console.print("[yellow]\u2139\ufe0f  Waiting for all nodes to be ready...[/yellow]")

    @retry(
        stop=stop_after_delay(settings.node_ready_timeout),
        wait=wait_fixed(settings.poll_interval),
        retry=retry_if_result(lambda ready: not ready),
    )
    def _all_ready() -> bool:
        nodes = session.api.list_nodes(identity.context)
        return bool(nodes) and all(node.ready for node in nodes)

    try:
        _all_ready()
    except RetryError as err:
        raise ClusterCreateFailed(
            f"Nodes of cluster '{identity.name}' not ready after {settings.node_ready_timeout}s"
        ) from err

    console.print("[green]\u2705 All nodes are ready[/green]")
    console.print(nodes_table(session.api.list_nodes(identity.context)))
