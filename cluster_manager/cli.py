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

"""
cli.py - Manage kind clusters with Istio.

Commands:
    create          Create a kind cluster and install Istio
    delete          Delete a kind cluster
    list            List all kind clusters
    status          Show cluster, Istio, add-on and sidecar status
    use             Switch kubectl context to a cluster
    kubeconfig      Print the kubeconfig for a cluster
    contexts        List all kubectl contexts
    install-istio   Install (or upgrade) Istio on an existing cluster
    install-addons  Install Istio add-ons (Prometheus, Grafana, Jaeger, Kiali)
    version         Show tool and dependency versions
    help            Display this help text

Environment Variables:
    - ISTIO_VERSION (default: 1.25.1) - Istio control plane and add-on version
    - ICM_CLUSTER_NAME (default: istio-cluster)
    - ICM_ADDON_TIMEOUT (default: 180)
    - And more (see ClusterManagerSettings for the full list)

Examples:
    # Create a 3-node cluster named "istio-dev" with the demo profile
    istio-cluster-manager create istio-dev 3

    # Create a single-node cluster with the minimal profile
    istio-cluster-manager create istio-test 1 "" minimal

    # Install add-ons
    istio-cluster-manager install-addons istio-dev

    # Delete the cluster
    istio-cluster-manager delete istio-dev
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from pydantic import ValidationError
from rich.table import Table

from cluster_manager import console, out
from cluster_manager.cluster import delete_cluster, get_kubeconfig, list_clusters, list_contexts, use_cluster
from cluster_manager.components import install_addons, install_mesh
from cluster_manager.config import ClusterIdentity, ClusterManagerSettings, MeshProfile
from cluster_manager.constants import DEFAULT_NODE_COUNT
from cluster_manager.errors import ClusterManagerError
from cluster_manager.orchestrator import check_prerequisites, collect_versions, run_create
from cluster_manager.session import Session, build_session
from cluster_manager.status import collect_status, render_status

app = typer.Typer(
    help="Manage kind clusters with Istio, its add-ons and sidecar injection.",
    no_args_is_help=True,
    add_completion=False,
)


@contextmanager
def _fatal_errors() -> Iterator[None]:
    """Print orchestrator errors as one red line on stderr and exit 1."""
    try:
        yield
    except ClusterManagerError as e:
        console.print(f"[red]\u274c {e}[/red]")
        raise typer.Exit(code=1)


def _session(ctx: typer.Context) -> Session:
    return ctx.obj


def _identity(session: Session, name: str | None) -> ClusterIdentity:
    return ClusterIdentity(name or session.settings.cluster_name)


@app.callback()
def _main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log external commands"),
) -> None:
    """Initialize logging and the session for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        settings = ClusterManagerSettings()
    except ValidationError as e:
        console.print(f"[red]\u274c Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)
    ctx.obj = build_session(settings)


@app.command()
def create(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name (default: ICM_CLUSTER_NAME)"),
    node_count: int = typer.Argument(DEFAULT_NODE_COUNT, help="Total nodes including the control plane"),
    image: str = typer.Argument("", help="kindest/node image (empty for kind's default)"),
    profile: MeshProfile | None = typer.Argument(None, help="Istio profile (default: demo)"),
) -> None:
    """Create a kind cluster and install Istio."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "create")
        result = run_create(session, identity, node_count, image, profile)
    mode = "upgrade" if result.upgraded else "fresh install"
    console.print(
        f"[green]\u2705 Cluster '{identity.name}' ready with Istio {result.version} "
        f"(profile {result.profile}, {mode})[/green]")


@app.command()
def delete(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name"),
) -> None:
    """Delete a kind cluster."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "delete")
        delete_cluster(session, identity)


@app.command("list")
def list_cmd(ctx: typer.Context) -> None:
    """List all kind clusters."""
    session = _session(ctx)
    with _fatal_errors():
        check_prerequisites(session, "list")
        names = list_clusters(session)
    console.print("[blue]→ Existing kind clusters:[/blue]")
    if not names:
        console.print("[yellow]   (none)[/yellow]")
    for cluster_name in names:
        typer.echo(cluster_name)


@app.command()
def status(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Show cluster, Istio, add-on and sidecar status."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "status")
        report = collect_status(session, identity)
    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        render_status(report, out)


@app.command()
def use(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name"),
) -> None:
    """Switch kubectl context to a cluster."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "use")
        use_cluster(session, identity)
    console.print(f"[green]\u2705 Switched to context '{identity.context}'[/green]")


@app.command()
def kubeconfig(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name"),
) -> None:
    """Print the kubeconfig for a cluster."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "kubeconfig")
        config = get_kubeconfig(session, identity)
    console.print(f"[blue]→ Kubeconfig for '{identity.name}':[/blue]")
    typer.echo(config, nl=not config.endswith("\n"))


@app.command()
def contexts(ctx: typer.Context) -> None:
    """List all kubectl contexts."""
    session = _session(ctx)
    with _fatal_errors():
        check_prerequisites(session, "contexts")
        entries = list_contexts(session)
    table = Table("CURRENT", "NAME", box=None, pad_edge=False)
    for context_name, current in entries:
        table.add_row("*" if current else "", context_name)
    out.print(table)


@app.command("install-istio")
def install_istio(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name"),
    profile: MeshProfile | None = typer.Argument(None, help="Istio profile (default: demo)"),
) -> None:
    """Install (or upgrade) Istio on an existing cluster."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "install-istio")
        result = install_mesh(session, identity, profile)
    mode = "upgraded" if result.upgraded else "installed"
    console.print(f"[green]\u2705 Istio {result.version} {mode} (profile {result.profile})[/green]")


@app.command("install-addons")
def install_addons_cmd(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Cluster name"),
) -> None:
    """Install Istio add-ons (Prometheus, Grafana, Jaeger, Kiali)."""
    session = _session(ctx)
    with _fatal_errors():
        identity = _identity(session, name)
        check_prerequisites(session, "install-addons")
        result = install_addons(session, identity)
    if not result.ready:
        console.print(f"[yellow]\u26a0\ufe0f  Add-ons applied ({', '.join(result.applied)}); readiness pending[/yellow]")


@app.command()
def version(ctx: typer.Context) -> None:
    """Show tool, kind, kubectl, istioctl and docker versions."""
    for tool, value in collect_versions(_session(ctx)).items():
        out.print(f"[blue]{tool}:[/blue] {value}", highlight=False)


@app.command("help")
def help_cmd(ctx: typer.Context) -> None:
    """Display this help text."""
    typer.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


def main() -> None:
    try:
        app()
    except ClusterManagerError as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
