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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

import sh

from cluster_manager import __version__, logger
from cluster_manager.cluster import create_cluster, wait_for_nodes
from cluster_manager.components import MeshInstallResult, install_mesh
from cluster_manager.config import ClusterIdentity, MeshProfile
from cluster_manager.errors import ClusterManagerError
from cluster_manager.prerequisites import required_tools
from cluster_manager.session import Session


def check_prerequisites(session: Session, command: str) -> None:
    """Run the pre-flight tool check for ``command``.

    Raises:
        MissingDependency: If a required tool is missing.
    """
    logger.debug("Checking prerequisites for '%s': %s", command, ", ".join(required_tools(command)))
    session.prerequisites.check(command)


def run_create(
    session: Session,
    identity: ClusterIdentity,
    node_count: int,
    node_image: str = "",
    profile: MeshProfile | str | None = None,
) -> MeshInstallResult:
    """Create a cluster, wait for its nodes, then install Istio.

    Each step starts only after the previous one succeeded.

    Args:
        session: Current session.
        identity: Cluster to create.
        node_count: Total nodes including the control plane.
        node_image: Optional kindest/node image.
        profile: Istio profile, or None for the configured default.

    Returns:
        The Istio install result.

    Raises:
        InvalidTopology: If ``node_count`` is less than 1.
        ClusterCreateFailed: If kind fails or nodes never become Ready.
        MeshInstallFailed: If the Istio install fails.
    """
    create_cluster(session, identity, node_count, node_image)
    wait_for_nodes(session, identity)
    return install_mesh(session, identity, profile)


def collect_versions(session: Session) -> dict[str, str]:
    """Collect this tool's version and the versions of its dependencies.

    Tools that are missing or fail are reported as such instead of raising.
    """
    versions = {"istio-cluster-manager": __version__}
    probes = {
        "kind": session.runtime.version,
        "kubectl": session.api.version,
        "istioctl": session.mesh.version,
        "docker": session.prerequisites.engine_version,
    }
    for tool, probe in probes.items():
        try:
            versions[tool] = probe() or "unknown"
        except (sh.CommandNotFound, sh.ErrorReturnCode, ClusterManagerError) as err:
            logger.debug("Version probe for %s failed: %s", tool, err)
            versions[tool] = "\u26a0\ufe0f  Not installed"
    return versions
