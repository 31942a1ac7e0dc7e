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

"""kind topology descriptor generation and temporary config files."""

from __future__ import annotations

import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from cluster_manager import logger
from cluster_manager.constants import (
    KIND_API_VERSION,
    PORT_MAPPINGS,
    ROLE_CONTROL_PLANE,
    ROLE_WORKER,
    PortMapping,
)
from cluster_manager.errors import InvalidTopology


@dataclass(frozen=True)
class NodeSpec:
    """A single kind node entry.

    Attributes:
        role: ``control-plane`` or ``worker``.
        image: kindest/node image override, or empty for the kind default.
        port_mappings: Host port mappings (control plane only).
    """

    role: str
    image: str = ""
    port_mappings: tuple[PortMapping, ...] = field(default_factory=tuple)

    def to_kind(self) -> dict:
        node: dict = {"role": self.role}
        if self.image:
            node["image"] = self.image
        if self.port_mappings:
            node["extraPortMappings"] = [
                {
                    "containerPort": pm.container_port,
                    "hostPort": pm.host_port,
                    "protocol": pm.protocol,
                }
                for pm in self.port_mappings
            ]
        return node


@dataclass(frozen=True)
class Topology:
    """One control-plane node plus ``node_count - 1`` workers.

    Attributes:
        name: kind cluster name.
        node_count: Total number of nodes, at least 1.
        node_image: Image override shared by every node, or empty.
    """

    name: str
    node_count: int
    node_image: str = ""

    @property
    def nodes(self) -> list[NodeSpec]:
        control_plane = NodeSpec(ROLE_CONTROL_PLANE, self.node_image, PORT_MAPPINGS)
        workers = [NodeSpec(ROLE_WORKER, self.node_image) for _ in range(self.node_count - 1)]
        return [control_plane, *workers]

    def to_kind_config(self) -> dict:
        """Build the ``kind.x-k8s.io/v1alpha4`` Cluster document."""
        return {
            "kind": "Cluster",
            "apiVersion": KIND_API_VERSION,
            "name": self.name,
            "nodes": [node.to_kind() for node in self.nodes],
        }


def build_topology(name: str, node_count: int, node_image: str = "") -> Topology:
    """Build a topology descriptor.

    Args:
        name: kind cluster name.
        node_count: Total number of nodes including the control plane.
        node_image: Optional kindest/node image for every node.

    Returns:
        The topology descriptor.

    Raises:
        InvalidTopology: If ``node_count`` is less than 1.
    """
    if node_count < 1:
        raise InvalidTopology(f"Node count must be at least 1, got {node_count}.")
    return Topology(name=name, node_count=node_count, node_image=node_image or "")


def render_kind_config(topology: Topology) -> str:
    return yaml.safe_dump(topology.to_kind_config(), default_flow_style=False, sort_keys=False)


@contextmanager
def topology_config_file(topology: Topology) -> Iterator[Path]:
    """Write the kind config to a temporary file, removed on every exit path.

    Args:
        topology: Topology descriptor to render.

    Yields:
        Path of the temporary kind config file.
    """
    tmp = tempfile.NamedTemporaryFile(delete=False, prefix=f"kind-{topology.name}-", suffix=".yaml")
    try:
        tmp.write(render_kind_config(topology).encode())
        tmp.flush()
        tmp.close()
        logger.debug("Wrote kind config for '%s' to %s", topology.name, tmp.name)
        yield Path(tmp.name)
    finally:
        tmp.close()
        Path(tmp.name).unlink(missing_ok=True)
