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

"""Constants: defaults, namespaces, labels, port table and add-on table."""

from __future__ import annotations

from dataclasses import dataclass

# -- Defaults --
DEFAULT_CLUSTER_NAME = "istio-cluster"
DEFAULT_NODE_COUNT = 1
DEFAULT_ISTIO_PROFILE = "demo"
DEFAULT_ISTIO_VERSION = "1.25.1"
DEFAULT_INJECTION_NAMESPACE = "default"
DEFAULT_ADDON_TIMEOUT_SECONDS = 180
DEFAULT_NODE_READY_TIMEOUT_SECONDS = 300
DEFAULT_POLL_INTERVAL_SECONDS = 5
DEFAULT_KIND_WAIT = "120s"

# -- Kind --
KIND_API_VERSION = "kind.x-k8s.io/v1alpha4"
KIND_CONTEXT_PREFIX = "kind-"
ROLE_CONTROL_PLANE = "control-plane"
ROLE_WORKER = "worker"
CLUSTER_NAME_PATTERN = r"^[a-z0-9.-]+$"

# -- Istio --
NS_ISTIO_SYSTEM = "istio-system"
INJECTION_LABEL = "istio-injection"
INJECTION_ENABLED = "enabled"
SIDECAR_CONTAINER_NAME = "istio-proxy"
CONTROL_PLANE_POD_PREFIXES = ("istiod", "istio-ingressgateway", "istio-egressgateway")
ISTIO_ADDON_URL_TEMPLATE = "https://raw.githubusercontent.com/istio/istio/release-{major_minor}/samples/addons"

# -- Annotations recorded on istio-system by install-istio --
ANNOTATION_PREFIX = "istio-cluster-manager.io"
ANNOTATION_PROFILE = f"{ANNOTATION_PREFIX}/profile"
ANNOTATION_VERSION = f"{ANNOTATION_PREFIX}/version"
ANNOTATION_INSTALL_MODE = f"{ANNOTATION_PREFIX}/install-mode"
INSTALL_MODE_FRESH = "fresh"
INSTALL_MODE_UPGRADE = "upgrade"

# -- Commands that need istioctl on PATH --
MESH_COMMANDS = ("create", "install-istio", "install-addons")
BASE_TOOLS = ("docker", "kind", "kubectl")
MESH_TOOL = "istioctl"
INSTALL_HINTS = {
    "docker": "https://docs.docker.com/get-docker/",
    "kind": "https://kind.sigs.k8s.io/",
    "kubectl": "https://kubernetes.io/docs/tasks/tools/",
    "istioctl": "https://istio.io/latest/docs/setup/getting-started/#download",
}

# -- Command timeouts (seconds) --
KUBECTL_TIMEOUT = 30
KUBECTL_APPLY_TIMEOUT = 120


@dataclass(frozen=True)
class PortMapping:
    """A host<->container port mapping on the kind control-plane node."""

    container_port: int
    host_port: int
    purpose: str
    protocol: str = "TCP"


@dataclass(frozen=True)
class AddonSpec:
    """An Istio sample add-on applied from the release's samples/addons tree.

    Attributes:
        name: Add-on name, also the manifest basename.
        deployment: Deployment whose presence in istio-system marks it installed.
        service: Service to port-forward to.
        port_forward: ``local:remote`` port pair for ``kubectl port-forward``.
    """

    name: str
    deployment: str
    service: str
    port_forward: str

    @property
    def manifest(self) -> str:
        return f"{self.name}.yaml"


GATEWAY_PORTS = (30000, 30001, 30002, 30003)

PORT_MAPPINGS: tuple[PortMapping, ...] = (
    *(PortMapping(port, port, "ingress-gateway") for port in GATEWAY_PORTS),
    PortMapping(30004, 30004, "kiali"),
    PortMapping(30005, 30005, "prometheus"),
    PortMapping(30006, 30006, "grafana"),
    PortMapping(30007, 30007, "jaeger"),
)

# Applied in this order.
ADDONS: tuple[AddonSpec, ...] = (
    AddonSpec("prometheus", deployment="prometheus", service="prometheus", port_forward="9090:9090"),
    AddonSpec("grafana", deployment="grafana", service="grafana", port_forward="3000:3000"),
    AddonSpec("jaeger", deployment="jaeger", service="tracing", port_forward="8585:80"),
    AddonSpec("kiali", deployment="kiali", service="kiali", port_forward="20001:20001"),
)
