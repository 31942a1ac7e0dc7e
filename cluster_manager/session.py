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

"""Per-invocation session: settings, tool clients and the active context."""

from __future__ import annotations

from dataclasses import dataclass, field

from cluster_manager import logger
from cluster_manager.clients import (
    ApiClient,
    ClusterRuntime,
    IstioctlInstaller,
    KindRuntime,
    KubectlClient,
    MeshInstaller,
)
from cluster_manager.config import ClusterIdentity, ClusterManagerSettings
from cluster_manager.prerequisites import PrerequisiteChecker


@dataclass
class Session:
    """Everything a command needs, passed explicitly to each component.

    The kubeconfig's current-context is the only state that outlives a
    command; it is written through ``api.use_context`` and mirrored in
    ``active_context`` for the rest of the invocation.

    Attributes:
        settings: Resolved configuration.
        runtime: Cluster runtime (kind).
        api: Kubernetes API client (kubectl).
        mesh: Mesh installer (istioctl).
        prerequisites: Tool checker run before each command.
        active_context: Context selected during this invocation, if any.
    """

    settings: ClusterManagerSettings
    runtime: ClusterRuntime
    api: ApiClient
    mesh: MeshInstaller
    prerequisites: PrerequisiteChecker = field(default_factory=PrerequisiteChecker)
    active_context: str | None = None

    def use(self, identity: ClusterIdentity) -> None:
        """Make ``identity``'s context the current kube context.

        Raises:
            ContextSwitchFailed: If the context is unknown to kubectl.
        """
        self.api.use_context(identity.context)
        self.active_context = identity.context
        logger.debug("Active context is now %s", identity.context)


def build_session(settings: ClusterManagerSettings | None = None) -> Session:
    """Build a session wired to the real kind, kubectl and istioctl binaries."""
    return Session(
        settings=settings or ClusterManagerSettings(),
        runtime=KindRuntime(),
        api=KubectlClient(),
        mesh=IstioctlInstaller(),
    )
