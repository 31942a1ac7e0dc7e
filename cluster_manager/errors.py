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

"""Error taxonomy. Every fatal path raises a ClusterManagerError subclass."""

from __future__ import annotations


class ClusterManagerError(RuntimeError):
    """Base class for all orchestrator failures."""


class MissingDependency(ClusterManagerError):
    def __init__(self, tool: str, reason: str = "") -> None:
        self.tool = tool
        message = f"Required command '{tool}' not found. Please install it first."
        if reason:
            message = f"Required tool '{tool}' is not usable: {reason}"
        super().__init__(message)


class InvalidClusterName(ClusterManagerError):
    pass


class InvalidTopology(ClusterManagerError):
    pass


class ClusterNotFound(ClusterManagerError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cluster '{name}' not found.")


class ClusterCreateFailed(ClusterManagerError):
    pass


class ClusterDeleteFailed(ClusterManagerError):
    pass


class ContextSwitchFailed(ClusterManagerError):
    def __init__(self, context: str, detail: str = "") -> None:
        self.context = context
        message = f"Could not switch kubectl context to '{context}'"
        super().__init__(f"{message}: {detail}" if detail else message)


class MeshNotInstalled(ClusterManagerError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Istio is not installed on cluster '{name}'. Run install-istio first.")


class MeshInstallFailed(ClusterManagerError):
    pass


class AddonApplyFailed(ClusterManagerError):
    """An add-on manifest failed to apply; earlier add-ons stay installed."""

    def __init__(self, addon: str, applied: list[str], detail: str = "") -> None:
        self.addon = addon
        self.applied = list(applied)
        message = f"Failed to apply add-on '{addon}'"
        super().__init__(f"{message}: {detail}" if detail else message)


class AddonReadinessTimeout(ClusterManagerError):
    """Add-on pods were not all Ready before the deadline. Not fatal."""

    def __init__(self, namespace: str, timeout: int, pending: list[str]) -> None:
        self.namespace = namespace
        self.timeout = timeout
        self.pending = list(pending)
        super().__init__(
            f"Pods in '{namespace}' not ready after {timeout}s: {', '.join(pending) or 'no pods found'}"
        )


class ToolInvocationError(ClusterManagerError):
    """A read-only tool call failed."""
