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

"""Configuration classes, cluster identity and mesh profiles."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cluster_manager.constants import (
    CLUSTER_NAME_PATTERN,
    DEFAULT_ADDON_TIMEOUT_SECONDS,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_INJECTION_NAMESPACE,
    DEFAULT_ISTIO_PROFILE,
    DEFAULT_ISTIO_VERSION,
    DEFAULT_KIND_WAIT,
    DEFAULT_NODE_READY_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    ISTIO_ADDON_URL_TEMPLATE,
    KIND_CONTEXT_PREFIX,
    AddonSpec,
)
from cluster_manager.errors import InvalidClusterName


class MeshProfile(str, Enum):
    """Istio installation profiles accepted by ``istioctl install``."""

    DEFAULT = "default"
    DEMO = "demo"
    MINIMAL = "minimal"
    REMOTE = "remote"
    EMPTY = "empty"


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterManagerSettings(BaseSettings):
    """Orchestrator configuration, auto-loaded from ICM_* env vars.

    The Istio version is read from ``ISTIO_VERSION`` so the same variable
    drives both ``istioctl`` and the add-on manifest location.

    Attributes:
        istio_version: Istio release used for install and add-on manifests.
        cluster_name: Cluster name used when none is given on the command line.
        istio_profile: Profile used when none is given on the command line.
        injection_namespace: Namespace labelled for automatic sidecar injection.
        addon_timeout: Seconds to wait for add-on pods to become Ready.
        node_ready_timeout: Seconds to wait for nodes after cluster creation.
        poll_interval: Seconds between readiness polls.
        kind_wait: Duration passed to ``kind create cluster --wait``.
    """

    model_config = SettingsConfigDict(env_prefix="ICM_", extra="ignore", populate_by_name=True)

    istio_version: str = Field(
        default=DEFAULT_ISTIO_VERSION,
        validation_alias=AliasChoices("ISTIO_VERSION", "ICM_ISTIO_VERSION", "istio_version"),
        pattern=r"^\d+\.\d+\.\d+([-.][\w.]+)?$",
    )
    cluster_name: str = Field(default=DEFAULT_CLUSTER_NAME, pattern=CLUSTER_NAME_PATTERN)
    istio_profile: MeshProfile = MeshProfile(DEFAULT_ISTIO_PROFILE)
    injection_namespace: str = DEFAULT_INJECTION_NAMESPACE
    addon_timeout: int = Field(default=DEFAULT_ADDON_TIMEOUT_SECONDS, ge=0)
    node_ready_timeout: int = Field(default=DEFAULT_NODE_READY_TIMEOUT_SECONDS, ge=0)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, ge=0)
    kind_wait: str = Field(default=DEFAULT_KIND_WAIT, pattern=r"^\d+[smh]$")

    @property
    def istio_major_minor(self) -> str:
        """``1.25.1`` -> ``1.25``."""
        return ".".join(self.istio_version.split(".")[:2])

    @property
    def addon_base_url(self) -> str:
        return ISTIO_ADDON_URL_TEMPLATE.format(major_minor=self.istio_major_minor)

    def addon_manifest_url(self, addon: AddonSpec) -> str:
        return f"{self.addon_base_url}/{addon.manifest}"


# ============================================================================
# Cluster identity
# ============================================================================

@dataclass(frozen=True)
class ClusterIdentity:
    """A kind cluster name and the names derived from it.

    Attributes:
        name: kind cluster name, unique per host.
    """

    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidClusterName("Cluster name must not be empty.")
        if not re.match(CLUSTER_NAME_PATTERN, self.name):
            raise InvalidClusterName(
                f"Invalid cluster name '{self.name}': use lowercase letters, digits, '.' and '-'."
            )

    @property
    def context(self) -> str:
        return f"{KIND_CONTEXT_PREFIX}{self.name}"
