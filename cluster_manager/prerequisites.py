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

"""Pre-flight checks for the external tools each command needs."""

from __future__ import annotations

from collections.abc import Callable

import docker
import sh

from cluster_manager import logger
from cluster_manager.constants import BASE_TOOLS, INSTALL_HINTS, MESH_COMMANDS, MESH_TOOL
from cluster_manager.errors import MissingDependency


def which(cmd: str) -> str | None:
    """Resolve a command on PATH, or None if it is not installed."""
    try:
        path = sh.which(cmd)
    except (sh.ErrorReturnCode, sh.CommandNotFound):
        return None
    return str(path).strip() if path else None


def ping_docker() -> None:
    """Ping the Docker daemon through the Docker SDK.

    Raises:
        docker.errors.DockerException: If the daemon cannot be reached.
    """
    client = docker.from_env()
    try:
        client.ping()
    finally:
        client.close()


def required_tools(command: str) -> list[str]:
    """Return the tools ``command`` needs, in check order."""
    tools = list(BASE_TOOLS)
    if command in MESH_COMMANDS:
        tools.append(MESH_TOOL)
    return tools


class PrerequisiteChecker:
    """Verifies external tools are installed before a command runs.

    Args:
        which: Resolves a command name to a path, or None if missing.
        ping: Raises if the container runtime daemon is unreachable.
    """

    def __init__(
        self,
        which: Callable[[str], str | None] = which,
        ping: Callable[[], None] | None = ping_docker,
    ) -> None:
        self._which = which
        self._ping = ping

    def check(self, command: str) -> None:
        """Check the tools required by ``command``.

        Args:
            command: CLI command name (e.g. ``create``).

        Raises:
            MissingDependency: For the first missing or unusable tool.
        """
        for tool in required_tools(command):
            if not self._which(tool):
                logger.debug("Missing tool %s (see %s)", tool, INSTALL_HINTS.get(tool, ""))
                raise MissingDependency(tool, f"not found on PATH, see {INSTALL_HINTS[tool]}")
        if self._ping is not None:
            try:
                self._ping()
            except docker.errors.DockerException as err:
                raise MissingDependency("docker", f"daemon not reachable ({err})") from err

    def engine_version(self) -> str:
        """Return the Docker engine version reported by the daemon.

        Raises:
            MissingDependency: If the daemon cannot be reached.
        """
        try:
            client = docker.from_env()
            try:
                return str(client.version().get("Version", ""))
            finally:
                client.close()
        except docker.errors.DockerException as err:
            raise MissingDependency("docker", f"daemon not reachable ({err})") from err
