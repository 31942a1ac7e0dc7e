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

"""rich tables for nodes, pods and services."""

from __future__ import annotations

from rich.table import Table

from cluster_manager.clients import NodeInfo, PodInfo, ServiceInfo


def _ready(flag: bool) -> str:
    return "[green]Ready[/green]" if flag else "[yellow]NotReady[/yellow]"


def nodes_table(nodes: list[NodeInfo]) -> Table:
    table = Table("NAME", "ROLE", "STATUS", "VERSION", box=None, pad_edge=False)
    for node in nodes:
        table.add_row(node.name, node.role, _ready(node.ready), node.version)
    return table


def pods_table(pods: list[PodInfo]) -> Table:
    table = Table("NAME", "PHASE", "READY", box=None, pad_edge=False)
    for pod in pods:
        table.add_row(pod.name, pod.phase, _ready(pod.ready))
    return table


def services_table(services: list[ServiceInfo]) -> Table:
    table = Table("NAME", "TYPE", "CLUSTER-IP", "PORTS", box=None, pad_edge=False)
    for svc in services:
        table.add_row(svc.name, svc.type, svc.cluster_ip, ",".join(svc.ports))
    return table
