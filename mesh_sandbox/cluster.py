# /*
# Copyright 2026 The Mesh Sandbox Authors.
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

"""kind cluster lifecycle and pod readiness waits."""

from __future__ import annotations

import sh
from tenacity import retry, stop_after_attempt, wait_fixed

from mesh_sandbox import console
from mesh_sandbox.config import ClusterConfig


def _kind(*args: str) -> str:
    """Run ``kind`` with *args* and return its output."""
    return str(sh.kind(*args))


# ============================================================================
# Cluster operations
# ============================================================================

def cluster_exists(cluster_cfg: ClusterConfig) -> bool:
    """Return True if ``kind get clusters`` lists the configured cluster.

    Args:
        cluster_cfg: kind cluster configuration with the cluster name.
    """
    return cluster_cfg.cluster_name in _kind("get", "clusters").split()


def create_cluster(cluster_cfg: ClusterConfig) -> None:
    """Create the kind cluster, retrying on failure.

    A failed attempt can leave a half-created cluster behind, so every retry
    first removes it.

    Args:
        cluster_cfg: kind cluster configuration including retry count.

    Raises:
        sh.ErrorReturnCode: If the cluster cannot be created after all retries.
    """
    console.print(f"[yellow]\u2139\ufe0f  Creating kind cluster '{cluster_cfg.cluster_name}'...[/yellow]")
    args = ["create", "cluster", "--name", cluster_cfg.cluster_name, "--config", str(cluster_cfg.kind_config)]
    if cluster_cfg.node_image:
        args += ["--image", cluster_cfg.node_image]

    attempts = 0

    @retry(
        stop=stop_after_attempt(cluster_cfg.create_max_retries),
        wait=wait_fixed(cluster_cfg.create_retry_wait_seconds),
        reraise=True,
    )
    def _attempt() -> None:
        nonlocal attempts
        attempts += 1
        if attempts > 1 and cluster_exists(cluster_cfg):
            _kind("delete", "cluster", "--name", cluster_cfg.cluster_name)
            console.print("[yellow]   Removed partially created cluster[/yellow]")
        _kind(*args)

    _attempt()
    console.print("[green]\u2705 Cluster created successfully[/green]")


def delete_cluster(cluster_cfg: ClusterConfig) -> bool:
    """Delete the kind cluster if it exists.

    Args:
        cluster_cfg: kind cluster configuration with the cluster name.

    Returns:
        True if a cluster was deleted, False if there was nothing to delete.
    """
    if not cluster_exists(cluster_cfg):
        console.print(f"[yellow]\u26a0\ufe0f  Cluster '{cluster_cfg.cluster_name}' not found. Nothing to do.[/yellow]")
        return False
    console.print(f"[yellow]\u2139\ufe0f  Deleting kind cluster '{cluster_cfg.cluster_name}'...[/yellow]")
    _kind("delete", "cluster", "--name", cluster_cfg.cluster_name)
    console.print(f"[green]\u2705 Cluster '{cluster_cfg.cluster_name}' destroyed[/green]")
    return True


def wait_for_pods(namespace: str, timeout: str, selector: str | None = None) -> None:
    """Block until pods in *namespace* report Ready.

    Args:
        namespace: Namespace to watch.
        timeout: kubectl duration string, e.g. ``300s``.
        selector: Label selector, or None for all pods.

    Raises:
        sh.ErrorReturnCode: If the pods are not ready within *timeout*.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting for pods in '{namespace}' to be ready...[/yellow]")
    target = ["--selector", selector] if selector else ["--all"]
    sh.kubectl(
        "wait", "--namespace", namespace,
        "--for=condition=ready", "pod", *target,
        f"--timeout={timeout}",
    )
    console.print(f"[green]\u2705 Pods in '{namespace}' are ready[/green]")
