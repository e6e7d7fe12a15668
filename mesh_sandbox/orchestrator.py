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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

from mesh_sandbox import console
from mesh_sandbox.bookinfo import deploy_bookinfo, remove_manifests
from mesh_sandbox.cluster import cluster_exists, create_cluster, delete_cluster, wait_for_pods
from mesh_sandbox.config import LoadBalancerConfig, SandboxConfig
from mesh_sandbox.constants import BASE_PREREQUISITES, LB_PROVIDER_CLOUD_PROVIDER_KIND
from mesh_sandbox.loadbalancer import (
    CLOUD_PROVIDER_KIND_BINARY,
    helper_running,
    install_metallb,
    start_cloud_provider_kind,
    stop_cloud_provider_kind,
)
from mesh_sandbox.mesh import download_istioctl, install_istio, istioctl_ready
from mesh_sandbox.readiness import IngressReadiness, verify_ingress
from mesh_sandbox.steps import Step, run_steps
from mesh_sandbox.utils import require_command

# ============================================================================
# Internal helpers
# ============================================================================


def _prerequisites(lb_cfg: LoadBalancerConfig) -> list[str]:
    prereqs = list(BASE_PREREQUISITES)
    if lb_cfg.lb_provider == LB_PROVIDER_CLOUD_PROVIDER_KIND:
        prereqs.append(CLOUD_PROVIDER_KIND_BINARY)
    return prereqs


def _check_prerequisites(lb_cfg: LoadBalancerConfig) -> None:
    """Check that every external tool the run needs is on PATH.

    Raises:
        RuntimeError: Naming the first missing tool.
    """
    for cmd in _prerequisites(lb_cfg):
        require_command(cmd)
    console.print("[green]\u2705 All required tools are available[/green]")


def _load_balancer_step(cfg: SandboxConfig) -> Step:
    if cfg.lb.lb_provider == LB_PROVIDER_CLOUD_PROVIDER_KIND:
        return Step(
            "Starting cloud-provider-kind",
            lambda: start_cloud_provider_kind(cfg.lb),
            is_done=lambda: helper_running(cfg.lb),
        )
    return Step("Installing MetalLB load balancer", lambda: install_metallb(cfg.lb))


# ============================================================================
# Public API
# ============================================================================


def start_steps(cfg: SandboxConfig) -> list[Step]:
    """Steps that bring up the cluster, the mesh, and the application."""
    return [
        Step("Checking prerequisites", lambda: _check_prerequisites(cfg.lb)),
        Step(
            f"Creating kind cluster: {cfg.cluster.cluster_name}",
            lambda: create_cluster(cfg.cluster),
            is_done=lambda: cluster_exists(cfg.cluster),
        ),
        _load_balancer_step(cfg),
        Step(
            f"Setting up istioctl {cfg.mesh.istio_version}",
            lambda: download_istioctl(cfg.mesh),
            is_done=lambda: istioctl_ready(cfg.mesh),
        ),
        Step("Installing Istio", lambda: install_istio(cfg.mesh)),
        Step("Deploying Bookinfo application", lambda: deploy_bookinfo(cfg.app)),
        Step(
            "Waiting for application pods",
            lambda: wait_for_pods(cfg.app.app_namespace, cfg.app.pods_ready_timeout),
        ),
    ]


def destroy_steps(cfg: SandboxConfig) -> list[Step]:
    """Steps that tear everything down again."""
    # The helper may have been started under a different provider setting.
    return [
        Step(
            "Stopping cloud-provider-kind",
            lambda: stop_cloud_provider_kind(cfg.lb),
            is_done=lambda: not cfg.lb.pid_file.exists(),
        ),
        Step(f"Destroying kind cluster: {cfg.cluster.cluster_name}", lambda: delete_cluster(cfg.cluster)),
        Step("Removing downloaded manifests", lambda: _remove_manifests(cfg)),
    ]


def _remove_manifests(cfg: SandboxConfig) -> None:
    for path in remove_manifests(cfg.app):
        console.print(f"[yellow]   Removed {path}[/yellow]")
    console.print("[green]\u2705 Cleanup complete[/green]")


def run_start(cfg: SandboxConfig | None = None) -> IngressReadiness:
    """Bring up the whole environment and verify the application answers.

    Args:
        cfg: Resolved configuration, or None to load it from the environment.

    Returns:
        The ingress address and the page marker that was found.

    Raises:
        RuntimeError: If any step fails.
        EndpointTimeoutError: If the ingress gateway never gets an address.
        ProbeValidationError: If the application does not answer as expected.
    """
    if cfg is None:
        cfg = SandboxConfig()
    run_steps(start_steps(cfg))
    readiness = verify_ingress(cfg.app)
    console.print("[green]\u2705 Cluster setup is complete![/green]")
    console.print(f"   Bookinfo product page: {readiness.url}/{cfg.app.probe_path.lstrip('/')}")
    return readiness


def run_destroy(cfg: SandboxConfig | None = None) -> None:
    """Tear down the helper process, the cluster, and downloaded files.

    Args:
        cfg: Resolved configuration, or None to load it from the environment.
    """
    if cfg is None:
        cfg = SandboxConfig()
    run_steps(destroy_steps(cfg))
