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

"""Configuration classes and config models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from mesh_sandbox import console
from mesh_sandbox.constants import (
    CLUSTER_CREATE_RETRY_WAIT_SECONDS,
    DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_HELPER_LOG_FILE,
    DEFAULT_ISTIO_CONFIG,
    DEFAULT_ISTIO_READY_TIMEOUT,
    DEFAULT_KIND_CONFIG,
    DEFAULT_LB_MAX_ATTEMPTS,
    DEFAULT_LB_POLL_INTERVAL_SECONDS,
    DEFAULT_METALLB_READY_TIMEOUT,
    DEFAULT_METALLB_SETTLE_SECONDS,
    DEFAULT_PID_FILE,
    DEFAULT_PODS_READY_TIMEOUT,
    DEFAULT_PROBE_MARKER,
    DEFAULT_PROBE_PATH,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEPENDENCIES,
    LB_PROVIDER_CLOUD_PROVIDER_KIND,
    NS_DEFAULT,
)

_KUBECTL_DURATION = r"^\d+[smh]$"


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """kind cluster configuration, auto-loaded from MESH_* env vars.

    Attributes:
        cluster_name: Name of the kind cluster.
        kind_config: Path to the kind cluster config file.
        node_image: kindest/node image override, or None for kind's default.
        create_max_retries: Maximum cluster creation attempts.
        create_retry_wait_seconds: Pause between cluster creation attempts.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_", extra="ignore")

    cluster_name: str = DEFAULT_CLUSTER_NAME
    kind_config: Path = DEFAULT_KIND_CONFIG
    node_image: str | None = None
    create_max_retries: int = Field(default=DEFAULT_CLUSTER_CREATE_MAX_RETRIES, ge=1, le=10)
    create_retry_wait_seconds: float = Field(default=CLUSTER_CREATE_RETRY_WAIT_SECONDS, ge=0)


class LoadBalancerConfig(BaseSettings):
    """Load balancer provider configuration, auto-loaded from MESH_* env vars.

    Attributes:
        lb_provider: Which provider assigns LoadBalancer addresses.
        metallb_version: MetalLB release tag for the native manifest.
        metallb_address_pool: Explicit ``first-last`` address range, or None
            to derive one from the kind Docker network.
        metallb_ready_timeout: kubectl wait timeout for MetalLB pods.
        metallb_settle_seconds: Pause before applying the pool so the
            MetalLB webhook can start serving.
        pid_file: Process marker for the cloud-provider-kind helper.
        helper_log_file: Where the helper's output is written.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_", extra="ignore")

    lb_provider: Literal["cloud-provider-kind", "metallb"] = LB_PROVIDER_CLOUD_PROVIDER_KIND
    metallb_version: str = Field(default=DEPENDENCIES["metallb"]["version"], pattern=r"^v[\d.]+$")
    metallb_address_pool: str | None = Field(default=None, pattern=r"^[\w.:]+-[\w.:]+$")
    metallb_ready_timeout: str = Field(default=DEFAULT_METALLB_READY_TIMEOUT, pattern=_KUBECTL_DURATION)
    metallb_settle_seconds: float = Field(default=DEFAULT_METALLB_SETTLE_SECONDS, ge=0)
    pid_file: Path = DEFAULT_PID_FILE
    helper_log_file: Path = DEFAULT_HELPER_LOG_FILE


class MeshConfig(BaseSettings):
    """Istio configuration, auto-loaded from MESH_* env vars.

    Attributes:
        istio_version: istioctl / Istio release to install.
        istio_config: Path to the IstioOperator config file.
        istio_install_dir: Directory the Istio release is downloaded into.
        istio_ready_timeout: kubectl wait timeout for istio-system pods.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_", extra="ignore")

    istio_version: str = Field(default=DEPENDENCIES["istio"]["version"], pattern=r"^[\d.]+(-[\w.]+)?$")
    istio_config: Path = DEFAULT_ISTIO_CONFIG
    istio_install_dir: Path = Path(".")
    istio_ready_timeout: str = Field(default=DEFAULT_ISTIO_READY_TIMEOUT, pattern=_KUBECTL_DURATION)


class AppConfig(BaseSettings):
    """Bookinfo deployment and readiness probe, auto-loaded from MESH_* env vars.

    Attributes:
        app_namespace: Namespace Bookinfo is deployed into.
        bookinfo_release: Istio release branch the manifests are fetched from.
        manifest_dir: Directory downloaded manifests are written to.
        pods_ready_timeout: kubectl wait timeout for application pods.
        lb_max_attempts: Ingress address lookups before giving up.
        lb_poll_interval_seconds: Pause between ingress address lookups.
        probe_path: Path requested on the ingress address.
        probe_timeout_seconds: Timeout for the single probe request.
        probe_marker: Regex the probe body must contain.
    """

    model_config = SettingsConfigDict(env_prefix="MESH_", extra="ignore")

    app_namespace: str = NS_DEFAULT
    bookinfo_release: str = DEPENDENCIES["bookinfo"]["release"]
    manifest_dir: Path = Path(".")
    pods_ready_timeout: str = Field(default=DEFAULT_PODS_READY_TIMEOUT, pattern=_KUBECTL_DURATION)
    lb_max_attempts: int = Field(default=DEFAULT_LB_MAX_ATTEMPTS, ge=1, le=1000)
    lb_poll_interval_seconds: float = Field(default=DEFAULT_LB_POLL_INTERVAL_SECONDS, ge=0)
    probe_path: str = DEFAULT_PROBE_PATH
    probe_timeout_seconds: float = Field(default=DEFAULT_PROBE_TIMEOUT_SECONDS, gt=0)
    probe_marker: str = DEFAULT_PROBE_MARKER

    @field_validator("probe_marker")
    @classmethod
    def compile_probe_marker(cls, value: str) -> str:
        """Reject markers that are not valid regular expressions."""
        try:
            re.compile(value)
        except re.error as err:
            raise ValueError(f"probe_marker is not a valid regular expression: {err}") from err
        return value


# ============================================================================
# Aggregate
# ============================================================================

@dataclass(frozen=True)
class SandboxConfig:
    """All configuration for one run, resolved once at startup."""

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    lb: LoadBalancerConfig = field(default_factory=LoadBalancerConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)
    app: AppConfig = field(default_factory=AppConfig)


def display_config(cfg: SandboxConfig) -> None:
    """Print the resolved configuration.

    Args:
        cfg: Resolved sandbox configuration.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]kind cluster:[/yellow]")
    console.print(f"  cluster_name    : {cfg.cluster.cluster_name}")
    console.print(f"  kind_config     : {cfg.cluster.kind_config}")
    console.print(f"  node_image      : {cfg.cluster.node_image or '(kind default)'}")
    console.print("[yellow]Load balancer:[/yellow]")
    console.print(f"  provider        : {cfg.lb.lb_provider}")
    console.print("[yellow]Istio:[/yellow]")
    console.print(f"  istio_version   : {cfg.mesh.istio_version}")
    console.print(f"  istio_config    : {cfg.mesh.istio_config}")
    console.print("[yellow]Bookinfo:[/yellow]")
    console.print(f"  namespace       : {cfg.app.app_namespace}")
    console.print(f"  release         : {cfg.app.bookinfo_release}")
    console.print(f"  probe           : /{cfg.app.probe_path.lstrip('/')} "
                  f"({cfg.app.lb_max_attempts} x {cfg.app.lb_poll_interval_seconds}s)")
