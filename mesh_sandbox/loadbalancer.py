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

"""LoadBalancer providers: cloud-provider-kind helper or MetalLB."""

from __future__ import annotations

import ipaddress
import time
from collections.abc import Callable

import docker
import sh
import yaml
from rich.markup import escape

from mesh_sandbox import console, logger
from mesh_sandbox.cluster import wait_for_pods
from mesh_sandbox.config import LoadBalancerConfig
from mesh_sandbox.constants import (
    KIND_DOCKER_NETWORK,
    LABEL_METALLB_APP,
    METALLB_MANIFEST_URL,
    METALLB_POOL_FIRST_HOST,
    METALLB_POOL_LAST_HOST,
    METALLB_POOL_NAME,
    NS_METALLB_SYSTEM,
    dep_value,
)
from mesh_sandbox.process import ManagedProcess

CLOUD_PROVIDER_KIND_BINARY = dep_value("cloud_provider_kind", "binary", default="cloud-provider-kind")


# ============================================================================
# cloud-provider-kind
# ============================================================================

def _adopt_helper(lb_cfg: LoadBalancerConfig) -> ManagedProcess | None:
    """Adopt the helper recorded in the marker, discarding a malformed marker."""
    try:
        return ManagedProcess.from_marker(lb_cfg.pid_file)
    except ValueError as err:
        console.print(f"[yellow]\u26a0\ufe0f  {escape(str(err))}; removing it[/yellow]")
        lb_cfg.pid_file.unlink(missing_ok=True)
        return None


def helper_running(lb_cfg: LoadBalancerConfig) -> bool:
    """Return True if the marker names a live cloud-provider-kind process.

    A malformed marker is removed and counts as "not running".

    Args:
        lb_cfg: Load balancer configuration with the marker path.
    """
    handle = _adopt_helper(lb_cfg)
    return handle is not None and handle.is_running()


def start_cloud_provider_kind(lb_cfg: LoadBalancerConfig) -> ManagedProcess:
    """Launch cloud-provider-kind in the background.

    Args:
        lb_cfg: Load balancer configuration with marker and log paths.

    Returns:
        Handle for the launched helper.
    """
    console.print("[yellow]\u2139\ufe0f  Starting cloud-provider-kind in the background...[/yellow]")
    handle = ManagedProcess.launch([CLOUD_PROVIDER_KIND_BINARY], lb_cfg.pid_file, lb_cfg.helper_log_file)
    console.print(f"[green]\u2705 cloud-provider-kind running (pid {handle.pid}, log {lb_cfg.helper_log_file})[/green]")
    return handle


def stop_cloud_provider_kind(lb_cfg: LoadBalancerConfig) -> bool:
    """Stop the helper recorded in the marker file, if any.

    Args:
        lb_cfg: Load balancer configuration with the marker path.

    Returns:
        True if a running helper was signalled.
    """
    handle = _adopt_helper(lb_cfg)
    if handle is None:
        console.print("[yellow]   No cloud-provider-kind marker found[/yellow]")
        return False
    delivered = handle.stop()
    if delivered:
        console.print(f"[green]\u2705 Stopped cloud-provider-kind (pid {handle.pid})[/green]")
    else:
        console.print(f"[yellow]\u26a0\ufe0f  cloud-provider-kind (pid {handle.pid}) was not running[/yellow]")
    return delivered


# ============================================================================
# MetalLB
# ============================================================================

def metallb_address_range(subnet: str) -> str:
    """Pick a MetalLB address range from the last /24 of *subnet*.

    Args:
        subnet: IPv4 network in CIDR form, e.g. ``172.18.0.0/16``.

    Returns:
        Range string such as ``172.18.255.200-172.18.255.250``.

    Raises:
        ValueError: If *subnet* is not IPv4 or is smaller than a /24.
    """
    network = ipaddress.ip_network(subnet, strict=False)
    if network.version != 4 or network.prefixlen > 24:
        raise ValueError(f"Cannot carve a MetalLB pool out of {subnet}")
    last_block = int(network.broadcast_address) & ~0xFF
    first = ipaddress.IPv4Address(last_block + METALLB_POOL_FIRST_HOST)
    last = ipaddress.IPv4Address(last_block + METALLB_POOL_LAST_HOST)
    return f"{first}-{last}"


def kind_network_subnet(network_name: str = KIND_DOCKER_NETWORK) -> str:
    """Return the IPv4 subnet of the Docker network kind attaches nodes to.

    Raises:
        RuntimeError: If the network has no IPv4 subnet.
        docker.errors.DockerException: If Docker cannot be reached.
    """
    client = docker.from_env()
    try:
        network = client.networks.get(network_name)
        for ipam in network.attrs.get("IPAM", {}).get("Config") or []:
            subnet = ipam.get("Subnet", "")
            if subnet and ipaddress.ip_network(subnet).version == 4:
                return subnet
    finally:
        client.close()
    raise RuntimeError(f"Docker network '{network_name}' has no IPv4 subnet")


def render_metallb_pool(address_range: str) -> str:
    """Render the IPAddressPool and L2Advertisement for *address_range*."""
    pool = {
        "apiVersion": "metallb.io/v1beta1",
        "kind": "IPAddressPool",
        "metadata": {"name": METALLB_POOL_NAME, "namespace": NS_METALLB_SYSTEM},
        "spec": {"addresses": [address_range]},
    }
    advertisement = {
        "apiVersion": "metallb.io/v1beta1",
        "kind": "L2Advertisement",
        "metadata": {"name": METALLB_POOL_NAME, "namespace": NS_METALLB_SYSTEM},
        "spec": {"ipAddressPools": [METALLB_POOL_NAME]},
    }
    return yaml.safe_dump_all([pool, advertisement], sort_keys=False)


def install_metallb(lb_cfg: LoadBalancerConfig, sleep: Callable[[float], None] = time.sleep) -> None:
    """Install MetalLB and configure an address pool.

    Args:
        lb_cfg: Load balancer configuration.
        sleep: Sleep function, replaceable for tests.
    """
    console.print(f"[yellow]Version: {lb_cfg.metallb_version}[/yellow]")
    sh.kubectl("apply", "-f", METALLB_MANIFEST_URL.format(version=lb_cfg.metallb_version))
    wait_for_pods(NS_METALLB_SYSTEM, lb_cfg.metallb_ready_timeout, selector=LABEL_METALLB_APP)

    console.print(f"[yellow]\u2139\ufe0f  Giving the MetalLB webhook {lb_cfg.metallb_settle_seconds:g}s to initialize...[/yellow]")
    sleep(lb_cfg.metallb_settle_seconds)

    address_range = lb_cfg.metallb_address_pool or metallb_address_range(kind_network_subnet())
    logger.info("MetalLB address pool: %s", address_range)
    sh.kubectl("apply", "-f", "-", _in=render_metallb_pool(address_range))
    console.print(f"[green]\u2705 MetalLB is ready (pool {address_range})[/green]")
