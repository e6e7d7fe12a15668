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

"""
cli.py - Manage a kind cluster with Istio for local development and testing.

Subcommands:
    start      Create the cluster, install a load balancer and Istio, deploy
               Bookinfo, and verify it answers through the ingress gateway
    destroy    Stop the load balancer helper, delete the cluster, and clean up

Environment Variables:
    All settings can be overridden via MESH_* environment variables:
    - MESH_CLUSTER_NAME (default: istio-dev)
    - MESH_LB_PROVIDER (default: cloud-provider-kind; or metallb)
    - MESH_ISTIO_VERSION (default: from dependencies.yaml)
    - MESH_LB_MAX_ATTEMPTS / MESH_LB_POLL_INTERVAL_SECONDS (default: 6 / 10)
    - And more (see config classes for full list)

Examples:
    ./manage-cluster.py start
    ./manage-cluster.py destroy
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import typer

from mesh_sandbox import console
from mesh_sandbox.config import SandboxConfig, display_config
from mesh_sandbox.orchestrator import run_destroy, run_start

app = typer.Typer(
    help="Manage a kind cluster with Istio for local development and testing.",
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def _main_callback(ctx: typer.Context) -> None:
    """Initialize logging for all subcommands."""
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_usage(), markup=False)
        raise typer.Exit(code=1)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _run(action: Callable[[SandboxConfig], object]) -> None:
    try:
        cfg = SandboxConfig()
        display_config(cfg)
        action(cfg)
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def start() -> None:
    """Create the cluster, install Istio, and deploy Bookinfo."""
    _run(run_start)


@app.command()
def destroy() -> None:
    """Delete the cluster and clean up local files."""
    _run(run_destroy)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
