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

"""istioctl discovery and download, Istio installation."""

from __future__ import annotations

import os
from pathlib import Path

import sh

from mesh_sandbox import console, logger
from mesh_sandbox.cluster import wait_for_pods
from mesh_sandbox.config import MeshConfig
from mesh_sandbox.constants import NS_ISTIO_SYSTEM, dep_value
from mesh_sandbox.utils import command_exists, download_text, require_command


def istio_bin_dir(mesh_cfg: MeshConfig) -> Path:
    """Directory holding istioctl inside a downloaded Istio release."""
    return mesh_cfg.istio_install_dir / f"istio-{mesh_cfg.istio_version}" / "bin"


def resolve_istioctl(mesh_cfg: MeshConfig) -> sh.Command | None:
    """Find istioctl, preferring a release downloaded by this tool.

    Args:
        mesh_cfg: Mesh configuration with version and install directory.

    Returns:
        A runnable command, or None if no istioctl is available.
    """
    local = istio_bin_dir(mesh_cfg) / "istioctl"
    if local.exists():
        return sh.Command(str(local.resolve()))
    if command_exists("istioctl"):
        return sh.Command("istioctl")
    return None


def istioctl_ready(mesh_cfg: MeshConfig) -> bool:
    """Return True if an istioctl of the configured version is available."""
    istioctl = resolve_istioctl(mesh_cfg)
    if istioctl is None:
        return False
    try:
        output = str(istioctl("version", "--remote=false"))
    except sh.ErrorReturnCode as err:
        logger.debug("istioctl version failed: %s", err)
        return False
    return mesh_cfg.istio_version in output


def _run_download_script(script: str, cwd: Path, version: str) -> None:
    sh.sh(_in=script, _cwd=str(cwd), _env={**os.environ, "ISTIO_VERSION": version})


def download_istioctl(mesh_cfg: MeshConfig) -> Path:
    """Download the configured Istio release and put its istioctl on PATH.

    The upstream download script fetches the release with curl, so curl must
    be on PATH. The PATH change only lasts for this process.

    Args:
        mesh_cfg: Mesh configuration with version and install directory.

    Returns:
        The release's ``bin`` directory.

    Raises:
        RuntimeError: If curl is not installed.
    """
    console.print(f"[yellow]\u2139\ufe0f  istioctl {mesh_cfg.istio_version} not found. Downloading...[/yellow]")
    require_command("curl")
    script = download_text(dep_value("istio", "download_script"))
    mesh_cfg.istio_install_dir.mkdir(parents=True, exist_ok=True)
    _run_download_script(script, mesh_cfg.istio_install_dir, mesh_cfg.istio_version)

    bin_dir = istio_bin_dir(mesh_cfg).resolve()
    os.environ["PATH"] = f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"
    console.print(f"[green]\u2705 istioctl {mesh_cfg.istio_version} downloaded to {bin_dir}[/green]")
    console.print(f"[yellow]   For permanent use, add '{bin_dir}' to your shell profile.[/yellow]")
    return bin_dir


def install_istio(mesh_cfg: MeshConfig) -> None:
    """Install Istio with istioctl and wait for its pods.

    Args:
        mesh_cfg: Mesh configuration with the IstioOperator file and timeout.

    Raises:
        RuntimeError: If istioctl is missing or the installation fails.
    """
    istioctl = resolve_istioctl(mesh_cfg)
    if istioctl is None:
        raise RuntimeError("istioctl is not available")

    console.print(f"[yellow]\u2139\ufe0f  Installing Istio using configuration from {mesh_cfg.istio_config}...[/yellow]")
    try:
        istioctl("install", "-y", "-f", str(mesh_cfg.istio_config))
    except sh.ErrorReturnCode as err:
        detail = err.stderr.decode(errors="replace").strip()[-500:]
        raise RuntimeError(
            f"Istio installation failed: {detail or err}. "
            "You may need to run 'destroy' before trying again."
        ) from err

    wait_for_pods(NS_ISTIO_SYSTEM, mesh_cfg.istio_ready_timeout)
    console.print("[green]\u2705 Istio installation complete and verified[/green]")
