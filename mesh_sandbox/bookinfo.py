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

"""Bookinfo sample application deployment."""

from __future__ import annotations

from pathlib import Path

import sh

from mesh_sandbox import console
from mesh_sandbox.config import AppConfig
from mesh_sandbox.constants import DEPENDENCIES, ISTIO_RAW_URL, LABEL_ISTIO_INJECTION
from mesh_sandbox.utils import download_file


def manifest_urls(release: str) -> dict[str, str]:
    """Map local manifest file names to their upstream URLs for *release*."""
    return {
        name: ISTIO_RAW_URL.format(release=release, path=path)
        for name, path in DEPENDENCIES["bookinfo"]["manifests"].items()
    }


def manifest_paths(app_cfg: AppConfig) -> list[Path]:
    """Local paths the Bookinfo manifests are downloaded to, in apply order."""
    return [app_cfg.manifest_dir / name for name in DEPENDENCIES["bookinfo"]["manifests"]]


def enable_sidecar_injection(namespace: str) -> None:
    """Label *namespace* so Istio injects sidecars into new pods."""
    console.print(f"[yellow]\u2139\ufe0f  Enabling Istio sidecar injection for the '{namespace}' namespace...[/yellow]")
    sh.kubectl("label", "namespace", namespace, LABEL_ISTIO_INJECTION, "--overwrite")


def deploy_bookinfo(app_cfg: AppConfig) -> None:
    """Download and apply the Bookinfo application and its gateway.

    Args:
        app_cfg: Application configuration with namespace, release and
            manifest directory.
    """
    enable_sidecar_injection(app_cfg.app_namespace)
    for name, url in manifest_urls(app_cfg.bookinfo_release).items():
        console.print(f"[yellow]\u2139\ufe0f  Downloading and applying {name}...[/yellow]")
        dest = download_file(url, app_cfg.manifest_dir / name)
        sh.kubectl("apply", "-n", app_cfg.app_namespace, "-f", str(dest))
    console.print("[green]\u2705 Bookinfo application deployed[/green]")


def remove_manifests(app_cfg: AppConfig) -> list[Path]:
    """Delete downloaded Bookinfo manifests.

    Returns:
        Paths that were removed.
    """
    removed = []
    for path in manifest_paths(app_cfg):
        if path.exists():
            path.unlink()
            removed.append(path)
    return removed
