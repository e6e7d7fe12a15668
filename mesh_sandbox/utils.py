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

"""Utility functions for kubectl, downloads, and command checks."""

from __future__ import annotations

import subprocess
from pathlib import Path

import requests
import sh

from mesh_sandbox import logger
from mesh_sandbox.constants import DOWNLOAD_TIMEOUT_SECONDS


def command_exists(cmd: str) -> bool:
    """Return True if *cmd* is on the system PATH."""
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode:
        return False
    return True


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    if not command_exists(cmd):
        raise RuntimeError(f"Required command '{cmd}' is not installed. Please install it and try again.")


def run_kubectl(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh so that a failing lookup can be read as
    "not there yet" without unwinding through sh's exception hierarchy.

    Args:
        args: kubectl arguments (e.g. ``["get", "svc", "-n", "istio-system"]``).
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def download_text(url: str, timeout: float = DOWNLOAD_TIMEOUT_SECONDS) -> str:
    """Fetch *url* and return its body.

    Raises:
        requests.HTTPError: If the server answers with an error status.
    """
    logger.debug("GET %s", url)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text


def download_file(url: str, dest: Path, timeout: float = DOWNLOAD_TIMEOUT_SECONDS) -> Path:
    """Download *url* to *dest*, creating parent directories as needed.

    Args:
        url: Source URL.
        dest: Destination file path.
        timeout: Request timeout in seconds.

    Returns:
        The destination path.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(download_text(url, timeout=timeout))
    return dest
