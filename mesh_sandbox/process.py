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

"""Background helper processes tracked through a pid marker file."""

from __future__ import annotations

import os
import signal
import subprocess
from pathlib import Path

from mesh_sandbox import logger


def _read_marker(marker: Path) -> int:
    """Parse the pid stored in *marker*.

    Raises:
        ValueError: If the file does not hold a single positive decimal pid.
    """
    text = marker.read_text().strip()
    if not text.isdigit() or int(text) <= 0:
        raise ValueError(f"Process marker {marker} does not contain a pid: {text!r}")
    return int(text)


def pid_alive(pid: int) -> bool:
    """Return True if a process with *pid* exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by someone else.
        return True
    return True


class ManagedProcess:
    """A long-lived helper process and the marker file that records its pid.

    A handle is created either by :meth:`launch` or by :meth:`from_marker`
    and is consumed by exactly one call to :meth:`stop`.

    Attributes:
        pid: Process id of the helper.
        marker: Path of the pid marker file.
    """

    def __init__(self, pid: int, marker: Path) -> None:
        self.pid = pid
        self.marker = marker
        self._stopped = False

    def __repr__(self) -> str:
        return f"ManagedProcess(pid={self.pid}, marker={str(self.marker)!r})"

    @classmethod
    def launch(cls, argv: list[str], marker: Path, log_file: Path) -> ManagedProcess:
        """Start *argv* detached from this process and record its pid.

        The child runs in its own session so it outlives the current run;
        its stdout and stderr are appended to *log_file*.

        Args:
            argv: Command and arguments to run.
            marker: Where to write the pid.
            log_file: File receiving the helper's output.

        Returns:
            Handle for the launched process.
        """
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "ab") as log:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text(f"{proc.pid}\n")
        logger.info("Launched %s (pid %d), marker %s", argv[0], proc.pid, marker)
        return cls(proc.pid, marker)

    @classmethod
    def from_marker(cls, marker: Path) -> ManagedProcess | None:
        """Adopt the process recorded in *marker*.

        Returns:
            A handle, or None if there is no marker file.

        Raises:
            ValueError: If the marker exists but is malformed.
        """
        if not marker.exists():
            return None
        return cls(_read_marker(marker), marker)

    def is_running(self) -> bool:
        return not self._stopped and pid_alive(self.pid)

    def stop(self) -> bool:
        """Terminate the process and remove the marker.

        A pid that no longer exists is treated as already stopped.

        Returns:
            True if a signal was delivered, False if the process was gone.

        Raises:
            RuntimeError: If this handle was already stopped.
        """
        if self._stopped:
            raise RuntimeError(f"{self!r} was already stopped")
        self._stopped = True
        try:
            os.kill(self.pid, signal.SIGTERM)
            delivered = True
        except ProcessLookupError:
            logger.info("Process %d from %s is not running (stale marker)", self.pid, self.marker)
            delivered = False
        finally:
            self.marker.unlink(missing_ok=True)
        return delivered
