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

"""Declarative workflow steps with per-step idempotency predicates."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from rich.panel import Panel

from mesh_sandbox import console, logger


@dataclass(frozen=True)
class Step:
    """One unit of work in a workflow.

    Attributes:
        name: Title shown when the step runs.
        action: Performs the step.
        is_done: Returns True when the step's effect is already in place,
            in which case the runner skips ``action``. None means always run.
    """

    name: str
    action: Callable[[], None]
    is_done: Callable[[], bool] | None = None


def run_steps(steps: Iterable[Step]) -> list[str]:
    """Run *steps* in order, skipping those whose predicate already holds.

    The first exception propagates and stops the workflow; completed steps
    are not rolled back.

    Args:
        steps: Steps to run.

    Returns:
        Names of the steps that were skipped.
    """
    skipped: list[str] = []
    for step in steps:
        console.print(Panel.fit(step.name, style="bold blue"))
        if step.is_done is not None and step.is_done():
            console.print("[yellow]\u2139\ufe0f  Already in place, skipping[/yellow]")
            skipped.append(step.name)
            continue
        logger.debug("Running step %r", step.name)
        step.action()
    return skipped
