# /*
# Copyright 2026 The Grove Authors.
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

"""Condition polling for platform components and workloads."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from rich.panel import Panel

from maas_e2e import console, logger
from maas_e2e.cluster import OcClient
from maas_e2e.constants import READINESS_POLL_INTERVAL_SECONDS
from maas_e2e.errors import ReadinessTimeoutError
from maas_e2e.retry import poll_until


@dataclass(frozen=True)
class ReadinessCheck:
    """Descriptor of a condition to wait for.

    Attributes:
        resource_kind: Resource kind (e.g. ``llminferenceservice``).
        resource_name: Resource name.
        namespace: Namespace, or None for cluster-scoped resources.
        condition_name: Status condition type that must become ``True``.
        timeout_seconds: Maximum seconds to wait.
    """

    resource_kind: str
    resource_name: str
    namespace: str | None
    condition_name: str
    timeout_seconds: int

    @property
    def ref(self) -> str:
        ref = f"{self.resource_kind}/{self.resource_name}"
        return f"{ref} -n {self.namespace}" if self.namespace else ref


def wait_for(
    client: OcClient,
    check: ReadinessCheck,
    *,
    interval: float = READINESS_POLL_INTERVAL_SECONDS,
    deadline: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Poll *check* until its condition is satisfied.

    Args:
        client: Cluster client used to read the condition.
        check: What to wait for.
        interval: Seconds between polls.
        deadline: Enclosing ``clock()`` deadline; the wait never outlives it.
        sleep: Sleep function, injectable for tests.
        clock: Monotonic clock used with *deadline*.

    Raises:
        ReadinessTimeoutError: If the condition is not satisfied in time.
    """
    timeout = float(check.timeout_seconds)
    if deadline is not None:
        timeout = max(0.0, min(timeout, deadline - clock()))

    console.print(
        f"[yellow]\u2139\ufe0f  Waiting for {check.ref} condition {check.condition_name} "
        f"(timeout: {int(timeout)}s)...[/yellow]"
    )
    start = clock()
    satisfied = poll_until(
        lambda: client.condition_status(
            check.resource_kind, check.resource_name, check.condition_name, check.namespace,
        ),
        timeout=timeout,
        interval=interval,
        sleep=sleep,
    )
    if not satisfied:
        raise ReadinessTimeoutError(
            f"Timed out after {int(timeout)}s waiting for {check.ref} to be {check.condition_name}"
        )
    logger.debug("%s became %s after %.1fs", check.ref, check.condition_name, clock() - start)
    console.print(f"[green]\u2705 {check.ref} is {check.condition_name}[/green]")


def dump_diagnostics(client: OcClient, check: ReadinessCheck) -> None:
    """Print the resource manifest and namespace events for a failed wait."""
    console.print(Panel.fit(f"Diagnostics: {check.ref}", style="bold red"))
    console.print(f"[yellow]=== {check.resource_kind} YAML dump ===[/yellow]")
    console.print(client.describe_yaml(check.resource_kind, check.resource_name, check.namespace), markup=False)
    if check.namespace:
        console.print(f"[yellow]=== Events in {check.namespace} namespace ===[/yellow]")
        console.print(client.events(check.namespace), markup=False)
