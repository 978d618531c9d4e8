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

"""Run-wide failure aggregation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from maas_e2e import console, logger
from maas_e2e.errors import E2EError


@dataclass(frozen=True)
class StepOutcome:
    """Tagged result of one recorded step."""

    step: str
    ok: bool
    error: str | None = None


@dataclass
class RunResult:
    """Failure tally for one process invocation.

    Mutated only by the single orchestration thread.

    Attributes:
        failures: Number of recorded failures.
        last_failed_step: Name of the most recent failing step, or None.
        outcomes: Every recorded step outcome in execution order.
    """

    failures: int = 0
    last_failed_step: str | None = None
    outcomes: list[StepOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failures == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def failed_steps(self) -> list[str]:
        return [outcome.step for outcome in self.outcomes if not outcome.ok]

    def record_success(self, step: str) -> StepOutcome:
        outcome = StepOutcome(step, ok=True)
        self.outcomes.append(outcome)
        return outcome

    def record_failure(self, step: str, error: BaseException | str | None = None) -> StepOutcome:
        """Count a failure for *step* without interrupting the run."""
        message = str(error) if error is not None else None
        outcome = StepOutcome(step, ok=False, error=message)
        self.outcomes.append(outcome)
        self.failures += 1
        self.last_failed_step = step
        console.print(f"[red]\u274c {step} failed{': ' + message if message else ''}[/red]")
        logger.debug("Recorded failure #%d at %s", self.failures, step)
        return outcome


def run_step(result: RunResult, step: str, action: Callable[[], object]) -> StepOutcome:
    """Run *action*, recording an ``E2EError`` as a failure instead of raising.

    Args:
        result: Aggregator receiving the outcome.
        step: Name identifying the step in the summary.
        action: Zero-argument callable performing the step.

    Returns:
        The recorded outcome.
    """
    try:
        action()
    except E2EError as err:
        return result.record_failure(step, err)
    return result.record_success(step)


def print_summary(result: RunResult) -> None:
    """Print the final per-step summary."""
    console.print()
    for outcome in result.outcomes:
        if outcome.ok:
            console.print(f"[green]  \u2713 {outcome.step}[/green]")
        else:
            console.print(f"[red]  \u2717 {outcome.step} - {outcome.error or 'failed'}[/red]")
    if result.ok:
        console.print("[green]\U0001f389 All steps completed successfully[/green]")
    else:
        console.print(
            f"[red]\u274c {result.failures} step(s) failed (last: {result.last_failed_step})[/red]"
        )
