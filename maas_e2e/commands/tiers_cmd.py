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

"""Tier subcommands (show, apply)."""

from __future__ import annotations

import typer

from maas_e2e import console
from maas_e2e.cluster import OcClient
from maas_e2e.config import IdpConfig, RunConfig
from maas_e2e.errors import InvalidConfigError, PrerequisiteError
from maas_e2e.orchestrator import load_credentials, resolve_users_to_test
from maas_e2e.results import RunResult, print_summary
from maas_e2e.tiers import apply_tier_groups, assign_tiers, display_assignment
from maas_e2e.utils import require_command

app = typer.Typer(help="Inspect and apply tier membership of test users.")


def _assignment_from_env():
    run_cfg = RunConfig()
    credentials = load_credentials(run_cfg)
    if credentials is None:
        raise InvalidConfigError("USERS must be set (format: user:pass,user:pass)")
    return run_cfg, credentials, assign_tiers(credentials.usernames, run_cfg.tier_overrides)


@app.command()
def show() -> None:
    """Print the tier assignment and the users the smoke matrix would test."""
    run_cfg, credentials, assignment = _assignment_from_env()
    display_assignment(assignment)
    users_to_test = resolve_users_to_test(run_cfg, credentials)
    console.print(f"[yellow]Users to test:[/yellow] {' '.join(users_to_test)}")


@app.command()
def apply() -> None:
    """Create tier groups and add the users from USERS to them."""
    _, _, assignment = _assignment_from_env()
    require_command("oc")
    idp_cfg = IdpConfig()
    client = OcClient(idp_cfg.retry_count, idp_cfg.retry_delay)
    if not client.whoami():
        raise PrerequisiteError("Not logged into OpenShift. Please run 'oc login' first")

    display_assignment(assignment)
    result = RunResult()
    apply_tier_groups(client, assignment, result)
    print_summary(result)
    if not result.ok:
        raise typer.Exit(result.exit_code)
