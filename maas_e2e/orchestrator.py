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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

import time
from collections.abc import Callable

from rich.panel import Panel

from maas_e2e import console
from maas_e2e.cluster import OcClient
from maas_e2e.config import IdpConfig, RunConfig, display_run_config
from maas_e2e.constants import DEFAULT_FIXED_PASSWORD_PREFIX
from maas_e2e.credentials import CredentialSet, generate_credentials
from maas_e2e.deployment import run_deployment
from maas_e2e.errors import InvalidConfigError
from maas_e2e.idp import IdentityProviderBootstrapper
from maas_e2e.matrix import run_matrix
from maas_e2e.results import RunResult, print_summary
from maas_e2e.tiers import apply_tier_groups, assign_tiers, display_assignment, first_of_each_tier
from maas_e2e.utils import find_project_root
from maas_e2e.validation import ValidationBundle, resolve_test_environment

# ============================================================================
# Internal helpers
# ============================================================================


def load_credentials(run_cfg: RunConfig) -> CredentialSet | None:
    if not run_cfg.users:
        return None
    credentials = CredentialSet.parse(run_cfg.users)
    return credentials or None


def resolve_users_to_test(run_cfg: RunConfig, credentials: CredentialSet | None) -> list[str]:
    """Pick the identities the bundle runs as.

    Args:
        run_cfg: Run configuration carrying ``USERS_TO_TEST`` and tier overrides.
        credentials: Available credentials, or None for single-tenant mode.

    Returns:
        Explicit ``USERS_TO_TEST`` if set, else one user per non-empty tier,
        else an empty list (run once as the current identity).

    Raises:
        InvalidConfigError: If identities are requested without credentials.
    """
    if run_cfg.users_to_test:
        if not credentials:
            raise InvalidConfigError("USERS_TO_TEST requires USERS (user:pass,user:pass) to be set")
        return list(run_cfg.users_to_test)
    if credentials:
        return first_of_each_tier(assign_tiers(credentials.usernames, run_cfg.tier_overrides))
    return []


def bootstrap_identity_provider(
    client: OcClient,
    idp_cfg: IdpConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> CredentialSet:
    """Generate credentials and publish them through the HTPasswd provider.

    Returns:
        The credentials that were published.
    """
    credentials = generate_credentials(idp_cfg.num_users, idp_cfg.fixed_passwords)
    IdentityProviderBootstrapper(client, idp_cfg, sleep).run(credentials)
    console.print(f"[green]\u2705 Identity provider ready with {len(credentials)} users[/green]")
    return credentials


# ============================================================================
# Workflows
# ============================================================================


def run_smoke_pipeline(
    client: OcClient,
    run_cfg: RunConfig,
    credentials: CredentialSet | None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunResult:
    """Deploy, apply tier groups, and run the validation bundle per identity.

    Deployment stages abort the run on failure. Past them every failure is
    recorded and the remaining steps and identities still run.

    Args:
        client: Cluster client logged in as a cluster admin.
        run_cfg: Run configuration.
        credentials: Test credentials, or None for single-tenant mode.
        sleep: Sleep function, injectable for tests.

    Returns:
        The aggregated result of the run.
    """
    project_root = run_cfg.project_root or find_project_root()
    users_to_test = resolve_users_to_test(run_cfg, credentials)

    run_deployment(client, run_cfg, project_root, sleep)

    console.print(Panel.fit("Resolving test environment", style="bold blue"))
    test_env = resolve_test_environment(client, run_cfg.insecure_http)

    result = RunResult()
    if credentials and not run_cfg.skip_tier_setup:
        assignment = assign_tiers(credentials.usernames, run_cfg.tier_overrides)
        display_assignment(assignment)
        apply_tier_groups(client, assignment, result)

    bundle = ValidationBundle(run_cfg, project_root, test_env, sleep)
    run_matrix(
        users_to_test,
        credentials or CredentialSet(()),
        bundle,
        lambda username, password: client.login(test_env.cluster_url, username, password),
        result,
    )

    console.print(Panel.fit("Summary", style="bold blue"))
    print_summary(result)
    return result


def run_e2e(
    run_cfg: RunConfig,
    idp_cfg: IdpConfig,
    client: OcClient | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunResult:
    """Run the end-to-end flow in ``ci`` or ``dev`` mode.

    ``ci`` expects pre-provisioned users in ``USERS``. ``dev`` bootstraps the
    identity provider with fixed passwords unless ``SKIP_IDP_SETUP`` is set.

    Args:
        run_cfg: Run configuration.
        idp_cfg: Identity provider configuration for dev bootstrap.
        client: Cluster client; built from *idp_cfg* retry settings if omitted.
        sleep: Sleep function, injectable for tests.

    Returns:
        The aggregated result of the run.

    Raises:
        InvalidConfigError: If ``ci`` mode runs without ``USERS``.
        BootstrapError: If the dev identity provider bootstrap fails.
    """
    display_run_config(run_cfg)
    client = client or OcClient(idp_cfg.retry_count, idp_cfg.retry_delay, sleep)
    credentials = load_credentials(run_cfg)

    if run_cfg.mode == "ci":
        if credentials is None:
            raise InvalidConfigError("USERS must be set in ci mode (format: user:pass,user:pass)")
        console.print(f"[yellow]\u2139\ufe0f  CI mode: testing with {len(credentials)} pre-provisioned users[/yellow]")
    elif run_cfg.skip_idp_setup:
        console.print("[yellow]\u2139\ufe0f  Dev mode: skipping identity provider setup (SKIP_IDP_SETUP=true)[/yellow]")
    else:
        if credentials is not None:
            console.print("[yellow]\u26a0\ufe0f  USERS is set but will be replaced by bootstrapped users[/yellow]")
        if not idp_cfg.fixed_passwords:
            idp_cfg = idp_cfg.model_copy(update={"fixed_passwords": DEFAULT_FIXED_PASSWORD_PREFIX})
        console.print(Panel.fit("Setting up identity provider", style="bold blue"))
        credentials = bootstrap_identity_provider(client, idp_cfg, sleep)

    return run_smoke_pipeline(client, run_cfg, credentials, sleep)
