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

"""Fail-fast deployment pipeline: prerequisites, platform, and test workload."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from pathlib import Path

import sh
from rich.panel import Panel

from maas_e2e import console
from maas_e2e.cluster import OcClient
from maas_e2e.config import RunConfig
from maas_e2e.constants import (
    AUTHORINO_DEPLOYMENT,
    CLUSTER_VERSIONS_API,
    DEFAULT_AUTH_READY_TIMEOUT,
    DEFAULT_PLATFORM_READY_TIMEOUT,
    DEFAULT_WORKLOAD_READY_TIMEOUT,
    DEPLOY_SCRIPT_ARGS,
    DSC_NAME,
    DSC_RESOURCE,
    NS_KUADRANT,
    NS_WORKLOAD,
    REL_DEPLOY_SCRIPT,
    REL_WORKLOAD_KUSTOMIZE_DIR,
    WORKLOAD_NAME,
    WORKLOAD_RESOURCE,
)
from maas_e2e.errors import CommandFailedError, E2EError, PrerequisiteError, ReadinessTimeoutError
from maas_e2e.readiness import ReadinessCheck, dump_diagnostics, wait_for
from maas_e2e.utils import require_command, run_script

PLATFORM_READY = ReadinessCheck(DSC_RESOURCE, DSC_NAME, None, "Ready", DEFAULT_PLATFORM_READY_TIMEOUT)
AUTH_READY = ReadinessCheck("deployment", AUTHORINO_DEPLOYMENT, NS_KUADRANT, "Available", DEFAULT_AUTH_READY_TIMEOUT)
WORKLOAD_READY = ReadinessCheck(
    WORKLOAD_RESOURCE, WORKLOAD_NAME, NS_WORKLOAD, "Ready", DEFAULT_WORKLOAD_READY_TIMEOUT,
)


@dataclass(frozen=True)
class Stage:
    """A named pipeline stage."""

    name: str
    action: Callable[[], None]


def run_stages(stages: Sequence[Stage]) -> None:
    """Run *stages* in order, stopping at the first failure.

    Raises:
        E2EError: Whatever the failing stage raised; later stages never run.
    """
    for stage in stages:
        console.print(Panel.fit(stage.name, style="bold blue"))
        try:
            stage.action()
        except E2EError:
            console.print(f"[red]\u274c Stage '{stage.name}' failed, aborting deployment[/red]")
            raise


# ============================================================================
# Stages
# ============================================================================

def check_prerequisites(client: OcClient) -> str:
    """Verify tooling, cluster-admin privileges, and an OpenShift cluster.

    Returns:
        The current user name.

    Raises:
        MissingDependencyError: If ``oc`` is not installed.
        PrerequisiteError: If not logged in, not admin, or not OpenShift.
    """
    require_command("oc")
    current_user = client.whoami()
    if not current_user:
        raise PrerequisiteError("Not logged into OpenShift. Please run 'oc login' first")
    if not client.can_i("*", "*"):
        raise PrerequisiteError(
            f"User '{current_user}' does not have admin privileges; "
            "cluster-admin is required to deploy and manage resources"
        )
    if not client.api_available(CLUSTER_VERSIONS_API):
        raise PrerequisiteError("This tool is designed for OpenShift clusters only")
    console.print(f"[green]\u2705 Prerequisites met - logged in as: {current_user} on OpenShift[/green]")
    return current_user


def deploy_platform(project_root: Path) -> None:
    """Run the platform deployment script."""
    console.print("[yellow]\u2139\ufe0f  Deploying MaaS platform on OpenShift...[/yellow]")
    try:
        run_script(project_root / REL_DEPLOY_SCRIPT, *DEPLOY_SCRIPT_ARGS, cwd=project_root)
    except CommandFailedError as err:
        raise CommandFailedError(f"MaaS platform deployment failed: {err}") from err
    console.print("[green]\u2705 MaaS platform deployment completed[/green]")


def wait_platform_ready(client: OcClient, run_cfg: RunConfig, sleep: Callable[[float], None] = time.sleep) -> None:
    """Wait for platform components, then the auxiliary auth service.

    The platform wait is fatal. The auth wait only warns on timeout.
    """
    platform = replace(PLATFORM_READY, timeout_seconds=run_cfg.platform_ready_timeout)
    try:
        wait_for(client, platform, sleep=sleep)
    except ReadinessTimeoutError:
        dump_diagnostics(client, platform)
        raise

    if run_cfg.skip_auth_check:
        console.print("[yellow]\u26a0\ufe0f  Skipping Authorino readiness check (SKIP_AUTH_CHECK=true)[/yellow]")
        return
    auth = replace(AUTH_READY, timeout_seconds=run_cfg.auth_ready_timeout)
    try:
        wait_for(client, auth, sleep=sleep)
    except ReadinessTimeoutError as err:
        console.print(f"[yellow]\u26a0\ufe0f  Authorino readiness check had issues, continuing anyway: {err}[/yellow]")


def deploy_workload(client: OcClient, project_root: Path) -> None:
    """Create the workload namespace and apply the simulator model manifests."""
    require_command("kustomize")
    if client.ensure_namespace(NS_WORKLOAD):
        console.print(f"[yellow]   Created '{NS_WORKLOAD}' namespace[/yellow]")
    else:
        console.print(f"[yellow]   '{NS_WORKLOAD}' namespace already exists[/yellow]")

    try:
        manifests = str(sh.kustomize("build", REL_WORKLOAD_KUSTOMIZE_DIR, _cwd=str(project_root)))
    except sh.ErrorReturnCode as err:
        raise CommandFailedError(f"kustomize build failed: {err.stderr.decode(errors='replace')[:200]}") from err
    client.apply_text(manifests)
    console.print("[green]\u2705 Simulator model deployed[/green]")


def wait_workload_ready(client: OcClient, run_cfg: RunConfig, sleep: Callable[[float], None] = time.sleep) -> None:
    check = replace(WORKLOAD_READY, timeout_seconds=run_cfg.workload_ready_timeout)
    try:
        wait_for(client, check, sleep=sleep)
    except ReadinessTimeoutError:
        dump_diagnostics(client, check)
        raise


# ============================================================================
# Pipeline
# ============================================================================

def build_deployment_stages(
    client: OcClient,
    run_cfg: RunConfig,
    project_root: Path,
    sleep: Callable[[float], None] = time.sleep,
) -> list[Stage]:
    """Build the ordered deployment stages."""
    return [
        Stage("Checking prerequisites", lambda: check_prerequisites(client)),
        Stage("Deploying MaaS platform", lambda: deploy_platform(project_root)),
        Stage("Waiting for platform readiness", lambda: wait_platform_ready(client, run_cfg, sleep)),
        Stage("Deploying simulator model", lambda: deploy_workload(client, project_root)),
        Stage("Waiting for model readiness", lambda: wait_workload_ready(client, run_cfg, sleep)),
    ]


def run_deployment(
    client: OcClient,
    run_cfg: RunConfig,
    project_root: Path,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Deploy the platform and test workload, failing fast on any stage."""
    run_stages(build_deployment_stages(client, run_cfg, project_root, sleep))
