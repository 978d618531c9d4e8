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

"""Validation retrier, test environment resolution, and the per-identity bundle."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rich.panel import Panel
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from maas_e2e import console, logger
from maas_e2e.cluster import OcClient
from maas_e2e.config import RunConfig
from maas_e2e.constants import (
    INGRESS_CONFIG_RESOURCE,
    MAAS_API_PATH,
    MAAS_HOST_PREFIX,
    REL_SMOKE_SCRIPT,
    REL_TOKEN_VERIFY_SCRIPT,
    REL_VALIDATE_SCRIPT,
)
from maas_e2e.errors import CommandFailedError, PrerequisiteError, ValidationFailure
from maas_e2e.results import RunResult, run_step
from maas_e2e.utils import run_script


def run_with_retry(
    check: Callable[[], None],
    cooldown_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Run *check*, retrying exactly once after *cooldown_seconds* on failure.

    Args:
        check: Zero-argument callable raising ``ValidationFailure`` on failure.
        cooldown_seconds: Seconds to wait before the single retry.
        sleep: Sleep function, injectable for tests.

    Raises:
        ValidationFailure: If both attempts fail.
    """

    def _announce_retry(retry_state) -> None:
        console.print(
            f"[yellow]\u26a0\ufe0f  First validation attempt failed, retrying in {cooldown_seconds}s...[/yellow]"
        )
        logger.debug("Validation failure: %s", retry_state.outcome.exception())

    retryer = Retrying(
        stop=stop_after_attempt(2),
        wait=wait_fixed(cooldown_seconds),
        retry=retry_if_exception_type(ValidationFailure),
        before_sleep=_announce_retry,
        sleep=sleep,
        reraise=True,
    )
    retryer(check)


# ============================================================================
# Test environment
# ============================================================================

@dataclass(frozen=True)
class TestEnvironment:
    """Endpoints exported to the validation and smoke scripts."""

    __test__ = False

    cluster_url: str
    cluster_domain: str
    host: str
    maas_api_base_url: str

    def as_env(self) -> dict[str, str]:
        return {
            "K8S_CLUSTER_URL": self.cluster_url,
            "CLUSTER_DOMAIN": self.cluster_domain,
            "HOST": self.host,
            "MAAS_API_BASE_URL": self.maas_api_base_url,
        }


def resolve_test_environment(client: OcClient, insecure_http: bool = False) -> TestEnvironment:
    """Derive the MaaS API endpoint from the cluster ingress configuration.

    Raises:
        PrerequisiteError: If the API server URL or ingress domain cannot be read.
    """
    cluster_url = client.server_url()
    if not cluster_url:
        raise PrerequisiteError("Failed to read the cluster API server URL")
    domain = client.jsonpath(INGRESS_CONFIG_RESOURCE, "cluster", "{.spec.domain}")
    if not domain:
        raise PrerequisiteError("Failed to detect cluster ingress domain")

    host = f"{MAAS_HOST_PREFIX}.{domain}"
    scheme = "http" if insecure_http else "https"
    env = TestEnvironment(
        cluster_url=cluster_url,
        cluster_domain=domain,
        host=host,
        maas_api_base_url=f"{scheme}://{host}/{MAAS_API_PATH}",
    )
    console.print(f"[yellow]   Cluster URL  : {env.cluster_url}[/yellow]")
    console.print(f"[yellow]   MaaS API URL : {env.maas_api_base_url}[/yellow]")
    return env


# ============================================================================
# Bundle
# ============================================================================

class ValidationBundle:
    """The validation, token verification, and smoke checks for one identity.

    Every sub-step is recorded on its own; a failing sub-step never stops
    the ones after it.

    Args:
        run_cfg: Run configuration (skip flags and cooldowns).
        project_root: Repository holding the scripts.
        test_env: Endpoints exported to the scripts.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        run_cfg: RunConfig,
        project_root: Path,
        test_env: TestEnvironment,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.run_cfg = run_cfg
        self.project_root = project_root
        self.test_env = test_env
        self._sleep = sleep

    def _run_check(self, rel_script: str, *args: str) -> None:
        env = {**os.environ, **self.test_env.as_env()}
        try:
            run_script(self.project_root / rel_script, *args, cwd=self.project_root, env=env)
        except CommandFailedError as err:
            raise ValidationFailure(str(err)) from err

    def validate_deployment(self) -> None:
        run_with_retry(
            lambda: self._run_check(REL_VALIDATE_SCRIPT),
            self.run_cfg.validation_retry_cooldown,
            self._sleep,
        )

    def verify_tokens(self) -> None:
        self._run_check(REL_TOKEN_VERIFY_SCRIPT)

    def run_smoke(self) -> None:
        self._run_check(REL_SMOKE_SCRIPT)

    def __call__(self, result: RunResult, identity: str) -> None:
        cfg = self.run_cfg
        if cfg.skip_validation:
            console.print("[yellow]\u2139\ufe0f  Skipping deployment validation[/yellow]")
        else:
            console.print(Panel.fit(f"Validating deployment as {identity}", style="bold blue"))
            run_step(result, f"{identity}/validation", self.validate_deployment)
            # The validation script exhausts the per-user request limit.
            console.print(
                f"[yellow]\u2139\ufe0f  Waiting {cfg.rate_limit_cooldown}s for rate limit window to reset...[/yellow]"
            )
            self._sleep(cfg.rate_limit_cooldown)

        if cfg.skip_token_verification:
            console.print("[yellow]\u2139\ufe0f  Skipping token metadata verification[/yellow]")
        else:
            console.print(Panel.fit(f"Verifying token metadata as {identity}", style="bold blue"))
            run_step(result, f"{identity}/token-verification", self.verify_tokens)

        if cfg.skip_smoke:
            console.print("[yellow]\u2139\ufe0f  Skipping smoke tests[/yellow]")
        else:
            console.print(Panel.fit(f"Running smoke tests as {identity}", style="bold blue"))
            run_step(result, f"{identity}/smoke", self.run_smoke)
