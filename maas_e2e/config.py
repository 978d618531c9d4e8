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

"""Configuration classes and config display."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from rich.panel import Panel

from maas_e2e import console
from maas_e2e.constants import (
    DEFAULT_AUTH_READY_TIMEOUT,
    DEFAULT_BASELINE_ROLE,
    DEFAULT_BCRYPT_COST,
    DEFAULT_IDP_NAME,
    DEFAULT_NUM_USERS,
    DEFAULT_OAUTH_ROLLOUT_TIMEOUT,
    DEFAULT_PLATFORM_READY_TIMEOUT,
    DEFAULT_RATE_LIMIT_COOLDOWN,
    DEFAULT_RETRY_COUNT,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_VALIDATION_RETRY_COOLDOWN,
    DEFAULT_WORKLOAD_READY_TIMEOUT,
    TIER_ENTERPRISE,
    TIER_FREE,
    TIER_PREMIUM,
)

UserList = Annotated[list[str], NoDecode]
OptionalUserList = Annotated[list[str] | None, NoDecode]


def split_user_list(value: object) -> object:
    """Split a whitespace- or comma-separated string into usernames."""
    if isinstance(value, str):
        return [item for item in re.split(r"[\s,]+", value) if item]
    return value


# ============================================================================
# Configuration classes
# ============================================================================

class RunConfig(BaseSettings):
    """Test run configuration, auto-loaded from unprefixed env vars.

    Attributes:
        mode: ``ci`` expects pre-provisioned users, ``dev`` may bootstrap them.
        skip_validation: Skip the deployment validation step of the bundle.
        skip_smoke: Skip the smoke assertions step of the bundle.
        skip_token_verification: Skip the token metadata verification step.
        skip_idp_setup: Reuse existing identity provider users in dev mode.
        skip_auth_check: Skip the auxiliary Authorino readiness wait.
        skip_tier_setup: Skip creating tier groups before the test matrix.
        insecure_http: Use plain HTTP for the MaaS API base URL.
        users: Credential set in ``user:pass,user:pass`` wire form.
        users_to_test: Explicit identities to run the bundle as.
        enterprise_users: Override for the enterprise tier membership.
        premium_users: Override for the premium tier membership.
        free_users: Override for the free tier membership.
        validation_retry_cooldown: Seconds between the two validation attempts.
        rate_limit_cooldown: Seconds to wait for the rate limit window to reset.
        platform_ready_timeout: Seconds to wait for platform components.
        auth_ready_timeout: Seconds to wait for the auth service.
        workload_ready_timeout: Seconds to wait for the test model.
        project_root: Repository holding the deploy and validation scripts.
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    mode: Literal["ci", "dev"] = "dev"
    skip_validation: bool = False
    skip_smoke: bool = False
    skip_token_verification: bool = False
    skip_idp_setup: bool = True
    skip_auth_check: bool = True
    skip_tier_setup: bool = False
    insecure_http: bool = False
    users: str | None = None
    users_to_test: UserList = Field(default_factory=list)
    enterprise_users: OptionalUserList = None
    premium_users: OptionalUserList = None
    free_users: OptionalUserList = None
    validation_retry_cooldown: int = Field(default=DEFAULT_VALIDATION_RETRY_COOLDOWN, ge=0)
    rate_limit_cooldown: int = Field(default=DEFAULT_RATE_LIMIT_COOLDOWN, ge=0)
    platform_ready_timeout: int = Field(default=DEFAULT_PLATFORM_READY_TIMEOUT, ge=1)
    auth_ready_timeout: int = Field(default=DEFAULT_AUTH_READY_TIMEOUT, ge=1)
    workload_ready_timeout: int = Field(default=DEFAULT_WORKLOAD_READY_TIMEOUT, ge=1)
    project_root: Path | None = None

    @field_validator("users_to_test", "enterprise_users", "premium_users", "free_users", mode="before")
    @classmethod
    def _split_user_lists(cls, value: object, info: ValidationInfo) -> object:
        # A blank tier override means "not set", not "empty tier".
        if info.field_name != "users_to_test" and isinstance(value, str) and not value.strip():
            return None
        return split_user_list(value)

    @field_validator("users", mode="before")
    @classmethod
    def _blank_users_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def tier_overrides(self) -> dict[str, list[str]]:
        """Explicit tier memberships keyed by tier name."""
        overrides = {
            TIER_ENTERPRISE: self.enterprise_users,
            TIER_PREMIUM: self.premium_users,
            TIER_FREE: self.free_users,
        }
        return {tier: users for tier, users in overrides.items() if users is not None}


class IdpConfig(BaseSettings):
    """HTPasswd identity provider configuration, auto-loaded from env vars.

    Attributes:
        idp_name: Name of the identity provider entry in the OAuth resource.
        htpasswd_secret_name: Secret holding the htpasswd file.
        num_users: Number of test users to generate.
        bcrypt_cost: bcrypt cost factor for password hashes.
        oauth_rollout_timeout: Seconds to wait for the OAuth server rollout.
        retry_count: Attempts for mutating cluster calls.
        retry_delay: Initial backoff in seconds for mutating cluster calls.
        fixed_passwords: Password prefix for deterministic passwords, or None.
        baseline_role: Cluster role granted to every test user.
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    idp_name: str = DEFAULT_IDP_NAME
    htpasswd_secret_name: str | None = None
    num_users: int = Field(default=DEFAULT_NUM_USERS, ge=1)
    bcrypt_cost: int = Field(default=DEFAULT_BCRYPT_COST, ge=4, le=31)
    oauth_rollout_timeout: int = Field(default=DEFAULT_OAUTH_ROLLOUT_TIMEOUT, ge=1)
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT, ge=1)
    retry_delay: float = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0)
    fixed_passwords: str | None = None
    baseline_role: str = DEFAULT_BASELINE_ROLE

    @field_validator("fixed_passwords", "htpasswd_secret_name", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _default_secret_name(self) -> IdpConfig:
        if self.htpasswd_secret_name is None:
            self.htpasswd_secret_name = f"{self.idp_name}-secret"
        return self


# ============================================================================
# Display
# ============================================================================

def display_run_config(run_cfg: RunConfig) -> None:
    """Print the resolved run configuration.

    Args:
        run_cfg: Run configuration to display.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]Run:[/yellow]")
    console.print(f"  mode                 : {run_cfg.mode}")
    console.print(f"  project_root         : {run_cfg.project_root or '(auto from .git)'}")
    console.print(f"  insecure_http        : {run_cfg.insecure_http}")
    console.print("[yellow]Steps:[/yellow]")
    console.print(f"  skip_validation      : {run_cfg.skip_validation}")
    console.print(f"  skip_token_verify    : {run_cfg.skip_token_verification}")
    console.print(f"  skip_smoke           : {run_cfg.skip_smoke}")
    console.print(f"  skip_auth_check      : {run_cfg.skip_auth_check}")
    console.print(f"  skip_tier_setup      : {run_cfg.skip_tier_setup}")
    if run_cfg.mode == "dev":
        console.print(f"  skip_idp_setup       : {run_cfg.skip_idp_setup}")
    if run_cfg.users_to_test:
        console.print("[yellow]Identities:[/yellow]")
        console.print(f"  users_to_test        : {' '.join(run_cfg.users_to_test)}")
    for tier, users in run_cfg.tier_overrides.items():
        console.print(f"  {tier + ' override':<21}: {' '.join(users) or '(empty)'}")


def display_idp_config(idp_cfg: IdpConfig, dry_run: bool = False) -> None:
    """Print the resolved identity provider configuration.

    Args:
        idp_cfg: Identity provider configuration to display.
        dry_run: Whether cluster changes are disabled.
    """
    console.print(Panel.fit("Identity provider configuration", style="bold blue"))
    console.print(f"  idp_name             : {idp_cfg.idp_name}")
    console.print(f"  secret               : {idp_cfg.htpasswd_secret_name}")
    console.print(f"  num_users            : {idp_cfg.num_users}")
    password_mode = f"fixed ({idp_cfg.fixed_passwords}-N)" if idp_cfg.fixed_passwords else "random"
    console.print(f"  passwords            : {password_mode}")
    console.print(f"  bcrypt_cost          : {idp_cfg.bcrypt_cost}")
    console.print(f"  rollout_timeout      : {idp_cfg.oauth_rollout_timeout}s")
    console.print(f"  mode                 : {'dry-run (no cluster changes)' if dry_run else 'apply to cluster'}")
