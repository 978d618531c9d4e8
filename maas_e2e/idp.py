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

"""HTPasswd identity provider bootstrap and cleanup.

Bootstrap moves through a fixed sequence of states::

    Unconfigured -> SecretPublished -> ProviderRegistered
        -> RolloutComplete -> RolesGranted -> Verified

Each transition assumes the side effects of the previous one. A failing
transition raises ``BootstrapError`` naming the last state reached; nothing is
rolled back, so the run can be resumed by hand from that point.
"""

from __future__ import annotations

import base64
import binascii
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

import bcrypt
from rich.panel import Panel

from maas_e2e import console, logger
from maas_e2e.cluster import OcClient
from maas_e2e.config import IdpConfig
from maas_e2e.constants import (
    HTPASSWD_SECRET_KEY,
    IDP_MAPPING_METHOD,
    IDP_TYPE_HTPASSWD,
    NS_OPENSHIFT_AUTHENTICATION,
    NS_OPENSHIFT_CONFIG,
    OAUTH_API_VERSION,
    OAUTH_CLUSTER_NAME,
    OAUTH_DEPLOYMENT,
    OAUTH_POD_SELECTOR,
    OAUTH_RESOURCE,
    OAUTH_STABILIZE_SECONDS,
)
from maas_e2e.credentials import CredentialSet
from maas_e2e.errors import BootstrapError, E2EError, PrerequisiteError, TransientClusterError
from maas_e2e.utils import require_command

T = TypeVar("T")


class BootstrapState(str, Enum):
    UNCONFIGURED = "Unconfigured"
    SECRET_PUBLISHED = "SecretPublished"
    PROVIDER_REGISTERED = "ProviderRegistered"
    ROLLOUT_COMPLETE = "RolloutComplete"
    ROLES_GRANTED = "RolesGranted"
    VERIFIED = "Verified"


class Registration(str, Enum):
    CREATED = "created"
    APPENDED = "appended"
    UNCHANGED = "unchanged"


@dataclass
class BootstrapReport:
    """What a bootstrap run did.

    Attributes:
        state: Final state reached.
        registration: How the provider registration step resolved.
        rollout_complete: Whether the OAuth rollout finished within the timeout.
        running_pods: Running OAuth pods observed after the rollout.
        roles_granted: Users that received the baseline role.
        roles_failed: Users for which the role grant failed.
        verified: Whether the final verification read back what was written.
    """

    state: BootstrapState = BootstrapState.UNCONFIGURED
    registration: Registration | None = None
    rollout_complete: bool = False
    running_pods: int = 0
    roles_granted: int = 0
    roles_failed: int = 0
    verified: bool = False


# ============================================================================
# Manifests
# ============================================================================

def hash_password(password: str, cost: int) -> str:
    """bcrypt-hash *password* with the given cost factor."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("ascii")


def build_htpasswd(credentials: CredentialSet, cost: int) -> str:
    """Render an htpasswd file with one bcrypt entry per credential."""
    lines = []
    for count, cred in enumerate(credentials, start=1):
        lines.append(f"{cred.username}:{hash_password(cred.password, cost)}")
        if count % 5 == 0:
            logger.debug("Hashed %d/%d passwords", count, len(credentials))
    return "\n".join(lines) + "\n"


def htpasswd_secret_manifest(name: str, htpasswd: str, namespace: str = NS_OPENSHIFT_CONFIG) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {"name": name, "namespace": namespace},
        "data": {HTPASSWD_SECRET_KEY: base64.b64encode(htpasswd.encode("utf-8")).decode("ascii")},
    }


def provider_entry(idp_name: str, secret_name: str) -> dict:
    return {
        "name": idp_name,
        "mappingMethod": IDP_MAPPING_METHOD,
        "type": IDP_TYPE_HTPASSWD,
        "htpasswd": {"fileData": {"name": secret_name}},
    }


def oauth_manifest(idp_name: str, secret_name: str) -> dict:
    return {
        "apiVersion": OAUTH_API_VERSION,
        "kind": "OAuth",
        "metadata": {"name": OAUTH_CLUSTER_NAME},
        "spec": {"identityProviders": [provider_entry(idp_name, secret_name)]},
    }


def provider_names(oauth: dict | None) -> list[str]:
    """List identity provider names configured in an OAuth resource."""
    if not oauth:
        return []
    providers = (oauth.get("spec") or {}).get("identityProviders") or []
    return [provider.get("name", "") for provider in providers]


def _append_provider_ops(oauth: dict, entry: dict) -> list[dict]:
    spec = oauth.get("spec")
    if spec is None:
        return [{"op": "add", "path": "/spec", "value": {"identityProviders": [entry]}}]
    if not spec.get("identityProviders"):
        return [{"op": "add", "path": "/spec/identityProviders", "value": [entry]}]
    return [{"op": "add", "path": "/spec/identityProviders/-", "value": entry}]


# ============================================================================
# Bootstrapper
# ============================================================================

class IdentityProviderBootstrapper:
    """Publishes test credentials to the cluster OAuth server.

    Args:
        client: Cluster client, logged in as a cluster admin.
        idp_cfg: Identity provider configuration.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(self, client: OcClient, idp_cfg: IdpConfig, sleep: Callable[[float], None] = time.sleep) -> None:
        self.client = client
        self.cfg = idp_cfg
        self._sleep = sleep
        self.state = BootstrapState.UNCONFIGURED

    @property
    def secret_name(self) -> str:
        return self.cfg.htpasswd_secret_name or f"{self.cfg.idp_name}-secret"

    def _transition(self, description: str, target: BootstrapState, action: Callable[[], T]) -> T:
        try:
            value = action()
        except E2EError as err:
            raise BootstrapError(f"{description} failed: {err}", self.state.value) from err
        self.state = target
        logger.debug("Identity provider bootstrap reached %s", target.value)
        return value

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def check_ready(self) -> str:
        """Verify ``oc`` is installed and a session is active.

        Returns:
            The logged-in user.

        Raises:
            MissingDependencyError: If ``oc`` is not installed.
            PrerequisiteError: If not logged in.
        """
        require_command("oc")
        user = self.client.whoami()
        if not user:
            raise PrerequisiteError("Not logged in to OpenShift cluster. Run: oc login <cluster-url>")
        server = self.client.server_url() or "(unknown server)"
        console.print(f"[green]\u2705 Logged in as {user} on {server}[/green]")
        return user

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def publish_secret(self, credentials: CredentialSet) -> None:
        """Hash every password and apply the htpasswd secret, replacing any previous content."""
        console.print(Panel.fit("Creating HTPasswd secret", style="bold blue"))
        console.print(
            f"[yellow]\u2139\ufe0f  Generating bcrypt hashes for {len(credentials)} users "
            f"(cost {self.cfg.bcrypt_cost}, this may take a moment)...[/yellow]"
        )
        htpasswd = build_htpasswd(credentials, self.cfg.bcrypt_cost)
        self.client.apply(htpasswd_secret_manifest(self.secret_name, htpasswd))
        console.print(f"[green]\u2705 Secret {self.secret_name} applied in {NS_OPENSHIFT_CONFIG}[/green]")

    def register_provider(self) -> Registration:
        """Make sure the OAuth resource lists this provider exactly once.

        Creates the OAuth resource only when the server reports it missing,
        appends the provider when other providers exist, and leaves it
        untouched when already present. Existing providers are never replaced.

        Raises:
            TransientClusterError: If the OAuth resource cannot be read or
                the provider cannot be added.
        """
        console.print(Panel.fit("Configuring OAuth identity provider", style="bold blue"))
        idp_name = self.cfg.idp_name
        entry = provider_entry(idp_name, self.secret_name)
        oauth = self.client.read(OAUTH_RESOURCE, OAUTH_CLUSTER_NAME)

        if oauth is None:
            console.print("[yellow]\u2139\ufe0f  Creating new OAuth configuration with HTPasswd provider[/yellow]")
            if self.client.create(oauth_manifest(idp_name, self.secret_name)):
                console.print("[green]\u2705 OAuth configuration created[/green]")
                return Registration.CREATED
            console.print("[yellow]\u2139\ufe0f  OAuth configuration appeared concurrently, appending instead[/yellow]")
            oauth = self.client.read(OAUTH_RESOURCE, OAUTH_CLUSTER_NAME)
            if oauth is None:
                raise TransientClusterError("OAuth configuration reported as existing but could not be read")

        existing = provider_names(oauth)
        if idp_name in existing:
            console.print(f"[green]\u2705 IDP '{idp_name}' already configured, OAuth unchanged[/green]")
            return Registration.UNCHANGED

        console.print(f"[yellow]\u2139\ufe0f  Adding HTPasswd provider '{idp_name}' to existing OAuth[/yellow]")
        logger.debug("Existing IDPs: %s", existing)
        patch_error: TransientClusterError | None = None
        try:
            self.client.patch_json(OAUTH_RESOURCE, OAUTH_CLUSTER_NAME, _append_provider_ops(oauth, entry))
        except TransientClusterError as err:
            console.print("[yellow]\u26a0\ufe0f  OAuth patch returned an error (may still have succeeded)[/yellow]")
            patch_error = err

        if idp_name in provider_names(self.client.get(OAUTH_RESOURCE, OAUTH_CLUSTER_NAME)):
            console.print(f"[green]\u2705 IDP '{idp_name}' added to OAuth configuration[/green]")
        elif patch_error is not None:
            raise patch_error
        else:
            console.print("[yellow]\u26a0\ufe0f  Could not verify IDP was added - check manually[/yellow]")
        return Registration.APPENDED

    def wait_for_rollout(self) -> tuple[bool, int]:
        """Restart the OAuth server and wait for its rollout.

        A timeout only warns; the previous and new configuration may be served
        side by side while pods roll.

        Returns:
            Tuple of (rollout_complete, running_pods).
        """
        console.print(Panel.fit("Waiting for OAuth rollout", style="bold blue"))
        if not self.client.rollout_restart(OAUTH_DEPLOYMENT, NS_OPENSHIFT_AUTHENTICATION):
            console.print("[yellow]\u26a0\ufe0f  Could not restart OAuth deployment (may not be needed)[/yellow]")

        timeout = self.cfg.oauth_rollout_timeout
        console.print(f"[yellow]\u2139\ufe0f  Waiting for rollout to complete (timeout: {timeout}s)...[/yellow]")
        complete = self.client.rollout_status(OAUTH_DEPLOYMENT, NS_OPENSHIFT_AUTHENTICATION, timeout)
        if complete:
            console.print("[green]\u2705 OAuth rollout completed[/green]")
        else:
            console.print("[yellow]\u26a0\ufe0f  OAuth rollout status check timed out (authentication may still work)[/yellow]")

        self._sleep(OAUTH_STABILIZE_SECONDS)
        running = self.client.count_running_pods(NS_OPENSHIFT_AUTHENTICATION, OAUTH_POD_SELECTOR)
        if running:
            console.print(f"[green]\u2705 OAuth pods running: {running}[/green]")
        else:
            console.print("[yellow]\u26a0\ufe0f  No running OAuth pods detected - verify manually[/yellow]")
        return complete, running

    def grant_roles(self, usernames: Sequence[str]) -> tuple[int, int]:
        """Grant the baseline role to every user, counting failures without stopping.

        Returns:
            Tuple of (granted, failed).
        """
        console.print(Panel.fit("Granting user permissions", style="bold blue"))
        role = self.cfg.baseline_role
        granted = failed = 0
        for username in usernames:
            if self.client.add_cluster_role(role, username):
                granted += 1
            else:
                failed += 1
                logger.debug("Failed to grant %s to %s", role, username)
        if failed:
            console.print(f"[yellow]\u26a0\ufe0f  Granted {role} to {granted} users, {failed} failed (may already exist)[/yellow]")
        else:
            console.print(f"[green]\u2705 Granted {role} role to all {granted} users[/green]")
        return granted, failed

    def verify(self, usernames: Sequence[str]) -> bool:
        """Best-effort read-back of the secret and provider registration.

        Mismatches are reported as warnings only.
        """
        console.print(Panel.fit("Verifying identity provider", style="bold blue"))
        ok = True
        secret = self.client.get("secret", self.secret_name, NS_OPENSHIFT_CONFIG)
        if secret is None:
            console.print(f"[yellow]\u26a0\ufe0f  Secret {self.secret_name} not readable yet[/yellow]")
            ok = False
        else:
            missing = set(usernames) - set(_htpasswd_users(secret))
            if missing:
                console.print(f"[yellow]\u26a0\ufe0f  Secret is missing {len(missing)} users: {', '.join(sorted(missing))}[/yellow]")
                ok = False

        if self.cfg.idp_name not in provider_names(self.client.get(OAUTH_RESOURCE, OAUTH_CLUSTER_NAME)):
            console.print(f"[yellow]\u26a0\ufe0f  IDP '{self.cfg.idp_name}' not visible in OAuth configuration yet[/yellow]")
            ok = False

        if ok:
            console.print("[green]\u2705 Secret and OAuth provider verified[/green]")
        return ok

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, credentials: CredentialSet) -> BootstrapReport:
        """Run the full bootstrap sequence for *credentials*.

        Raises:
            MissingDependencyError: If ``oc`` is not installed.
            PrerequisiteError: If no cluster session is active.
            BootstrapError: If a transition fails.
        """
        self.check_ready()
        report = BootstrapReport()
        usernames = credentials.usernames

        self._transition("Publishing htpasswd secret", BootstrapState.SECRET_PUBLISHED,
                         lambda: self.publish_secret(credentials))
        report.registration = self._transition("Registering identity provider",
                                               BootstrapState.PROVIDER_REGISTERED, self.register_provider)
        report.rollout_complete, report.running_pods = self._transition(
            "Waiting for OAuth rollout", BootstrapState.ROLLOUT_COMPLETE, self.wait_for_rollout)
        report.roles_granted, report.roles_failed = self._transition(
            "Granting roles", BootstrapState.ROLES_GRANTED, lambda: self.grant_roles(usernames))
        report.verified = self.verify(usernames)
        if report.verified:
            self.state = BootstrapState.VERIFIED
        report.state = self.state
        return report

    def delete(self, usernames: Sequence[str]) -> int:
        """Remove the secret, role grants, users, and identities.

        The shared OAuth resource is left untouched; removing the provider
        entry is a manual operator step.

        Returns:
            Number of user records removed.
        """
        console.print(Panel.fit("Cleanup mode", style="bold blue"))
        require_command("oc")
        if not self.client.whoami():
            console.print("[yellow]\u26a0\ufe0f  Not logged in to cluster, skipping cluster cleanup[/yellow]")
            return 0

        console.print(f"[yellow]\u2139\ufe0f  Removing IDP '{self.cfg.idp_name}' resources...[/yellow]")
        if self.client.delete("secret", self.secret_name, NS_OPENSHIFT_CONFIG):
            console.print(f"[green]\u2705 Deleted secret: {self.secret_name}[/green]")
        else:
            logger.debug("Secret %s not found or already deleted", self.secret_name)

        console.print(f"[yellow]\u2139\ufe0f  Removing {len(usernames)} user accounts and identities...[/yellow]")
        removed = 0
        for username in usernames:
            self.client.remove_cluster_role(self.cfg.baseline_role, username)
            if self.client.delete("user", username):
                removed += 1
            self.client.delete("identity", f"{self.cfg.idp_name}:{username}")
        console.print(f"[green]\u2705 Removed {removed} user accounts[/green]")

        console.print(f"[yellow]\u26a0\ufe0f  Manual step required: Remove '{self.cfg.idp_name}' from OAuth if needed[/yellow]")
        console.print("[yellow]   Run: oc edit oauth cluster[/yellow]")
        return removed


def _htpasswd_users(secret: dict) -> list[str]:
    encoded = (secret.get("data") or {}).get(HTPASSWD_SECRET_KEY, "")
    try:
        content = base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return []
    return [line.split(":", 1)[0] for line in content.splitlines() if ":" in line]
