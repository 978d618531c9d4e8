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

"""Identity provider subcommands (setup, delete)."""

from __future__ import annotations

import typer
from rich.panel import Panel

from maas_e2e import console
from maas_e2e.cluster import OcClient
from maas_e2e.config import IdpConfig, display_idp_config
from maas_e2e.constants import DEFAULT_FIXED_PASSWORD_PREFIX
from maas_e2e.credentials import CredentialSet, generate_credentials, generated_usernames
from maas_e2e.idp import BootstrapReport, IdentityProviderBootstrapper

app = typer.Typer(help="Manage the HTPasswd test identity provider.")


def _idp_config(num_users: int | None, idp_name: str | None, password_prefix: str | None = None) -> IdpConfig:
    idp_cfg = IdpConfig()
    updates: dict[str, object] = {}
    if num_users is not None:
        updates["num_users"] = num_users
    if idp_name is not None:
        updates["idp_name"] = idp_name
        # Keep a derived secret name in step with the new provider name.
        if idp_cfg.htpasswd_secret_name == f"{idp_cfg.idp_name}-secret":
            updates["htpasswd_secret_name"] = f"{idp_name}-secret"
    if password_prefix is not None:
        updates["fixed_passwords"] = password_prefix
    return idp_cfg.model_copy(update=updates) if updates else idp_cfg


def _print_users(credentials: CredentialSet) -> None:
    console.print("[yellow]Users:[/yellow]")
    for cred in credentials:
        console.print(f"  {cred.username:<14} {cred.password}")


def _print_summary(idp_cfg: IdpConfig, report: BootstrapReport, credentials: CredentialSet) -> None:
    console.print(Panel.fit("Setup complete", style="bold green"))
    console.print(f"  IDP name     : {idp_cfg.idp_name}")
    console.print(f"  Secret       : {idp_cfg.htpasswd_secret_name}")
    console.print(f"  Users        : {len(credentials)} ({credentials.usernames[0]} .. {credentials.usernames[-1]})")
    console.print(f"  Registration : {report.registration.value if report.registration else 'n/a'}")
    console.print(f"  Roles        : {report.roles_granted} granted, {report.roles_failed} failed")
    console.print(f"  State        : {report.state.value}")


def _print_login_examples(credentials: CredentialSet) -> None:
    console.print(Panel.fit("Login examples", style="bold blue"))
    for cred in list(credentials)[:3]:
        console.print(f"  oc login <cluster-url> -u {cred.username} -p {cred.password}", markup=False)
    if len(credentials) > 3:
        console.print(f"  ... and {len(credentials) - 3} more")


@app.command()
def setup(
    num_users: int | None = typer.Option(
        None, "--num-users", min=1, help="Number of test users (overrides NUM_USERS)"),
    idp_name: str | None = typer.Option(
        None, "--idp-name", help="Identity provider name (overrides IDP_NAME)"),
    fixed_passwords: bool = typer.Option(
        False, "--fixed-passwords", help="Use predictable passwords PREFIX-N"),
    password_prefix: str | None = typer.Option(
        None, "--password-prefix", help=f"Prefix for fixed passwords (default: {DEFAULT_FIXED_PASSWORD_PREFIX})"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Generate credentials without touching the cluster"),
    export: bool = typer.Option(
        False, "--export", help="Print an 'export USERS=...' line on stdout for eval"),
    show_login: bool = typer.Option(
        False, "--show-login", help="Print example login commands"),
) -> None:
    """Create test users and register them with the cluster OAuth server."""
    if password_prefix is None and fixed_passwords:
        password_prefix = IdpConfig().fixed_passwords or DEFAULT_FIXED_PASSWORD_PREFIX
    idp_cfg = _idp_config(num_users, idp_name, password_prefix)
    display_idp_config(idp_cfg, dry_run=dry_run)

    credentials = generate_credentials(idp_cfg.num_users, idp_cfg.fixed_passwords)
    if dry_run:
        console.print("[yellow]\u2139\ufe0f  Dry run: no cluster changes made[/yellow]")
        _print_users(credentials)
    else:
        client = OcClient(idp_cfg.retry_count, idp_cfg.retry_delay)
        report = IdentityProviderBootstrapper(client, idp_cfg).run(credentials)
        _print_summary(idp_cfg, report, credentials)

    if show_login:
        _print_login_examples(credentials)
    if export:
        typer.echo(f"export USERS='{credentials.serialize()}'")


@app.command()
def delete(
    num_users: int | None = typer.Option(
        None, "--num-users", min=1, help="Number of test users to remove (overrides NUM_USERS)"),
    idp_name: str | None = typer.Option(
        None, "--idp-name", help="Identity provider name (overrides IDP_NAME)"),
) -> None:
    """Remove the htpasswd secret, test users, identities, and role grants."""
    idp_cfg = _idp_config(num_users, idp_name)
    client = OcClient(idp_cfg.retry_count, idp_cfg.retry_delay)
    IdentityProviderBootstrapper(client, idp_cfg).delete(generated_usernames(idp_cfg.num_users))
