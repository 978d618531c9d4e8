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

"""
cli.py - Unified CLI for MaaS end-to-end validation.

Subcommands:
    test   Run the end-to-end flow (e2e) or only the smoke pipeline (smoke)
    idp    Set up or delete the HTPasswd test identity provider
    tiers  Show or apply the tier assignment of test users

Examples:
    # CI run with pre-provisioned users
    USERS='u1:p1,u2:p2' maas-e2e test e2e --mode ci

    # Local run that bootstraps test users first
    SKIP_IDP_SETUP=false maas-e2e test e2e --mode dev

    # Create 5 users with predictable passwords and export them
    eval "$(maas-e2e idp setup --num-users 5 --fixed-passwords --export)"

    # Remove test users
    maas-e2e idp delete --num-users 5

For detailed usage information, run: maas-e2e --help
"""

from __future__ import annotations

import logging
import sys

import typer

from maas_e2e import console
from maas_e2e.commands import idp_cmd, test_cmd, tiers_cmd

app = typer.Typer(
    help="Unified CLI for MaaS end-to-end validation.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(test_cmd.app, name="test")
app.add_typer(idp_cmd.app, name="idp")
app.add_typer(tiers_cmd.app, name="tiers")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
