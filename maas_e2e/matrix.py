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

"""Identity-switched test matrix."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from rich.panel import Panel

from maas_e2e import console
from maas_e2e.credentials import CredentialSet
from maas_e2e.errors import CredentialNotFoundError, E2EError
from maas_e2e.results import RunResult

CURRENT_IDENTITY = "current"

Bundle = Callable[[RunResult, str], None]
SwitchIdentity = Callable[[str, str], None]


def _run_bundle(bundle: Bundle, result: RunResult, identity: str) -> None:
    try:
        bundle(result, identity)
    except E2EError as err:
        result.record_failure(f"{identity}/bundle", err)


def run_matrix(
    usernames: Sequence[str],
    credentials: CredentialSet,
    bundle: Bundle,
    switch_identity: SwitchIdentity,
    result: RunResult | None = None,
) -> RunResult:
    """Run *bundle* once per username, each under that user's cluster identity.

    Identities run strictly one after another. A failure for one identity
    (missing password, rejected login, or failing bundle) is recorded and the
    next identity still runs.

    Args:
        usernames: Identities to test, in order. Empty runs the bundle once
            under the current session.
        credentials: Credential set the passwords are looked up in.
        bundle: Callable running the checks and recording their outcomes.
        switch_identity: Callable logging the session in as (username, password).
        result: Aggregator to record into; a new one is created when omitted.

    Returns:
        The aggregator holding every recorded outcome.
    """
    result = result if result is not None else RunResult()

    if not usernames:
        console.print(Panel.fit("Running tests as current identity", style="bold blue"))
        _run_bundle(bundle, result, CURRENT_IDENTITY)
        return result

    total = len(usernames)
    for index, username in enumerate(usernames, start=1):
        console.print(Panel.fit(f"Testing as {username} ({index}/{total})", style="bold blue"))
        try:
            password = credentials.password_for(username)
        except CredentialNotFoundError as err:
            result.record_failure(f"{username}/credentials", err)
            continue
        try:
            switch_identity(username, password)
        except E2EError as err:
            result.record_failure(f"{username}/login", err)
            continue
        console.print(f"[green]\u2705 Logged in as {username}[/green]")
        _run_bundle(bundle, result, username)
    return result
