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

"""Tier assignment of test users and tier group membership."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from rich.panel import Panel

from maas_e2e import console
from maas_e2e.cluster import OcClient
from maas_e2e.constants import (
    TIER_ENTERPRISE,
    TIER_FREE,
    TIER_GROUPS,
    TIER_ORDER,
    TIER_PREMIUM,
    TIER_SIZES,
)
from maas_e2e.errors import InvalidConfigError
from maas_e2e.results import RunResult, run_step


@dataclass(frozen=True)
class TierAssignment:
    """Ordered usernames per tier; a username appears in at most one tier."""

    tiers: dict[str, list[str]] = field(default_factory=dict)

    def __getitem__(self, tier: str) -> list[str]:
        return self.tiers.get(tier, [])

    def items(self):
        return ((tier, self[tier]) for tier in TIER_ORDER)


def positional_tiers(users: Sequence[str]) -> dict[str, list[str]]:
    """Split *users* by position into enterprise, premium, and free.

    Enterprise takes users 0-1, premium users 2-3 and free the rest. A list
    too short to fill premium leaves premium empty and hands the users past
    enterprise to free, so ``[a, b, c]`` splits as ``[a, b]``, ``[]``, ``[c]``.
    """
    enterprise_end = TIER_SIZES[TIER_ENTERPRISE]
    premium_end = enterprise_end + TIER_SIZES[TIER_PREMIUM]
    if len(users) < premium_end:
        premium_end = enterprise_end
    return {
        TIER_ENTERPRISE: list(users[:enterprise_end]),
        TIER_PREMIUM: list(users[enterprise_end:premium_end]),
        TIER_FREE: list(users[premium_end:]),
    }


def assign_tiers(
    users: Sequence[str],
    overrides: Mapping[str, Sequence[str]] | None = None,
) -> TierAssignment:
    """Partition *users* into enterprise, premium, and free tiers.

    Each tier takes its explicit override when present, otherwise its
    positional share of *users* (see ``positional_tiers``). Users named by any
    override are dropped from the positional share of the other tiers, so an
    override can move a user out of its default tier.

    Args:
        users: Ordered usernames.
        overrides: Explicit membership per tier name.

    Returns:
        The tier assignment.

    Raises:
        InvalidConfigError: If an override names an unknown tier or two
            overrides name the same user.
    """
    overrides = overrides or {}
    unknown = set(overrides) - set(TIER_ORDER)
    if unknown:
        raise InvalidConfigError(f"Unknown tier(s) in overrides: {', '.join(sorted(unknown))}")

    owner: dict[str, str] = {}
    for tier in TIER_ORDER:
        for user in overrides.get(tier, ()):
            if user in owner and owner[user] != tier:
                raise InvalidConfigError(f"User '{user}' assigned to both '{owner[user]}' and '{tier}' tiers")
            owner[user] = tier

    defaults = positional_tiers(users)
    tiers: dict[str, list[str]] = {}
    for tier in TIER_ORDER:
        if tier in overrides:
            tiers[tier] = list(overrides[tier])
        else:
            tiers[tier] = [user for user in defaults[tier] if user not in owner]
    return TierAssignment(tiers)


def first_of_each_tier(assignment: TierAssignment) -> list[str]:
    """Pick the first user of every non-empty tier, in enterprise, premium, free order."""
    return [members[0] for _, members in assignment.items() if members]


def apply_tier_groups(
    client: OcClient,
    assignment: TierAssignment,
    result: RunResult,
    groups: Mapping[str, str] = TIER_GROUPS,
) -> None:
    """Create tier groups if needed and add each tier's users to its group.

    Existing groups and members are left in place. Each tier is recorded as
    its own step so one failing tier does not block the others.
    """
    console.print(Panel.fit("Applying tier groups", style="bold blue"))

    def _apply(tier: str, members: list[str]) -> None:
        group = groups[tier]
        if client.create_group(group):
            console.print(f"[yellow]   Created group {group}[/yellow]")
        else:
            console.print(f"[yellow]   Group {group} already exists[/yellow]")
        client.add_group_members(group, members)
        console.print(f"[green]\u2705 {tier}: {', '.join(members)} -> {group}[/green]")

    for tier, members in assignment.items():
        if not members:
            console.print(f"[yellow]   {tier}: no users, skipping[/yellow]")
            continue
        run_step(result, f"tier-groups/{tier}", lambda t=tier, m=members: _apply(t, m))


def display_assignment(assignment: TierAssignment) -> None:
    console.print(Panel.fit("Tier assignment", style="bold blue"))
    for tier, members in assignment.items():
        console.print(f"  {tier:<10}: {' '.join(members) or '(empty)'}")
