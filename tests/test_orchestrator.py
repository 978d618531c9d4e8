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

"""End-to-end orchestration tests against the in-memory cluster."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
import sh

from maas_e2e import deployment, idp, validation
from maas_e2e.config import IdpConfig, RunConfig
from maas_e2e.credentials import CredentialSet
from maas_e2e.errors import CommandFailedError, InvalidConfigError, ReadinessTimeoutError
from maas_e2e.orchestrator import resolve_users_to_test, run_e2e, run_smoke_pipeline

FIVE_USERS = CredentialSet.of([(f"testuser-{i}", f"pass-{i}") for i in range(1, 6)])


@pytest.fixture
def ready_cluster(cluster):
    cluster.conditions[("datasciencecluster", "default-dsc", "Ready")] = True
    cluster.conditions[("llminferenceservice", "facebook-opt-125m-simulated", "Ready")] = True
    return cluster


@pytest.fixture
def scripts(monkeypatch):
    """Record script runs; scripts named in ``failing`` exit non-zero for ``failing_as`` users."""
    state = SimpleNamespace(ran=[], failing=set(), failing_as=set(), session=None)

    def fake_run_script(script: Path, *args: str, cwd: Path, env=None) -> None:
        who = state.session.user if state.session else None
        state.ran.append((script.name, who))
        if script.name in state.failing and who in state.failing_as:
            raise CommandFailedError(f"{script.name} exited with status 1")

    monkeypatch.setattr(deployment, "run_script", fake_run_script)
    monkeypatch.setattr(validation, "run_script", fake_run_script)
    monkeypatch.setattr(deployment, "require_command", lambda cmd: None)
    monkeypatch.setattr(idp, "require_command", lambda cmd: None)
    monkeypatch.setattr(
        deployment, "sh",
        SimpleNamespace(kustomize=lambda *args, _cwd=None: "kind: List\n", ErrorReturnCode=sh.ErrorReturnCode),
    )
    return state


def _run_cfg(**overrides) -> RunConfig:
    return RunConfig(project_root=Path("/repo"), rate_limit_cooldown=1, validation_retry_cooldown=1, **overrides)


def test_users_to_test_defaults_to_one_per_tier():
    assert resolve_users_to_test(_run_cfg(), FIVE_USERS) == ["testuser-1", "testuser-3", "testuser-5"]


def test_users_to_test_honours_tier_override_from_another_tier():
    cfg = _run_cfg(enterprise_users="testuser-3")
    assert resolve_users_to_test(cfg, FIVE_USERS) == ["testuser-3", "testuser-4", "testuser-5"]


def test_users_to_test_explicit_list_wins():
    cfg = _run_cfg(users_to_test="testuser-2 testuser-4")
    assert resolve_users_to_test(cfg, FIVE_USERS) == ["testuser-2", "testuser-4"]


def test_users_to_test_without_credentials_is_single_tenant():
    assert resolve_users_to_test(_run_cfg(), None) == []


def test_users_to_test_requires_credentials():
    with pytest.raises(InvalidConfigError, match="USERS_TO_TEST requires USERS"):
        resolve_users_to_test(_run_cfg(users_to_test="testuser-1"), None)


def test_pipeline_runs_bundle_per_tier_representative(ready_cluster, scripts, sleep):
    scripts.session = ready_cluster

    result = run_smoke_pipeline(ready_cluster, _run_cfg(), FIVE_USERS, sleep)

    assert result.ok
    logins = [call[2] for call in ready_cluster.called("login")]
    assert logins == ["testuser-1", "testuser-3", "testuser-5"]
    assert ready_cluster.groups["tier-premium-users"] == ["testuser-3", "testuser-4"]
    smoke_runs = [who for name, who in scripts.ran if name == "smoke.sh"]
    assert smoke_runs == logins


def test_pipeline_tier_groups_applied_as_admin_before_matrix(ready_cluster, scripts, sleep):
    run_smoke_pipeline(ready_cluster, _run_cfg(), FIVE_USERS, sleep)

    methods = [call[0] for call in ready_cluster.calls]
    assert methods.index("add_group_members") < methods.index("login")


def test_pipeline_collects_failures_across_identities(ready_cluster, scripts, sleep):
    scripts.session = ready_cluster
    scripts.failing = {"smoke.sh"}
    scripts.failing_as = {"testuser-1"}

    result = run_smoke_pipeline(ready_cluster, _run_cfg(), FIVE_USERS, sleep)

    assert result.failed_steps == ["testuser-1/smoke"]
    assert result.exit_code == 1
    assert [who for name, who in scripts.ran if name == "smoke.sh"] == ["testuser-1", "testuser-3", "testuser-5"]


def test_pipeline_single_tenant_without_credentials(ready_cluster, scripts, sleep):
    result = run_smoke_pipeline(ready_cluster, _run_cfg(), None, sleep)

    assert result.ok
    assert ready_cluster.called("login") == []
    assert ready_cluster.groups == {}
    assert [o.step for o in result.outcomes][-1] == "current/smoke"


def test_pipeline_aborts_on_deployment_failure(cluster, scripts, sleep):
    with pytest.raises(ReadinessTimeoutError):
        run_smoke_pipeline(cluster, _run_cfg(platform_ready_timeout=10), FIVE_USERS, sleep)
    assert cluster.called("login") == []


def test_ci_mode_requires_users(cluster, sleep):
    with pytest.raises(InvalidConfigError, match="USERS must be set in ci mode"):
        run_e2e(_run_cfg(mode="ci"), IdpConfig(), client=cluster, sleep=sleep)


def test_ci_mode_uses_supplied_users(ready_cluster, scripts, sleep):
    cfg = _run_cfg(mode="ci", users="alice:a,bob:b")

    result = run_e2e(cfg, IdpConfig(), client=ready_cluster, sleep=sleep)

    assert result.ok
    assert [call[2] for call in ready_cluster.called("login")] == ["alice"]
    assert ("oauth", "cluster", None) not in ready_cluster.resources


def test_dev_mode_bootstraps_users_with_fixed_passwords(ready_cluster, scripts, sleep):
    cfg = _run_cfg(mode="dev", skip_idp_setup=False)

    result = run_e2e(cfg, IdpConfig(bcrypt_cost=4, num_users=5), client=ready_cluster, sleep=sleep)

    assert result.ok
    assert ("oauth", "cluster", None) in ready_cluster.resources
    assert [call[2:] for call in ready_cluster.called("login")] == [
        ("testuser-1", "pass-1"), ("testuser-3", "pass-3"), ("testuser-5", "pass-5"),
    ]


def test_dev_mode_skipping_idp_setup_runs_single_tenant(ready_cluster, scripts, sleep):
    result = run_e2e(_run_cfg(mode="dev"), IdpConfig(), client=ready_cluster, sleep=sleep)

    assert result.ok
    assert ready_cluster.called("login") == []
