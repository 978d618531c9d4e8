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

"""Tests for the validation retrier, test environment, and per-identity bundle."""

from __future__ import annotations

from pathlib import Path

import pytest

from maas_e2e import validation
from maas_e2e.config import RunConfig
from maas_e2e.errors import CommandFailedError, MissingDependencyError, PrerequisiteError, ValidationFailure
from maas_e2e.results import RunResult
from maas_e2e.validation import (
    TestEnvironment,
    ValidationBundle,
    resolve_test_environment,
    run_with_retry,
)

TEST_ENV = TestEnvironment(
    cluster_url="https://api.test.example.com:6443",
    cluster_domain="apps.test.example.com",
    host="maas.apps.test.example.com",
    maas_api_base_url="https://maas.apps.test.example.com/maas-api",
)


class ScriptRecorder:
    """Stand-in for ``run_script`` that fails configured scripts."""

    def __init__(self, failures: dict[str, int] | None = None) -> None:
        self.failures = dict(failures or {})
        self.calls: list[str] = []
        self.envs: list[dict] = []

    def __call__(self, script: Path, *args: str, cwd: Path, env=None) -> None:
        self.calls.append(script.name)
        self.envs.append(dict(env or {}))
        if self.failures.get(script.name, 0) > 0:
            self.failures[script.name] -= 1
            raise CommandFailedError(f"{script.name} exited with status 1")


@pytest.fixture
def scripts(monkeypatch):
    recorder = ScriptRecorder()
    monkeypatch.setattr(validation, "run_script", recorder)
    return recorder


# ----------------------------------------------------------------------
# run_with_retry
# ----------------------------------------------------------------------


def test_retry_succeeds_after_one_cooldown(sleep):
    attempts = []

    def check() -> None:
        attempts.append(1)
        if len(attempts) == 1:
            raise ValidationFailure("first attempt failed")

    run_with_retry(check, cooldown_seconds=60, sleep=sleep)

    assert len(attempts) == 2
    assert sleep.calls == [60]


def test_retry_gives_up_after_exactly_one_retry(sleep):
    attempts = []

    def check() -> None:
        attempts.append(1)
        raise ValidationFailure(f"attempt {len(attempts)} failed")

    with pytest.raises(ValidationFailure, match="attempt 2 failed"):
        run_with_retry(check, cooldown_seconds=60, sleep=sleep)
    assert len(attempts) == 2
    assert sleep.calls == [60]


def test_retry_passes_first_time_without_sleeping(sleep):
    run_with_retry(lambda: None, cooldown_seconds=60, sleep=sleep)
    assert sleep.calls == []


def test_retry_ignores_non_validation_errors(sleep):
    attempts = []

    def check() -> None:
        attempts.append(1)
        raise PrerequisiteError("not logged in")

    with pytest.raises(PrerequisiteError):
        run_with_retry(check, cooldown_seconds=60, sleep=sleep)
    assert len(attempts) == 1


# ----------------------------------------------------------------------
# Test environment
# ----------------------------------------------------------------------


def test_resolve_test_environment_uses_ingress_domain(cluster):
    env = resolve_test_environment(cluster)

    assert env.host == "maas.apps.test.example.com"
    assert env.maas_api_base_url == "https://maas.apps.test.example.com/maas-api"
    assert env.as_env()["K8S_CLUSTER_URL"] == cluster.server


def test_resolve_test_environment_insecure_http(cluster):
    env = resolve_test_environment(cluster, insecure_http=True)
    assert env.maas_api_base_url == "http://maas.apps.test.example.com/maas-api"


def test_resolve_test_environment_requires_domain(cluster):
    cluster.domain = ""
    with pytest.raises(PrerequisiteError, match="ingress domain"):
        resolve_test_environment(cluster)


# ----------------------------------------------------------------------
# ValidationBundle
# ----------------------------------------------------------------------


def _bundle(sleep, **cfg) -> ValidationBundle:
    run_cfg = RunConfig(validation_retry_cooldown=60, rate_limit_cooldown=120, **cfg)
    return ValidationBundle(run_cfg, Path("/repo"), TEST_ENV, sleep=sleep)


def test_bundle_runs_every_step_in_order(scripts, sleep):
    result = RunResult()

    _bundle(sleep)(result, "testuser-1")

    assert scripts.calls == ["validate-deployment.sh", "verify-tokens-metadata-logic.sh", "smoke.sh"]
    assert sleep.calls == [120]
    assert result.ok
    assert [o.step for o in result.outcomes] == [
        "testuser-1/validation", "testuser-1/token-verification", "testuser-1/smoke",
    ]
    assert scripts.envs[0]["MAAS_API_BASE_URL"] == TEST_ENV.maas_api_base_url


def test_bundle_records_failures_and_continues(scripts, sleep):
    scripts.failures = {"validate-deployment.sh": 2, "verify-tokens-metadata-logic.sh": 1}
    result = RunResult()

    _bundle(sleep)(result, "testuser-1")

    assert scripts.calls == [
        "validate-deployment.sh", "validate-deployment.sh", "verify-tokens-metadata-logic.sh", "smoke.sh",
    ]
    assert sleep.calls == [60, 120]
    assert result.failures == 2
    assert result.failed_steps == ["testuser-1/validation", "testuser-1/token-verification"]


def test_bundle_records_missing_bash_per_step(monkeypatch, sleep):
    def no_bash(script: Path, *args: str, cwd: Path, env=None) -> None:
        raise MissingDependencyError("Required command 'bash' not found. Please install it first.")

    monkeypatch.setattr(validation, "run_script", no_bash)
    result = RunResult()

    _bundle(sleep)(result, "testuser-1")

    assert result.failed_steps == [
        "testuser-1/validation", "testuser-1/token-verification", "testuser-1/smoke",
    ]


def test_bundle_validation_recovers_on_retry(scripts, sleep):
    scripts.failures = {"validate-deployment.sh": 1}
    result = RunResult()

    _bundle(sleep)(result, "testuser-1")

    assert result.ok
    assert sleep.calls == [60, 120]


def test_bundle_skips_cooldown_with_validation(scripts, sleep):
    result = RunResult()

    _bundle(sleep, skip_validation=True, skip_smoke=True)(result, "current")

    assert scripts.calls == ["verify-tokens-metadata-logic.sh"]
    assert sleep.calls == []
    assert result.ok
