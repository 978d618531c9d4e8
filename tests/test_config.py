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

"""Tests for env-driven configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from maas_e2e.config import IdpConfig, RunConfig


def test_run_config_defaults():
    cfg = RunConfig()

    assert cfg.mode == "dev"
    assert cfg.skip_idp_setup is True
    assert cfg.skip_auth_check is True
    assert cfg.users is None
    assert cfg.users_to_test == []
    assert cfg.tier_overrides == {}
    assert cfg.validation_retry_cooldown == 60
    assert cfg.rate_limit_cooldown == 120


def test_run_config_reads_unprefixed_env(monkeypatch):
    monkeypatch.setenv("MODE", "ci")
    monkeypatch.setenv("SKIP_SMOKE", "true")
    monkeypatch.setenv("USERS", "u1:p1,u2:p2")
    monkeypatch.setenv("USERS_TO_TEST", "u1 u2,u3")
    monkeypatch.setenv("FREE_USERS", "u9")

    cfg = RunConfig()

    assert cfg.mode == "ci"
    assert cfg.skip_smoke is True
    assert cfg.users == "u1:p1,u2:p2"
    assert cfg.users_to_test == ["u1", "u2", "u3"]
    assert cfg.tier_overrides == {"free": ["u9"]}


def test_blank_env_values_mean_unset(monkeypatch):
    monkeypatch.setenv("USERS", "  ")
    monkeypatch.setenv("ENTERPRISE_USERS", "")

    cfg = RunConfig()

    assert cfg.users is None
    assert cfg.tier_overrides == {}


def test_invalid_mode_rejected(monkeypatch):
    monkeypatch.setenv("MODE", "staging")
    with pytest.raises(ValidationError):
        RunConfig()


def test_idp_config_defaults():
    cfg = IdpConfig()

    assert cfg.idp_name == "maas-test-htpasswd"
    assert cfg.htpasswd_secret_name == "maas-test-htpasswd-secret"
    assert cfg.num_users == 10
    assert cfg.bcrypt_cost == 10
    assert cfg.fixed_passwords is None
    assert cfg.baseline_role == "view"


def test_idp_secret_name_follows_idp_name(monkeypatch):
    monkeypatch.setenv("IDP_NAME", "team-a")
    assert IdpConfig().htpasswd_secret_name == "team-a-secret"


def test_idp_explicit_secret_name_kept(monkeypatch):
    monkeypatch.setenv("HTPASSWD_SECRET_NAME", "custom")
    monkeypatch.setenv("FIXED_PASSWORDS", "")
    cfg = IdpConfig()
    assert cfg.htpasswd_secret_name == "custom"
    assert cfg.fixed_passwords is None


@pytest.mark.parametrize("name,value", [("NUM_USERS", "0"), ("BCRYPT_COST", "3"), ("BCRYPT_COST", "32")])
def test_idp_bounds(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        IdpConfig()
