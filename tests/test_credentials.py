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

"""Tests for credential generation and the USERS wire format."""

from __future__ import annotations

import pytest

from maas_e2e.credentials import (
    Credential,
    CredentialSet,
    generate_credentials,
    generated_usernames,
)
from maas_e2e.errors import CredentialNotFoundError, InvalidConfigError


@pytest.mark.parametrize("count", [1, 2, 7])
def test_fixed_prefix_is_deterministic(count):
    first = generate_credentials(count, fixed_prefix="p")
    second = generate_credentials(count, fixed_prefix="p")

    assert first == second
    assert first.serialize() == second.serialize()
    assert first.usernames == [f"testuser-{i}" for i in range(1, count + 1)]
    assert [cred.password for cred in first] == [f"p-{i}" for i in range(1, count + 1)]


def test_random_passwords_are_distinct_across_trials():
    passwords = []
    for _ in range(1000):
        passwords.extend(cred.password for cred in generate_credentials(2))

    assert len(set(passwords)) == len(passwords)
    assert all(len(password) == 12 for password in passwords)


def test_random_mode_keeps_deterministic_usernames():
    assert generate_credentials(3).usernames == ["testuser-1", "testuser-2", "testuser-3"]
    assert generated_usernames(3) == ["testuser-1", "testuser-2", "testuser-3"]


@pytest.mark.parametrize("count", [0, -1, True, 2.0, "3", None])
def test_invalid_count_rejected(count):
    with pytest.raises(InvalidConfigError):
        generate_credentials(count)


def test_parse_serialize_round_trip():
    original = CredentialSet.of([("alice", "s3cret"), ("bob", "hunter2"), ("testuser-3", "pass-3")])

    encoded = original.serialize()

    assert encoded == "alice:s3cret,bob:hunter2,testuser-3:pass-3"
    assert CredentialSet.parse(encoded) == original


def test_parse_ignores_empty_entries():
    parsed = CredentialSet.parse(" alice:a,,bob:b, ")
    assert parsed.usernames == ["alice", "bob"]


def test_parse_empty_string_yields_empty_set():
    parsed = CredentialSet.parse("")
    assert len(parsed) == 0
    assert not parsed


def test_parse_rejects_entry_without_separator():
    with pytest.raises(InvalidConfigError, match="expected user:pass"):
        CredentialSet.parse("alice:a,bob")


def test_parse_rejects_empty_password():
    with pytest.raises(InvalidConfigError):
        CredentialSet.parse("alice:")


def test_duplicate_usernames_rejected():
    with pytest.raises(InvalidConfigError, match="Duplicate"):
        CredentialSet.of([("alice", "a"), ("alice", "b")])


@pytest.mark.parametrize("username,password", [("a,b", "x"), ("a", "x:y"), ("", "x")])
def test_reserved_characters_rejected(username, password):
    with pytest.raises(InvalidConfigError):
        Credential(username, password)


def test_password_lookup():
    creds = CredentialSet.of([("alice", "a"), ("bob", "b")])

    assert creds.password_for("bob") == "b"
    with pytest.raises(CredentialNotFoundError, match="carol"):
        creds.password_for("carol")
