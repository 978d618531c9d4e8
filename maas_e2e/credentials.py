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

"""Test user credential generation and the ``user:pass,...`` wire format."""

from __future__ import annotations

import secrets
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from maas_e2e.constants import (
    CREDENTIAL_SEPARATOR,
    FIELD_SEPARATOR,
    RANDOM_PASSWORD_BYTES,
    USERNAME_PREFIX,
)
from maas_e2e.errors import CredentialNotFoundError, InvalidConfigError

_RESERVED = (CREDENTIAL_SEPARATOR, FIELD_SEPARATOR)


@dataclass(frozen=True)
class Credential:
    """A single test identity."""

    username: str
    password: str

    def __post_init__(self) -> None:
        if not self.username or not self.password:
            raise InvalidConfigError("Credential username and password must be non-empty")
        for value in (self.username, self.password):
            if any(sep in value for sep in _RESERVED):
                raise InvalidConfigError(
                    f"Credential fields must not contain {' or '.join(repr(s) for s in _RESERVED)}"
                )


@dataclass(frozen=True)
class CredentialSet:
    """Ordered, immutable collection of credentials with unique usernames.

    Order is significant: tier assignment slices it by position.
    """

    credentials: tuple[Credential, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for cred in self.credentials:
            if cred.username in seen:
                raise InvalidConfigError(f"Duplicate username in credential set: {cred.username}")
            seen.add(cred.username)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self.credentials)

    def __len__(self) -> int:
        return len(self.credentials)

    def __bool__(self) -> bool:
        return bool(self.credentials)

    @property
    def usernames(self) -> list[str]:
        return [cred.username for cred in self.credentials]

    def password_for(self, username: str) -> str:
        """Look up the password for *username*.

        Raises:
            CredentialNotFoundError: If the username is not in the set.
        """
        for cred in self.credentials:
            if cred.username == username:
                return cred.password
        raise CredentialNotFoundError(f"No password found for user '{username}'")

    def serialize(self) -> str:
        """Encode as ``user:pass,user:pass,...``."""
        return CREDENTIAL_SEPARATOR.join(
            f"{cred.username}{FIELD_SEPARATOR}{cred.password}" for cred in self.credentials
        )

    @classmethod
    def parse(cls, encoded: str) -> CredentialSet:
        """Decode the ``user:pass,user:pass,...`` wire format.

        Empty entries (e.g. a trailing comma) are ignored.

        Raises:
            InvalidConfigError: If an entry is not a ``user:pass`` pair.
        """
        credentials: list[Credential] = []
        for entry in encoded.strip().split(CREDENTIAL_SEPARATOR):
            entry = entry.strip()
            if not entry:
                continue
            username, sep, password = entry.partition(FIELD_SEPARATOR)
            if not sep:
                raise InvalidConfigError(f"Malformed credential entry (expected user:pass): {username!r}")
            credentials.append(Credential(username, password))
        return cls(tuple(credentials))

    @classmethod
    def of(cls, pairs: Sequence[tuple[str, str]]) -> CredentialSet:
        return cls(tuple(Credential(user, password) for user, password in pairs))


def generated_usernames(count: int) -> list[str]:
    """Usernames ``generate_credentials`` produces for *count* users."""
    return [f"{USERNAME_PREFIX}-{i}" for i in range(1, count + 1)]


def generate_credentials(count: int, fixed_prefix: str | None = None) -> CredentialSet:
    """Generate ``testuser-1`` .. ``testuser-<count>`` credentials.

    Passwords are ``<fixed_prefix>-<i>`` when a prefix is given, otherwise
    independent random hex strings.

    Args:
        count: Number of users to generate.
        fixed_prefix: Password prefix for deterministic passwords, or None.

    Returns:
        The generated credential set.

    Raises:
        InvalidConfigError: If *count* is not a positive integer.
    """
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidConfigError(f"Invalid user count: {count!r} (must be positive integer)")

    credentials = []
    for i, username in enumerate(generated_usernames(count), start=1):
        if fixed_prefix:
            password = f"{fixed_prefix}-{i}"
        else:
            password = secrets.token_hex(RANDOM_PASSWORD_BYTES)
        credentials.append(Credential(username, password))
    return CredentialSet(tuple(credentials))
