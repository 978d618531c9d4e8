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

"""Shared fixtures: an in-memory cluster and a recording sleep."""

from __future__ import annotations

import copy

import pytest

from maas_e2e.errors import E2EError, TransientClusterError


class FakeCluster:
    """In-memory stand-in for ``OcClient``.

    Resources are keyed by (kind, name, namespace). Every call is appended to
    ``calls`` as (method, *args) so tests can assert on ordering.
    """

    def __init__(self) -> None:
        self.user: str | None = "kube:admin"
        self.server = "https://api.test.example.com:6443"
        self.admin = True
        self.openshift = True
        self.domain = "apps.test.example.com"
        self.resources: dict[tuple[str, str, str | None], dict] = {}
        self.conditions: dict[tuple[str, str, str], bool] = {}
        self.namespaces: set[str] = set()
        self.groups: dict[str, list[str]] = {}
        self.roles: set[tuple[str, str]] = set()
        self.failing_role_users: set[str] = set()
        self.failing_groups: set[str] = set()
        self.rejected_logins: set[str] = set()
        self.patch_error: Exception | None = None
        self.read_error: Exception | None = None
        self.rollout_ok = True
        self.running_pods = 2
        self.applied_text: list[str] = []
        self.calls: list[tuple] = []

    def _record(self, *call: object) -> None:
        self.calls.append(call)

    def called(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    # Identity

    def whoami(self) -> str | None:
        self._record("whoami")
        return self.user

    def server_url(self) -> str | None:
        return self.server if self.user else None

    def can_i(self, verb: str, resource: str, all_namespaces: bool = True) -> bool:
        return self.admin

    def api_available(self, raw_path: str) -> bool:
        return self.openshift

    def login(self, server: str, username: str, password: str) -> None:
        self._record("login", server, username, password)
        if username in self.rejected_logins:
            raise E2EError(f"Failed to login as {username}: Login failed")
        self.user = username

    # Resources

    def exists(self, kind: str, name: str, namespace: str | None = None) -> bool:
        return (kind, name, namespace) in self.resources

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        resource = self.resources.get((kind, name, namespace))
        return copy.deepcopy(resource) if resource is not None else None

    def read(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        self._record("read", kind, name)
        if self.read_error is not None:
            raise self.read_error
        return self.get(kind, name, namespace)

    def jsonpath(self, kind: str, name: str, path: str, namespace: str | None = None) -> str:
        if kind == "ingresses.config.openshift.io" and path == "{.spec.domain}":
            return self.domain
        return ""

    def describe_yaml(self, kind: str, name: str, namespace: str | None = None) -> str:
        self._record("describe_yaml", kind, name)
        return f"kind: {kind}\nname: {name}\n"

    def events(self, namespace: str) -> str:
        self._record("events", namespace)
        return "No events"

    def condition_status(self, kind: str, name: str, condition: str, namespace: str | None = None) -> bool:
        self._record("condition_status", kind, name, condition)
        return self.conditions.get((kind, name, condition), False)

    def apply_text(self, manifest_text: str) -> None:
        self._record("apply_text")
        self.applied_text.append(manifest_text)

    def apply(self, manifest: dict) -> None:
        kind = manifest["kind"].lower()
        metadata = manifest["metadata"]
        self._record("apply", kind, metadata["name"])
        self.resources[(kind, metadata["name"], metadata.get("namespace"))] = copy.deepcopy(manifest)

    def create(self, manifest: dict) -> bool:
        kind = manifest["kind"].lower()
        metadata = manifest["metadata"]
        self._record("create", kind, metadata["name"])
        key = (kind, metadata["name"], metadata.get("namespace"))
        if key in self.resources:
            return False
        self.resources[key] = copy.deepcopy(manifest)
        return True

    def patch_json(self, kind: str, name: str, operations: list[dict], namespace: str | None = None) -> None:
        self._record("patch_json", kind, name)
        if self.patch_error is not None:
            raise self.patch_error
        resource = self.resources[(kind, name, namespace)]
        for op in operations:
            assert op["op"] == "add"
            *parents, leaf = op["path"].strip("/").split("/")
            target = resource
            for part in parents:
                target = target[part]
            if leaf == "-":
                target.append(copy.deepcopy(op["value"]))
            else:
                target[leaf] = copy.deepcopy(op["value"])

    def delete(self, kind: str, name: str, namespace: str | None = None) -> bool:
        self._record("delete", kind, name)
        return self.resources.pop((kind, name, namespace), None) is not None

    def ensure_namespace(self, name: str) -> bool:
        if name in self.namespaces:
            return False
        self.namespaces.add(name)
        return True

    # Rollouts & pods

    def rollout_restart(self, deployment: str, namespace: str) -> bool:
        self._record("rollout_restart", deployment, namespace)
        return True

    def rollout_status(self, deployment: str, namespace: str, timeout: int) -> bool:
        self._record("rollout_status", deployment, namespace, timeout)
        return self.rollout_ok

    def count_running_pods(self, namespace: str, selector: str) -> int:
        return self.running_pods

    # Roles & groups

    def add_cluster_role(self, role: str, user: str) -> bool:
        if user in self.failing_role_users:
            return False
        self.roles.add((role, user))
        return True

    def remove_cluster_role(self, role: str, user: str) -> bool:
        self._record("remove_cluster_role", role, user)
        if (role, user) in self.roles:
            self.roles.remove((role, user))
            return True
        return False

    def create_group(self, name: str) -> bool:
        self._record("create_group", name)
        if name in self.groups:
            return False
        self.groups[name] = []
        return True

    def add_group_members(self, group: str, users) -> None:
        self._record("add_group_members", group, tuple(users))
        if group in self.failing_groups:
            raise TransientClusterError(f"oc adm groups add-users {group} failed")
        members = self.groups.setdefault(group, [])
        members.extend(user for user in users if user not in members)


class RecordingSleep:
    """Sleep replacement that records requested durations."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep settings classes from picking up variables from the developer shell."""
    for name in (
        "MODE", "USERS", "USERS_TO_TEST", "ENTERPRISE_USERS", "PREMIUM_USERS", "FREE_USERS",
        "SKIP_VALIDATION", "SKIP_SMOKE", "SKIP_TOKEN_VERIFICATION", "SKIP_IDP_SETUP",
        "SKIP_AUTH_CHECK", "SKIP_TIER_SETUP", "INSECURE_HTTP", "PROJECT_ROOT",
        "IDP_NAME", "HTPASSWD_SECRET_NAME", "NUM_USERS", "BCRYPT_COST", "FIXED_PASSWORDS",
        "RETRY_COUNT", "RETRY_DELAY", "BASELINE_ROLE", "OAUTH_ROLLOUT_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
