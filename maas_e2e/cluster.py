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

"""oc-backed cluster command surface: resources, identity, roles, and groups."""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Sequence

import yaml

from maas_e2e import logger
from maas_e2e.constants import DEFAULT_RETRY_COUNT, DEFAULT_RETRY_DELAY_SECONDS, OC_COMMAND_TIMEOUT
from maas_e2e.errors import E2EError, TransientClusterError
from maas_e2e.retry import retry_with_backoff
from maas_e2e.utils import run_oc

ALREADY_EXISTS = "AlreadyExists"
NOT_FOUND = "NotFound"


def _ns_args(namespace: str | None) -> list[str]:
    return ["-n", namespace] if namespace else []


class OcClient:
    """Thin wrapper over the ``oc`` CLI.

    Read calls report failure through their return value. Mutating calls are
    retried with exponential backoff and raise ``TransientClusterError`` once
    attempts run out.

    Args:
        retry_count: Total attempts for mutating calls.
        retry_delay: Initial backoff in seconds for mutating calls.
        sleep: Sleep function used between retries.
    """

    def __init__(
        self,
        retry_count: int = DEFAULT_RETRY_COUNT,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self, args: list[str], stdin: str | None = None, timeout: int = OC_COMMAND_TIMEOUT) -> tuple[bool, str, str]:
        return run_oc(args, timeout=timeout, stdin=stdin)

    def _mutate(self, args: list[str], stdin: str | None = None, tolerated: Sequence[str] = ()) -> bool:
        """Run a mutating command with retry.

        Returns:
            True if the command succeeded, False if it failed with one of the
            *tolerated* stderr markers (never retried).
        """
        def _attempt() -> bool:
            ok, _, stderr = self._run(args, stdin=stdin)
            if ok:
                return True
            if any(marker in stderr for marker in tolerated):
                logger.debug("oc %s: tolerated failure: %s", args[0], stderr.strip())
                return False
            raise TransientClusterError(f"oc {' '.join(args[:3])} failed: {stderr.strip()[:200]}")

        return retry_with_backoff(
            _attempt, attempts=self.retry_count, delay=self.retry_delay, sleep=self._sleep,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def whoami(self) -> str | None:
        ok, stdout, _ = self._run(["whoami"])
        return (stdout.strip() or None) if ok else None

    def server_url(self) -> str | None:
        ok, stdout, _ = self._run(["whoami", "--show-server"])
        return (stdout.strip() or None) if ok else None

    def can_i(self, verb: str, resource: str, all_namespaces: bool = True) -> bool:
        args = ["auth", "can-i", verb, resource]
        if all_namespaces:
            args.append("--all-namespaces")
        ok, _, _ = self._run(args)
        return ok

    def api_available(self, raw_path: str) -> bool:
        ok, _, _ = self._run(["get", "--raw", raw_path])
        return ok

    def login(self, server: str, username: str, password: str) -> None:
        """Switch the active session to *username*.

        Raises:
            E2EError: If the login is rejected.
        """
        ok, _, stderr = self._run([
            "login", server, "-u", username, "-p", password, "--insecure-skip-tls-verify",
        ])
        if not ok:
            raise E2EError(f"Failed to login as {username}: {stderr.strip()[:200]}")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def exists(self, kind: str, name: str, namespace: str | None = None) -> bool:
        ok, _, _ = self._run(["get", kind, name, *_ns_args(namespace)])
        return ok

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        """Return the resource as a dict, or None if it cannot be read."""
        ok, stdout, _ = self._run(["get", kind, name, *_ns_args(namespace), "-o", "json"])
        if not ok:
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            logger.debug("Unparseable output for %s/%s", kind, name)
            return None

    def read(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        """Return the resource as a dict, or None only if the server reports NotFound.

        Raises:
            TransientClusterError: If the resource cannot be read for any other
                reason once retries run out.
        """
        def _attempt() -> dict | None:
            ok, stdout, stderr = self._run(["get", kind, name, *_ns_args(namespace), "-o", "json"])
            if not ok:
                if NOT_FOUND in stderr:
                    return None
                raise TransientClusterError(f"oc get {kind} {name} failed: {stderr.strip()[:200]}")
            try:
                return json.loads(stdout)
            except json.JSONDecodeError as err:
                raise TransientClusterError(f"oc get {kind} {name} returned unparseable output") from err

        return retry_with_backoff(
            _attempt, attempts=self.retry_count, delay=self.retry_delay, sleep=self._sleep,
        )

    def jsonpath(self, kind: str, name: str, path: str, namespace: str | None = None) -> str:
        """Read a jsonpath expression; returns an empty string on failure."""
        ok, stdout, _ = self._run(["get", kind, name, *_ns_args(namespace), "-o", f"jsonpath={path}"])
        return stdout.strip() if ok else ""

    def describe_yaml(self, kind: str, name: str, namespace: str | None = None) -> str:
        ok, stdout, stderr = self._run(["get", kind, name, *_ns_args(namespace), "-o", "yaml"])
        return stdout if ok else stderr

    def events(self, namespace: str) -> str:
        ok, stdout, stderr = self._run(["get", "events", "-n", namespace, "--sort-by=.lastTimestamp"])
        return stdout if ok else stderr

    def condition_status(self, kind: str, name: str, condition: str, namespace: str | None = None) -> bool:
        """Return True if status condition *condition* of the resource is ``True``."""
        value = self.jsonpath(
            kind, name, f'{{.status.conditions[?(@.type=="{condition}")].status}}', namespace,
        )
        return value == "True"

    def apply_text(self, manifest_text: str) -> None:
        self._mutate(["apply", "-f", "-"], stdin=manifest_text)

    def apply(self, manifest: dict) -> None:
        self.apply_text(yaml.safe_dump(manifest, default_flow_style=False))

    def create(self, manifest: dict) -> bool:
        """Create a resource from *manifest*; returns False if it already exists."""
        return self._mutate(
            ["create", "-f", "-"],
            stdin=yaml.safe_dump(manifest, default_flow_style=False),
            tolerated=(ALREADY_EXISTS,),
        )

    def patch_json(self, kind: str, name: str, operations: list[dict], namespace: str | None = None) -> None:
        self._mutate(["patch", kind, name, *_ns_args(namespace), "--type=json", "-p", json.dumps(operations)])

    def delete(self, kind: str, name: str, namespace: str | None = None) -> bool:
        """Delete a resource; returns False if it did not exist or could not be removed."""
        ok, _, stderr = self._run(["delete", kind, name, *_ns_args(namespace)])
        if not ok and NOT_FOUND not in stderr:
            logger.debug("Delete %s/%s failed: %s", kind, name, stderr.strip())
        return ok

    def ensure_namespace(self, name: str) -> bool:
        """Create a namespace if absent; returns True if it was created."""
        if self.exists("namespace", name):
            return False
        return self._mutate(["create", "namespace", name], tolerated=(ALREADY_EXISTS,))

    # ------------------------------------------------------------------
    # Rollouts & pods
    # ------------------------------------------------------------------

    def rollout_restart(self, deployment: str, namespace: str) -> bool:
        ok, _, _ = self._run(["-n", namespace, "rollout", "restart", f"deployment/{deployment}"])
        return ok

    def rollout_status(self, deployment: str, namespace: str, timeout: int) -> bool:
        ok, _, _ = self._run(
            ["-n", namespace, "rollout", "status", f"deployment/{deployment}", f"--timeout={timeout}s"],
            timeout=timeout + 10,
        )
        return ok

    def count_running_pods(self, namespace: str, selector: str) -> int:
        ok, stdout, _ = self._run(
            ["get", "pods", "-n", namespace, "-l", selector, "-o", "jsonpath={.items[*].status.phase}"]
        )
        return stdout.split().count("Running") if ok else 0

    # ------------------------------------------------------------------
    # Roles & groups
    # ------------------------------------------------------------------

    def add_cluster_role(self, role: str, user: str) -> bool:
        ok, _, _ = self._run(["adm", "policy", "add-cluster-role-to-user", role, user])
        return ok

    def remove_cluster_role(self, role: str, user: str) -> bool:
        ok, _, _ = self._run(["adm", "policy", "remove-cluster-role-from-user", role, user])
        return ok

    def create_group(self, name: str) -> bool:
        """Create a group; returns False if it already existed."""
        return self._mutate(["adm", "groups", "new", name], tolerated=(ALREADY_EXISTS,))

    def add_group_members(self, group: str, users: Sequence[str]) -> None:
        """Add *users* to *group*; existing members are kept."""
        if users:
            self._mutate(["adm", "groups", "add-users", group, *users])
