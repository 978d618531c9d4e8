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

"""Utility functions for oc invocation, script execution, and command checks."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from pathlib import Path

import sh

from maas_e2e import logger
from maas_e2e.constants import OC_COMMAND_TIMEOUT, PROJECT_ROOT_MARKER
from maas_e2e.errors import CommandFailedError, InvalidConfigError, MissingDependencyError


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        MissingDependencyError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise MissingDependencyError(f"Required command '{cmd}' not found. Please install it first.") from err


def run_oc(args: list[str], timeout: int = OC_COMMAND_TIMEOUT, stdin: str | None = None) -> tuple[bool, str, str]:
    """Run an oc command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because callers branch on stderr content
    (``AlreadyExists``, ``NotFound``) and need it separated from stdout.

    Args:
        args: oc arguments (e.g. ``["get", "pods", "-n", "llm"]``).
        timeout: Maximum seconds to wait for the command to complete.
        stdin: Optional text fed to the command's standard input.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    logger.debug("oc %s", " ".join(args))
    try:
        result = subprocess.run(
            ["oc", *args],
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def run_script(script: Path, *args: str, cwd: Path, env: Mapping[str, str] | None = None) -> None:
    """Run a bash script in the foreground, streaming its output.

    Args:
        script: Path to the script.
        *args: Arguments passed to the script.
        cwd: Working directory for the script.
        env: Full environment for the script, or None to inherit.

    Raises:
        CommandFailedError: If the script is missing or exits non-zero.
        MissingDependencyError: If bash is not installed.
    """
    if not script.exists():
        raise CommandFailedError(f"Script not found: {script}")
    kwargs: dict = {"_cwd": str(cwd), "_fg": True}
    if env is not None:
        kwargs["_env"] = dict(env)
    try:
        sh.bash(str(script), *args, **kwargs)
    except sh.ErrorReturnCode as err:
        raise CommandFailedError(f"{script.name} exited with status {err.exit_code}") from err
    except sh.CommandNotFound as err:
        raise MissingDependencyError("Required command 'bash' not found. Please install it first.") from err


def find_project_root(start: Path | None = None, marker: str = PROJECT_ROOT_MARKER) -> Path:
    """Walk up from *start* until a directory containing *marker* is found.

    Args:
        start: Directory to start from, defaults to the current directory.
        marker: File or directory name identifying the project root.

    Returns:
        The project root directory.

    Raises:
        InvalidConfigError: If no parent directory contains the marker.
    """
    start = (start or Path.cwd()).resolve()
    for candidate in (start, *start.parents):
        if (candidate / marker).exists():
            return candidate
    raise InvalidConfigError(f"Couldn't find '{marker}' in any parent of '{start}'")
