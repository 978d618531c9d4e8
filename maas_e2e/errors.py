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

"""Domain errors for MaaS e2e orchestration."""

from __future__ import annotations


class E2EError(RuntimeError):
    """Base class for every error raised by the orchestration."""


class InvalidConfigError(E2EError):
    """Configuration or input values are unusable."""


class PrerequisiteError(E2EError):
    """The target cluster or caller identity is not fit for the run."""


class MissingDependencyError(E2EError):
    """A required command-line tool is not installed."""


class TransientClusterError(E2EError):
    """A mutating cluster call failed and may succeed on retry."""


class ReadinessTimeoutError(E2EError):
    """A polled condition was never satisfied within its timeout."""


class ValidationFailure(E2EError):
    """A validation, token verification, or smoke check failed."""


class CredentialNotFoundError(E2EError):
    """A username has no matching password in the active credential set."""


class CommandFailedError(E2EError):
    """An external script exited with a non-zero status."""


class BootstrapError(E2EError):
    """An identity provider bootstrap transition failed.

    Attributes:
        state: The last state that was reached successfully.
    """

    def __init__(self, message: str, state: str) -> None:
        super().__init__(f"{message} (last completed state: {state})")
        self.state = state
