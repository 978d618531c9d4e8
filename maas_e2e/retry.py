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

"""Polling and retry-with-backoff primitives shared by waiters and cluster calls."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_fixed,
)

from maas_e2e import logger
from maas_e2e.errors import TransientClusterError

T = TypeVar("T")


def poll_until(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Call *predicate* every *interval* seconds until it returns True.

    The attempt budget is bounded both by wall-clock delay and by the number
    of intervals that fit in *timeout*, so an injected *sleep* that does not
    advance the clock still terminates.

    Args:
        predicate: Zero-argument check returning True once satisfied.
        timeout: Maximum seconds to keep polling.
        interval: Seconds to sleep between attempts.
        sleep: Sleep function, injectable for tests.

    Returns:
        True if the predicate was satisfied, False on timeout.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")
    max_attempts = max(1, math.ceil(max(timeout, 0) / interval) + 1)
    retryer = Retrying(
        stop=stop_after_delay(max(timeout, 0)) | stop_after_attempt(max_attempts),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda ok: not ok),
        sleep=sleep,
    )
    try:
        return retryer(predicate)
    except RetryError:
        return False


def retry_with_backoff(
    fn: Callable[[], T],
    *,
    attempts: int,
    delay: float,
    retry_on: tuple[type[BaseException], ...] = (TransientClusterError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *fn*, retrying on *retry_on* with exponentially growing delays.

    The first retry waits *delay* seconds and each following retry doubles it.

    Args:
        fn: Zero-argument callable to run.
        attempts: Total number of attempts, including the first.
        delay: Initial delay in seconds between attempts.
        retry_on: Exception types that trigger a retry.
        sleep: Sleep function, injectable for tests.

    Returns:
        The value returned by *fn*.

    Raises:
        Exception: The last exception raised by *fn* once attempts run out.
    """
    retryer = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=delay, exp_base=2),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        sleep=sleep,
    )
    return retryer(fn)
