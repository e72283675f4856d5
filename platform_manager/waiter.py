# /*
# Copyright 2026 The Platform Manager Authors.
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

"""Bounded polling until an observed condition converges."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from platform_manager import logger
from platform_manager.errors import ConvergenceTimeout


class ProbeResult(NamedTuple):
    """One observation of the condition being waited on."""

    satisfied: bool
    observed: str | None = None


@dataclass(frozen=True)
class PollOutcome:
    """Result of a bounded wait.

    Attributes:
        succeeded: Whether the probe was satisfied before the bound ran out.
        last_observed: Value reported by the final probe (or its error text).
        attempts: Number of probes issued.
    """

    succeeded: bool
    last_observed: str | None
    attempts: int

    def raise_for_timeout(self, what: str, *, stage: str | None = None) -> None:
        """Raise ConvergenceTimeout unless the wait succeeded."""
        if not self.succeeded:
            raise ConvergenceTimeout(what, self, stage=stage)


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


def _unsatisfied(result: ProbeResult) -> bool:
    return not result.satisfied


def _last_result(retry_state: RetryCallState) -> ProbeResult:
    return retry_state.outcome.result()


def wait_until(
    probe: Callable[[], ProbeResult],
    interval: float,
    timeout: float | None = None,
    attempts: int | None = None,
    description: str = "condition",
) -> PollOutcome:
    """Poll *probe* every *interval* seconds until it is satisfied or a bound runs out.

    A probe that raises counts as "not yet satisfied"; its error text becomes
    the observed value. Blocking time is bounded by ``timeout + interval`` plus
    the duration of the last probe.

    Args:
        probe: Zero-argument callable returning a ProbeResult.
        interval: Seconds to sleep between probes; must be positive.
        timeout: Stop once this many seconds have elapsed since the first probe.
        attempts: Stop after this many probes.
        description: Human-readable name used in debug logs.

    Returns:
        PollOutcome describing how the wait ended.

    Raises:
        ValueError: If interval is not positive or no bound is given.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")
    if timeout is None and attempts is None:
        raise ValueError("wait_until needs a timeout, an attempt limit, or both")

    stop = None
    if timeout is not None:
        stop = stop_after_delay(timeout)
    if attempts is not None:
        stop = stop_after_attempt(attempts) if stop is None else stop | stop_after_attempt(attempts)

    issued = 0

    def _attempt() -> ProbeResult:
        nonlocal issued
        issued += 1
        try:
            result = probe()
        except Exception as exc:
            logger.debug("Probe for %s failed on attempt %d: %s", description, issued, exc)
            return ProbeResult(False, str(exc).strip() or type(exc).__name__)
        logger.debug("Probe for %s attempt %d: %s", description, issued, result.observed)
        return result

    retrying = Retrying(
        stop=stop,
        wait=wait_fixed(interval),
        retry=retry_if_result(_unsatisfied),
        retry_error_callback=_last_result,
        sleep=_sleep,
    )
    final = retrying(_attempt)
    return PollOutcome(succeeded=final.satisfied, last_observed=final.observed, attempts=issued)
