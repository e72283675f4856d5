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

"""Error taxonomy for bootstrap and teardown stages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from platform_manager.waiter import PollOutcome


class PlatformError(RuntimeError):
    """Fatal orchestration failure tagged with the stage that raised it."""

    stage = "platform"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        if stage is not None:
            self.stage = stage
        self.message = message
        super().__init__(f"[{self.stage}] {message}")


class ResolutionError(PlatformError):
    """Region or cluster name could not be resolved from any source."""

    stage = "resolve"

    def __init__(self, missing: list[str], checked: list[str]) -> None:
        self.missing = missing
        self.checked = checked
        lines = [f"Could not resolve {'/'.join(missing)}.", "Checked (in order):"]
        lines += [f"  {idx}) {source}" for idx, source in enumerate(checked, start=1)]
        lines += [
            "Fix one of:",
            "  - Set TF_DIR (or --tf-dir) to the correct terraform root "
            "(expected: $REPO_ROOT/terraform/infrastructure)",
            "  - Or export REGION and CLUSTER_NAME explicitly (or pass --region/--cluster-name)",
        ]
        super().__init__("\n".join(lines))


class UnreachableError(PlatformError):
    """Cloud or cluster API session could not be established or authorized."""

    stage = "connect"


class ConvergenceTimeout(PlatformError):
    """A bounded wait ran out before its predicate was satisfied."""

    stage = "wait"

    def __init__(self, what: str, outcome: PollOutcome, *, stage: str | None = None) -> None:
        self.what = what
        self.outcome = outcome
        super().__init__(
            f"Timed out waiting for {what} after {outcome.attempts} attempts "
            f"(last observed: {outcome.last_observed or 'unknown'})",
            stage=stage,
        )


class MutationFailure(PlatformError):
    """An apply, install or delete call itself failed."""

    stage = "mutate"


class ProvisionerDestroyFailure(PlatformError):
    """``terraform destroy`` failed, usually on lingering cloud dependencies."""

    stage = "destroy"

    def __init__(self, detail: str) -> None:
        super().__init__(
            f"terraform destroy failed: {detail}\n"
            "Cloud-side dependencies may still be draining; wait a few minutes and re-run teardown."
        )
