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

"""Terraform root access: outputs and destroy.

Every command runs with ``_cwd`` set to the Terraform root, so the caller's
working directory is never changed, even when the command fails.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import sh

from platform_manager import logger
from platform_manager.errors import ProvisionerDestroyFailure
from platform_manager.utils import error_text, have_command


class Terraform:
    """A Terraform root directory.

    Attributes:
        workdir: Directory holding the Terraform configuration and state.
    """

    def __init__(self, workdir: Path) -> None:
        self.workdir = Path(workdir)

    def __repr__(self) -> str:
        return f"Terraform(workdir={str(self.workdir)!r})"

    def available(self) -> bool:
        """Whether the terraform binary and the root directory both exist."""
        return self.workdir.is_dir() and have_command("terraform")

    def outputs(self) -> dict[str, Any] | None:
        """Flattened ``terraform output -json`` (name to value).

        Returns:
            Output values by name, or None when the source is unavailable,
            the command fails, or it prints something that is not JSON.
        """
        if not self.available():
            return None
        try:
            raw = sh.terraform("output", "-json", _cwd=str(self.workdir))
        except sh.ErrorReturnCode as err:
            logger.debug("terraform output failed in %s: %s", self.workdir, error_text(err))
            return None
        try:
            parsed = json.loads(str(raw) or "{}")
        except json.JSONDecodeError:
            logger.debug("terraform output in %s was not JSON", self.workdir)
            return None
        if not isinstance(parsed, dict):
            return None
        return {
            name: entry.get("value") if isinstance(entry, dict) else entry
            for name, entry in parsed.items()
        }

    def output(self, name: str) -> str | None:
        """A single string output, or None if absent or empty."""
        value = (self.outputs() or {}).get(name)
        if value is None or value == "":
            return None
        return str(value)

    def destroy(self) -> None:
        """Run ``terraform destroy -auto-approve``, streaming its output.

        Raises:
            ProvisionerDestroyFailure: If the directory is missing or terraform fails.
        """
        if not self.workdir.is_dir():
            raise ProvisionerDestroyFailure(f"Terraform directory {self.workdir} does not exist")
        try:
            sh.terraform("destroy", "-auto-approve", _cwd=str(self.workdir), _out=sys.stdout, _err=sys.stderr)
        except sh.ErrorReturnCode as err:
            raise ProvisionerDestroyFailure(f"exit code {err.exit_code} in {self.workdir}") from err
        except sh.CommandNotFound as err:
            raise ProvisionerDestroyFailure("terraform is not installed") from err
