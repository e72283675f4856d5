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

"""Utility functions for kubectl, helm overrides, and command checks."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from pathlib import Path

import sh


def repo_root() -> Path:
    """Return the enclosing git work tree, or the current directory outside one."""
    try:
        return Path(str(sh.git("rev-parse", "--show-toplevel")).strip())
    except (sh.ErrorReturnCode, sh.CommandNotFound):
        return Path.cwd()


def helm_set_args(values: Mapping[str, str]) -> list[str]:
    """Build ``--set key=value`` argument pairs in a stable order.

    Args:
        values: Helm value overrides keyed by dotted path.

    Returns:
        Flat argument list for ``helm upgrade``.
    """
    return [item for key in sorted(values) for item in ("--set", f"{key}={values[key]}")]


def error_text(err: sh.ErrorReturnCode) -> str:
    """Decoded stderr (or stdout when stderr is empty) of a failed sh command."""
    raw = err.stderr or err.stdout or b""
    text = raw.decode(errors="replace") if isinstance(raw, bytes) else str(raw)
    return text.strip()[:500]


def have_command(cmd: str) -> bool:
    """Whether a command exists on the system PATH."""
    try:
        sh.which(cmd)
    except (sh.ErrorReturnCode, sh.CommandNotFound):
        return False
    return True


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    if not have_command(cmd):
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.")


def run_kubectl(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because probe callers inspect stdout and
    stderr separately (e.g. NotFound in stderr vs. an empty jsonpath result).

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)
