"""Unit tests for the Terraform root wrapper.

``sh`` is replaced on the terraform module by a namespace holding a scripted
``terraform`` command and the real ``sh`` exception classes, and
``have_command`` is replaced so no binary is needed.
"""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
import sh

from platform_manager import terraform
from platform_manager.errors import ProvisionerDestroyFailure
from platform_manager.terraform import Terraform


class TerraformCommand:
    """Scripted ``sh.terraform``: returns *stdout* or raises *error*, recording arguments."""

    def __init__(self, stdout: str = "", error: Exception | None = None):
        self.stdout = stdout
        self.error = error
        self.calls: list[tuple[tuple, dict]] = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if self.error is not None:
            raise self.error
        return self.stdout


@pytest.fixture
def command(monkeypatch) -> TerraformCommand:
    cmd = TerraformCommand()
    monkeypatch.setattr(terraform, "sh", SimpleNamespace(
        terraform=cmd, ErrorReturnCode=sh.ErrorReturnCode, CommandNotFound=sh.CommandNotFound,
    ))
    monkeypatch.setattr(terraform, "have_command", lambda cmd: True)
    return cmd


def _failed(stderr: bytes) -> sh.ErrorReturnCode:
    return sh.ErrorReturnCode_1("terraform output -json", b"", stderr)


@pytest.mark.unit
@pytest.mark.wrappers
class TestOutputs:
    def test_flattens_output_values(self, tmp_path, command):
        """
        GIVEN terraform output -json with typed entries
        WHEN outputs are read
        THEN each name maps to its bare value
        """
        command.stdout = json.dumps({
            "region": {"sensitive": False, "type": "string", "value": "us-west-2"},
            "cluster_name": {"sensitive": False, "type": "string", "value": "jb-demo"},
            "private_subnets": {"sensitive": False, "type": ["list", "string"], "value": ["subnet-a", "subnet-b"]},
        })

        outputs = Terraform(tmp_path).outputs()

        assert outputs == {
            "region": "us-west-2",
            "cluster_name": "jb-demo",
            "private_subnets": ["subnet-a", "subnet-b"],
        }
        args, kwargs = command.calls[0]
        assert args == ("output", "-json")
        assert kwargs["_cwd"] == str(tmp_path)

    def test_no_outputs_is_empty(self, tmp_path, command):
        command.stdout = "{}\n"

        assert Terraform(tmp_path).outputs() == {}

    def test_missing_binary_is_unavailable(self, tmp_path, command, monkeypatch):
        monkeypatch.setattr(terraform, "have_command", lambda cmd: False)

        assert Terraform(tmp_path).outputs() is None
        assert command.calls == []

    def test_missing_directory_is_unavailable(self, tmp_path, command):
        assert Terraform(tmp_path / "infra").outputs() is None
        assert command.calls == []

    def test_failing_command_is_unavailable(self, tmp_path, command):
        """
        GIVEN a Terraform root that was never initialized
        WHEN outputs are read
        THEN the source is unavailable rather than fatal
        """
        command.error = _failed(b"Error: Backend initialization required, please run \"terraform init\"")

        assert Terraform(tmp_path).outputs() is None

    def test_non_json_output_is_unavailable(self, tmp_path, command):
        command.stdout = "╷\n│ Warning: No outputs found\n╵\n"

        assert Terraform(tmp_path).outputs() is None

    def test_non_object_json_is_unavailable(self, tmp_path, command):
        command.stdout = '["us-west-2"]'

        assert Terraform(tmp_path).outputs() is None

    def test_single_output_ignores_empty_values(self, tmp_path, command):
        command.stdout = json.dumps({
            "vpc_id": {"value": "vpc-0abc"},
            "cluster_name": {"value": ""},
        })
        tf = Terraform(tmp_path)

        assert tf.output("vpc_id") == "vpc-0abc"
        assert tf.output("cluster_name") is None
        assert tf.output("region") is None


@pytest.mark.unit
@pytest.mark.wrappers
class TestDestroy:
    def test_runs_auto_approve_in_root(self, tmp_path, command):
        Terraform(tmp_path).destroy()

        args, kwargs = command.calls[0]
        assert args == ("destroy", "-auto-approve")
        assert kwargs["_cwd"] == str(tmp_path)

    def test_missing_directory_fails(self, tmp_path, command):
        with pytest.raises(ProvisionerDestroyFailure, match="does not exist"):
            Terraform(tmp_path / "infra").destroy()

        assert command.calls == []

    def test_missing_binary_fails(self, tmp_path, command):
        command.error = sh.CommandNotFound("terraform")

        with pytest.raises(ProvisionerDestroyFailure, match="not installed"):
            Terraform(tmp_path).destroy()
