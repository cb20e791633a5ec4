"""
End-to-end tests for the stratum CLI.

Tests:
- plan / apply / re-plan convergence on the sample web stack
- output and state inspection
- destroy with and without confirmation
- fatal errors (cycles, dangling references, bad config) exit with 1
"""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner
from loguru import logger

from stratum.cli import cli


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop sinks bound to CliRunner's captured streams."""
    yield
    logger.remove()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path, stratum_config_path):
    """Run the CLI against a SQLite state file in tmp_path."""
    state = tmp_path / "state" / "stratum.db"

    def _invoke(*args: str, input: str | None = None):
        return runner.invoke(
            cli,
            ["-c", str(stratum_config_path), "--state", str(state), *args],
            input=input,
        )

    return _invoke


def write_stack(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "stack.yaml"
    path.write_text(body)
    return path


class TestLifecycle:
    """Tests for plan, apply and destroy on the web stack."""

    def test_plan_empty_state(self, invoke, web_stack_path):
        """Test a first plan creates everything."""
        result = invoke("plan", "-f", str(web_stack_path))
        assert result.exit_code == 0, result.output
        assert "18 to create" in result.output

    def test_apply_then_converged(self, invoke, web_stack_path):
        """Test apply succeeds and a second plan is empty."""
        result = invoke("apply", "-f", str(web_stack_path))
        assert result.exit_code == 0, result.output
        assert "19 applied" in result.output
        assert "lbDnsName" in result.output

        result = invoke("plan", "-f", str(web_stack_path))
        assert result.exit_code == 0, result.output
        assert "0 to create" in result.output
        assert "18 unchanged" in result.output

        result = invoke("plan", "-f", str(web_stack_path), "--show-unchanged")
        assert result.exit_code == 0, result.output
        assert "zones" in result.output

    def test_secret_not_printed(self, invoke, tmp_path):
        """Test secret values never reach the console or the state file."""
        stack = write_stack(
            tmp_path,
            "resources:\n"
            "  db:\n    kind: aws:rds/Instance\n    properties:\n"
            "      engine: mysql\n      password:\n        secret: hunter2-s3cr3t\n",
        )
        result = invoke("apply", "-f", str(stack))
        assert result.exit_code == 0, result.output
        assert "hunter2-s3cr3t" not in result.output

        result = invoke("state", "show", "db")
        assert result.exit_code == 0, result.output
        assert "sha256:" in result.output
        assert "hunter2-s3cr3t" not in result.output

    def test_output(self, invoke, web_stack_path):
        """Test outputs are read back from state."""
        invoke("apply", "-f", str(web_stack_path))
        result = invoke("output", "-f", str(web_stack_path))
        assert result.exit_code == 0, result.output
        assert "dbEndpoint" in result.output
        assert "rds.amazonaws.com" in result.output

    def test_output_before_apply(self, invoke, web_stack_path):
        """Test outputs of unapplied resources are unknown."""
        result = invoke("output", "-f", str(web_stack_path))
        assert result.exit_code == 0, result.output
        assert "(known after apply)" in result.output

    def test_state_commands(self, invoke, web_stack_path):
        """Test state list and show."""
        result = invoke("state", "list")
        assert result.exit_code == 0
        assert "State is empty" in result.output

        invoke("apply", "-f", str(web_stack_path))
        result = invoke("state", "list")
        assert result.exit_code == 0
        assert "web-listener" in result.output

        result = invoke("state", "show", "vpc")
        assert result.exit_code == 0
        assert "10.0.0.0/16" in result.output

        result = invoke("state", "show", "web-subnet-1")
        assert result.exit_code == 0
        assert "us-east-1a" in result.output

        result = invoke("state", "show", "nope")
        assert result.exit_code == 1
        assert "No state recorded" in result.output

    def test_destroy(self, invoke, web_stack_path):
        """Test destroy removes every record."""
        invoke("apply", "-f", str(web_stack_path))

        result = invoke("destroy", "--yes")
        assert result.exit_code == 0, result.output
        assert "18 applied" in result.output

        result = invoke("state", "list")
        assert "State is empty" in result.output

        result = invoke("destroy", "--yes")
        assert result.exit_code == 0
        assert "Nothing to destroy" in result.output

    def test_destroy_declined(self, invoke, web_stack_path):
        """Test answering no keeps the state."""
        invoke("apply", "-f", str(web_stack_path))

        result = invoke("destroy", input="n\n")
        assert result.exit_code == 1
        assert "Destroy cancelled" in result.output

        result = invoke("state", "list")
        assert "vpc" in result.output

    def test_removed_resource_is_deleted(self, invoke, tmp_path):
        """Test dropping a declaration deletes it on the next apply."""
        stack = write_stack(
            tmp_path,
            "resources:\n"
            "  vpc:\n    kind: aws:ec2/Vpc\n    properties:\n      cidrBlock: 10.0.0.0/16\n"
            "  igw:\n    kind: aws:ec2/InternetGateway\n    properties:\n      vpcId: ${vpc.id}\n",
        )
        assert invoke("apply", "-f", str(stack)).exit_code == 0

        stack.write_text(
            "resources:\n"
            "  vpc:\n    kind: aws:ec2/Vpc\n    properties:\n      cidrBlock: 10.0.0.0/16\n"
        )
        result = invoke("apply", "-f", str(stack))
        assert result.exit_code == 0, result.output
        assert "1 to delete" in result.output

        result = invoke("state", "show", "igw")
        assert result.exit_code == 1


class TestErrors:
    """Tests for fatal errors."""

    def test_cycle(self, invoke, tmp_path):
        """Test cycles are rejected before any provider call."""
        stack = write_stack(
            tmp_path,
            "resources:\n"
            "  a:\n    kind: test:A\n    properties:\n      peer: ${b.id}\n"
            "  b:\n    kind: test:B\n    properties:\n      peer: ${a.id}\n",
        )
        result = invoke("apply", "-f", str(stack))
        assert result.exit_code == 1
        assert "cycle" in result.output

        result = invoke("state", "list")
        assert "State is empty" in result.output

    def test_dangling_reference(self, invoke, tmp_path):
        """Test references to undeclared resources are rejected."""
        stack = write_stack(
            tmp_path,
            "resources:\n  a:\n    kind: test:A\n    properties:\n      vpcId: ${ghost.id}\n",
        )
        result = invoke("plan", "-f", str(stack))
        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_unknown_data_source(self, invoke, tmp_path):
        """Test a data source the provider cannot read fails the plan."""
        stack = write_stack(tmp_path, "data:\n  region:\n    kind: aws:index/getRegion\n")
        result = invoke("plan", "-f", str(stack))
        assert result.exit_code == 1
        assert "region" in result.output

    def test_invalid_stack(self, invoke, tmp_path):
        """Test malformed stack files are rejected."""
        stack = write_stack(tmp_path, "resources:\n  a:\n    properties: {}\n")
        result = invoke("plan", "-f", str(stack))
        assert result.exit_code == 1

    def test_missing_stack_file(self, invoke, tmp_path):
        """Test click validates the stack path."""
        result = invoke("plan", "-f", str(tmp_path / "missing.yaml"))
        assert result.exit_code == 2

    def test_invalid_config(self, runner, tmp_path, web_stack_path):
        """Test bad configuration exits with 1."""
        config = tmp_path / "stratum.yaml"
        config.write_text("engine:\n  max_workers: 0\n")
        result = runner.invoke(cli, ["-c", str(config), "plan", "-f", str(web_stack_path)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
