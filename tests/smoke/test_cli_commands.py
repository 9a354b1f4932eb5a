"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import subprocess
import sys
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

from edge.cli.main import app
from edge.learning.spaced_repetition import ReviewScheduler
from edge.storage.ledger import LedgerStore

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command in a subprocess and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m edge.cli.main')
        timeout: Maximum time to wait
    """
    full_command = f"{sys.executable} -m edge.cli.main {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def populated(data_dir, make_record):
    """A data dir with two recorded sessions and one schedule entry."""
    ledger = LedgerStore(data_dir / "ledger.json")
    scheduler = ReviewScheduler(data_dir / "review-schedule.json")
    ledger.append(make_record(day=1, on=date(2025, 3, 1), concept_id="anchoring", scores=2))
    ledger.append(make_record(day=2, on=date(2025, 3, 2), concept_id="darvo", scores=4))
    scheduler.record_practice("anchoring", ledger.read_all()[0].scores, date(2025, 3, 1))
    return data_dir


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "edge" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", ["status", "due", "digest", "history", "serve"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])

        assert result.exit_code == 0, result.output


class TestCLIEmptyData:
    """Commands against a data dir with no files yet."""

    def test_status(self, data_dir):
        result = runner.invoke(app, ["status", "--data-dir", str(data_dir)])

        assert result.exit_code == 0, result.output
        assert "Day 1" in result.output

    def test_due(self, data_dir):
        result = runner.invoke(app, ["due", "-d", str(data_dir)])

        assert result.exit_code == 0
        assert "Nothing due" in result.output

    def test_digest(self, data_dir):
        result = runner.invoke(app, ["digest", "-d", str(data_dir)])

        assert result.exit_code == 0
        assert "No prior sessions recorded." in result.output

    def test_history(self, data_dir):
        result = runner.invoke(app, ["history", "-d", str(data_dir)])

        assert result.exit_code == 0
        assert "No sessions recorded yet" in result.output


class TestCLIWithData:
    def test_status(self, populated):
        result = runner.invoke(app, ["status", "-d", str(populated)])

        assert result.exit_code == 0, result.output
        assert "Day 3" in result.output

    def test_due_lists_overdue_concept(self, populated):
        result = runner.invoke(app, ["due", "-d", str(populated)])

        assert result.exit_code == 0, result.output
        assert "Anchoring" in result.output

    def test_digest_count(self, populated):
        result = runner.invoke(app, ["digest", "-d", str(populated), "--count", "1"])

        assert result.exit_code == 0
        assert "Weakness on day 2." in result.output
        assert "Weakness on day 1." not in result.output

    def test_history(self, populated):
        result = runner.invoke(app, ["history", "-d", str(populated)])

        assert result.exit_code == 0
        assert "Session Ledger" in result.output
