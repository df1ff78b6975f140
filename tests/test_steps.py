"""Unit tests for soft-fail step execution (snapp_cli.steps).

Tests cover:
- StepResult defaults
- StepRunner.run_step success, non-zero exit, missing executable, timeout
- Stop-at-first-failure ordering and cwd propagation
- Result history
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from snapp_cli.steps import StepExecutionError, StepResult, StepRunner


class TestStepResult:
    @pytest.mark.unit
    def test_defaults(self):
        result = StepResult(name="NPM install", ok=True)
        assert result.error is None
        assert result.returncode is None
        assert result.duration == 0.0


class TestStepExecutionError:
    @pytest.mark.unit
    def test_attributes(self):
        exc = StepExecutionError("failed", command="git init", returncode=128)
        assert str(exc) == "failed"
        assert exc.command == "git init"
        assert exc.returncode == 128


class TestRunStep:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self):
        runner = StepRunner()
        with patch("snapp_cli.steps.run_command", AsyncMock(return_value=(0, "", ""))):
            result = await runner.run_step("Initialize Git repo", [["git", "init", "-q"]])

        assert result.ok is True
        assert result.name == "Initialize Git repo"
        assert result.returncode == 0
        assert result.error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_commands_run_in_order_with_cwd(self, tmp_path: Path):
        runner = StepRunner(timeout=5)
        mock = AsyncMock(return_value=(0, "", ""))
        with patch("snapp_cli.steps.run_command", mock):
            await runner.run_step(
                "Git init commit",
                [["git", "add", "."], ["git", "commit", "-m", "Init commit", "-q", "-n"]],
                cwd=tmp_path,
            )

        assert [c.args[0] for c in mock.call_args_list] == [
            ["git", "add", "."],
            ["git", "commit", "-m", "Init commit", "-q", "-n"],
        ]
        for call in mock.call_args_list:
            assert call.kwargs == {"cwd": tmp_path, "timeout": 5}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nonzero_exit_is_soft_failure(self):
        runner = StepRunner()
        mock = AsyncMock(return_value=(1, "", "npm ERR! something\nnpm ERR! final line"))
        with patch("snapp_cli.steps.run_command", mock):
            result = await runner.run_step("NPM install", [["npm", "ci", "--silent"]])

        assert result.ok is False
        assert result.returncode == 1
        assert "npm ci --silent exited with 1" in result.error
        assert "final line" in result.error

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self):
        runner = StepRunner()
        mock = AsyncMock(side_effect=[(128, "", "fatal"), (0, "", "")])
        with patch("snapp_cli.steps.run_command", mock):
            result = await runner.run_step(
                "Initialize Git repo", [["git", "init", "-q"], ["git", "branch", "-m", "main"]]
            )

        assert result.ok is False
        assert mock.await_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_executable_does_not_raise(self):
        runner = StepRunner()
        mock = AsyncMock(side_effect=FileNotFoundError(2, "No such file", "npm"))
        with patch("snapp_cli.steps.run_command", mock):
            result = await runner.run_step("NPM install", [["npm", "ci"]])

        assert result.ok is False
        assert result.returncode is None
        assert "Could not run npm ci" in result.error

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_real_missing_executable(self, tmp_path: Path):
        runner = StepRunner()
        result = await runner.run_step("Missing tool", [["definitely-not-a-real-binary-xyz"]], cwd=tmp_path)
        assert result.ok is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_real_timeout(self):
        runner = StepRunner(timeout=0.2)
        result = await runner.run_step(
            "Slow step", [[sys.executable, "-c", "import time; time.sleep(10)"]]
        )
        assert result.ok is False
        assert result.returncode == -1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_step_succeeds(self):
        result = await StepRunner().run_step("Nothing", [])
        assert result.ok is True
        assert result.returncode is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_history_kept_in_order(self):
        runner = StepRunner()
        mock = AsyncMock(side_effect=[(0, "", ""), (1, "", "")])
        with patch("snapp_cli.steps.run_command", mock):
            await runner.run_step("first", [["a"]])
            await runner.run_step("second", [["b"]])

        assert [(r.name, r.ok) for r in runner.results] == [("first", True), ("second", False)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reports_outcome(self):
        runner = StepRunner()
        with patch("snapp_cli.steps.run_command", AsyncMock(return_value=(2, "", "boom"))), \
             patch("snapp_cli.steps.print_step") as print_step:
            await runner.run_step("NPM install", [["npm", "ci"]])

        label, ok, detail = print_step.call_args.args
        assert (label, ok) == ("NPM install", False)
        assert "boom" in detail
