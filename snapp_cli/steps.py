"""Soft-fail execution of shell-level scaffolding steps.

A step is a labelled sequence of commands run one after another in a given
directory; the first failing command ends the step. Failures are returned as
a :class:`StepResult` instead of being raised, and the caller decides whether
a failed step is fatal.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, Field

from .errors import ScaffoldError
from .utils import print_step, run_command

Command = Sequence[str]


class StepExecutionError(ScaffoldError):
    """Raised internally when a step's command cannot run or exits non-zero."""

    def __init__(self, message: str, command: str = "", returncode: int | None = None):
        self.command = command
        self.returncode = returncode
        super().__init__(message)


class StepResult(BaseModel):
    """Outcome of a single step."""

    name: str
    ok: bool
    error: str | None = Field(default=None, description="Failure cause, if any")
    returncode: int | None = Field(default=None, description="Exit code of the last command run")
    duration: float = Field(default=0.0, description="Wall-clock seconds")


class StepRunner:
    """Runs labelled command sequences and reports each outcome.

    The runner is policy-free: it never raises for a failed command. Every
    result is also kept in :attr:`results` in execution order.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self.results: list[StepResult] = []

    async def _run(self, argv: Command, cwd: Path | None) -> int:
        cmd_str = " ".join(argv)
        try:
            returncode, _, stderr = await run_command(argv, cwd=cwd, timeout=self.timeout)
        except OSError as exc:
            raise StepExecutionError(f"Could not run {cmd_str}: {exc}", command=cmd_str) from exc

        if returncode != 0:
            detail = stderr.splitlines()[-1] if stderr else ""
            message = f"{cmd_str} exited with {returncode}"
            if detail:
                message += f": {detail}"
            raise StepExecutionError(message, command=cmd_str, returncode=returncode)
        return returncode

    async def run_step(
        self,
        label: str,
        commands: Sequence[Command],
        cwd: str | Path | None = None,
    ) -> StepResult:
        """Run *commands* in order inside *cwd*, stopping at the first failure.

        Args:
            label: Step name shown to the user.
            commands: Argument vectors, executed like ``a && b``.
            cwd: Working directory for every command.

        Returns:
            A ``StepResult``; ``ok`` is false if any command failed to start,
            timed out, or exited non-zero.
        """
        workdir = Path(cwd) if cwd is not None else None
        start = time.monotonic()
        returncode: int | None = None

        try:
            for argv in commands:
                returncode = await self._run(argv, workdir)
            result = StepResult(
                name=label,
                ok=True,
                returncode=returncode,
                duration=time.monotonic() - start,
            )
        except StepExecutionError as exc:
            result = StepResult(
                name=label,
                ok=False,
                error=str(exc),
                returncode=exc.returncode,
                duration=time.monotonic() - start,
            )

        print_step(label, result.ok, result.error or "")
        self.results.append(result)
        return result
