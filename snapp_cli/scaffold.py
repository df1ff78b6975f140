"""snapp project scaffolding orchestrator.

Turns a project name into a committed, dependency-installed repository:

    resolve name -> clone template -> check git -> git init -> npm install
    -> set project name -> splice example src -> initial commit

Steps run strictly in sequence. Cloning, the git check, templating and the
example splice are fatal on failure; git init, dependency installation and
the commit are soft-fail steps. Only a missing example rolls back the whole
scaffolded directory.

Usage::

    snapp-scaffold my-app
    snapp-scaffold my-app --example sudoku --lang ts
    python -m snapp_cli.scaffold my-app --no-cache
"""

from __future__ import annotations

import asyncio
import shutil
import sys
import tempfile
import time
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .config import ScaffoldConfig
from .errors import ScaffoldError
from .fetcher import (
    ArchiveStore,
    DestinationNotEmptyError,
    EmptyExtractionError,
    RemoteArchiveFetcher,
    example_filter,
)
from .naming import find_unique_dir
from .steps import StepResult, StepRunner
from .templater import FileIOError, set_project_name
from .utils import (
    console,
    format_duration,
    print_error,
    print_step,
    print_success,
    print_summary_table,
)

# ---------------------------------------------------------------------------
# Exceptions & result types
# ---------------------------------------------------------------------------


class MissingPrerequisiteTool(ScaffoldError):
    """Raised when a required executable (git) is not on ``PATH``."""


class ScaffoldState(str, Enum):
    """Progress markers for a scaffolding run, in order."""

    START = "start"
    NAME_RESOLVED = "name_resolved"
    CLONED = "cloned"
    VCS_CHECKED = "vcs_checked"
    VCS_INITIALIZED = "vcs_initialized"
    DEPS_INSTALLED = "deps_installed"
    NAME_TEMPLATED = "name_templated"
    EXAMPLE_SPLICED = "example_spliced"
    COMMITTED = "committed"
    DONE = "done"


class ScaffoldResult(BaseModel):
    """Outcome of :meth:`Scaffolder.scaffold`."""

    success: bool = False
    requested_name: str
    target: Path | None = None
    state: ScaffoldState = ScaffoldState.START
    steps: list[StepResult] = Field(default_factory=list)
    project_names: dict[str, str] = Field(default_factory=dict)
    error: str | None = None
    error_type: str | None = None
    rolled_back: bool = False
    duration: float = 0.0


# Messages shown for fatal errors that the user is expected to act on.
USER_MESSAGES: dict[type[ScaffoldError], str] = {
    DestinationNotEmptyError: "Destination directory is not empty. Not proceeding.",
    MissingPrerequisiteTool: "Please ensure Git is installed, then try again.",
    EmptyExtractionError: "Example not found",
}


def user_message(exc: ScaffoldError) -> str:
    for error_type, message in USER_MESSAGES.items():
        if isinstance(exc, error_type):
            return message
    return str(exc)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Scaffolder:
    """Drives a scaffolding run from a project name to a committed repo.

    Attributes:
        config: Run configuration (remote refs, example, commands).
        fetcher: Archive fetcher used for both the template and the example.
        runner: Soft-fail runner for the git and package-manager steps.
        state: Last state reached by the current or most recent run.
    """

    def __init__(
        self,
        config: ScaffoldConfig,
        fetcher: RemoteArchiveFetcher | None = None,
        runner: StepRunner | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher or RemoteArchiveFetcher(
            ArchiveStore(config.cache_dir),
            use_cache=config.use_cache,
            timeout=config.fetch_timeout,
        )
        self.runner = runner or StepRunner(timeout=config.step_timeout)
        self.state = ScaffoldState.START
        self._first_step = 0

    def _advance(self, result: ScaffoldResult, state: ScaffoldState) -> None:
        self.state = state
        result.state = state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def scaffold(self, name: str) -> ScaffoldResult:
        """Scaffold a new project named *name*.

        Fatal errors are reported to the console and recorded on the
        returned result rather than raised.

        Returns:
            A ``ScaffoldResult``; ``success`` is true only if the run reached
            ``DONE``. Soft-fail step outcomes are listed in ``steps``.
        """
        result = ScaffoldResult(requested_name=name)
        self.state = ScaffoldState.START
        self._first_step = first_step = len(self.runner.results)
        start = time.monotonic()

        try:
            await self._execute(name, result)
        except ScaffoldError as exc:
            result.error = str(exc)
            result.error_type = type(exc).__name__
            print_error(user_message(exc))
            if not isinstance(exc, tuple(USER_MESSAGES)):
                console.print(f"[red]Error: {result.error_type}[/red]")

        result.steps = self.runner.results[first_step:]
        result.duration = time.monotonic() - start
        return result

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _execute(self, name: str, result: ScaffoldResult) -> None:
        config = self.config
        git = config.git_executable

        target = find_unique_dir(name, config.base_dir, config.max_name_attempts)
        result.target = target
        self._advance(result, ScaffoldState.NAME_RESOLVED)

        await self._clone_template(target)
        self._advance(result, ScaffoldState.CLONED)

        # Git must exist before `npm ci`: install hooks write into `.git`.
        if shutil.which(git) is None:
            raise MissingPrerequisiteTool(f"'{git}' executable not found on PATH")
        self._advance(result, ScaffoldState.VCS_CHECKED)

        await self.runner.run_step(
            "Initialize Git repo",
            [[git, "init", "-q", "-b", config.default_branch]],
            cwd=target,
        )
        self._advance(result, ScaffoldState.VCS_INITIALIZED)

        await self.runner.run_step("NPM install", [config.install_command], cwd=target)
        self._advance(result, ScaffoldState.DEPS_INSTALLED)

        try:
            result.project_names = set_project_name(target, config)
        except FileIOError as exc:
            print_step("Set project name", False, str(exc))
            raise
        print_step("Set project name", True)
        self._advance(result, ScaffoldState.NAME_TEMPLATED)

        try:
            await self._splice_example(target)
        except EmptyExtractionError:
            shutil.rmtree(target, ignore_errors=True)
            result.rolled_back = not target.exists()
            raise
        self._advance(result, ScaffoldState.EXAMPLE_SPLICED)

        # `-n` skips pre-commit hooks installed by the template.
        await self.runner.run_step(
            "Git init commit",
            [[git, "add", "."], [git, "commit", "-m", config.commit_message, "-q", "-n"]],
            cwd=target,
        )
        self._advance(result, ScaffoldState.COMMITTED)

        self._advance(result, ScaffoldState.DONE)
        result.success = True
        self._print_next_steps(target)

    async def _clone_template(self, target: Path) -> None:
        label = "Clone project template"
        try:
            await self.fetcher.clone(self.config.template_ref, target, force=self.config.force)
        except ScaffoldError as exc:
            print_step(label, False, str(exc))
            raise
        print_step(label, True)

    async def _splice_example(self, target: Path) -> None:
        """Replace the template's ``src`` with the configured example's ``src``.

        The example is extracted into a staging directory next to *target*,
        which is removed whether or not the splice succeeds.
        """
        label = "Extract example"
        config = self.config
        try:
            staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-example-", dir=target.parent))
        except OSError as exc:
            print_step(label, False, str(exc))
            raise FileIOError(
                f"Could not create staging directory in {target.parent}: {exc}",
                path=str(target.parent),
            ) from exc

        try:
            await self.fetcher.extract(
                config.examples_ref, staging, example_filter(config.example, config.lang)
            )
            example_src = staging / config.example_path
            template_src = target / "src"
            try:
                if template_src.is_dir() and not template_src.is_symlink():
                    shutil.rmtree(template_src)
                elif template_src.exists() or template_src.is_symlink():
                    template_src.unlink()
                shutil.move(str(example_src), str(template_src))
            except OSError as exc:
                raise FileIOError(
                    f"Could not move example source into {template_src}: {exc}",
                    path=str(template_src),
                ) from exc
        except ScaffoldError as exc:
            print_step(label, False, str(exc))
            raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        print_step(label, True)

    def _print_next_steps(self, target: Path) -> None:
        failed = [s.name for s in self.runner.results[self._first_step :] if not s.ok]
        print_summary_table(
            {
                "Project": str(target),
                "Example": f"{self.config.example} ({self.config.lang})",
                "Failed steps": ", ".join(failed) or "none",
            },
            title="Scaffold Results",
        )
        print_success(
            "\nSuccess!\n"
            "\nNext steps:"
            f"\n  cd {target}"
            "\n  git remote add origin <your-repo-url>"
            f"\n  git push -u origin {self.config.default_branch}"
        )


async def scaffold(name: str, config: ScaffoldConfig | None = None) -> ScaffoldResult:
    """Scaffold *name* with *config* (or the environment-derived defaults)."""
    return await Scaffolder(config or ScaffoldConfig.from_env()).scaffold(name)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``snapp-scaffold`` / ``python -m snapp_cli.scaffold``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="snapp-scaffold",
        description="Create a new snapp project from a template and an example",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  snapp-scaffold my-app\n"
            "  snapp-scaffold my-app --example sudoku --lang ts\n"
            "  snapp-scaffold my-app --no-cache\n"
        ),
    )
    parser.add_argument("name", help="Desired project directory name or path")
    parser.add_argument("--example", default=None, help="Example to splice in (default: sudoku)")
    parser.add_argument("--lang", choices=["js", "ts"], default=None, help="Example language (default: js)")
    parser.add_argument("--template", dest="template_ref", default=None, help="Template remote reference")
    parser.add_argument("--examples-ref", default=None, help="Remote reference containing examples/")
    parser.add_argument("--base-dir", type=Path, default=None, help="Directory to create the project in")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Local archive cache directory")
    parser.add_argument(
        "--no-cache",
        dest="use_cache",
        action="store_false",
        default=None,
        help="Always download archives instead of reusing the cache",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=None,
        help="Clone even if the destination directory is not empty",
    )

    args = parser.parse_args(argv)

    try:
        config = ScaffoldConfig.from_env(
            example=args.example,
            lang=args.lang,
            template_ref=args.template_ref,
            examples_ref=args.examples_ref,
            base_dir=args.base_dir,
            cache_dir=args.cache_dir,
            use_cache=args.use_cache,
            force=args.force,
        )
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid configuration: {exc}")
        sys.exit(2)

    result = asyncio.run(Scaffolder(config).scaffold(args.name))
    if not result.success:
        console.print(f"[dim]Stopped after {format_duration(result.duration)}[/dim]")
        sys.exit(1)


if __name__ == "__main__":
    main()
