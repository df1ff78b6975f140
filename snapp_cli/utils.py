"""Process execution and console reporting for the snapp scaffolder.

Every line the scaffolder prints goes through the module-level ``console``,
so tests can patch a single object to capture or silence output.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Subprocesses
# ---------------------------------------------------------------------------


def _decode(raw: bytes | None) -> str:
    return (raw or b"").decode("utf-8", errors="replace").strip()


async def run_command(
    argv: Sequence[str],
    cwd: str | Path | None = None,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Execute *argv* as a child process and collect its output.

    No shell is involved: project names and other user input are passed to
    the program as plain arguments.

    Args:
        argv: Executable followed by its arguments.
        cwd: Directory the child runs in.
        timeout: Seconds to wait before killing the child; ``None`` waits
            for as long as it takes.
        env: Variables layered over the current environment.

    Returns:
        ``(returncode, stdout, stderr)`` with both streams decoded and
        stripped. A timed-out command reports return code ``-1``.

    Raises:
        ValueError: If *argv* is a plain string or empty.
        OSError: If the executable cannot be launched.
    """
    if isinstance(argv, str) or not argv:
        raise ValueError("run_command expects a non-empty argument vector")

    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd else None,
        env={**os.environ, **env} if env else None,
    )

    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (-1, "", f"Command timed out after {timeout}s: {' '.join(argv)}")

    return (process.returncode or 0, _decode(out), _decode(err))


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Render *seconds* as ``"3.7s"`` or, past a minute, ``"1m 5s"``."""
    if seconds < 0:
        return "0.0s"
    minutes, rest = divmod(seconds, 60)
    if minutes:
        return f"{int(minutes)}m {int(rest)}s"
    return f"{rest:.1f}s"


def print_step(label: str, ok: bool, detail: str = "") -> None:
    if ok:
        console.print(f"  [green]+[/green] {label}")
        return
    reason = f" [dim]({detail})[/dim]" if detail else ""
    console.print(f"  [red]x[/red] {label}{reason}")


def print_summary_table(rows: dict[str, str], title: str = "Summary") -> None:
    """Print *rows* as a two-column table."""
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Field", style="dim", no_wrap=True)
    table.add_column("Value")
    for field, value in rows.items():
        table.add_row(field, str(value))
    console.print(table)


def print_success(message: str) -> None:
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]{message}[/yellow]")
