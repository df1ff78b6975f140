"""Destination directory name resolution.

Picks a directory name that does not collide with anything already on disk
by appending an increasing numeric suffix: ``demo``, ``demo1``, ``demo2``...
Nothing is created here; the caller creates the directory right after.
"""

from __future__ import annotations

from pathlib import Path

from .errors import ScaffoldError

DEFAULT_MAX_ATTEMPTS = 10_000


class NameResolutionExhausted(ScaffoldError):
    """Raised when no unused directory name is found within the attempt cap."""


def find_unique_dir(
    desired: str | Path,
    base_dir: str | Path | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Path:
    """Return *desired* if unused, else the first unused ``<desired><n>``.

    Args:
        desired: Desired directory name or path. The suffix is appended to
            the string form, so ``a/b`` becomes ``a/b1``.
        base_dir: Directory that relative names are resolved against.
            Defaults to the process working directory.
        max_attempts: Upper bound on candidates tried (the bare name counts
            as the first attempt).

    Returns:
        A path with no filesystem entry at the time of the check.

    Raises:
        NameResolutionExhausted: If the name is blank or whitespace-only,
            or every candidate within *max_attempts* is taken. Any other name
            is used verbatim, surrounding whitespace included.
    """
    name = str(desired)
    if not name.strip() or name in (".", ".."):
        raise NameResolutionExhausted(f"Invalid project name: {desired!r}")
    name = name.rstrip("/") or name

    root = Path(base_dir) if base_dir is not None else None
    for i in range(max_attempts):
        candidate = Path(name + (str(i) if i else ""))
        if root is not None and not candidate.is_absolute():
            candidate = root / candidate
        # lexists: a dangling symlink still occupies the name
        if not _lexists(candidate):
            return candidate

    raise NameResolutionExhausted(
        f"No free directory name for '{name}' after {max_attempts} attempts",
        path=name,
    )


def _lexists(path: Path) -> bool:
    try:
        path.lstat()
    except FileNotFoundError:
        return False
    return True
