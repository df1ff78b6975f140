"""Placeholder substitution for freshly cloned templates.

The template ships a ``README.md`` containing ``PROJECT_NAME`` and a
``package.json`` containing ``package-name``. Both are rewritten once with
forms derived from the project directory's final name.
"""

from __future__ import annotations

from pathlib import Path

from .config import ScaffoldConfig
from .errors import ScaffoldError


class FileIOError(ScaffoldError):
    """Raised when a template file cannot be read or written."""


def title_case(name: str) -> str:
    """Turn ``my-cool-app`` into ``My Cool App``.

    Splits on hyphens only; each segment gets an upper-cased first character
    and a lower-cased remainder.
    """
    return " ".join(w[:1].upper() + w[1:].lower() for w in name.split("-"))


def kebab_case(name: str) -> str:
    """Lower-case *name* and replace its first space with a hyphen.

    Only the first space is replaced: ``"My Cool App"`` -> ``"my-cool app"``.
    """
    return name.lower().replace(" ", "-", 1)


def replace_in_file(path: str | Path, token: str, replacement: str) -> bool:
    """Replace the first occurrence of *token* in the file at *path*.

    The file is always read and rewritten, even when the token is absent.
    Bytes that are not valid UTF-8 are carried through unchanged.

    Returns:
        ``True`` if the token was found and replaced.

    Raises:
        FileIOError: If the file cannot be read or written.
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8", errors="surrogateescape")
    except (OSError, UnicodeError) as exc:
        raise FileIOError(f"Cannot read {file_path}: {exc}", path=str(file_path)) from exc

    found = token in content
    content = content.replace(token, replacement, 1)

    try:
        file_path.write_text(content, encoding="utf-8", errors="surrogateescape")
    except (OSError, UnicodeError) as exc:
        raise FileIOError(f"Cannot write {file_path}: {exc}", path=str(file_path)) from exc
    return found


def set_project_name(project_dir: str | Path, config: ScaffoldConfig) -> dict[str, str]:
    """Write the project's name into its README and package manifest.

    Both forms come from the directory's base name, so a numeric suffix
    added during name resolution is part of the templated name.

    Returns:
        Mapping of the rewritten file name to the value substituted into it.
    """
    project_dir = Path(project_dir)
    name = project_dir.resolve().name

    title = title_case(name)
    kebab = kebab_case(name)
    replace_in_file(project_dir / config.readme_file, config.readme_token, title)
    replace_in_file(project_dir / config.manifest_file, config.manifest_token, kebab)

    return {config.readme_file: title, config.manifest_file: kebab}
