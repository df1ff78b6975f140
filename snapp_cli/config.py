"""snapp scaffolder configuration.

Centralised, typed configuration for a scaffolding run. Settings use
Pydantic v2 models so they are validated at construction time and can be
overridden from environment variables without boiler-plate. Remote
repository references live here rather than in code.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field


def _default_cache_dir() -> Path:
    xdg = os.environ.get("XDG_CACHE_HOME")
    root = Path(xdg) if xdg else Path.home() / ".cache"
    return root / "snapp-cli"


class ScaffoldConfig(BaseModel):
    """Global configuration for ``snapp-scaffold``.

    Instances are typically created once by the CLI entry point and then
    passed to :class:`~snapp_cli.scaffold.Scaffolder`.
    """

    template_ref: str = Field(
        default="github:o1-labs/snapp-cli/templates/project-ts#main",
        description="Remote reference cloned as the project template",
    )
    examples_ref: str = Field(
        default="github:o1-labs/snapp-cli#main",
        description="Remote reference containing examples/<name>/<lang>/src",
    )
    example: str = Field(default="sudoku", min_length=1)
    lang: Literal["js", "ts"] = Field(default="js")

    base_dir: Path = Field(default=Path("."))
    cache_dir: Path = Field(default_factory=_default_cache_dir)
    use_cache: bool = Field(default=True, description="Reuse cached archives without re-downloading")
    force: bool = Field(default=False, description="Allow cloning into a non-empty directory")

    readme_file: str = Field(default="README.md")
    readme_token: str = Field(default="PROJECT_NAME")
    manifest_file: str = Field(default="package.json")
    manifest_token: str = Field(default="package-name")

    git_executable: str = Field(default="git")
    install_command: list[str] = Field(default_factory=lambda: ["npm", "ci", "--silent"])
    default_branch: str = Field(default="main")
    commit_message: str = Field(default="Init commit")

    # No timeout by default: a hung external command blocks the run.
    step_timeout: float | None = Field(default=None, gt=0)
    fetch_timeout: float = Field(default=60.0, gt=0)
    max_name_attempts: int = Field(default=10_000, ge=1)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def example_path(self) -> str:
        """Repo-relative path of the example's source tree."""
        return f"examples/{self.example}/{self.lang}/src"

    # ------------------------------------------------------------------
    # Environment overrides
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, **overrides: Any) -> "ScaffoldConfig":
        """Build a ``ScaffoldConfig`` from environment variables.

        Recognised variables (all optional):
            SNAPP_TEMPLATE_REF, SNAPP_EXAMPLES_REF, SNAPP_EXAMPLE, SNAPP_LANG,
            SNAPP_CACHE_DIR, SNAPP_NO_CACHE, SNAPP_STEP_TIMEOUT.

        Keyword *overrides* win over the environment; ``None`` values are
        ignored so CLI flags that were not given fall through.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SNAPP_TEMPLATE_REF"):
            kwargs["template_ref"] = os.environ["SNAPP_TEMPLATE_REF"]
        if os.environ.get("SNAPP_EXAMPLES_REF"):
            kwargs["examples_ref"] = os.environ["SNAPP_EXAMPLES_REF"]
        if os.environ.get("SNAPP_EXAMPLE"):
            kwargs["example"] = os.environ["SNAPP_EXAMPLE"]
        if os.environ.get("SNAPP_LANG"):
            kwargs["lang"] = os.environ["SNAPP_LANG"]
        if os.environ.get("SNAPP_CACHE_DIR"):
            kwargs["cache_dir"] = Path(os.environ["SNAPP_CACHE_DIR"])
        if os.environ.get("SNAPP_NO_CACHE", "").lower() in ("1", "true", "yes"):
            kwargs["use_cache"] = False
        if os.environ.get("SNAPP_STEP_TIMEOUT"):
            kwargs["step_timeout"] = float(os.environ["SNAPP_STEP_TIMEOUT"])

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)
