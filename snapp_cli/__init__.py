"""snapp project scaffolder.

Creates a new project directory from a remote template, splices in an
example's ``src`` tree, installs dependencies, and commits the result.

Key classes:
    Scaffolder            - End-to-end scaffolding orchestrator
    RemoteArchiveFetcher  - Template clone and filtered example extraction
    StepRunner            - Soft-fail execution of git / npm steps
    ScaffoldConfig        - Typed run configuration

Quick usage::

    import asyncio
    from snapp_cli import ScaffoldConfig, Scaffolder

    result = asyncio.run(Scaffolder(ScaffoldConfig()).scaffold("my-app"))
"""

from .config import ScaffoldConfig
from .errors import ScaffoldError
from .fetcher import (
    ArchiveStore,
    DestinationNotEmptyError,
    EmptyExtractionError,
    FetchError,
    RemoteArchiveFetcher,
    RemoteRef,
    RemoteRefError,
    example_filter,
)
from .naming import NameResolutionExhausted, find_unique_dir
from .scaffold import (
    MissingPrerequisiteTool,
    ScaffoldResult,
    ScaffoldState,
    Scaffolder,
    scaffold,
)
from .steps import StepExecutionError, StepResult, StepRunner
from .templater import FileIOError, kebab_case, replace_in_file, set_project_name, title_case

__all__ = [
    # Orchestration
    "Scaffolder",
    "ScaffoldResult",
    "ScaffoldState",
    "scaffold",
    # Configuration
    "ScaffoldConfig",
    # Fetching
    "ArchiveStore",
    "RemoteArchiveFetcher",
    "RemoteRef",
    "example_filter",
    # Naming & templating
    "find_unique_dir",
    "title_case",
    "kebab_case",
    "replace_in_file",
    "set_project_name",
    # Steps
    "StepRunner",
    "StepResult",
    # Errors
    "ScaffoldError",
    "NameResolutionExhausted",
    "DestinationNotEmptyError",
    "MissingPrerequisiteTool",
    "EmptyExtractionError",
    "FileIOError",
    "FetchError",
    "RemoteRefError",
    "StepExecutionError",
]
