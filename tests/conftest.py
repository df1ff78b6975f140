"""Shared pytest fixtures for the snapp scaffolder test suite.

Provides reusable fixtures for:
- In-memory repository tarballs shaped like GitHub archive downloads
- An ``httpx.MockTransport`` serving those tarballs
- A ``ScaffoldConfig`` rooted in a temporary directory
- Mock subprocess helpers
"""

from __future__ import annotations

import io
import tarfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from snapp_cli.config import ScaffoldConfig

REPO_URL = "https://codeload.github.com/o1-labs/snapp-cli/tar.gz/main"

TEMPLATE_FILES: dict[str, str] = {
    "templates/project-ts/README.md": "# PROJECT_NAME\n\nBuilt with PROJECT_NAME tooling.\n",
    "templates/project-ts/package.json": (
        '{\n  "name": "package-name",\n  "version": "0.1.0"\n}\n'
    ),
    "templates/project-ts/.gitignore": "node_modules\n",
    "templates/project-ts/src/index.ts": "export const placeholder = true;\n",
    "templates/project-ts/src/index.test.ts": "test('placeholder', () => {});\n",
}

EXAMPLE_FILES: dict[str, str] = {
    "examples/sudoku/js/src/index.js": "export { Sudoku } from './sudoku.js';\n",
    "examples/sudoku/js/src/sudoku.js": "export class Sudoku {}\n",
    "examples/sudoku/js/src/lib/board.js": "export const SIZE = 9;\n",
    "examples/sudoku/ts/src/sudoku.ts": "export class Sudoku {}\n",
    "examples/tictactoe/ts/src/tictactoe.ts": "export class TicTacToe {}\n",
}


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------


def build_tarball(files: dict[str, str | bytes], root: str = "snapp-cli-0123abc") -> bytes:
    """Build a gzipped tarball with every file nested under a single *root* folder.

    Directory entries are emitted for each parent, like ``git archive`` does.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        root_info = tarfile.TarInfo(root)
        root_info.type = tarfile.DIRTYPE
        root_info.mode = 0o755
        tar.addfile(root_info)

        seen_dirs: set[str] = set()
        for rel, content in files.items():
            parts = rel.split("/")
            for i in range(1, len(parts)):
                directory = "/".join(parts[:i])
                if directory not in seen_dirs:
                    seen_dirs.add(directory)
                    info = tarfile.TarInfo(f"{root}/{directory}")
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                    tar.addfile(info)

            data = content.encode("utf-8") if isinstance(content, str) else content
            info = tarfile.TarInfo(f"{root}/{rel}")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def repo_tarball() -> bytes:
    """Tarball of a repo holding both the project template and the examples."""
    return build_tarball({**TEMPLATE_FILES, **EXAMPLE_FILES})


@pytest.fixture
def make_transport() -> Callable[..., httpx.MockTransport]:
    """Factory for an ``httpx.MockTransport`` serving tarballs by URL.

    Unknown URLs get a 404. Every request is appended to ``transport.requests``.

    Usage:
        transport = make_transport({REPO_URL: data})
        transport = make_transport(error=httpx.ConnectError("offline"))
    """

    def factory(
        routes: dict[str, bytes] | None = None,
        error: Exception | None = None,
    ) -> httpx.MockTransport:
        routes = routes or {}
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if error is not None:
                raise error
            body = routes.get(str(request.url))
            if body is None:
                return httpx.Response(404, content=b"Not Found")
            return httpx.Response(200, content=body)

        transport = httpx.MockTransport(handler)
        transport.requests = requests  # type: ignore[attr-defined]
        return transport

    return factory


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Directory that project names are resolved against."""
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def scaffold_config(tmp_path: Path, work_dir: Path) -> ScaffoldConfig:
    """Configuration with cache and project directories under ``tmp_path``."""
    return ScaffoldConfig(
        base_dir=work_dir,
        cache_dir=tmp_path / "cache",
    )


# ---------------------------------------------------------------------------
# Subprocess mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory


@pytest.fixture
def repo_url() -> str:
    """Archive URL the default template and examples references resolve to."""
    return REPO_URL


@pytest.fixture
def tarball_factory() -> Callable[..., bytes]:
    """Expose :func:`build_tarball` to tests that need custom archives."""
    return build_tarball
