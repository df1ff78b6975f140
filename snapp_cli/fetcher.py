"""Remote repository archive fetching and extraction.

Remote references are degit-style strings such as
``github:o1-labs/snapp-cli/templates/project-ts#main``. The fetcher
downloads the repository tarball for a reference once, keeps it in a
content-addressed local store, and materializes it in one of two ways:

* :meth:`RemoteArchiveFetcher.clone`: the whole reference (or its
  subdirectory) becomes a new project tree.
* :meth:`RemoteArchiveFetcher.extract`: only members matching a path
  predicate are written, keeping their repo-relative layout.

Both operations are safe to retry and never leave a half-written directory
behind that looks complete: failures surface as typed errors.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import os
import re
import shutil
import tarfile
import tempfile
from collections.abc import Callable
from pathlib import Path, PurePosixPath

import httpx
from pydantic import BaseModel, Field

from .errors import ScaffoldError
from .utils import print_warning

PathPredicate = Callable[[str], bool]

# Tarball URL templates per hosting site.
ARCHIVE_URLS: dict[str, str] = {
    "github": "https://codeload.github.com/{owner}/{repo}/tar.gz/{ref}",
    "gitlab": "https://gitlab.com/{owner}/{repo}/-/archive/{ref}/{repo}-{ref}.tar.gz",
    "bitbucket": "https://bitbucket.org/{owner}/{repo}/get/{ref}.tar.gz",
}

_HOST_SITES: dict[str, str] = {
    "github.com": "github",
    "gitlab.com": "gitlab",
    "bitbucket.org": "bitbucket",
}

_REF_PATTERN = re.compile(
    r"^(?:(?:https://)?(?P<host>[^:/\s]+\.[^:/\s]+)/|(?P<site>[a-z]+):)?"
    r"(?P<owner>[^/\s#]+)/(?P<repo>[^/\s#]+)"
    r"(?P<subdir>(?:/[^/\s#]+)*)/?"
    r"(?:#(?P<ref>\S+))?$"
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RemoteRefError(ScaffoldError):
    """Raised when a remote reference string cannot be parsed."""


class FetchError(ScaffoldError):
    """Raised when an archive cannot be downloaded, read, or written out."""


class DestinationNotEmptyError(ScaffoldError):
    """Raised when a clone target already contains files."""


class EmptyExtractionError(ScaffoldError):
    """Raised when a filtered extraction matches nothing in the archive."""


# ---------------------------------------------------------------------------
# Remote references
# ---------------------------------------------------------------------------


class RemoteRef(BaseModel):
    """A parsed remote repository reference."""

    site: str = Field(default="github")
    owner: str
    repo: str
    subdir: str = Field(default="", description="Repo-relative subdirectory, no slashes at the ends")
    ref: str = Field(default="HEAD", description="Branch, tag, or commit")

    @classmethod
    def parse(cls, src: str) -> "RemoteRef":
        """Parse ``[site:]owner/repo[/sub/dir][#ref]`` or an https URL.

        Raises:
            RemoteRefError: If *src* is malformed or names an unsupported site.
        """
        match = _REF_PATTERN.match(src.strip())
        if not match:
            raise RemoteRefError(f"Could not parse remote reference: {src!r}")

        if match.group("host"):
            site = _HOST_SITES.get(match.group("host"))
        else:
            site = match.group("site") or "github"
        if site not in ARCHIVE_URLS:
            raise RemoteRefError(f"Unsupported site in remote reference: {src!r}")

        repo = match.group("repo")
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]

        return cls(
            site=site,
            owner=match.group("owner"),
            repo=repo,
            subdir=(match.group("subdir") or "").strip("/"),
            ref=match.group("ref") or "HEAD",
        )

    @property
    def archive_url(self) -> str:
        """URL of the gzipped tarball for this reference."""
        return ARCHIVE_URLS[self.site].format(owner=self.owner, repo=self.repo, ref=self.ref)

    @property
    def cache_key(self) -> str:
        """Key identifying the archive (the subdirectory does not matter)."""
        return f"{self.site}/{self.owner}/{self.repo}#{self.ref}"

    def __str__(self) -> str:
        path = f"{self.owner}/{self.repo}"
        if self.subdir:
            path += f"/{self.subdir}"
        return f"{self.site}:{path}#{self.ref}"


def _as_ref(ref: RemoteRef | str) -> RemoteRef:
    return ref if isinstance(ref, RemoteRef) else RemoteRef.parse(ref)


def example_filter(example: str, lang: str) -> PathPredicate:
    """Predicate selecting ``examples/<example>/<lang>/src`` and everything below it."""
    prefix = f"examples/{example}/{lang}/src"

    def _matches(path: str) -> bool:
        return path == prefix or path.startswith(prefix + "/")

    return _matches


# ---------------------------------------------------------------------------
# Content-addressed archive store
# ---------------------------------------------------------------------------


class ArchiveStore:
    """Local cache of downloaded tarballs.

    Archives are stored as ``archives/<sha256>.tar.gz``; ``index.json`` maps
    each reference's :attr:`RemoteRef.cache_key` to its digest. Writes go
    through a temporary file and ``os.replace`` so a crash never leaves a
    truncated archive under its final name.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.archives_dir = self.root / "archives"
        self.index_path = self.root / "index.json"

    def _load_index(self) -> dict[str, str]:
        if not self.index_path.exists():
            return {}
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            # Corrupt index, treat as empty.
            return {}
        return data if isinstance(data, dict) else {}

    def lookup(self, ref: RemoteRef) -> Path | None:
        """Return the cached archive for *ref*, or ``None`` if absent."""
        digest = self._load_index().get(ref.cache_key)
        if not digest:
            return None
        path = self.archives_dir / f"{digest}.tar.gz"
        return path if path.is_file() else None

    def put(self, ref: RemoteRef, data: bytes) -> Path:
        """Store *data* as the archive for *ref* and return its path."""
        digest = hashlib.sha256(data).hexdigest()
        self.archives_dir.mkdir(parents=True, exist_ok=True)

        path = self.archives_dir / f"{digest}.tar.gz"
        if not path.exists():
            _atomic_write(path, data)

        index = self._load_index()
        index[ref.cache_key] = digest
        _atomic_write(self.index_path, json.dumps(index, indent=2, sort_keys=True).encode("utf-8"))
        return path


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class RemoteArchiveFetcher:
    """Fetches remote references into an :class:`ArchiveStore` and extracts them.

    Args:
        store: Local archive cache.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        use_cache: Reuse a cached archive without touching the network.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        store: ArchiveStore,
        transport: httpx.AsyncBaseTransport | None = None,
        use_cache: bool = True,
        timeout: float = 60.0,
    ) -> None:
        self.store = store
        self.transport = transport
        self.use_cache = use_cache
        self.timeout = timeout

    # -- Download ----------------------------------------------------------

    async def _download(self, remote: RemoteRef) -> bytes:
        url = remote.archive_url
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                follow_redirects=True,
            ) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise FetchError(
                            f"Download failed with HTTP {response.status_code}: {url}"
                        )
                    data = bytearray()
                    async for chunk in response.aiter_bytes():
                        data.extend(chunk)
        except httpx.HTTPError as exc:
            raise FetchError(f"Could not download {url}: {exc}") from exc
        return bytes(data)

    async def fetch(self, ref: RemoteRef | str) -> Path:
        """Make the archive for *ref* available locally and return its path.

        A cached archive is used directly when ``use_cache`` is set. If a
        download fails and an older copy is cached, the cached copy is used
        whatever ``use_cache`` says.

        Raises:
            FetchError: If the archive is neither downloadable nor cached, or
                the download cannot be written to the store.
        """
        remote = _as_ref(ref)
        cached = self.store.lookup(remote)
        if cached is not None and self.use_cache:
            return cached

        try:
            data = await self._download(remote)
        except FetchError as exc:
            if cached is None:
                raise
            print_warning(f"{exc}; using cached copy of {remote.cache_key}")
            return cached

        try:
            return await asyncio.to_thread(self.store.put, remote, data)
        except OSError as exc:
            raise FetchError(
                f"Could not cache archive in {self.store.root}: {exc}", path=str(self.store.root)
            ) from exc

    # -- Materialization ---------------------------------------------------

    async def clone(
        self, ref: RemoteRef | str, dest: str | Path, force: bool = False
    ) -> list[str]:
        """Materialize the full reference into *dest*.

        The archive's root folder is stripped, and when the reference names a
        subdirectory only that subdirectory is written (as the new root).

        Returns:
            Relative paths written under *dest*.

        Raises:
            DestinationNotEmptyError: If *dest* has content and *force* is false.
            FetchError: If the archive cannot be fetched or has nothing at the
                reference's subdirectory.
        """
        remote = _as_ref(ref)
        dest = Path(dest)
        if not force and _has_content(dest):
            raise DestinationNotEmptyError(
                f"Destination directory is not empty: {dest}", path=str(dest)
            )

        archive = await self.fetch(remote)
        prefix = remote.subdir

        def _select(path: str) -> str | None:
            if not prefix:
                return path
            if path.startswith(prefix + "/"):
                return path[len(prefix) + 1 :]
            return None

        written = await asyncio.to_thread(_extract_archive, archive, dest, _select)
        if not written:
            raise FetchError(f"Nothing to clone at '{prefix or '/'}' in {remote}")
        return written

    async def extract(
        self, ref: RemoteRef | str, dest: str | Path, predicate: PathPredicate
    ) -> list[str]:
        """Extract only members whose repo-relative path satisfies *predicate*.

        Matched paths keep their structure relative to the repository root,
        rooted at *dest*. Existing files in *dest* are overwritten.

        Raises:
            EmptyExtractionError: If *predicate* matches nothing; *dest* is
                left untouched.
            FetchError: If the archive cannot be fetched or read.
        """
        remote = _as_ref(ref)
        dest = Path(dest)
        archive = await self.fetch(remote)

        def _select(path: str) -> str | None:
            return path if predicate(path) else None

        written = await asyncio.to_thread(_extract_archive, archive, dest, _select)
        if not written:
            raise EmptyExtractionError(f"No matching paths in {remote}", path=str(dest))
        return written


# ---------------------------------------------------------------------------
# Archive helpers
# ---------------------------------------------------------------------------


def _has_content(path: Path) -> bool:
    if not path.exists():
        return False
    if not path.is_dir():
        return True
    return any(path.iterdir())


def _plan(
    members: list[tarfile.TarInfo], select: Callable[[str], str | None]
) -> list[tuple[str, tarfile.TarInfo]]:
    """Map archive members to destination-relative paths.

    The archive's single root folder (``<repo>-<sha>/``) is stripped before
    *select* sees a path. Only regular files and directories are kept.
    """
    plan: list[tuple[str, tarfile.TarInfo]] = []
    for member in members:
        parts = member.name.split("/", 1)
        if len(parts) < 2 or not parts[1].strip("/"):
            continue
        target = select(parts[1].rstrip("/"))
        if not target:
            continue

        pure = PurePosixPath(target)
        if pure.is_absolute() or ".." in pure.parts:
            raise FetchError(f"Unsafe path in archive: {member.name}")
        if not (member.isdir() or member.isreg()):
            continue
        plan.append((target, member))
    return plan


def _extract_archive(
    archive: Path, dest: Path, select: Callable[[str], str | None]
) -> list[str]:
    """Write the selected members of *archive* under *dest*.

    *dest* is only created once at least one member is selected; if writing
    fails part-way, a *dest* created here is removed again.
    """
    try:
        with tarfile.open(archive, "r:*") as tar:
            plan = _plan(tar.getmembers(), select)
            if not plan:
                return []

            created = not dest.exists()
            try:
                dest.mkdir(parents=True, exist_ok=True)
                for rel, member in plan:
                    target = dest / rel
                    if member.isdir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    source = tar.extractfile(member)
                    if source is None:
                        continue
                    with source, open(target, "wb") as fh:
                        shutil.copyfileobj(source, fh)
                    target.chmod((member.mode & 0o777) | 0o600)
            except Exception:
                if created:
                    shutil.rmtree(dest, ignore_errors=True)
                raise
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise FetchError(f"Could not extract {archive.name}: {exc}") from exc

    return [rel for rel, _ in plan]
