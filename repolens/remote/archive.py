"""Size-bounded archive download and zip-slip safe extraction."""

from __future__ import annotations

import os
import re
import shutil
import tempfile
import threading
import time
import zipfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Iterator, List, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import HTTPRedirectHandler, Request, build_opener

from ..config import RemoteConfig
from ..errors import ArchiveError, ArchiveSafetyError, ArchiveTooLargeError, NetworkError, UsageError
from ..logging import get_logger
from .reference import RemoteReference

_CHUNK_SIZE = 64 * 1024
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")

Opener = Callable[[Request, float], Any]

logger = get_logger("remote.archive")


class _BoundedRedirectHandler(HTTPRedirectHandler):
    def __init__(self, max_redirects: int) -> None:
        super().__init__()
        self.max_redirections = max_redirects


class ArchiveFetcher:
    """Downloads one archive over a single streamed GET request."""

    def __init__(
        self,
        config: RemoteConfig | None = None,
        *,
        opener: Opener | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config or RemoteConfig()
        self.cancel_event = cancel_event or threading.Event()
        self._opener = opener or self._default_opener()

    def _default_opener(self) -> Opener:
        director = build_opener(_BoundedRedirectHandler(self.config.max_redirects))

        def _open(request: Request, timeout: float) -> Any:
            return director.open(request, timeout=timeout)

        return _open

    def cancel(self) -> None:
        self.cancel_event.set()

    def download(self, url: str, destination: Path) -> int:
        """Stream ``url`` into ``destination`` and return the number of bytes written.

        The byte limit is checked against ``Content-Length`` before reading and
        again after every chunk, so an oversized body is abandoned mid-stream.
        """
        limit = self.config.max_archive_bytes
        request = Request(url, headers={"User-Agent": self.config.user_agent}, method="GET")
        logger.info("Downloading archive %s", url)

        received = 0
        try:
            with self._opener(request, self.config.timeout) as response:
                status = getattr(response, "status", None) or 200
                if status >= 400:
                    raise NetworkError(f"Archive download failed with status {status}: {url}")
                declared = _content_length(response)
                if declared is not None and declared > limit:
                    raise ArchiveTooLargeError(
                        f"Archive is {declared} bytes, above the {limit} byte limit"
                    )
                destination.parent.mkdir(parents=True, exist_ok=True)
                with destination.open("wb") as handle:
                    while True:
                        if self.cancel_event.is_set():
                            raise NetworkError("Archive download was cancelled")
                        chunk = response.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        received += len(chunk)
                        if received > limit:
                            raise ArchiveTooLargeError(
                                f"Archive exceeded the {limit} byte limit while downloading"
                            )
                        handle.write(chunk)
        except HTTPError as exc:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Archive download failed with status {exc.code}: {exc.reason}") from exc
        except URLError as exc:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Archive download failed: {exc.reason}") from exc
        except NetworkError:
            destination.unlink(missing_ok=True)
            raise
        except OSError as exc:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Archive download failed: {exc}") from exc

        logger.debug("Downloaded %d bytes from %s", received, url)
        return received


def _content_length(response: Any) -> Optional[int]:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    raw = headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def safe_entry_parts(name: str) -> Tuple[str, ...]:
    """Path components of an archive entry, rejecting anything that could escape the target."""
    if not name:
        raise ArchiveSafetyError("Archive contains an entry with an empty name")
    if "\x00" in name:
        raise ArchiveSafetyError(f"Archive entry contains a NUL byte: {name!r}")
    normalised = name.replace("\\", "/")
    if normalised.startswith("/") or _DRIVE_PATTERN.match(normalised):
        raise ArchiveSafetyError(f"Archive entry has an absolute path: {name!r}")
    parts: List[str] = []
    for part in PurePosixPath(normalised).parts:
        if part == "..":
            raise ArchiveSafetyError(f"Archive entry escapes the extraction directory: {name!r}")
        if part in ("", "."):
            continue
        parts.append(part)
    return tuple(parts)


def _entry_mtime(info: zipfile.ZipInfo) -> Optional[float]:
    try:
        return time.mktime(info.date_time + (0, 0, -1))
    except (OverflowError, ValueError):
        return None


def extract_archive(
    zip_path: Path,
    destination: Path,
    *,
    max_extracted_bytes: int | None = None,
) -> Path:
    """Extract ``zip_path`` under ``destination`` and return the effective scan root.

    Every entry is validated before anything is written. A lone top-level
    directory is unwrapped and returned as the root.
    """
    limit = max_extracted_bytes if max_extracted_bytes is not None else RemoteConfig().max_extracted_bytes
    try:
        archive = zipfile.ZipFile(zip_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveError(f"Unable to read archive {zip_path.name}: {exc}") from exc

    with archive:
        planned: List[Tuple[zipfile.ZipInfo, Tuple[str, ...]]] = []
        declared_total = 0
        for info in archive.infolist():
            parts = safe_entry_parts(info.filename)
            if not parts:
                continue
            planned.append((info, parts))
            if not info.is_dir():
                declared_total += info.file_size
        if declared_total > limit:
            raise ArchiveError(
                f"Archive expands to {declared_total} bytes, above the {limit} byte limit"
            )

        destination.mkdir(parents=True, exist_ok=True)
        top_level = {parts[0] for _, parts in planned}
        try:
            _write_entries(archive, planned, destination, limit)
        except BaseException:
            for name in top_level:
                target = destination / name
                if target.is_dir():
                    shutil.rmtree(target, ignore_errors=True)
                else:
                    target.unlink(missing_ok=True)
            raise

    children = list(destination.iterdir())
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return destination


def _write_entries(
    archive: zipfile.ZipFile,
    planned: List[Tuple[zipfile.ZipInfo, Tuple[str, ...]]],
    destination: Path,
    limit: int,
) -> None:
    written = 0
    directories: List[Tuple[Path, Optional[float]]] = []
    for info, parts in planned:
        target = destination.joinpath(*parts)
        if info.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            directories.append((target, _entry_mtime(info)))
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with archive.open(info) as source, target.open("wb") as sink:
                for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
                    written += len(chunk)
                    if written > limit:
                        raise ArchiveError(f"Archive expanded beyond the {limit} byte limit")
                    sink.write(chunk)
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveError(f"Failed to extract {info.filename}: {exc}") from exc
        mtime = _entry_mtime(info)
        if mtime is not None:
            os.utime(target, (mtime, mtime))

    # Directory times last, since writing children updates them.
    for directory, mtime in reversed(directories):
        if mtime is not None:
            os.utime(directory, (mtime, mtime))


@contextmanager
def materialize_remote(
    reference: RemoteReference,
    config: RemoteConfig | None = None,
    *,
    fetcher: ArchiveFetcher | None = None,
) -> Iterator[Path]:
    """Download and extract ``reference`` into a temporary directory for the ``with`` block."""
    config = config or RemoteConfig()
    if reference.host != config.host.lower():
        raise UsageError(
            f"Host '{reference.host}' is not supported; archives are fetched from '{config.host}'"
        )
    fetcher = fetcher or ArchiveFetcher(config)
    with tempfile.TemporaryDirectory(prefix="repolens-") as workspace:
        workspace_path = Path(workspace)
        archive_path = workspace_path / "archive.zip"
        fetcher.download(reference.archive_url(config.archive_url_template), archive_path)
        root = extract_archive(
            archive_path,
            workspace_path / "tree",
            max_extracted_bytes=config.max_extracted_bytes,
        )
        archive_path.unlink(missing_ok=True)
        if reference.subdir:
            root = root.joinpath(*reference.subdir.split("/"))
            if not root.is_dir():
                raise UsageError(
                    f"Subdirectory '{reference.subdir}' not found in {reference.owner}/{reference.repo}"
                )
        logger.debug("Materialized %s at %s", reference.display, root)
        yield root


__all__ = [
    "ArchiveFetcher",
    "extract_archive",
    "materialize_remote",
    "safe_entry_parts",
]
