"""Best-effort directory traversal honouring ignore conventions."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from .config import ScanConfig
from .logging import get_logger
from .models import FileEntry

_VCS_DIRS = {".git", ".hg", ".svn"}

logger = get_logger("walker")


@dataclass
class IgnoreRule:
    """Represents a single rule parsed from a .gitignore file."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in rel_path.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern.rstrip("/")

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern.lstrip("/")

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def parse_gitignore(path: Path) -> List[IgnoreRule]:
    """Parse ``path`` into ignore rules; an unreadable file yields no rules."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []

    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def iter_files(
    root: Path,
    repo_root: Path,
    config: ScanConfig,
    *,
    excluded: Iterable[Path] = (),
    rules: Sequence[IgnoreRule] | None = None,
) -> Iterator[FileEntry]:
    """Yield every regular file under ``root`` with paths relative to ``repo_root``.

    Unreadable directories and files whose ``stat`` fails are skipped and
    therefore absent from every count.
    """
    if rules is None:
        rules = parse_gitignore(repo_root / ".gitignore") if config.respect_gitignore else []
    ignore_dirs = {name.lower() for name in config.ignore_dirs}
    excluded_paths = {Path(path) for path in excluded}

    def _on_error(exc: OSError) -> None:
        logger.debug("Skipping unreadable path %s: %s", exc.filename, exc.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        current_dir = Path(dirpath)
        rel_dir = _relative(current_dir, repo_root)

        kept: List[str] = []
        for name in dirnames:
            if name in _VCS_DIRS or name.lower() in ignore_dirs:
                continue
            if current_dir / name in excluded_paths:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if rules and should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = sorted(kept)

        for filename in sorted(filenames):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if rules and should_ignore(rel_path, False, rules):
                continue
            abs_path = current_dir / filename
            try:
                if abs_path.is_symlink() or not abs_path.is_file():
                    continue
                size = abs_path.stat().st_size
            except OSError:
                continue
            yield FileEntry(rel_path=rel_path, abs_path=abs_path, size=size)


def list_files(
    root: Path,
    repo_root: Path,
    config: ScanConfig,
    *,
    excluded: Iterable[Path] = (),
) -> List[FileEntry]:
    return list(iter_files(root, repo_root, config, excluded=excluded))


def _relative(path: Path, repo_root: Path) -> str:
    if path == repo_root:
        return ""
    try:
        return path.relative_to(repo_root).as_posix()
    except ValueError:
        return path.as_posix()


__all__ = [
    "IgnoreRule",
    "build_ignore_rule",
    "iter_files",
    "list_files",
    "parse_gitignore",
    "should_ignore",
]
