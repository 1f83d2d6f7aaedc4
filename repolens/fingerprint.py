"""Content-independent fingerprints used as result-cache keys."""

from __future__ import annotations

import hashlib
import json
import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import ScanConfig
from .logging import get_logger

FINGERPRINT_VERSION = 1

MANIFEST_FILES: tuple[str, ...] = (
    "package.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "package-lock.json",
    "bun.lockb",
    "bun.lock",
    "requirements.txt",
    "pyproject.toml",
    "Pipfile",
    "Pipfile.lock",
    "poetry.lock",
    "manage.py",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "go.mod",
    "Gemfile",
    "Gemfile.lock",
    "Cargo.toml",
    "Cargo.lock",
    "tauri.conf.json",
    "pubspec.yaml",
    "vite.config.ts",
    "vite.config.js",
    "Dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    ".gitmodules",
    ".gitignore",
    "prisma/schema.prisma",
)

# Conventional module directories whose manifests also feed the fingerprint.
MODULE_PREFIXES: tuple[str, ...] = (
    "",
    "backend/",
    "frontend/",
    "server/",
    "client/",
    "src-tauri/",
    "src/",
    "apps/",
    "web/",
    "apps/web/",
)

GitRunner = Callable[[Sequence[str], Path], Optional[str]]

logger = get_logger("fingerprint")


def _default_git_runner(args: Sequence[str], cwd: Path) -> Optional[str]:
    try:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git invocation failed in %s: %s", cwd, exc)
        return None
    return completed.stdout


def read_git_head(root: Path, runner: GitRunner | None = None) -> Optional[str]:
    """Resolved ``HEAD`` revision when ``root`` is a git work tree."""
    if not (root / ".git").exists():
        return None
    output = (runner or _default_git_runner)(["git", "-C", str(root), "rev-parse", "HEAD"], root)
    if not output:
        return None
    revision = output.strip()
    return revision or None


def manifest_stats(root: Path, candidates: Iterable[str] | None = None) -> Dict[str, List[int]]:
    """``relative path -> [size, mtime_ns]`` for every manifest that exists."""
    if candidates is None:
        candidates = [prefix + name for prefix in MODULE_PREFIXES for name in MANIFEST_FILES]
    stats: Dict[str, List[int]] = {}
    for rel_path in candidates:
        path = root / rel_path
        try:
            stat_result = path.stat()
        except OSError:
            continue
        if not path.is_file():
            continue
        stats[rel_path] = [stat_result.st_size, stat_result.st_mtime_ns]
    return stats


def build_scan_fingerprint(
    input_kind: str,
    identity: str,
    root: Path,
    config: ScanConfig,
    *,
    git_runner: GitRunner | None = None,
) -> str:
    """Digest of the input identity, VCS revision, scan settings and manifest stats.

    File contents are never hashed.
    """
    payload = {
        "version": FINGERPRINT_VERSION,
        "kind": input_kind,
        "identity": identity,
        "head": read_git_head(root, git_runner),
        "config": config.signature(),
        "files": manifest_stats(root),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


__all__ = [
    "MANIFEST_FILES",
    "MODULE_PREFIXES",
    "build_scan_fingerprint",
    "manifest_stats",
    "read_git_head",
]
