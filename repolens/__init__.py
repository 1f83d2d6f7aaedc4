"""Signal-based repository analysis: topology, language mix, tech stack and dependency graph."""

from __future__ import annotations

from pathlib import Path

from .config import RepoLensConfig, load_config
from .errors import (
    ArchiveError,
    ArchiveSafetyError,
    ArchiveTooLargeError,
    NetworkError,
    RepoLensError,
    ScanError,
    UsageError,
)
from .report import SemanticReport, schema_as_json, write_report_json
from .scanner import Scanner

__version__ = "0.1.0"


def scan(root: Path | str, config: RepoLensConfig | None = None) -> SemanticReport:
    """Scan a local directory tree."""
    return Scanner(config).scan(root)


def scan_remote(reference: str, config: RepoLensConfig | None = None) -> SemanticReport:
    """Download a remote repository archive and scan it."""
    return Scanner(config).scan_remote(reference)


def schema() -> str:
    """JSON Schema of :class:`SemanticReport`."""
    return schema_as_json()


__all__ = [
    "ArchiveError",
    "ArchiveSafetyError",
    "ArchiveTooLargeError",
    "NetworkError",
    "RepoLensConfig",
    "RepoLensError",
    "ScanError",
    "Scanner",
    "SemanticReport",
    "UsageError",
    "load_config",
    "scan",
    "scan_remote",
    "schema",
    "write_report_json",
]
