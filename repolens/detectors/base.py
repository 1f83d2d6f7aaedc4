"""Base classes and file helpers for detector plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from ..errors import DetectIOError, DetectParseError
from ..models import ModuleSpec, ScanContext
from ..report import ModuleReport


class Detector(ABC):
    """Contract for detectors that contribute facts to a module report.

    Detectors run sequentially per module; a later detector may only replace
    placeholder values left by earlier ones. Raising ``DetectError`` records a
    module warning and lets the next detector run.
    """

    id: str = ""

    @abstractmethod
    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        """Inspect files under ``module`` and update ``report`` in place."""


def read_text_with_limit(path: Path, max_bytes: int) -> Optional[str]:
    """Return the decoded text of ``path``, or ``None`` when it does not exist.

    Raises ``DetectParseError`` when the file exceeds ``max_bytes`` and
    ``DetectIOError`` when it cannot be read.
    """
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise DetectIOError(f"{path.name}: read failed: {exc.strerror or exc}") from exc
    if size > max_bytes:
        raise DetectParseError(f"{path.name}: file too large ({size} bytes), skipped")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DetectIOError(f"{path.name}: read failed: {exc.strerror or exc}") from exc
    return data.decode("utf-8", errors="replace")


def read_first_lines(path: Path, max_bytes: int, max_lines: int) -> Optional[str]:
    text = read_text_with_limit(path, max_bytes)
    if text is None:
        return None
    return "\n".join(text.splitlines()[:max_lines])


def first_existing(candidates: Sequence[Path]) -> Optional[Path]:
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def with_parent_fallback(module: ModuleSpec, filename: str, parent_dir_name: str) -> Path:
    """``filename`` in the module, or in its parent when the module directory is
    named ``parent_dir_name`` and only the parent has it."""
    primary = module.abs_path / filename
    if primary.exists() or module.abs_path.name.lower() != parent_dir_name:
        return primary
    alternative = module.abs_path.parent / filename
    return alternative if alternative.exists() else primary


__all__ = [
    "Detector",
    "first_existing",
    "read_first_lines",
    "read_text_with_limit",
    "with_parent_fallback",
]
