"""Core data models shared across repolens components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .config import ScanConfig


@dataclass(frozen=True)
class FileEntry:
    """A regular file discovered by the walker."""

    rel_path: str
    abs_path: Path
    size: int


@dataclass(frozen=True)
class Classification:
    """Exactly one category assigned to a file."""

    kind: str
    reason: Optional[str] = None
    language: Optional[str] = None

    IGNORED = "ignored"
    GENERATED = "generated"
    ASSET = "asset"
    CODE = "code"

    @classmethod
    def ignored(cls, reason: str) -> "Classification":
        return cls(kind=cls.IGNORED, reason=reason)

    @classmethod
    def generated(cls) -> "Classification":
        return cls(kind=cls.GENERATED)

    @classmethod
    def asset(cls) -> "Classification":
        return cls(kind=cls.ASSET)

    @classmethod
    def code(cls, language: str) -> "Classification":
        return cls(kind=cls.CODE, language=language)


class ModuleKind(str, Enum):
    """Coarse role of a resolved module."""

    BACKEND = "Backend"
    FRONTEND = "Frontend"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ModuleSpec:
    """A resolved subtree of the repository treated as one analysis unit."""

    name: str
    rel_path: str
    abs_path: Path
    kind: ModuleKind
    excluded: Tuple[Path, ...] = field(default_factory=tuple)

    @property
    def is_backend(self) -> bool:
        return self.kind is ModuleKind.BACKEND

    @property
    def is_frontend(self) -> bool:
        return self.kind is ModuleKind.FRONTEND


@dataclass(frozen=True)
class ScanContext:
    """Repository-wide state handed to every detector."""

    root: Path
    config: ScanConfig = field(default_factory=ScanConfig)


__all__ = ["Classification", "FileEntry", "ModuleKind", "ModuleSpec", "ScanContext"]
