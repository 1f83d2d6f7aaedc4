"""Monorepo topology resolution from directory-naming conventions."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from .logging import get_logger
from .models import ModuleKind, ModuleSpec

logger = get_logger("topology")

_Candidate = Tuple[str, str, ModuleKind]


def _candidates(root: Path) -> List[_Candidate]:
    """Apply the layout conventions in fixed precedence; first match wins."""
    if (root / "src-tauri").is_dir():
        frontend_path = "/src" if (root / "src").is_dir() else "/"
        return [
            ("Tauri Core", "/src-tauri", ModuleKind.BACKEND),
            ("Frontend", frontend_path, ModuleKind.FRONTEND),
        ]

    if (root / "pubspec.yaml").is_file() and (
        (root / "lib").is_dir() or (root / "lib" / "main.dart").is_file()
    ):
        return [("Flutter App", "/", ModuleKind.FRONTEND)]

    found: List[_Candidate] = []
    if (root / "backend").is_dir():
        found.append(("Backend", "/backend", ModuleKind.BACKEND))
    if (root / "frontend").is_dir():
        found.append(("Frontend", "/frontend", ModuleKind.FRONTEND))
    if found:
        return found

    if (root / "server").is_dir():
        found.append(("Backend", "/server", ModuleKind.BACKEND))
    if (root / "client").is_dir():
        found.append(("Frontend", "/client", ModuleKind.FRONTEND))
    if found:
        return found

    if (root / "apps").is_dir() and (root / "web").is_dir():
        return [
            ("Apps", "/apps", ModuleKind.UNKNOWN),
            ("Frontend", "/web", ModuleKind.FRONTEND),
        ]
    if (root / "apps" / "web").is_dir():
        return [("Frontend", "/apps/web", ModuleKind.FRONTEND)]

    return [("Repo", "/", ModuleKind.UNKNOWN)]


def _abs_path(root: Path, rel_path: str) -> Path:
    return root if rel_path == "/" else root / rel_path.lstrip("/")


def resolve_modules(root: Path) -> List[ModuleSpec]:
    """Partition ``root`` into modules.

    A module whose path contains another module's path excludes that subtree,
    so every file is attributed to at most one module.
    """
    candidates = _candidates(root)
    paths = [_abs_path(root, rel_path) for _, rel_path, _ in candidates]

    modules: List[ModuleSpec] = []
    for (name, rel_path, kind), abs_path in zip(candidates, paths):
        excluded = tuple(
            other
            for other in paths
            if other != abs_path and _is_ancestor(abs_path, other)
        )
        modules.append(
            ModuleSpec(
                name=name,
                rel_path=rel_path,
                abs_path=abs_path,
                kind=kind,
                excluded=excluded,
            )
        )

    logger.debug(
        "Resolved modules: %s",
        ", ".join(f"{module.name}={module.rel_path}" for module in modules),
    )
    return modules


def _is_ancestor(parent: Path, child: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True


__all__ = ["resolve_modules"]
