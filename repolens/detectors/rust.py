"""Rust backend detection from Cargo manifests."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from ..models import ModuleSpec, ScanContext
from ..report import ModuleReport, PLACEHOLDER_NONE
from .base import Detector, with_parent_fallback
from .manifests import load_cargo_dependencies

_FRAMEWORKS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("actix-web",), "Actix Web"),
    (("axum",), "Axum"),
    (("rocket",), "Rocket"),
)
_ORMS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("diesel",), "Diesel"),
    (("sea-orm",), "SeaORM"),
    (("sqlx",), "SQLx"),
)
_DATABASES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("postgres", "tokio-postgres"), "PostgreSQL"),
    (("mysql", "mysql_async"), "MySQL"),
    (("rusqlite",), "SQLite"),
)


def _first_match(
    deps: Sequence[str], table: Tuple[Tuple[Tuple[str, ...], str], ...]
) -> Optional[str]:
    for names, label in table:
        if any(name in deps for name in names):
            return label
    return None


class RustDetector(Detector):
    """Tauri, Actix Web, Axum or Rocket backends and their database crates.

    A ``src-tauri`` module without its own manifest falls back to the
    workspace ``Cargo.toml`` one level up.
    """

    id = "RustDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_backend:
            return
        cargo = with_parent_fallback(module, "Cargo.toml", "src-tauri")
        if not cargo.exists():
            return

        declared = load_cargo_dependencies(cargo, ctx.config.max_config_bytes) or {}
        for name, version in declared.items():
            report.declare_dependency(name, version)
        deps = list(declared)

        backend = report.ensure_backend()
        if backend.framework_is_placeholder():
            if "tauri" in deps or (module.abs_path / "tauri.conf.json").exists():
                framework: Optional[str] = "Tauri"
            else:
                framework = _first_match(deps, _FRAMEWORKS)
            if framework is not None:
                backend.framework = framework
                report.add_framework(framework)

        if backend.orm is None:
            backend.orm = _first_match(deps, _ORMS)

        if backend.db == PLACEHOLDER_NONE:
            database = _first_match(deps, _DATABASES)
            if database is not None:
                backend.db = database
                report.add_dep(database)


__all__ = ["RustDetector"]
