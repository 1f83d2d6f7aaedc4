"""Detector plugin implementations and the ordered registry that runs them."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from ..errors import DetectError
from ..logging import get_logger
from ..models import ModuleSpec, ScanContext
from ..report import GENERIC_PYTHON_APP, ModuleReport, PLACEHOLDER_UNKNOWN
from .base import Detector
from .components import ManifestComponentDetector, PackageJsonComponentDetector
from .mobile import AndroidDetector, FlutterDetector, IosDetector
from .node import FrontendVisDetector, PackageJsonDepsDetector, ViteDetector
from .python import (
    DJANGO,
    DJANGO_MIGRATIONS,
    DJANGO_ORM,
    AiFeatureDetector,
    DjangoDetector,
    MicroFrameworkDetector,
    OrmMigrationDetector,
    PythonDepsDetector,
)
from .rust import RustDetector

_ENTRY_POINT_GROUP = "repolens.detectors"

logger = get_logger("detectors")

# Order is precedence: earlier detectors claim fields first.
_BUILTIN_FACTORIES: tuple[tuple[str, Callable[[], Detector]], ...] = (
    ("DjangoDetector", DjangoDetector),
    ("PythonDepsDetector", PythonDepsDetector),
    ("MicroFrameworkDetector", MicroFrameworkDetector),
    ("OrmMigrationDetector", OrmMigrationDetector),
    ("AiFeatureDetector", AiFeatureDetector),
    ("RustDetector", RustDetector),
    ("FlutterDetector", FlutterDetector),
    ("AndroidDetector", AndroidDetector),
    ("IosDetector", IosDetector),
    ("ViteDetector", ViteDetector),
    ("PackageJsonDepsDetector", PackageJsonDepsDetector),
    ("FrontendVisDetector", FrontendVisDetector),
    ("PackageJsonComponentDetector", PackageJsonComponentDetector),
    ("ManifestComponentDetector", ManifestComponentDetector),
)


def build_detectors(enabled: Sequence[str] | None = None) -> List[Detector]:
    """Return instantiated detectors in precedence order, honoring optional enabled ids."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    detectors: List[Detector] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Detector]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Detector):
            raise TypeError(f"Detector factory for '{name}' did not return a Detector instance")
        if not instance.id:
            instance.id = name
        detectors.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES:
        _add(name, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - third-party plugin failure
            raise RuntimeError(f"Failed to load detector entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Detector:
            return _coerce_detector(obj)

        _add(entry.name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown detectors requested: {missing}")

    return detectors


def _coerce_detector(obj: object) -> Detector:
    if isinstance(obj, Detector):
        return obj
    if isinstance(obj, type) and issubclass(obj, Detector):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Detector):
            return instance
    raise TypeError("Detector entry point must be a Detector subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


def run_detectors(
    detectors: Sequence[Detector],
    ctx: ScanContext,
    module: ModuleSpec,
    report: ModuleReport,
) -> None:
    """Run ``detectors`` in order; a failing detector becomes a module warning."""
    for detector in detectors:
        try:
            detector.detect(ctx, module, report)
        except DetectError as exc:
            logger.debug("Detector %s failed for %s: %s", detector.id, module.rel_path, exc)
            report.add_warning(f"{detector.id}: {exc}")


def finalize_module_report(report: ModuleReport) -> None:
    """Apply wrap-up rules once every detector has run."""
    backend = report.backend
    if backend is not None:
        if backend.framework == DJANGO:
            backend.orm = DJANGO_ORM
            backend.migrations = DJANGO_MIGRATIONS
        if backend.framework == PLACEHOLDER_UNKNOWN and backend.has_signals():
            backend.framework = GENERIC_PYTHON_APP
        if backend.orm:
            report.add_dep(backend.orm)
        if backend.migrations:
            report.add_dep(backend.migrations)
        for feature in backend.ai_features:
            report.add_dep(feature)
    frontend = report.frontend
    if frontend is not None:
        for library in frontend.visualization:
            report.add_dep(library)

    report.frameworks = sorted(set(report.frameworks))
    report.deps = sorted(set(report.deps))


__all__ = [
    "Detector",
    "build_detectors",
    "finalize_module_report",
    "run_detectors",
]
