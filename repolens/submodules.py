"""Technology detection inside the git submodules listed in ``.gitmodules``."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .detectors import Detector, run_detectors
from .detectors.base import read_text_with_limit
from .detectors.components import (
    ManifestComponentDetector,
    PackageJsonComponentDetector,
    package_aliases,
)
from .detectors.manifests import parse_gitmodules
from .errors import DetectError
from .graph import build_dependency_graph, namespace_graph, normalize_components
from .logging import get_logger
from .models import ModuleKind, ModuleSpec, ScanContext
from .report import GitSubmodule, ModuleReport, TechComponent, TechGraph

COMPONENT_DETECTORS = (PackageJsonComponentDetector, ManifestComponentDetector)

MISSING_WARNING = "directory missing or inaccessible"
OUTSIDE_ROOT_WARNING = "path points outside the repository"

logger = get_logger("submodules")


@dataclass
class SubmoduleScan:
    """Submodule records plus the components and graphs detected inside them."""

    submodules: List[GitSubmodule] = field(default_factory=list)
    components: List[TechComponent] = field(default_factory=list)
    graphs: List[TechGraph] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _submodule_root(root: Path, rel_path: str) -> Optional[Path]:
    target = (root / rel_path).resolve()
    if root not in target.parents:
        return None
    return target


def _prefixed(component: TechComponent, path: str) -> TechComponent:
    evidence = [f"submodule {path}: {item}" for item in component.evidence]
    return component.model_copy(update={"evidence": evidence})


def scan_submodules(ctx: ScanContext, detectors: Sequence[Detector]) -> SubmoduleScan:
    """Run the component detectors over every checked-out submodule.

    Evidence is prefixed with ``submodule <path>:`` and graph ids are written
    as ``<path>::<id>`` so neither collides with the host repository's own.
    A submodule that is not checked out stays ``scanned=False`` with a warning.
    """
    result = SubmoduleScan()
    try:
        text = read_text_with_limit(ctx.root / ".gitmodules", ctx.config.max_config_bytes)
    except DetectError as exc:
        result.warnings.append(f".gitmodules: {exc}")
        return result
    if text is None:
        return result

    component_detectors = [
        detector for detector in detectors if isinstance(detector, COMPONENT_DETECTORS)
    ]
    for submodule in parse_gitmodules(text):
        path = submodule.path.strip().strip("/")
        target = _submodule_root(ctx.root, path)
        if target is None:
            result.submodules.append(
                submodule.model_copy(update={"scan_warning": OUTSIDE_ROOT_WARNING})
            )
            continue
        if not target.is_dir():
            result.submodules.append(submodule.model_copy(update={"scan_warning": MISSING_WARNING}))
            continue

        module = ModuleSpec(
            name=f"Submodule {path}",
            rel_path=f"/{path}",
            abs_path=target,
            kind=ModuleKind.UNKNOWN,
        )
        report = ModuleReport(name=module.name, path=module.rel_path)
        run_detectors(component_detectors, ctx, module, report)

        components = normalize_components(report.components)
        graph = build_dependency_graph(components, report.declared_dependencies, package_aliases())
        result.components.extend(_prefixed(component, path) for component in components)
        result.graphs.append(namespace_graph(graph, path))
        result.submodules.append(
            submodule.model_copy(
                update={"scanned": True, "scan_warning": "; ".join(report.warnings) or None}
            )
        )
        logger.debug("Submodule %s: %d component(s)", path, len(components))
    return result


__all__ = ["SubmoduleScan", "scan_submodules"]
