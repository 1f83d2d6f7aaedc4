"""Report models returned by a scan and their JSON export helpers."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from .errors import UsageError

PLACEHOLDER_UNKNOWN = "Unknown"
PLACEHOLDER_NONE = "None"
GENERIC_PYTHON_APP = "Python App (Generic)"


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LanguageStat(_ReportModel):
    language: str
    bytes: int
    files: int
    percent: float


class BackendStack(_ReportModel):
    framework: str = PLACEHOLDER_UNKNOWN
    rest: bool = False
    db: str = PLACEHOLDER_NONE
    queue: str = PLACEHOLDER_NONE
    orm: Optional[str] = None
    migrations: Optional[str] = None
    ai_features: List[str] = Field(default_factory=list)

    def framework_is_placeholder(self) -> bool:
        return self.framework in (PLACEHOLDER_UNKNOWN, GENERIC_PYTHON_APP)

    def has_signals(self) -> bool:
        return (
            self.rest
            or self.db != PLACEHOLDER_NONE
            or self.queue != PLACEHOLDER_NONE
            or self.orm is not None
            or self.migrations is not None
            or bool(self.ai_features)
        )


class FrontendStack(_ReportModel):
    builder: str = PLACEHOLDER_UNKNOWN
    vue: Optional[int] = None
    store: str = PLACEHOLDER_NONE
    ui: str = PLACEHOLDER_NONE
    visualization: List[str] = Field(default_factory=list)


class GeneratedSummary(_ReportModel):
    files: int
    kloc_ignored: float


class AssetSummary(_ReportModel):
    files: int
    bytes: int


class IgnoredFile(_ReportModel):
    path: str
    size: int
    reason: str
    category: str = "Ignored"


class TechComponent(_ReportModel):
    """A technology detected from manifests, with provenance."""

    id: str
    name: str
    category: str
    version: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: List[str] = Field(default_factory=list)


class TechGraphNode(_ReportModel):
    id: str
    label: str
    category: str
    version: Optional[str] = None


class TechGraphEdge(_ReportModel):
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    label: Optional[str] = None


class TechGraph(_ReportModel):
    nodes: List[TechGraphNode] = Field(default_factory=list)
    edges: List[TechGraphEdge] = Field(default_factory=list)


class GitSubmodule(_ReportModel):
    name: str
    path: str
    url: Optional[str] = None
    scanned: bool = False
    scan_warning: Optional[str] = None


class ModuleReport(_ReportModel):
    """Facts collected for one module; mutated by detectors during a scan."""

    name: str
    path: str
    languages: List[LanguageStat] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    deps: List[str] = Field(default_factory=list)
    backend: Optional[BackendStack] = None
    frontend: Optional[FrontendStack] = None
    generated: Optional[GeneratedSummary] = None
    assets: Optional[AssetSummary] = None
    warnings: List[str] = Field(default_factory=list)
    components: List[TechComponent] = Field(default_factory=list)
    graph: TechGraph = Field(default_factory=TechGraph)

    # name -> declared version constraint, consumed by the graph builder
    _declared: Dict[str, Optional[str]] = PrivateAttr(default_factory=dict)

    def ensure_backend(self) -> BackendStack:
        if self.backend is None:
            self.backend = BackendStack()
        return self.backend

    def ensure_frontend(self) -> FrontendStack:
        if self.frontend is None:
            self.frontend = FrontendStack()
        return self.frontend

    def add_framework(self, name: str) -> None:
        self.frameworks.append(name)

    def add_dep(self, name: str) -> None:
        self.deps.append(name)

    def add_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def add_component(self, component: TechComponent) -> None:
        self.components.append(component)

    def declare_dependency(self, name: str, version: Optional[str]) -> None:
        self._declared.setdefault(name, version)

    @property
    def declared_dependencies(self) -> Dict[str, Optional[str]]:
        return dict(self._declared)


class SemanticSummary(_ReportModel):
    total_size: int = 0
    ignored_size: int = 0
    ignored_ratio: float = 0.0
    assets_size: int = 0
    generated_files: int = 0
    generated_kloc_ignored: float = 0.0
    effective_files: int = 0
    effective_kloc: float = 0.0
    warnings: List[str] = Field(default_factory=list)


class SemanticReport(_ReportModel):
    """Complete result of one scan."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    scan_timestamp: str
    repo_root: str
    input_kind: str = "local"
    modules: List[ModuleReport] = Field(default_factory=list)
    summary: SemanticSummary = Field(default_factory=SemanticSummary)
    ignored_files: List[IgnoredFile] = Field(default_factory=list)
    languages: List[LanguageStat] = Field(default_factory=list)
    detected: List[TechComponent] = Field(default_factory=list)
    package_managers: List[str] = Field(default_factory=list)
    build_tools: List[str] = Field(default_factory=list)
    test_frameworks: List[str] = Field(default_factory=list)
    submodules: List[GitSubmodule] = Field(default_factory=list)
    graph: TechGraph = Field(default_factory=TechGraph)
    cache_hit: bool = False

    def to_json(self, *, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls, payload: str) -> "SemanticReport":
        return cls.model_validate_json(payload)


def schema_as_json() -> str:
    """Return the JSON Schema describing :class:`SemanticReport`."""
    schema = SemanticReport.model_json_schema(by_alias=True)
    return json.dumps(schema, indent=2, sort_keys=True)


def write_report_json(path: Path | str, report: SemanticReport) -> Path:
    """Write ``report`` to ``path`` atomically; only ``.json`` targets are accepted."""
    target = Path(path).expanduser()
    if not str(target).strip():
        raise UsageError("Export path must not be empty")
    if target.suffix.lower() != ".json":
        raise UsageError(f"Reports can only be exported to .json files: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    _write_text_atomic(target, report.to_json())
    return target


def _write_text_atomic(target: Path, content: str) -> None:
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with handle:
            handle.write(content)
        os.replace(handle.name, target)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


__all__ = [
    "AssetSummary",
    "BackendStack",
    "FrontendStack",
    "GENERIC_PYTHON_APP",
    "GeneratedSummary",
    "GitSubmodule",
    "IgnoredFile",
    "LanguageStat",
    "ModuleReport",
    "PLACEHOLDER_NONE",
    "PLACEHOLDER_UNKNOWN",
    "SemanticReport",
    "SemanticSummary",
    "TechComponent",
    "TechGraph",
    "TechGraphEdge",
    "TechGraphNode",
    "schema_as_json",
    "write_report_json",
]
