"""Scan pipeline: topology, detectors, parallel aggregation and result caching."""

from __future__ import annotations

import asyncio
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .aggregator import (
    ModuleAccumulator,
    aggregate_files,
    compute_generated_kloc,
    compute_language_percentages,
)
from .config import RemoteConfig, RepoLensConfig
from .detectors import Detector, build_detectors, finalize_module_report, run_detectors
from .detectors.components import package_aliases
from .detectors.manifests import detect_package_managers
from .errors import NetworkError, UsageError
from .fingerprint import GitRunner, build_scan_fingerprint
from .graph import build_dependency_graph, merge_graphs, normalize_components
from .logging import get_logger
from .models import ModuleSpec, ScanContext
from .remote import ArchiveFetcher, RemoteReference, materialize_remote, parse_remote_reference
from .report import (
    AssetSummary,
    GeneratedSummary,
    IgnoredFile,
    ModuleReport,
    SemanticReport,
    SemanticSummary,
    TechComponent,
)
from .stores import JsonFileCacheStore, ResultCache
from .submodules import scan_submodules
from .topology import resolve_modules
from .walker import list_files

INPUT_LOCAL = "local"
INPUT_REMOTE = "remote"

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

FetcherFactory = Callable[[RemoteConfig, threading.Event], ArchiveFetcher]

logger = get_logger("scanner")


@dataclass
class _ModuleResult:
    report: ModuleReport
    stats: ModuleAccumulator
    generated_kloc: float


def _default_fetcher(config: RemoteConfig, cancel_event: threading.Event) -> ArchiveFetcher:
    return ArchiveFetcher(config, cancel_event=cancel_event)


def _default_cache(config: RepoLensConfig) -> Optional[ResultCache]:
    if not config.cache.enabled:
        return None
    store = JsonFileCacheStore(config.cache.resolved_path(), max_entries=config.cache.max_entries)
    return ResultCache(store)


class Scanner:
    """Produces :class:`SemanticReport` objects for local trees and remote references."""

    def __init__(
        self,
        config: RepoLensConfig | None = None,
        *,
        cache: ResultCache | None = None,
        detectors: Sequence[Detector] | None = None,
        fetcher_factory: FetcherFactory | None = None,
        git_runner: GitRunner | None = None,
    ) -> None:
        self.config = config or RepoLensConfig()
        self.cache = cache if cache is not None else _default_cache(self.config)
        self.detectors: List[Detector] = (
            list(detectors) if detectors is not None else build_detectors(self.config.scan.detectors)
        )
        self._fetcher_factory = fetcher_factory or _default_fetcher
        self._git_runner = git_runner

    # ------------------------------------------------------------------
    # Entry points

    def scan(
        self,
        root: Path | str,
        *,
        input_kind: str = INPUT_LOCAL,
        identity: str | None = None,
        use_cache: bool = True,
    ) -> SemanticReport:
        """Scan ``root``; an unchanged input is answered from the cache without traversal."""
        root_path = self._validate_root(root)
        identity = identity or str(root_path)
        started = time.perf_counter()

        fingerprint: Optional[str] = None
        if use_cache and self.cache is not None:
            fingerprint = build_scan_fingerprint(
                input_kind,
                identity,
                root_path,
                self.config.scan,
                git_runner=self._git_runner,
            )
            cached = self.cache.get(input_kind, fingerprint)
            if cached is not None:
                logger.info("Cache hit for %s", identity)
                return cached.model_copy(update={"cache_hit": True})

        logger.info("Scanning %s", identity)
        report = self._analyze(root_path, input_kind, identity)

        if fingerprint is not None and self.cache is not None:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            self.cache.put(input_kind, identity, fingerprint, report, elapsed_ms)
        return report

    def scan_remote(
        self,
        reference: RemoteReference | str,
        *,
        use_cache: bool = True,
        cancel_event: threading.Event | None = None,
    ) -> SemanticReport:
        """Download ``reference``, scan it and discard the extracted tree."""
        if isinstance(reference, RemoteReference):
            parsed = reference
        else:
            parsed = parse_remote_reference(reference, default_host=self.config.remote.host)
        fetcher = self._fetcher_factory(self.config.remote, cancel_event or threading.Event())
        with materialize_remote(parsed, self.config.remote, fetcher=fetcher) as root:
            return self.scan(
                root,
                input_kind=INPUT_REMOTE,
                identity=parsed.display,
                use_cache=use_cache,
            )

    async def scan_remote_async(
        self,
        reference: RemoteReference | str,
        *,
        timeout: float | None = None,
        use_cache: bool = True,
    ) -> SemanticReport:
        """Run :meth:`scan_remote` in a worker thread, cancelling the download on timeout."""
        cancel_event = threading.Event()
        work = asyncio.to_thread(
            self.scan_remote, reference, use_cache=use_cache, cancel_event=cancel_event
        )
        try:
            return await asyncio.wait_for(work, timeout)
        except TimeoutError as exc:
            cancel_event.set()
            raise NetworkError(f"Remote scan timed out after {timeout} seconds") from exc
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _validate_root(root: Path | str) -> Path:
        if not str(root).strip():
            raise UsageError("Scan root must not be empty")
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise UsageError(f"Scan root does not exist: {root_path}")
        if not root_path.is_dir():
            raise UsageError(f"Scan root is not a directory: {root_path}")
        return root_path.resolve()

    def _analyze(self, root: Path, input_kind: str, identity: str) -> SemanticReport:
        scan_config = self.config.scan
        ctx = ScanContext(root=root, config=scan_config)
        modules = resolve_modules(root)

        workers = max(1, min(scan_config.workers, len(modules)))
        if workers == 1:
            results = [self._scan_module(ctx, module) for module in modules]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(lambda module: self._scan_module(ctx, module), modules))

        summary = SemanticSummary()
        language_bytes: Counter = Counter()
        language_files: Counter = Counter()
        ignored: Dict[str, IgnoredFile] = {}
        effective_lines = 0
        for result in results:
            stats = result.stats
            summary.total_size += stats.total_size
            summary.ignored_size += stats.ignored_size
            summary.assets_size += stats.assets_size
            summary.generated_files += stats.generated_files
            summary.generated_kloc_ignored += result.generated_kloc
            summary.effective_files += stats.effective_files
            effective_lines += stats.effective_lines
            language_bytes.update(stats.language_bytes)
            language_files.update(stats.language_files)
            for record in stats.ignored_files:
                ignored.setdefault(record.path, record)
            summary.warnings.extend(
                f"{result.report.name}: {warning}" for warning in result.report.warnings
            )
        if summary.total_size > 0:
            summary.ignored_ratio = summary.ignored_size / summary.total_size
        summary.effective_kloc = effective_lines / 1000.0

        submodules = scan_submodules(ctx, self.detectors)
        summary.warnings.extend(submodules.warnings)

        module_reports = [result.report for result in results]
        detected = normalize_components(
            [component for module_report in module_reports for component in module_report.components]
            + submodules.components
        )

        report = SemanticReport(
            scan_timestamp=datetime.now(UTC).strftime(_TIMESTAMP_FORMAT),
            repo_root=identity,
            input_kind=input_kind,
            modules=module_reports,
            summary=summary,
            ignored_files=[ignored[path] for path in sorted(ignored)][
                : scan_config.ignored_files_limit
            ],
            languages=compute_language_percentages(language_bytes, language_files),
            detected=detected,
            package_managers=_package_managers(root, modules),
            build_tools=_names_in_category(detected, "build"),
            test_frameworks=_names_in_category(detected, "test"),
            submodules=submodules.submodules,
            graph=merge_graphs(
                [module_report.graph for module_report in module_reports] + submodules.graphs
            ),
        )
        logger.info(
            "Scanned %d module(s), %d effective file(s) in %s",
            len(module_reports),
            summary.effective_files,
            identity,
        )
        return report

    def _scan_module(self, ctx: ScanContext, module: ModuleSpec) -> _ModuleResult:
        config = ctx.config
        report = ModuleReport(name=module.name, path=module.rel_path)
        run_detectors(self.detectors, ctx, module, report)

        entries = list_files(module.abs_path, ctx.root, config, excluded=module.excluded)
        stats = aggregate_files(entries, config)
        report.languages = compute_language_percentages(stats.language_bytes, stats.language_files)

        generated_kloc = 0.0
        if stats.generated_files > 0:
            generated_kloc = compute_generated_kloc(stats.generated_paths, config)
            report.generated = GeneratedSummary(
                files=stats.generated_files, kloc_ignored=generated_kloc
            )
        if stats.assets_files > 0:
            report.assets = AssetSummary(files=stats.assets_files, bytes=stats.assets_size)

        finalize_module_report(report)
        report.components = normalize_components(report.components)
        report.graph = build_dependency_graph(
            report.components, report.declared_dependencies, package_aliases()
        )
        logger.debug(
            "Module %s (%s): %d file(s), %d warning(s)",
            module.name,
            module.rel_path,
            len(entries),
            len(report.warnings),
        )
        return _ModuleResult(report=report, stats=stats, generated_kloc=generated_kloc)


def _package_managers(root: Path, modules: Sequence[ModuleSpec]) -> List[str]:
    managers = set(detect_package_managers(root))
    for module in modules:
        managers.update(detect_package_managers(module.abs_path))
    return sorted(managers)


def _names_in_category(components: Iterable[TechComponent], category: str) -> List[str]:
    return sorted({component.name for component in components if component.category == category})


__all__ = ["INPUT_LOCAL", "INPUT_REMOTE", "Scanner"]
