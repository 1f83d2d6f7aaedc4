"""Parallel fold/reduce of per-file classifications into module statistics."""

from __future__ import annotations

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import reduce
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from .classifier import classify_file
from .config import ScanConfig
from .logging import get_logger
from .models import Classification, FileEntry
from .report import IgnoredFile, LanguageStat

_CHUNK_SIZE = 256
_READ_CHUNK = 64 * 1024

logger = get_logger("aggregator")


@dataclass
class ModuleAccumulator:
    """Partial statistics for a set of files.

    ``merge`` is associative and commutative, so the result never depends
    on how files were chunked across workers or in which order chunks finish.
    """

    limit: int = 200
    total_size: int = 0
    ignored_size: int = 0
    assets_size: int = 0
    assets_files: int = 0
    generated_files: int = 0
    effective_files: int = 0
    effective_lines: int = 0
    language_bytes: Counter = field(default_factory=Counter)
    language_files: Counter = field(default_factory=Counter)
    ignored_files: List[IgnoredFile] = field(default_factory=list)
    generated_paths: List[Tuple[str, Path]] = field(default_factory=list)

    def add(self, entry: FileEntry, classification: Classification, lines: int = 0) -> None:
        self.total_size += entry.size
        if classification.kind == Classification.IGNORED:
            self.ignored_size += entry.size
            record = IgnoredFile(
                path=entry.rel_path,
                size=entry.size,
                reason=classification.reason or "",
            )
            self.ignored_files = _capped_union(self.ignored_files, [record], self.limit)
        elif classification.kind == Classification.ASSET:
            self.assets_size += entry.size
            self.assets_files += 1
        elif classification.kind == Classification.GENERATED:
            self.generated_files += 1
            self.generated_paths.append((entry.rel_path, entry.abs_path))
        else:
            language = classification.language or "Other"
            self.effective_files += 1
            self.effective_lines += lines
            self.language_bytes[language] += entry.size
            self.language_files[language] += 1

    def merge(self, other: "ModuleAccumulator") -> "ModuleAccumulator":
        limit = min(self.limit, other.limit)
        return ModuleAccumulator(
            limit=limit,
            total_size=self.total_size + other.total_size,
            ignored_size=self.ignored_size + other.ignored_size,
            assets_size=self.assets_size + other.assets_size,
            assets_files=self.assets_files + other.assets_files,
            generated_files=self.generated_files + other.generated_files,
            effective_files=self.effective_files + other.effective_files,
            effective_lines=self.effective_lines + other.effective_lines,
            language_bytes=_counter_union(self.language_bytes, other.language_bytes),
            language_files=_counter_union(self.language_files, other.language_files),
            ignored_files=_capped_union(self.ignored_files, other.ignored_files, limit),
            generated_paths=sorted(set(self.generated_paths) | set(other.generated_paths)),
        )


def _counter_union(left: Counter, right: Counter) -> Counter:
    # Counter addition drops zero counts; empty source files must keep their language.
    merged = Counter(left)
    merged.update(right)
    return merged


def _capped_union(
    left: Sequence[IgnoredFile], right: Sequence[IgnoredFile], limit: int
) -> List[IgnoredFile]:
    # Keeping the `limit` smallest paths makes the cap order-independent.
    merged = {record.path: record for record in left}
    for record in right:
        merged.setdefault(record.path, record)
    return [merged[path] for path in sorted(merged)[:limit]]


def count_lines(path: Path) -> int:
    """Count newline-terminated lines; unreadable files count as zero."""
    lines = 0
    last = b""
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_READ_CHUNK), b""):
                lines += chunk.count(b"\n")
                last = chunk
    except OSError:
        return 0
    if last and not last.endswith(b"\n"):
        lines += 1
    return lines


def _fold(entries: Sequence[FileEntry], config: ScanConfig) -> ModuleAccumulator:
    accumulator = ModuleAccumulator(limit=config.ignored_files_limit)
    for entry in entries:
        classification = classify_file(entry.rel_path, entry.size, config)
        lines = 0
        if classification.kind == Classification.CODE:
            lines = count_lines(entry.abs_path)
        accumulator.add(entry, classification, lines)
    return accumulator


def aggregate_files(
    entries: Sequence[FileEntry],
    config: ScanConfig,
    *,
    executor: ThreadPoolExecutor | None = None,
) -> ModuleAccumulator:
    """Classify ``entries`` across worker threads and reduce the partial results."""
    empty = ModuleAccumulator(limit=config.ignored_files_limit)
    if not entries:
        return empty

    chunks = [entries[i : i + _CHUNK_SIZE] for i in range(0, len(entries), _CHUNK_SIZE)]
    if len(chunks) == 1 or config.workers <= 1:
        partials = [_fold(chunk, config) for chunk in chunks]
    elif executor is not None:
        partials = list(executor.map(lambda chunk: _fold(chunk, config), chunks))
    else:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            partials = list(pool.map(lambda chunk: _fold(chunk, config), chunks))

    logger.debug("Aggregated %d files in %d chunks", len(entries), len(chunks))
    return reduce(ModuleAccumulator.merge, partials, empty)


def compute_language_percentages(
    language_bytes: Dict[str, int], language_files: Dict[str, int]
) -> List[LanguageStat]:
    """Language shares over effective code bytes only, largest first."""
    total = sum(language_bytes.values())
    if total <= 0:
        return []
    stats = [
        LanguageStat(
            language=language,
            bytes=size,
            files=language_files.get(language, 0),
            percent=size * 100.0 / total,
        )
        for language, size in language_bytes.items()
    ]
    stats.sort(key=lambda stat: (-stat.bytes, stat.language))
    return stats


def compute_generated_kloc(
    generated_paths: Sequence[Tuple[str, Path]], config: ScanConfig
) -> float:
    """Thousands of lines across generated files, read under a byte budget."""
    budget = config.generated_kloc_byte_budget
    total_lines = 0
    total_bytes = 0
    for _, path in sorted(generated_paths):
        if total_bytes >= budget:
            break
        try:
            size = path.stat().st_size
        except OSError:
            continue
        if size > config.asset_threshold_bytes:
            continue
        if total_bytes + size > budget:
            break
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        total_lines += len(text.splitlines())
        total_bytes += size
    return total_lines / 1000.0


__all__ = [
    "ModuleAccumulator",
    "aggregate_files",
    "compute_generated_kloc",
    "compute_language_percentages",
    "count_lines",
]
