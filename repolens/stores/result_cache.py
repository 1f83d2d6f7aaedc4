"""Persistent cache for scan reports."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from ..logging import get_logger
from ..report import SemanticReport

_CACHE_VERSION = 1
DEFAULT_MAX_ENTRIES = 256

logger = get_logger("stores.result_cache")


class CacheStore(Protocol):
    """Minimal key-value interface the result cache is written against."""

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def put(self, key: str, value: Dict[str, Any]) -> None: ...


class MemoryCacheStore:
    """Process-local store, used by tests and when persistence is disabled."""

    def __init__(self) -> None:
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            return dict(entry) if entry is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._entries[key] = dict(value)

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCacheStore:
    """Stores entries in a versioned JSON document, replaced atomically on every write."""

    def __init__(self, path: Path, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._path = path
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, Any]] = self._load(path)
        self._evict()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            return dict(entry) if entry is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            snapshot = dict(self._entries)
            self._entries[key] = dict(value)
            self._evict(keep=key)
            try:
                self._persist()
            except OSError as exc:
                # Roll back so memory keeps matching the file that is still on disk.
                self._entries = snapshot
                logger.warning("Failed to write scan cache %s: %s", self._path, exc)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            try:
                self._persist()
            except OSError as exc:
                logger.warning("Failed to write scan cache %s: %s", self._path, exc)

    # ------------------------------------------------------------------
    # Internal helpers

    def _evict(self, keep: Optional[str] = None) -> None:
        """Drop the least recently updated entries beyond ``max_entries``."""
        excess = len(self._entries) - self._max_entries
        if excess <= 0:
            return
        candidates = sorted(
            (str(entry.get("updatedAt") or ""), key)
            for key, entry in self._entries.items()
            if key != keep
        )
        for _, key in candidates[:excess]:
            del self._entries[key]
        logger.debug("Evicted %d scan cache entries from %s", excess, self._path)

    def _persist(self) -> None:
        payload = {
            "version": _CACHE_VERSION,
            "entries": self._entries,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(handle.name, self._path)
        except BaseException:
            Path(handle.name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _load(path: Path) -> Dict[str, Dict[str, Any]]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("Ignoring unreadable scan cache %s: %s", path, exc)
            return {}
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return {}
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return {}
        return {
            key: raw
            for key, raw in entries.items()
            if isinstance(key, str) and isinstance(raw, dict)
        }


class ResultCache:
    """Reports keyed by ``(input kind, fingerprint)``."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    @staticmethod
    def key(input_kind: str, fingerprint: str) -> str:
        return f"{input_kind}:{fingerprint}"

    def get(self, input_kind: str, fingerprint: str) -> Optional[SemanticReport]:
        entry = self._store.get(self.key(input_kind, fingerprint))
        if not entry:
            return None
        payload = entry.get("report")
        if not isinstance(payload, dict):
            return None
        try:
            return SemanticReport.model_validate(payload)
        except ValidationError as exc:
            logger.debug("Discarding stale cache entry for %s: %s", input_kind, exc)
            return None

    def put(
        self,
        input_kind: str,
        input_identity: str,
        fingerprint: str,
        report: SemanticReport,
        elapsed_ms: int,
    ) -> None:
        self._store.put(
            self.key(input_kind, fingerprint),
            {
                "report": report.to_dict(),
                "inputValue": input_identity,
                "elapsedMs": int(elapsed_ms),
                "updatedAt": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            },
        )


__all__ = [
    "CacheStore",
    "DEFAULT_MAX_ENTRIES",
    "JsonFileCacheStore",
    "MemoryCacheStore",
    "ResultCache",
]
