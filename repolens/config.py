"""Configuration loading for repolens (.repolens.yml)."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import UsageError

CONFIG_FILENAME = ".repolens.yml"
CACHE_PATH_ENV = "REPOLENS_CACHE_PATH"

_MIB = 1024 * 1024


class ConfigError(UsageError):
    """Raised when the configuration file cannot be parsed."""


def _default_workers() -> int:
    return max(1, min(8, os.cpu_count() or 1))


@dataclass
class ScanConfig:
    """Walker, classifier and detector settings."""

    ignore_extensions: Tuple[str, ...] = (".sql", ".lock", ".map", ".log", ".tmp", ".bak")
    ignore_dirs: Tuple[str, ...] = (
        "node_modules",
        ".git",
        "__pycache__",
        "dist",
        "build",
        ".venv",
        "venv",
    )
    max_config_bytes: int = 1 * _MIB
    asset_threshold_bytes: int = 5 * _MIB
    ignored_files_limit: int = 200
    follow_requirements_depth: int = 3
    generated_dirs: Tuple[str, ...] = ("migrations",)
    generated_extensions: Tuple[str, ...] = (".py",)
    generated_kloc_byte_budget: int = 16 * _MIB
    respect_gitignore: bool = True
    workers: int = field(default_factory=_default_workers)
    detectors: Optional[List[str]] = None

    def signature(self) -> str:
        """Digest of every setting that can change a report."""
        payload = asdict(self)
        payload.pop("workers", None)
        encoded = json.dumps(payload, sort_keys=True, default=list).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()[:16]


@dataclass
class CacheConfig:
    """Result cache location and enablement."""

    enabled: bool = True
    path: Optional[Path] = None
    max_entries: int = 256

    def resolved_path(self) -> Path:
        if self.path is not None:
            return self.path
        env_path = os.environ.get(CACHE_PATH_ENV)
        if env_path:
            return Path(env_path).expanduser()
        return Path.home() / ".cache" / "repolens" / "scan-cache.json"


@dataclass
class RemoteConfig:
    """Remote archive acquisition limits."""

    host: str = "github.com"
    archive_url_template: str = "https://codeload.github.com/{owner}/{repo}/zip/{ref}"
    max_archive_bytes: int = 80 * _MIB
    max_extracted_bytes: int = 512 * _MIB
    max_redirects: int = 10
    timeout: float = 20.0
    user_agent: str = "repolens/semantic-scan"


@dataclass
class RepoLensConfig:
    """Represents the settings defined in .repolens.yml."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)


def load_config(config_path: Path | None = None) -> RepoLensConfig:
    """Load configuration from disk; a missing file yields defaults."""
    if config_path is None:
        return RepoLensConfig()

    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return RepoLensConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = RepoLensConfig()

    scan_data = _as_dict(data.get("scan"))
    if scan_data:
        scan = config.scan
        extensions = _as_str_list(scan_data.get("ignore_extensions"))
        if extensions:
            scan.ignore_extensions = tuple(_normalise_extension(ext) for ext in extensions)
        ignore_dirs = _as_str_list(scan_data.get("ignore_dirs"))
        if ignore_dirs:
            scan.ignore_dirs = tuple(name.lower() for name in ignore_dirs)
        generated_dirs = _as_str_list(scan_data.get("generated_dirs"))
        if generated_dirs:
            scan.generated_dirs = tuple(generated_dirs)
        generated_extensions = _as_str_list(scan_data.get("generated_extensions"))
        if generated_extensions:
            scan.generated_extensions = tuple(
                _normalise_extension(ext) for ext in generated_extensions
            )
        scan.max_config_bytes = _positive_int(scan_data, "max_config_bytes", scan.max_config_bytes)
        scan.asset_threshold_bytes = _positive_int(
            scan_data, "asset_threshold_bytes", scan.asset_threshold_bytes
        )
        scan.ignored_files_limit = _non_negative_int(
            scan_data, "ignored_files_limit", scan.ignored_files_limit
        )
        scan.follow_requirements_depth = _non_negative_int(
            scan_data, "follow_requirements_depth", scan.follow_requirements_depth
        )
        scan.generated_kloc_byte_budget = _positive_int(
            scan_data, "generated_kloc_byte_budget", scan.generated_kloc_byte_budget
        )
        respect = _as_bool(scan_data.get("respect_gitignore"))
        if respect is not None:
            scan.respect_gitignore = respect
        scan.workers = _positive_int(scan_data, "workers", scan.workers)
        if "detectors" in scan_data:
            scan.detectors = _as_str_list(scan_data.get("detectors"))

    cache_data = _as_dict(data.get("cache"))
    if cache_data:
        enabled = _as_bool(cache_data.get("enabled"))
        if enabled is not None:
            config.cache.enabled = enabled
        cache_path = _as_str(cache_data.get("path"))
        if cache_path:
            config.cache.path = (config_file.parent / Path(cache_path).expanduser()).resolve()
        config.cache.max_entries = _positive_int(
            cache_data, "max_entries", config.cache.max_entries
        )

    remote_data = _as_dict(data.get("remote"))
    if remote_data:
        remote = config.remote
        remote.host = _as_str(remote_data.get("host")) or remote.host
        remote.archive_url_template = (
            _as_str(remote_data.get("archive_url_template")) or remote.archive_url_template
        )
        remote.max_archive_bytes = _positive_int(
            remote_data, "max_archive_bytes", remote.max_archive_bytes
        )
        remote.max_extracted_bytes = _positive_int(
            remote_data, "max_extracted_bytes", remote.max_extracted_bytes
        )
        remote.max_redirects = _non_negative_int(
            remote_data, "max_redirects", remote.max_redirects
        )
        timeout = remote_data.get("timeout")
        if timeout is not None:
            parsed = _as_float(timeout)
            if parsed is None or parsed <= 0:
                raise ConfigError(f"remote.timeout must be a positive number, got {timeout!r}")
            remote.timeout = parsed
        remote.user_agent = _as_str(remote_data.get("user_agent")) or remote.user_agent

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _positive_int(section: Dict[str, Any], key: str, default: int) -> int:
    """``section[key]`` as an integer above zero; an absent or null key keeps ``default``."""
    raw = section.get(key)
    if raw is None:
        return default
    value = _as_int(raw)
    if value is None or value <= 0:
        raise ConfigError(f"{key} must be a positive integer, got {raw!r}")
    return value


def _non_negative_int(section: Dict[str, Any], key: str, default: int) -> int:
    raw = section.get(key)
    if raw is None:
        return default
    value = _as_int(raw)
    if value is None or value < 0:
        raise ConfigError(f"{key} must be zero or a positive integer, got {raw!r}")
    return value


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CacheConfig",
    "ConfigError",
    "RemoteConfig",
    "RepoLensConfig",
    "ScanConfig",
    "load_config",
]
