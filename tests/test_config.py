"""Tests for repolens.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from repolens.config import (
    CACHE_PATH_ENV,
    ConfigError,
    RepoLensConfig,
    ScanConfig,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, RepoLensConfig)
    assert ".sql" in config.scan.ignore_extensions
    assert "node_modules" in config.scan.ignore_dirs
    assert config.scan.max_config_bytes == 1024 * 1024
    assert config.scan.detectors is None
    assert config.cache.enabled is True
    assert config.remote.max_archive_bytes == 80 * 1024 * 1024
    assert config.remote.max_redirects == 10


def test_load_config_without_path_returns_defaults() -> None:
    assert load_config(None) == RepoLensConfig()


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".repolens.yml"
    config_file.write_text(
        """
scan:
  ignore_extensions: [sql, ".CSV"]
  ignore_dirs: [Vendor, node_modules]
  max_config_bytes: 2048
  asset_threshold_bytes: "4096"
  ignored_files_limit: 5
  follow_requirements_depth: 1
  respect_gitignore: "no"
  workers: 3
  detectors: [DjangoDetector, ViteDetector]
cache:
  enabled: false
  path: "cache/scans.json"
  max_entries: 10
remote:
  host: git.example.com
  max_archive_bytes: 1000
  max_redirects: 2
  timeout: 5
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    scan = config.scan
    assert scan.ignore_extensions == (".sql", ".csv")
    assert scan.ignore_dirs == ("vendor", "node_modules")
    assert scan.max_config_bytes == 2048
    assert scan.asset_threshold_bytes == 4096
    assert scan.ignored_files_limit == 5
    assert scan.follow_requirements_depth == 1
    assert scan.respect_gitignore is False
    assert scan.workers == 3
    assert scan.detectors == ["DjangoDetector", "ViteDetector"]
    assert config.cache.enabled is False
    assert config.cache.path == (tmp_path / "cache" / "scans.json").resolve()
    assert config.cache.max_entries == 10
    assert config.remote.host == "git.example.com"
    assert config.remote.max_archive_bytes == 1000
    assert config.remote.max_redirects == 2
    assert config.remote.timeout == 5.0


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text("scan: [oops\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yml"
    config_file.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(config_file)


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path) == RepoLensConfig()


def test_cache_path_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CACHE_PATH_ENV, str(tmp_path / "env-cache.json"))

    assert RepoLensConfig().cache.resolved_path() == tmp_path / "env-cache.json"


def test_signature_tracks_report_affecting_settings() -> None:
    base = ScanConfig()

    assert base.signature() == ScanConfig(workers=base.workers + 3).signature()
    assert base.signature() != ScanConfig(ignored_files_limit=10).signature()
    assert base.signature() != ScanConfig(detectors=["ViteDetector"]).signature()


@pytest.mark.parametrize(
    ("section", "key", "value"),
    [
        ("scan", "asset_threshold_bytes", "0"),
        ("scan", "max_config_bytes", "-5"),
        ("scan", "generated_kloc_byte_budget", "lots"),
        ("scan", "workers", "0"),
        ("scan", "ignored_files_limit", "-1"),
        ("cache", "max_entries", "0"),
        ("remote", "max_archive_bytes", "0"),
        ("remote", "max_extracted_bytes", "-1024"),
        ("remote", "max_redirects", "-1"),
        ("remote", "timeout", "0"),
    ],
)
def test_out_of_range_limits_raise(tmp_path: Path, section: str, key: str, value: str) -> None:
    (tmp_path / ".repolens.yml").write_text(f"{section}:\n  {key}: {value}\n", encoding="utf-8")

    with pytest.raises(ConfigError, match=key):
        load_config(tmp_path)


def test_zero_counts_are_kept(tmp_path: Path) -> None:
    (tmp_path / ".repolens.yml").write_text(
        "scan:\n  ignored_files_limit: 0\n  follow_requirements_depth: 0\nremote:\n  max_redirects: 0\n",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.scan.ignored_files_limit == 0
    assert config.scan.follow_requirements_depth == 0
    assert config.remote.max_redirects == 0
