"""CLI behaviour tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from repolens import cli
from repolens.cli import _build_parser, main, render_report
from repolens.report import GitSubmodule, ModuleReport, SemanticReport, SemanticSummary


def _make_repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "backend").mkdir(parents=True)
    (root / "backend" / "manage.py").write_text("import django\n", encoding="utf-8")
    (root / "backend" / "requirements.txt").write_text("Django\ncelery\n", encoding="utf-8")
    return root


def test_cli_accepts_verbose_before_command() -> None:
    args = _build_parser().parse_args(["--verbose", "scan"])
    assert args.verbose is True
    assert args.command == "scan"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    args = _build_parser().parse_args(["scan", "repo", "--verbose", "--no-cache"])
    assert args.verbose is True
    assert args.path == "repo"
    assert args.no_cache is True


def test_cli_accepts_log_file_before_command() -> None:
    args = _build_parser().parse_args(["--log-file", "logs/scan.log", "scan"])
    assert args.log_file == Path("logs/scan.log")


def test_cli_remote_options() -> None:
    args = _build_parser().parse_args(["remote", "owner/repo", "--timeout", "3", "--json", "o.json"])
    assert args.reference == "owner/repo"
    assert args.timeout == 3.0
    assert args.json_out == Path("o.json")


def test_scan_prints_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["scan", str(_make_repo(tmp_path)), "--no-color"])

    out = capsys.readouterr().out
    assert "Module: Backend (Path: /backend)" in out
    assert "framework=Django" in out
    assert "queue=Celery" in out
    assert "Noise ratio:" in out
    assert "\x1b[" not in out


def test_second_scan_is_served_from_cache(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _make_repo(tmp_path)
    main(["scan", str(root)])
    capsys.readouterr()

    main(["scan", str(root)])

    assert "(served from cache)" in capsys.readouterr().out


def test_scan_writes_json_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "out" / "report.json"

    main(["scan", str(_make_repo(tmp_path)), "--json", str(target), "--no-cache"])

    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["modules"][0]["path"] == "/backend"
    assert str(target) in capsys.readouterr().out


def test_scan_rejects_non_json_export(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["scan", str(_make_repo(tmp_path)), "--json", str(tmp_path / "report.txt")])
    assert excinfo.value.code == 2


def test_missing_root_exits_with_usage_code(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["scan", str(tmp_path / "missing")])

    assert excinfo.value.code == 2
    assert "does not exist" in capsys.readouterr().err


def test_invalid_remote_reference_exits_with_usage_code() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["remote", "not-a-reference"])
    assert excinfo.value.code == 2


def test_network_failure_exits_with_failure_code(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    from repolens.errors import NetworkError

    def _fail(self, reference, **kwargs):
        raise NetworkError("Archive download failed: offline")

    monkeypatch.setattr(cli.Scanner, "scan_remote", _fail)

    with pytest.raises(SystemExit) as excinfo:
        main(["remote", "owner/repo"])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "offline" in err
    assert "--verbose" in err


def test_unknown_detector_in_config_exits_with_usage_code(tmp_path: Path) -> None:
    config = tmp_path / ".repolens.yml"
    config.write_text("scan:\n  detectors: [NopeDetector]\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "scan", str(_make_repo(tmp_path))])
    assert excinfo.value.code == 2


def test_invalid_config_exits_with_usage_code(tmp_path: Path) -> None:
    config = tmp_path / ".repolens.yml"
    config.write_text("scan: [unclosed\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "scan", "."])
    assert excinfo.value.code == 2


def test_schema_command(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["schema"])
    schema = json.loads(capsys.readouterr().out)
    assert schema["title"] == "SemanticReport"

    target = tmp_path / "schema.json"
    main(["schema", "--output", str(target)])
    assert json.loads(target.read_text(encoding="utf-8"))["title"] == "SemanticReport"


def test_render_report_colours_noise_ratio() -> None:
    module = ModuleReport(name="Repo", path="/")
    quiet = SemanticReport(
        scan_timestamp="t",
        repo_root="/r",
        modules=[module],
        summary=SemanticSummary(ignored_ratio=0.05),
    )
    noisy = quiet.model_copy(update={"summary": SemanticSummary(ignored_ratio=0.5)})

    assert "\x1b[32mNoise ratio: 5.00%" in render_report(quiet)
    assert "\x1b[31mNoise ratio: 50.00%" in render_report(noisy)
    assert "Monorepo:\n  - Repo (/)" in render_report(quiet, color=False)


def test_render_report_lists_submodule_status() -> None:
    report = SemanticReport(
        scan_timestamp="t",
        repo_root="/r",
        submodules=[
            GitSubmodule(name="ui", path="vendor/ui", scanned=True),
            GitSubmodule(
                name="api", path="vendor/api", scan_warning="directory missing or inaccessible"
            ),
        ],
    )

    rendered = render_report(report, color=False)

    assert "Submodule: vendor/ui (scanned)" in rendered
    assert "Submodule: vendor/api (not scanned): directory missing or inaccessible" in rendered
