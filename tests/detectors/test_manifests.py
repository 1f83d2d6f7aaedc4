"""Tests for manifest parsing helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from repolens.detectors.manifests import (
    collect_requirements,
    detect_package_managers,
    gradle_sdk_versions,
    load_package_json,
    merge_dependency_objects,
    normalize_requirement_name,
    parse_gitmodules,
    parse_pubspec,
    parse_pyproject,
)
from repolens.errors import DetectParseError


def test_normalize_requirement_name() -> None:
    assert normalize_requirement_name("Django>=4.2") == ("django", ">=4.2")
    assert normalize_requirement_name("celery[redis]==5.3; python_version>'3.8'") == (
        "celery",
        "==5.3",
    )
    assert normalize_requirement_name("requests") == ("requests", None)


def test_requirements_follow_includes(tmp_path: Path) -> None:
    (tmp_path / "base.txt").write_text("Django==4.2\n-r base.txt\n", encoding="utf-8")
    (tmp_path / "requirements.txt").write_text(
        "# comment\n-r base.txt\ncelery>=5  # queue\ngit+https://example.com/x.git\n",
        encoding="utf-8",
    )

    deps = collect_requirements(tmp_path / "requirements.txt", 64 * 1024, 3)

    assert deps == {"django": "==4.2", "celery": ">=5"}


def test_requirements_include_depth_limit(tmp_path: Path) -> None:
    (tmp_path / "deep.txt").write_text("flask\n", encoding="utf-8")
    (tmp_path / "requirements.txt").write_text("-r deep.txt\n", encoding="utf-8")

    assert collect_requirements(tmp_path / "requirements.txt", 64 * 1024, 0) == {}


def test_requirements_too_large(tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text("django\n" * 100, encoding="utf-8")

    with pytest.raises(DetectParseError, match="too large"):
        collect_requirements(tmp_path / "requirements.txt", 16, 3)


def test_parse_pyproject_pep621_and_poetry() -> None:
    text = """
[project]
dependencies = ["fastapi>=0.110", "SQLAlchemy"]

[project.optional-dependencies]
test = ["pytest"]

[tool.poetry.dependencies]
python = "^3.11"
celery = "^5.3"
"""
    deps = parse_pyproject(text)

    assert deps == {
        "fastapi": ">=0.110",
        "sqlalchemy": None,
        "pytest": None,
        "celery": "^5.3",
    }


def test_parse_pyproject_invalid() -> None:
    with pytest.raises(DetectParseError):
        parse_pyproject("[project\n")


def test_package_json_errors(tmp_path: Path) -> None:
    path = tmp_path / "package.json"
    assert load_package_json(path, 1024) is None

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(DetectParseError, match="not an object"):
        load_package_json(path, 1024)


def test_merge_dependency_objects_first_section_wins() -> None:
    data = {
        "dependencies": {"react": "^18.0.0"},
        "devDependencies": {"react": "^17.0.0", "vite": "^5.0.0", "bad": 3},
    }

    assert merge_dependency_objects(data) == {"react": "^18.0.0", "vite": "^5.0.0"}


def test_parse_pubspec() -> None:
    deps, sdk = parse_pubspec(
        "environment:\n  sdk: '>=3.0.0 <4.0.0'\n"
        "dependencies:\n  flutter:\n    sdk: flutter\n  dio: ^5.0.0\n"
        "dev_dependencies:\n  flutter_test:\n    sdk: flutter\n"
    )

    assert deps == {"flutter": None, "dio": "^5.0.0", "flutter_test": None}
    assert sdk == ">=3.0.0 <4.0.0"


def test_gradle_sdk_versions() -> None:
    text = "defaultConfig {\n    minSdk = 21\n    targetSdkVersion 34\n}\n"

    assert gradle_sdk_versions(text) == (21, 34)
    assert gradle_sdk_versions("android {}\n") == (None, None)


def test_parse_gitmodules() -> None:
    text = """
[submodule "vendor/lib"]
    path = vendor/lib
    url = https://example.com/lib.git
[submodule "broken"]
    url = https://example.com/broken.git
"""
    submodules = parse_gitmodules(text)

    assert len(submodules) == 1
    assert submodules[0].name == "vendor/lib"
    assert submodules[0].path == "vendor/lib"
    assert submodules[0].url == "https://example.com/lib.git"
    assert submodules[0].scanned is False
    assert submodules[0].scan_warning is None


def test_detect_package_managers(tmp_path: Path) -> None:
    for name in ("pnpm-lock.yaml", "poetry.lock", "Cargo.lock"):
        (tmp_path / name).write_text("", encoding="utf-8")

    assert detect_package_managers(tmp_path) == ["pnpm", "poetry", "cargo"]
