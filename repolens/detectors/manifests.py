"""Readers for the manifest formats detectors rely on."""

from __future__ import annotations

import json
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from ..errors import DetectError, DetectParseError
from ..report import GitSubmodule
from .base import read_text_with_limit

Dependencies = Dict[str, Optional[str]]

_REQUIREMENT_NAME_END = re.compile(r"[<>=!~;@\s(]")
_INCLUDE_FLAGS = ("--requirement", "-r")

# Python


def normalize_requirement_name(line: str) -> Tuple[str, Optional[str]]:
    """Split a requirement line into a lowercase name and its version constraint."""
    match = _REQUIREMENT_NAME_END.search(line)
    name = line[: match.start()] if match else line
    constraint = line[match.start() :].strip() if match else ""
    name = name.split("[", 1)[0].strip().lower()
    constraint = constraint.split(";", 1)[0].strip()
    return name, constraint or None


def collect_requirements(path: Path, max_bytes: int, max_depth: int) -> Dependencies:
    """Parse ``requirements.txt`` style files, following ``-r`` includes.

    Errors reading ``path`` itself propagate; broken includes are skipped.
    """
    deps: Dependencies = {}
    _collect_requirements(path, max_bytes, 0, max_depth, set(), deps)
    return deps


def _collect_requirements(
    path: Path,
    max_bytes: int,
    depth: int,
    max_depth: int,
    visited: Set[Path],
    out: Dependencies,
) -> None:
    if depth > max_depth:
        return
    try:
        key = path.resolve()
    except OSError:
        key = path
    if key in visited:
        return
    visited.add(key)

    text = read_text_with_limit(path, max_bytes)
    if text is None:
        return

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("-"):
            included = _include_target(line)
            if included:
                try:
                    _collect_requirements(
                        path.parent / included, max_bytes, depth + 1, max_depth, visited, out
                    )
                except DetectError:
                    continue
            continue
        line = line.split(" #", 1)[0].split("\t#", 1)[0].strip()
        if not line or "git+" in line or "://" in line:
            continue
        name, constraint = normalize_requirement_name(line)
        if name:
            out.setdefault(name, constraint)


def _include_target(line: str) -> Optional[str]:
    for flag in _INCLUDE_FLAGS:
        if line.startswith(flag):
            rest = line[len(flag) :].lstrip("=").strip()
            return rest or None
    return None


def _toml_dependency_version(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return None if value.strip() == "*" else value.strip()
    if isinstance(value, dict):
        version = value.get("version")
        return str(version) if isinstance(version, str) else None
    return None


def parse_pyproject(text: str) -> Dependencies:
    """PEP 621 and Poetry dependencies declared in ``pyproject.toml``."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise DetectParseError(f"pyproject.toml: parse failed: {exc}") from exc

    deps: Dependencies = {}
    project = data.get("project")
    if isinstance(project, dict):
        specs: List[Any] = list(project.get("dependencies") or [])
        optional = project.get("optional-dependencies") or {}
        if isinstance(optional, dict):
            for values in optional.values():
                specs.extend(values or [])
        for spec in specs:
            if isinstance(spec, str):
                name, constraint = normalize_requirement_name(spec.strip())
                if name:
                    deps.setdefault(name, constraint)

    tool = data.get("tool")
    poetry = tool.get("poetry") if isinstance(tool, dict) else None
    if isinstance(poetry, dict):
        tables = [poetry.get("dependencies"), poetry.get("dev-dependencies")]
        groups = poetry.get("group")
        if isinstance(groups, dict):
            tables.extend(
                group.get("dependencies") for group in groups.values() if isinstance(group, dict)
            )
        for table in tables:
            if not isinstance(table, dict):
                continue
            for name, value in table.items():
                lowered = str(name).lower()
                if lowered == "python":
                    continue
                deps.setdefault(lowered, _toml_dependency_version(value))
    return deps


def parse_pipfile(text: str) -> Dependencies:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise DetectParseError(f"Pipfile: parse failed: {exc}") from exc

    deps: Dependencies = {}
    for section in ("packages", "dev-packages"):
        table = data.get(section)
        if not isinstance(table, dict):
            continue
        for name, value in table.items():
            deps.setdefault(str(name).strip().strip("\"'").lower(), _toml_dependency_version(value))
    return deps


def load_python_dependencies(module_dir: Path, max_bytes: int, max_depth: int) -> Dependencies:
    """Union of requirements.txt, pyproject.toml and Pipfile declarations."""
    deps = collect_requirements(module_dir / "requirements.txt", max_bytes, max_depth)

    pyproject = read_text_with_limit(module_dir / "pyproject.toml", max_bytes)
    if pyproject is not None:
        for name, version in parse_pyproject(pyproject).items():
            deps.setdefault(name, version)

    pipfile = read_text_with_limit(module_dir / "Pipfile", max_bytes)
    if pipfile is not None:
        for name, version in parse_pipfile(pipfile).items():
            deps.setdefault(name, version)
    return deps


# Node.js


def load_package_json(path: Path, max_bytes: int) -> Optional[Dict[str, Any]]:
    text = read_text_with_limit(path, max_bytes)
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DetectParseError(f"package.json parse failed: {exc}") from exc
    if not isinstance(data, dict):
        raise DetectParseError("package.json parse failed: top-level value is not an object")
    return data


def string_mapping(data: Dict[str, Any], key: str) -> Dict[str, str]:
    value = data.get(key)
    if not isinstance(value, dict):
        return {}
    return {str(name): version for name, version in value.items() if isinstance(version, str)}


def merge_dependency_objects(data: Dict[str, Any]) -> Dict[str, str]:
    """All declared npm dependencies; the first section declaring a name wins."""
    merged: Dict[str, str] = {}
    for key in ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies"):
        for name, version in string_mapping(data, key).items():
            merged.setdefault(name, version)
    return merged


# Rust


def load_cargo_dependencies(path: Path, max_bytes: int) -> Optional[Dependencies]:
    text = read_text_with_limit(path, max_bytes)
    if text is None:
        return None
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise DetectParseError(f"Cargo.toml parse failed: {exc}") from exc
    table = data.get("dependencies")
    if not isinstance(table, dict):
        return {}
    return {str(name).lower(): _toml_dependency_version(value) for name, value in table.items()}


# Dart / Flutter


def parse_pubspec(text: str) -> Tuple[Dependencies, Optional[str]]:
    """Dependency names (regular and dev) and the Dart SDK constraint."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DetectParseError(f"pubspec.yaml parse failed: {exc}") from exc
    if not isinstance(data, dict):
        return {}, None

    deps: Dependencies = {}
    for section in ("dependencies", "dev_dependencies"):
        table = data.get(section)
        if not isinstance(table, dict):
            continue
        for name, value in table.items():
            deps.setdefault(str(name).lower(), value if isinstance(value, str) else None)

    sdk: Optional[str] = None
    environment = data.get("environment")
    if isinstance(environment, dict):
        raw_sdk = environment.get("sdk")
        if isinstance(raw_sdk, str) and raw_sdk.strip():
            sdk = raw_sdk.strip()
    return deps, sdk


def gradle_sdk_versions(text: str) -> Tuple[Optional[int], Optional[int]]:
    """``(minSdk, targetSdk)`` from the first 200 lines of an Android build file."""
    min_sdk: Optional[int] = None
    target_sdk: Optional[int] = None
    for line in text.splitlines()[:200]:
        if min_sdk is None:
            min_sdk = _sdk_value(line, "minSdkVersion", "minSdk")
        if target_sdk is None:
            target_sdk = _sdk_value(line, "targetSdkVersion", "targetSdk")
        if min_sdk is not None and target_sdk is not None:
            break
    return min_sdk, target_sdk


def _sdk_value(line: str, long_key: str, short_key: str) -> Optional[int]:
    for key in (long_key, short_key):
        index = line.find(key)
        if index >= 0:
            remainder = line[index + len(key) :]
            match = re.match(r"\D*?(\d+)", remainder)
            return int(match.group(1)) if match else None
    return None


# Repository level


def parse_gitmodules(text: str) -> List[GitSubmodule]:
    """Parse a ``.gitmodules`` file into submodule records (not yet scanned)."""
    submodules: List[GitSubmodule] = []
    name: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None

    def _flush() -> None:
        if name and path and path.strip():
            submodules.append(GitSubmodule(name=name, path=path, url=url))

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", ";")):
            continue
        if line.startswith("[") and line.endswith("]"):
            _flush()
            name, path, url = None, None, None
            inner = line[1:-1].strip()
            if inner.startswith("submodule"):
                name = inner[len("submodule") :].strip().strip('"') or None
            continue
        if "=" in line:
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"')
            if key == "path":
                path = value
            elif key == "url":
                url = value
    _flush()
    return submodules


_PACKAGE_MANAGER_FILES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("pnpm", ("pnpm-lock.yaml",)),
    ("yarn", ("yarn.lock",)),
    ("npm", ("package-lock.json",)),
    ("bun", ("bun.lockb", "bun.lock")),
    ("poetry", ("poetry.lock",)),
    ("pipenv", ("Pipfile.lock", "Pipfile")),
    ("bundler", ("Gemfile.lock", "Gemfile")),
    ("cargo", ("Cargo.lock",)),
    ("pub", ("pubspec.lock",)),
)


def detect_package_managers(directory: Path) -> List[str]:
    """Package managers implied by lockfiles present in ``directory``."""
    managers: List[str] = []
    for manager, filenames in _PACKAGE_MANAGER_FILES:
        if any((directory / filename).exists() for filename in filenames):
            managers.append(manager)
    return managers


__all__ = [
    "Dependencies",
    "collect_requirements",
    "detect_package_managers",
    "gradle_sdk_versions",
    "load_cargo_dependencies",
    "load_package_json",
    "load_python_dependencies",
    "merge_dependency_objects",
    "normalize_requirement_name",
    "parse_gitmodules",
    "parse_pipfile",
    "parse_pubspec",
    "parse_pyproject",
    "string_mapping",
]
