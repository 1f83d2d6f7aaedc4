"""Tests for repolens.topology."""

from __future__ import annotations

from pathlib import Path

from repolens.models import ModuleKind
from repolens.topology import resolve_modules


def _mkdirs(root: Path, *names: str) -> None:
    for name in names:
        (root / name).mkdir(parents=True, exist_ok=True)


def _summary(root: Path) -> list[tuple[str, str, ModuleKind]]:
    return [(module.name, module.rel_path, module.kind) for module in resolve_modules(root)]


def test_backend_and_frontend_split(tmp_path: Path) -> None:
    _mkdirs(tmp_path, "backend", "frontend", "server", "client")

    assert _summary(tmp_path) == [
        ("Backend", "/backend", ModuleKind.BACKEND),
        ("Frontend", "/frontend", ModuleKind.FRONTEND),
    ]


def test_tauri_layout_takes_precedence(tmp_path: Path) -> None:
    _mkdirs(tmp_path, "src-tauri", "src", "backend")

    modules = resolve_modules(tmp_path)

    assert [(m.name, m.rel_path) for m in modules] == [
        ("Tauri Core", "/src-tauri"),
        ("Frontend", "/src"),
    ]
    assert all(module.excluded == () for module in modules)


def test_tauri_without_src_uses_root_and_excludes_core(tmp_path: Path) -> None:
    _mkdirs(tmp_path, "src-tauri")

    modules = resolve_modules(tmp_path)
    frontend = modules[1]

    assert frontend.rel_path == "/"
    assert frontend.abs_path == tmp_path
    assert frontend.excluded == (tmp_path / "src-tauri",)


def test_flutter_requires_pubspec_and_lib(tmp_path: Path) -> None:
    (tmp_path / "pubspec.yaml").write_text("name: demo\n", encoding="utf-8")
    assert _summary(tmp_path) == [("Repo", "/", ModuleKind.UNKNOWN)]

    _mkdirs(tmp_path, "lib")
    assert _summary(tmp_path) == [("Flutter App", "/", ModuleKind.FRONTEND)]


def test_server_client_and_single_sides(tmp_path: Path) -> None:
    _mkdirs(tmp_path, "server")
    assert _summary(tmp_path) == [("Backend", "/server", ModuleKind.BACKEND)]

    _mkdirs(tmp_path, "client")
    assert _summary(tmp_path) == [
        ("Backend", "/server", ModuleKind.BACKEND),
        ("Frontend", "/client", ModuleKind.FRONTEND),
    ]


def test_apps_conventions(tmp_path: Path) -> None:
    _mkdirs(tmp_path, "apps/web")
    assert _summary(tmp_path) == [("Frontend", "/apps/web", ModuleKind.FRONTEND)]

    _mkdirs(tmp_path, "web")
    assert _summary(tmp_path) == [
        ("Apps", "/apps", ModuleKind.UNKNOWN),
        ("Frontend", "/web", ModuleKind.FRONTEND),
    ]


def test_plain_repository_is_one_unknown_module(tmp_path: Path) -> None:
    _mkdirs(tmp_path, "src", "docs")

    assert _summary(tmp_path) == [("Repo", "/", ModuleKind.UNKNOWN)]
