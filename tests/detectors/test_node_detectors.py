"""Tests for the JavaScript frontend detectors."""

from __future__ import annotations

import json
from pathlib import Path

from repolens.config import ScanConfig
from repolens.detectors.node import FrontendVisDetector, PackageJsonDepsDetector, ViteDetector
from repolens.models import ModuleKind, ModuleSpec, ScanContext
from repolens.report import ModuleReport
from tests._fixtures.repo_builder import RepoBuilder, module_at


def _frontend(root: Path) -> tuple[ScanContext, ModuleSpec, ModuleReport]:
    module = ModuleSpec(name="Frontend", rel_path="/", abs_path=root, kind=ModuleKind.FRONTEND)
    return ScanContext(root=root, config=ScanConfig()), module, ModuleReport(name="Frontend", path="/")


def _package_json(root: Path, payload: dict) -> None:
    (root / "package.json").write_text(json.dumps(payload), encoding="utf-8")


def test_vue_pinia_element_plus(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "backend/manage.py": "print('ok')\n",
            "frontend/vite.config.ts": "export default {};\n",
            "frontend/package.json": (
                '{ "dependencies": { "vue": "^3.4.0", "pinia": "^2.0.0", '
                '"element-plus": "^2.0.0", "echarts": "^5.0.0" } }'
            ),
        }
    )

    module = module_at(repo_builder.scan(), "/frontend")
    stack = module.frontend

    assert stack is not None
    assert stack.builder == "Vite"
    assert stack.vue == 3
    assert stack.store == "Pinia"
    assert stack.ui == "ElementPlus"
    assert stack.visualization == ["ECharts"]
    assert {"Vite", "Vue3"} <= set(module.frameworks)
    assert {"Pinia", "ElementPlus", "ECharts"} <= set(module.deps)


def test_invalid_package_json_is_a_warning(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "backend/manage.py": "print('ok')\n",
            "frontend/vite.config.ts": "export default {};\n",
            "frontend/package.json": "{ invalid json }",
        }
    )

    report = repo_builder.scan()
    frontend = module_at(report, "/frontend")

    assert "Vite" in frontend.frameworks
    assert any("package.json" in warning for warning in frontend.warnings)
    assert any(warning.startswith("Frontend: ") for warning in report.summary.warnings)


def test_vue2_is_not_reported_as_vue3(tmp_path: Path) -> None:
    _package_json(tmp_path, {"dependencies": {"vue": "^2.7.13"}})
    ctx, module, report = _frontend(tmp_path)

    PackageJsonDepsDetector().detect(ctx, module, report)

    assert report.frontend is not None
    assert report.frontend.vue is None
    assert "Vue3" not in report.frameworks


def test_react_requires_react_dom(tmp_path: Path) -> None:
    _package_json(tmp_path, {"dependencies": {"react": "^18.0.0", "zustand": "^4.0.0"}})
    ctx, module, report = _frontend(tmp_path)

    PackageJsonDepsDetector().detect(ctx, module, report)

    assert "React" not in report.frameworks
    assert report.frontend is not None
    assert report.frontend.store == "Zustand"


def test_tailwind_and_icons(tmp_path: Path) -> None:
    _package_json(
        tmp_path,
        {
            "dependencies": {
                "react": "^18.0.0",
                "react-dom": "^18.0.0",
                "tailwindcss": "^3.0.0",
                "lucide-react": "^0.300.0",
            }
        },
    )
    ctx, module, report = _frontend(tmp_path)

    PackageJsonDepsDetector().detect(ctx, module, report)

    assert report.frontend is not None
    assert report.frontend.ui == "Tailwind CSS"
    assert "React" in report.frameworks
    assert "Lucide Icons" in report.deps
    assert "Tailwind CSS" in report.deps


def test_vite_config_in_parent_of_src_module(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "vite.config.js").write_text("export default {}\n", encoding="utf-8")
    module = ModuleSpec(
        name="Frontend", rel_path="/src", abs_path=tmp_path / "src", kind=ModuleKind.FRONTEND
    )
    report = ModuleReport(name="Frontend", path="/src")

    ViteDetector().detect(ScanContext(root=tmp_path), module, report)

    assert report.frameworks == ["Vite"]
    assert report.frontend is not None
    assert report.frontend.builder == "Vite"


def test_visualization_libraries_are_collected_once(tmp_path: Path) -> None:
    _package_json(tmp_path, {"dependencies": {"d3": "^7.0.0", "chart.js": "^4.0.0"}})
    ctx, module, report = _frontend(tmp_path)

    FrontendVisDetector().detect(ctx, module, report)
    FrontendVisDetector().detect(ctx, module, report)

    assert report.frontend is not None
    assert report.frontend.visualization == ["Chart.js", "D3"]
