"""JavaScript frontend detection: Vite, package.json frameworks and chart libraries."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from ..errors import DetectError
from ..models import ModuleSpec, ScanContext
from ..report import ModuleReport, PLACEHOLDER_NONE, PLACEHOLDER_UNKNOWN
from .base import Detector, read_text_with_limit
from .manifests import load_package_json, string_mapping

_VIS_LIBRARIES: Tuple[Tuple[str, str], ...] = (
    ("echarts", "ECharts"),
    ("vue-echarts", "vue-echarts"),
    ("chart.js", "Chart.js"),
    ("d3", "D3"),
    ("highcharts", "Highcharts"),
)
_VUE_UI_LIBRARIES: Tuple[Tuple[str, str], ...] = (
    ("element-plus", "ElementPlus"),
    ("antd-vue", "AntdVue"),
    ("vuetify", "Vuetify"),
)
_GENERIC_UI_LIBRARIES: Tuple[Tuple[str, str], ...] = (
    ("@mui/material", "MUI"),
    ("antd", "Ant Design"),
    ("tailwindcss", "Tailwind CSS"),
)


def _module_dirs(module: ModuleSpec) -> Iterator[Path]:
    """The module directory, then its parent when the module is a ``src`` folder."""
    yield module.abs_path
    if module.abs_path.name.lower() == "src":
        yield module.abs_path.parent


def _runtime_dependencies(
    ctx: ScanContext, module: ModuleSpec, report: ModuleReport
) -> Optional[Dict[str, str]]:
    """``dependencies`` of the module's package.json; problems become warnings."""
    package_json = module.abs_path / "package.json"
    for directory in _module_dirs(module):
        if (directory / "package.json").exists():
            package_json = directory / "package.json"
            break
    try:
        data = load_package_json(package_json, ctx.config.max_config_bytes)
    except DetectError as exc:
        report.add_warning(str(exc))
        return None
    if data is None or not isinstance(data.get("dependencies"), dict):
        return None
    return string_mapping(data, "dependencies")


def _is_vue3(version: Any) -> bool:
    if not isinstance(version, str):
        return False
    match = re.match(r"\s*[\^~>=v ]*(\d+)", version)
    return match is not None and match.group(1) == "3"


class ViteDetector(Detector):
    id = "ViteDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_frontend:
            return
        config_path = None
        for directory in _module_dirs(module):
            for filename in ("vite.config.ts", "vite.config.js", "vite.config.mjs"):
                if (directory / filename).exists():
                    config_path = directory / filename
                    break
            if config_path is not None:
                break
        if config_path is None:
            return

        try:
            read_text_with_limit(config_path, ctx.config.max_config_bytes)
        except DetectError as exc:
            report.add_warning(f"vite.config: {exc}")

        report.add_framework("Vite")
        frontend = report.ensure_frontend()
        if frontend.builder == PLACEHOLDER_UNKNOWN:
            frontend.builder = "Vite"


class PackageJsonDepsDetector(Detector):
    """UI frameworks, state stores and component libraries from ``dependencies``."""

    id = "PackageJsonDepsDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_frontend:
            return
        deps = _runtime_dependencies(ctx, module, report)
        if deps is None:
            return
        frontend = report.ensure_frontend()

        if _is_vue3(deps.get("vue")):
            frontend.vue = 3
            report.add_framework("Vue3")
        if "react" in deps and "react-dom" in deps:
            report.add_framework("React")
        if "next" in deps:
            report.add_framework("Next.js")
        if "svelte" in deps:
            report.add_framework("Svelte")

        if frontend.store == PLACEHOLDER_NONE:
            store = None
            if "pinia" in deps:
                store = "Pinia"
            elif "@reduxjs/toolkit" in deps or "redux" in deps:
                store = "Redux"
            elif "zustand" in deps:
                store = "Zustand"
            elif "recoil" in deps:
                store = "Recoil"
            if store is not None:
                frontend.store = store
                report.add_dep(store)

        if frontend.ui == PLACEHOLDER_NONE:
            for package, label in _VUE_UI_LIBRARIES + _GENERIC_UI_LIBRARIES:
                if package in deps:
                    frontend.ui = label
                    report.add_dep(label)
                    break
        if "tailwindcss" in deps:
            report.add_dep("Tailwind CSS")
        if "lucide-react" in deps:
            report.add_dep("Lucide Icons")


class FrontendVisDetector(Detector):
    id = "FrontendVisDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_frontend:
            return
        deps = _runtime_dependencies(ctx, module, report)
        if deps is None:
            return
        frontend = report.ensure_frontend()
        for package, label in _VIS_LIBRARIES:
            if package in deps and label not in frontend.visualization:
                frontend.visualization.append(label)


__all__ = ["FrontendVisDetector", "PackageJsonDepsDetector", "ViteDetector"]
