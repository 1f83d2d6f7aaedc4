"""Flutter, Android and iOS detection for mobile frontends."""

from __future__ import annotations

from typing import Dict

from ..models import ModuleSpec, ScanContext
from ..report import ModuleReport, PLACEHOLDER_NONE, PLACEHOLDER_UNKNOWN
from .base import Detector, first_existing, read_text_with_limit
from .manifests import gradle_sdk_versions, parse_pubspec

_FLUTTER_DEP_LABELS: Dict[str, str] = {
    "provider": "Provider",
    "flutter_riverpod": "Riverpod",
    "riverpod": "Riverpod",
    "flutter_bloc": "Bloc",
    "bloc": "Bloc",
    "get": "GetX",
    "isar": "Isar",
    "hive": "Hive",
    "sqflite": "Sqflite",
    "shared_preferences": "SharedPreferences",
    "dio": "Dio",
    "http": "HTTP",
    "go_router": "GoRouter",
    "auto_route": "AutoRoute",
}

# Earlier entries win when several state-management packages are declared.
_STORE_PRIORITY = ("Riverpod", "Bloc", "Provider", "GetX")


class FlutterDetector(Detector):
    id = "FlutterDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_frontend:
            return
        text = read_text_with_limit(module.abs_path / "pubspec.yaml", ctx.config.max_config_bytes)
        if text is None:
            return
        deps, sdk = parse_pubspec(text)
        for name, version in deps.items():
            report.declare_dependency(name, version)

        if sdk:
            report.add_dep(f"Dart SDK {sdk}")
        if "flutter" not in deps:
            return

        report.add_framework("Flutter")
        report.add_framework("Mobile / Cross-platform")
        frontend = report.ensure_frontend()
        if frontend.builder == PLACEHOLDER_UNKNOWN:
            frontend.builder = "Flutter"

        labels = []
        for name in deps:
            label = _FLUTTER_DEP_LABELS.get(name.strip().lower().replace("-", "_"))
            if label is not None:
                labels.append(label)
                report.add_dep(label)

        if frontend.store == PLACEHOLDER_NONE:
            for store in _STORE_PRIORITY:
                if store in labels:
                    frontend.store = store
                    break


class AndroidDetector(Detector):
    id = "AndroidDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_frontend or not (module.abs_path / "pubspec.yaml").exists():
            return
        android = module.abs_path / "android"
        gradle = first_existing([android / "build.gradle", android / "build.gradle.kts"])
        if gradle is None:
            return

        report.add_dep("Android")
        text = read_text_with_limit(gradle, ctx.config.max_config_bytes)
        if text is None:
            return
        min_sdk, target_sdk = gradle_sdk_versions(text)
        if min_sdk is not None:
            report.add_dep(f"Android minSdk={min_sdk}")
        if target_sdk is not None:
            report.add_dep(f"Android targetSdk={target_sdk}")


class IosDetector(Detector):
    id = "IosDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_frontend or not (module.abs_path / "pubspec.yaml").exists():
            return
        ios = module.abs_path / "ios"
        if not ios.is_dir():
            return
        if (ios / "Podfile").exists():
            report.add_dep("iOS")
            return
        try:
            has_project = any(child.suffix == ".xcodeproj" for child in ios.iterdir())
        except OSError:
            return
        if has_project:
            report.add_dep("iOS")


__all__ = ["AndroidDetector", "FlutterDetector", "IosDetector"]
