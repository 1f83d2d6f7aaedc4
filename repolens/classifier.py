"""File classification: ignored, generated, asset, or code in some language."""

from __future__ import annotations

from typing import Dict

from .config import ScanConfig
from .models import Classification

REASON_IGNORED_DIR = "ignoredDir"
REASON_MINIFIED = "ignoredMinified"
REASON_EXTENSION = "ignoredExtension"

OTHER_LANGUAGE = "Other"

_LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "js": "JavaScript",
    "jsx": "JavaScript",
    "cjs": "JavaScript",
    "mjs": "JavaScript",
    "vue": "Vue",
    "svelte": "Svelte",
    "dart": "Dart",
    "py": "Python",
    "pyi": "Python",
    "rs": "Rust",
    "go": "Go",
    "java": "Java",
    "kt": "Kotlin",
    "kts": "Kotlin",
    "scala": "Scala",
    "swift": "Swift",
    "m": "Objective-C",
    "mm": "Objective-C",
    "rb": "Ruby",
    "php": "PHP",
    "cs": "C#",
    "c": "C",
    "h": "C",
    "cpp": "C++",
    "cc": "C++",
    "hpp": "C++",
    "hh": "C++",
    "sh": "Shell",
    "bash": "Shell",
    "ps1": "PowerShell",
    "css": "CSS",
    "scss": "CSS",
    "sass": "CSS",
    "less": "CSS",
    "html": "HTML",
    "htm": "HTML",
    "json": "Config",
    "yaml": "Config",
    "yml": "Config",
    "toml": "Config",
    "xml": "Config",
    "ini": "Config",
    "plist": "Config",
    "md": "Markdown",
}


def language_for_path(rel_path: str) -> str:
    """Map a path to a language label using its final extension."""
    name = rel_path.rsplit("/", 1)[-1].lower()
    if "." not in name.lstrip("."):
        return OTHER_LANGUAGE
    extension = name.rsplit(".", 1)[-1]
    return _LANGUAGE_BY_EXTENSION.get(extension, OTHER_LANGUAGE)


def is_generated_path(lower_path: str, config: ScanConfig) -> bool:
    if not lower_path.endswith(tuple(ext.lower() for ext in config.generated_extensions)):
        return False
    parts = lower_path.split("/")
    if len(parts) < 2:
        return False
    generated_dirs = {name.lower() for name in config.generated_dirs}
    return parts[-2] in generated_dirs


def classify_file(rel_path: str, size: int, config: ScanConfig) -> Classification:
    """Assign exactly one classification; rules are evaluated in precedence order."""
    lower = rel_path.replace("\\", "/").lower()

    ignore_dirs = {name.lower() for name in config.ignore_dirs}
    for part in lower.split("/"):
        if part in ignore_dirs:
            return Classification.ignored(REASON_IGNORED_DIR)

    if lower.endswith(".min.js"):
        return Classification.ignored(REASON_MINIFIED)

    for extension in config.ignore_extensions:
        if lower.endswith(extension.lower()):
            return Classification.ignored(REASON_EXTENSION)

    if size > config.asset_threshold_bytes:
        return Classification.asset()

    if is_generated_path(lower, config):
        return Classification.generated()

    return Classification.code(language_for_path(lower))


__all__ = [
    "OTHER_LANGUAGE",
    "REASON_EXTENSION",
    "REASON_IGNORED_DIR",
    "REASON_MINIFIED",
    "classify_file",
    "is_generated_path",
    "language_for_path",
]
