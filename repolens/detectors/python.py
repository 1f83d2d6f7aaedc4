"""Detectors for Python backends: Django, micro-frameworks, ORMs and AI usage."""

from __future__ import annotations

import os
from typing import Iterable, List, Optional, Tuple

from ..errors import DetectError
from ..models import ModuleSpec, ScanContext
from ..report import BackendStack, ModuleReport, PLACEHOLDER_UNKNOWN
from .base import Detector, first_existing, read_first_lines, read_text_with_limit
from .manifests import Dependencies, load_python_dependencies

DJANGO = "Django"
DJANGO_ORM = "Django ORM"
DJANGO_MIGRATIONS = "Django Migrations"
CUSTOM_AI_LOGIC = "Custom AI Logic"

_HEAD_LINES = 50

_AI_LIBRARIES: Tuple[Tuple[str, str], ...] = (
    ("openai", "OpenAI"),
    ("langchain", "LangChain"),
    ("anthropic", "Anthropic"),
    ("transformers", "Transformers"),
    ("pytorch", "PyTorch"),
    ("tensorflow", "TensorFlow"),
)
_AI_PATH_MARKERS = ("/ai/", "/llm/", "/ml/", "ai_planner", "prompts")
_AI_FILENAMES = {"llm_client.py", "prompts.py"}


def _load_dependencies(ctx: ScanContext, module: ModuleSpec) -> Dependencies:
    return load_python_dependencies(
        module.abs_path,
        ctx.config.max_config_bytes,
        ctx.config.follow_requirements_depth,
    )


def _dependency_names(ctx: ScanContext, module: ModuleSpec) -> List[str]:
    return list(_load_dependencies(ctx, module))


def _any_contains(names: Iterable[str], needle: str) -> bool:
    return any(needle in name for name in names)


class DjangoDetector(Detector):
    """A ``manage.py`` at the module root marks a Django project."""

    id = "DjangoDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_backend:
            return
        manage = module.abs_path / "manage.py"
        if not manage.exists():
            return
        try:
            read_text_with_limit(manage, ctx.config.max_config_bytes)
        except DetectError as exc:
            report.add_warning(f"manage.py: {exc}")
        report.add_framework(DJANGO)
        report.backend = BackendStack(
            framework=DJANGO,
            orm=DJANGO_ORM,
            migrations=DJANGO_MIGRATIONS,
        )


class PythonDepsDetector(Detector):
    """REST, queue, database and framework hints from declared Python packages."""

    id = "PythonDepsDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_backend:
            return
        deps = _load_dependencies(ctx, module)
        for name, version in deps.items():
            report.declare_dependency(name, version)
        apply_backend_semantics(deps, report)


def apply_backend_semantics(names: Iterable[str], report: ModuleReport) -> None:
    backend = report.ensure_backend()
    has_psycopg2 = False
    has_mysqlclient = False
    for name in names:
        lowered = name.lower()
        if "djangorestframework" in lowered:
            backend.rest = True
            report.add_framework("DRF")
        if "celery" in lowered:
            backend.queue = "Celery"
            report.add_dep("Celery")
        if "psycopg2" in lowered:
            has_psycopg2 = True
        if "mysqlclient" in lowered:
            has_mysqlclient = True
        if "django" in lowered and backend.framework == PLACEHOLDER_UNKNOWN:
            backend.framework = DJANGO
            report.add_framework(DJANGO)

    if has_psycopg2:
        backend.db = "PostgreSQL"
        report.add_dep("PostgreSQL")
    elif has_mysqlclient:
        backend.db = "MySQL"
        report.add_dep("MySQL")


class MicroFrameworkDetector(Detector):
    """FastAPI or Flask, from dependencies first and application entry points second."""

    id = "MicroFrameworkDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_backend:
            return
        names = _dependency_names(ctx, module)
        backend = report.ensure_backend()
        if not backend.framework_is_placeholder():
            return

        framework = _framework_from_dependencies(names)
        if framework is None:
            framework = self._framework_from_sources(ctx, module)
        if framework is not None:
            backend.framework = framework
            report.add_framework(framework)

    def _framework_from_sources(self, ctx: ScanContext, module: ModuleSpec) -> Optional[str]:
        max_bytes = ctx.config.max_config_bytes
        framework: Optional[str] = None

        init_py = module.abs_path / "app" / "__init__.py"
        head = read_first_lines(init_py, max_bytes, _HEAD_LINES)
        if head is not None and "Flask(__name__)" in head:
            framework = "Flask"

        main_py = first_existing([module.abs_path / "main.py", module.abs_path / "app" / "main.py"])
        if main_py is not None:
            head = read_first_lines(main_py, max_bytes, _HEAD_LINES)
            if head is not None and "FastAPI(" in head:
                framework = "FastAPI"
        return framework


def _framework_from_dependencies(names: Iterable[str]) -> Optional[str]:
    names = [name.lower() for name in names]
    if _any_contains(names, "fastapi"):
        return "FastAPI"
    if _any_contains(names, "flask") or _any_contains(names, "quart"):
        return "Flask"
    return None


class OrmMigrationDetector(Detector):
    """ORM and migration tooling, including an ``alembic.ini`` under ``migrations/``."""

    id = "OrmMigrationDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_backend:
            return
        names = _dependency_names(ctx, module)
        if (module.abs_path / "migrations" / "alembic.ini").exists():
            names.append("alembic")
        backend = report.ensure_backend()

        if backend.framework == DJANGO:
            backend.orm = DJANGO_ORM
            backend.migrations = DJANGO_MIGRATIONS
            return

        orm: Optional[str] = None
        migrations: Optional[str] = None
        for name in names:
            lowered = name.lower()
            if migrations is None and "alembic" in lowered:
                migrations = "Alembic"
            if orm is None and "sqlalchemy" in lowered:
                orm = "SQLAlchemy"
            if orm is None and "tortoise-orm" in lowered:
                orm = "Tortoise"
            if orm is None and "peewee" in lowered:
                orm = "Peewee"
        if orm is not None:
            backend.orm = orm
        if migrations is not None:
            backend.migrations = migrations


class AiFeatureDetector(Detector):
    """AI SDK dependencies plus a naming heuristic for hand-written AI code."""

    id = "AiFeatureDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        if not module.is_backend:
            return
        names = [name.lower() for name in _dependency_names(ctx, module)]
        backend = report.ensure_backend()

        for needle, label in _AI_LIBRARIES:
            if _any_contains(names, needle) and label not in backend.ai_features:
                backend.ai_features.append(label)

        if CUSTOM_AI_LOGIC not in backend.ai_features and self._has_custom_ai_code(ctx, module):
            backend.ai_features.append(CUSTOM_AI_LOGIC)

    def _has_custom_ai_code(self, ctx: ScanContext, module: ModuleSpec) -> bool:
        ignore_dirs = {name.lower() for name in ctx.config.ignore_dirs}
        excluded = {str(path) for path in module.excluded}
        for dirpath, dirnames, filenames in os.walk(module.abs_path):
            dirnames[:] = [
                name
                for name in dirnames
                if name.lower() not in ignore_dirs
                and name not in {".git", ".hg", ".svn"}
                and os.path.join(dirpath, name) not in excluded
            ]
            rel_dir = os.path.relpath(dirpath, module.abs_path).replace(os.sep, "/")
            prefix = "/" if rel_dir == "." else f"/{rel_dir.lower()}/"
            for name in dirnames + filenames:
                lowered = name.lower()
                candidate = f"{prefix}{lowered}"
                if any(marker in candidate for marker in _AI_PATH_MARKERS):
                    return True
                if lowered in _AI_FILENAMES:
                    return True
        return False


__all__ = [
    "AiFeatureDetector",
    "DjangoDetector",
    "MicroFrameworkDetector",
    "OrmMigrationDetector",
    "PythonDepsDetector",
    "apply_backend_semantics",
]
