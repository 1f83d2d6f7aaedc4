"""Tests for the Python backend detectors."""

from __future__ import annotations

from pathlib import Path

from repolens.config import ScanConfig
from repolens.detectors.python import (
    AiFeatureDetector,
    DjangoDetector,
    MicroFrameworkDetector,
    apply_backend_semantics,
)
from repolens.models import ModuleKind, ModuleSpec, ScanContext
from repolens.report import ModuleReport
from tests._fixtures.repo_builder import RepoBuilder, module_at


def _backend(root: Path) -> tuple[ScanContext, ModuleSpec, ModuleReport]:
    module = ModuleSpec(name="Backend", rel_path="/", abs_path=root, kind=ModuleKind.BACKEND)
    return ScanContext(root=root, config=ScanConfig()), module, ModuleReport(name="Backend", path="/")


def test_django_celery_postgres_backend(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "backend/manage.py": "print('ok')\n",
            "backend/requirements.txt": "Django>=3.2,<4.0\n# comment\ncelery\npsycopg2-binary\n",
            "frontend/index.html": "<html></html>\n",
        }
    )

    report = repo_builder.scan()
    backend = module_at(report, "/backend")
    stack = backend.backend

    assert stack is not None
    assert stack.framework == "Django"
    assert stack.orm == "Django ORM"
    assert stack.migrations == "Django Migrations"
    assert stack.queue == "Celery"
    assert stack.db == "PostgreSQL"
    assert backend.frameworks == ["Django"]
    assert {"Celery", "PostgreSQL", "Django ORM", "Django Migrations"} <= set(backend.deps)
    assert backend.deps == sorted(set(backend.deps))


def test_celery_only_backend_is_generic(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"backend/requirements.txt": "celery\n"})

    stack = module_at(repo_builder.scan(), "/backend").backend

    assert stack is not None
    assert stack.framework == "Python App (Generic)"
    assert stack.queue == "Celery"


def test_psycopg2_wins_over_mysqlclient(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "backend/manage.py": "print('ok')\n",
            "backend/requirements.txt": "mysqlclient==2.1.0\npsycopg2>=2.9\n",
        }
    )

    stack = module_at(repo_builder.scan(), "/backend").backend

    assert stack is not None
    assert stack.db == "PostgreSQL"


def test_flask_sqlalchemy_alembic_and_ai(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "backend/run.py": "from app import create_app\n",
            "backend/app/__init__.py": "from flask import Flask\n\napp = Flask(__name__)\n",
            "backend/migrations/alembic.ini": "[alembic]\n",
            "backend/app/services/ai_planner/llm_client.py": "import openai\n",
            "backend/requirements.txt": "flask\nsqlalchemy\nalembic\nopenai\n",
        }
    )

    module = module_at(repo_builder.scan(), "/backend")
    stack = module.backend

    assert stack is not None
    assert stack.framework == "Flask"
    assert stack.orm == "SQLAlchemy"
    assert stack.migrations == "Alembic"
    assert "OpenAI" in stack.ai_features
    assert "Custom AI Logic" in stack.ai_features
    assert {"SQLAlchemy", "Alembic", "OpenAI", "Custom AI Logic"} <= set(module.deps)


def test_deep_nested_migrations_are_generated(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "backend/manage.py": "print('ok')\n",
            "backend/apps/deep/nested/migrations/001.py": (
                "from django.db import migrations\n\n"
                "class Migration(migrations.Migration):\n    pass\n"
            ),
        }
    )

    report = repo_builder.scan()
    module = module_at(report, "/backend")

    assert module.generated is not None
    assert module.generated.files == 1
    assert module.generated.kloc_ignored > 0
    assert report.summary.generated_files >= 1
    assert all(stat.language == "Python" for stat in module.languages)
    assert module.languages[0].files == 1


def test_fastapi_detected_from_entry_point(tmp_path: Path) -> None:
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / "main.py").write_text(
        "from fastapi import FastAPI\n\napp = FastAPI()\n", encoding="utf-8"
    )
    ctx, module, report = _backend(tmp_path)

    MicroFrameworkDetector().detect(ctx, module, report)

    assert report.backend is not None
    assert report.backend.framework == "FastAPI"
    assert report.frameworks == ["FastAPI"]


def test_micro_framework_does_not_override_django(tmp_path: Path) -> None:
    (tmp_path / "manage.py").write_text("", encoding="utf-8")
    (tmp_path / "requirements.txt").write_text("flask\n", encoding="utf-8")
    ctx, module, report = _backend(tmp_path)

    DjangoDetector().detect(ctx, module, report)
    MicroFrameworkDetector().detect(ctx, module, report)

    assert report.backend is not None
    assert report.backend.framework == "Django"


def test_detectors_ignore_non_backend_modules(tmp_path: Path) -> None:
    (tmp_path / "manage.py").write_text("", encoding="utf-8")
    module = ModuleSpec(name="Repo", rel_path="/", abs_path=tmp_path, kind=ModuleKind.UNKNOWN)
    report = ModuleReport(name="Repo", path="/")

    DjangoDetector().detect(ScanContext(root=tmp_path), module, report)

    assert report.backend is None
    assert report.frameworks == []


def test_ai_heuristic_skips_ignored_directories(tmp_path: Path) -> None:
    (tmp_path / "node_modules" / "llm").mkdir(parents=True)
    (tmp_path / "node_modules" / "llm" / "index.js").write_text("", encoding="utf-8")
    ctx, module, report = _backend(tmp_path)

    AiFeatureDetector().detect(ctx, module, report)

    assert report.backend is not None
    assert report.backend.ai_features == []


def test_apply_backend_semantics_rest_and_mysql() -> None:
    report = ModuleReport(name="Backend", path="/backend")

    apply_backend_semantics(["djangorestframework", "mysqlclient"], report)

    assert report.backend is not None
    assert report.backend.rest is True
    assert report.backend.db == "MySQL"
    assert "DRF" in report.frameworks
    assert "Django" in report.frameworks
