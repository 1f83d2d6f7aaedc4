"""Technology components with confidence scores, detected from manifests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import DetectError
from ..models import ModuleSpec, ScanContext
from ..report import ModuleReport, TechComponent
from .base import Detector, read_text_with_limit, with_parent_fallback
from .manifests import load_package_json, load_python_dependencies, merge_dependency_objects


@dataclass(frozen=True)
class PackageRule:
    """Maps npm packages (and optionally a script keyword) to one component."""

    id: str
    name: str
    category: str
    packages: Tuple[str, ...]
    confidence: float
    script_keyword: Optional[str] = None


@dataclass(frozen=True)
class TextRule:
    """A case-insensitive keyword in a manifest's text implies a component."""

    id: str
    name: str
    category: str
    keywords: Tuple[str, ...]
    confidence: float


PACKAGE_RULES: Tuple[PackageRule, ...] = (
    PackageRule("react", "React", "frontend", ("react",), 0.98),
    PackageRule("next", "Next.js", "frontend", ("next",), 0.95),
    PackageRule("vue", "Vue", "frontend", ("vue",), 0.98),
    PackageRule("nuxt", "Nuxt", "frontend", ("nuxt", "nuxt3"), 0.92),
    PackageRule("angular", "Angular", "frontend", ("@angular/core",), 0.98),
    PackageRule("svelte", "Svelte", "frontend", ("svelte",), 0.97),
    PackageRule("vite", "Vite", "build", ("vite",), 0.9, "vite"),
    PackageRule("webpack", "Webpack", "build", ("webpack", "webpack-cli"), 0.88, "webpack"),
    PackageRule("rollup", "Rollup", "build", ("rollup",), 0.85, "rollup"),
    PackageRule("vitest", "Vitest", "test", ("vitest",), 0.9, "vitest"),
    PackageRule("jest", "Jest", "test", ("jest",), 0.9, "jest"),
    PackageRule("cypress", "Cypress", "test", ("cypress",), 0.9),
    PackageRule("playwright", "Playwright", "test", ("@playwright/test", "playwright"), 0.88),
    PackageRule("express", "Express", "backend", ("express",), 0.9),
    PackageRule("nestjs", "NestJS", "backend", ("@nestjs/core",), 0.9),
    PackageRule("koa", "Koa", "backend", ("koa",), 0.85),
    PackageRule("fastify", "Fastify", "backend", ("fastify",), 0.88),
    PackageRule("prisma", "Prisma", "database", ("prisma", "@prisma/client"), 0.85),
    PackageRule("mongoose", "MongoDB (Mongoose)", "database", ("mongoose",), 0.85),
    PackageRule("postgres", "PostgreSQL", "database", ("pg",), 0.75),
    PackageRule("mysql", "MySQL", "database", ("mysql2", "mysql"), 0.7),
    PackageRule("redis", "Redis", "database", ("redis", "ioredis"), 0.7),
)

_PYTHON_RULES: Tuple[TextRule, ...] = (
    TextRule("django", "Django", "backend", ("django",), 0.88),
    TextRule("fastapi", "FastAPI", "backend", ("fastapi",), 0.88),
    TextRule("flask", "Flask", "backend", ("flask",), 0.85),
    TextRule("pytest", "pytest", "test", ("pytest",), 0.85),
    TextRule("sqlalchemy", "SQLAlchemy", "database", ("sqlalchemy",), 0.8),
    TextRule("postgres", "PostgreSQL", "database", ("psycopg2", "asyncpg"), 0.75),
    TextRule("mongodb", "MongoDB", "database", ("pymongo",), 0.75),
)
_JAVA_RULES: Tuple[TextRule, ...] = (
    TextRule("spring-boot", "Spring Boot", "backend", ("spring-boot", "org.springframework.boot"), 0.9),
    TextRule("junit", "JUnit", "test", ("junit",), 0.8),
    TextRule("hibernate", "Hibernate", "database", ("hibernate",), 0.78),
)
_GO_RULES: Tuple[TextRule, ...] = (
    TextRule("gin", "Gin", "backend", ("github.com/gin-gonic/gin",), 0.85),
    TextRule("gorm", "GORM", "database", ("gorm.io/gorm",), 0.8),
)
_RUBY_RULES: Tuple[TextRule, ...] = (
    TextRule("rails", "Ruby on Rails", "backend", ("rails",), 0.85),
)
_DOCKER_RULES: Tuple[TextRule, ...] = (
    TextRule("postgres", "PostgreSQL", "database", ("postgres",), 0.7),
    TextRule("mysql", "MySQL", "database", ("mysql",), 0.7),
    TextRule("mariadb", "MariaDB", "database", ("mariadb",), 0.7),
    TextRule("mongodb", "MongoDB", "database", ("mongo",), 0.7),
    TextRule("redis", "Redis", "database", ("redis",), 0.7),
)
_PRISMA_RULES: Tuple[TextRule, ...] = (
    TextRule("postgres", "PostgreSQL", "database", ('provider = "postgresql"',), 0.85),
    TextRule("mysql", "MySQL", "database", ('provider = "mysql"',), 0.85),
    TextRule("mongodb", "MongoDB", "database", ('provider = "mongodb"',), 0.85),
)

# (relative path, ecosystem component always implied by the file, keyword rules)
_MANIFEST_RULES: Tuple[Tuple[str, Optional[TextRule], Tuple[TextRule, ...]], ...] = (
    ("requirements.txt", TextRule("python", "Python", "backend", (), 0.7), _PYTHON_RULES),
    ("pyproject.toml", TextRule("python", "Python", "backend", (), 0.7), _PYTHON_RULES),
    ("Pipfile", TextRule("python", "Python", "backend", (), 0.7), _PYTHON_RULES),
    ("pom.xml", TextRule("java", "Java", "backend", (), 0.7), _JAVA_RULES),
    ("build.gradle", TextRule("java", "Java", "backend", (), 0.7), _JAVA_RULES),
    ("build.gradle.kts", TextRule("java", "Java", "backend", (), 0.7), _JAVA_RULES),
    ("go.mod", TextRule("go", "Go", "backend", (), 0.75), _GO_RULES),
    ("Gemfile", TextRule("ruby", "Ruby", "backend", (), 0.65), _RUBY_RULES),
    ("Dockerfile", TextRule("docker", "Docker", "infra", (), 0.8), _DOCKER_RULES),
    ("docker-compose.yml", TextRule("docker", "Docker", "infra", (), 0.8), _DOCKER_RULES),
    ("docker-compose.yaml", TextRule("docker", "Docker", "infra", (), 0.8), _DOCKER_RULES),
    ("prisma/schema.prisma", TextRule("prisma", "Prisma", "database", (), 0.9), _PRISMA_RULES),
)


def package_aliases() -> Dict[str, str]:
    """npm package name -> component id, for linking graph edges."""
    aliases: Dict[str, str] = {}
    for rule in PACKAGE_RULES:
        for package in rule.packages:
            aliases.setdefault(package, rule.id)
    for _, _, rules in _MANIFEST_RULES:
        for text_rule in rules:
            for keyword in text_rule.keywords:
                if keyword.isidentifier():
                    aliases.setdefault(keyword, text_rule.id)
    return aliases


def _scripts_contain(scripts: Any, keyword: str) -> bool:
    if not isinstance(scripts, dict):
        return False
    return any(isinstance(command, str) and keyword in command for command in scripts.values())


def components_from_package_json(data: Dict[str, Any]) -> List[TechComponent]:
    """Raw (unnormalised) components implied by a parsed package.json."""
    deps = merge_dependency_objects(data)
    scripts = data.get("scripts")
    found: List[TechComponent] = []

    engines = data.get("engines")
    if isinstance(engines, dict) and isinstance(engines.get("node"), str):
        found.append(
            TechComponent(
                id="node",
                name="Node.js",
                category="runtime",
                version=engines["node"],
                confidence=0.8,
                evidence=["package.json: engines.node"],
            )
        )

    for rule in PACKAGE_RULES:
        matched = [package for package in rule.packages if package in deps]
        via_script = rule.script_keyword is not None and _scripts_contain(
            scripts, rule.script_keyword
        )
        if not matched and not via_script:
            continue
        version = next((deps[package] for package in matched), None)
        evidence = [f"package.json: {package}" for package in matched]
        if via_script:
            evidence.append(f"package.json: scripts use {rule.script_keyword}")
        found.append(
            TechComponent(
                id=rule.id,
                name=rule.name,
                category=rule.category,
                version=version,
                confidence=rule.confidence,
                evidence=evidence,
            )
        )
    return found


def components_from_text(
    filename: str, text: str, base: Optional[TextRule], rules: Iterable[TextRule]
) -> List[TechComponent]:
    lowered = text.lower()
    found: List[TechComponent] = []
    if base is not None:
        found.append(
            TechComponent(
                id=base.id,
                name=base.name,
                category=base.category,
                confidence=base.confidence,
                evidence=[f"{filename}: present"],
            )
        )
    for rule in rules:
        hits = [keyword for keyword in rule.keywords if keyword.lower() in lowered]
        if hits:
            found.append(
                TechComponent(
                    id=rule.id,
                    name=rule.name,
                    category=rule.category,
                    confidence=rule.confidence,
                    evidence=[f"{filename}: {keyword}" for keyword in hits],
                )
            )
    return found


class PackageJsonComponentDetector(Detector):
    """Runtime, framework, build, test and datastore components from package.json."""

    id = "PackageJsonComponentDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        package_json = with_parent_fallback(module, "package.json", "src")
        try:
            data = load_package_json(package_json, ctx.config.max_config_bytes)
        except DetectError as exc:
            report.add_warning(str(exc))
            return
        if data is None:
            return
        for name, version in merge_dependency_objects(data).items():
            report.declare_dependency(name, version)
        for component in components_from_package_json(data):
            report.add_component(component)


class ManifestComponentDetector(Detector):
    """Components for Python, JVM, Go, Ruby, Docker and Prisma manifests."""

    id = "ManifestComponentDetector"

    def detect(self, ctx: ScanContext, module: ModuleSpec, report: ModuleReport) -> None:
        max_bytes = ctx.config.max_config_bytes
        for rel_path, base, rules in _MANIFEST_RULES:
            path: Path = module.abs_path / rel_path
            try:
                text = read_text_with_limit(path, max_bytes)
            except DetectError as exc:
                report.add_warning(str(exc))
                continue
            if text is None:
                continue
            for component in components_from_text(rel_path, text, base, rules):
                report.add_component(component)

        try:
            declared = load_python_dependencies(
                module.abs_path, max_bytes, ctx.config.follow_requirements_depth
            )
        except DetectError:
            # Already reported while reading the same files above.
            return
        for name, version in declared.items():
            report.declare_dependency(name, version)


__all__ = [
    "ManifestComponentDetector",
    "PACKAGE_RULES",
    "PackageJsonComponentDetector",
    "PackageRule",
    "TextRule",
    "components_from_package_json",
    "components_from_text",
    "package_aliases",
]
