"""Tests for manifest-derived technology components."""

from __future__ import annotations

from pathlib import Path

from repolens.detectors.components import (
    ManifestComponentDetector,
    components_from_package_json,
    package_aliases,
)
from repolens.models import ModuleKind, ModuleSpec, ScanContext
from repolens.report import ModuleReport
from tests._fixtures.repo_builder import RepoBuilder, module_at


def _ids(components) -> set[str]:
    return {component.id for component in components}


def test_package_json_components_with_versions() -> None:
    data = {
        "engines": {"node": ">=18"},
        "dependencies": {"react": "^18.2.0", "express": "^4.18.0"},
        "devDependencies": {"vite": "^5.0.0", "jest": "^29.0.0", "react": "^17.0.0"},
    }

    components = {component.id: component for component in components_from_package_json(data)}

    assert set(components) == {"node", "react", "vite", "jest", "express"}
    assert components["react"].version == "^18.2.0"
    assert components["react"].category == "frontend"
    assert components["node"].category == "runtime"
    assert components["vite"].evidence == ["package.json: vite"]


def test_build_tool_detected_from_scripts() -> None:
    data = {"scripts": {"build": "webpack --mode production"}}

    components = components_from_package_json(data)

    assert [component.id for component in components] == ["webpack"]
    assert components[0].version is None
    assert components[0].evidence == ["package.json: scripts use webpack"]


def test_root_package_json_yields_components_and_graph(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": (
                '{ "dependencies": { "react": "^18.2.0" }, '
                '"devDependencies": { "vite": "^5.0.0" } }'
            ),
            "index.js": "console.log('hi');\n",
        }
    )

    report = repo_builder.scan()
    module = module_at(report, "/")

    assert module.name == "Repo"
    assert {"react", "vite"} <= _ids(module.components)
    assert {"react", "vite"} <= _ids(report.detected)
    assert report.build_tools == ["Vite"]

    edges = {(edge.source, edge.target): edge.label for edge in report.graph.edges}
    assert edges[("manifest", "react")] == "^18.2.0"
    assert edges[("manifest", "vite")] == "^5.0.0"
    assert {node.id for node in report.graph.nodes} >= {"manifest", "react", "vite"}


def test_manifest_components_for_python_and_docker(tmp_path: Path) -> None:
    (tmp_path / "requirements.txt").write_text("fastapi==0.110\npytest\n", encoding="utf-8")
    (tmp_path / "docker-compose.yml").write_text(
        "services:\n  db:\n    image: postgres:16\n", encoding="utf-8"
    )
    module = ModuleSpec(name="Repo", rel_path="/", abs_path=tmp_path, kind=ModuleKind.UNKNOWN)
    report = ModuleReport(name="Repo", path="/")

    ManifestComponentDetector().detect(ScanContext(root=tmp_path), module, report)

    assert {"python", "fastapi", "pytest", "docker", "postgres"} <= _ids(report.components)
    assert report.declared_dependencies == {"fastapi": "==0.110", "pytest": None}


def test_package_aliases_map_packages_to_component_ids() -> None:
    aliases = package_aliases()

    assert aliases["@angular/core"] == "angular"
    assert aliases["webpack-cli"] == "webpack"
    assert aliases["psycopg2"] == "postgres"
    assert aliases["pg"] == "postgres"
