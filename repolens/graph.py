"""Component normalisation and dependency-graph construction."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .report import TechComponent, TechGraph, TechGraphEdge, TechGraphNode

MANIFEST_NODE_ID = "manifest"
MANIFEST_NODE_LABEL = "manifest"
META_CATEGORY = "meta"


def normalize_components(components: Iterable[TechComponent]) -> List[TechComponent]:
    """Merge detections sharing ``(category, id)``.

    Confidence takes the maximum, version the first non-null observation and
    evidence the sorted union.
    """
    merged: Dict[Tuple[str, str], TechComponent] = {}
    for component in components:
        key = (component.category, component.id)
        existing = merged.get(key)
        if existing is None:
            merged[key] = component.model_copy(
                update={"evidence": sorted(set(component.evidence))}
            )
            continue
        merged[key] = existing.model_copy(
            update={
                "confidence": max(existing.confidence, component.confidence),
                "version": existing.version if existing.version is not None else component.version,
                "evidence": sorted(set(existing.evidence) | set(component.evidence)),
            }
        )
    return sorted(merged.values(), key=lambda item: (-item.confidence, item.category, item.id))


def build_dependency_graph(
    components: Iterable[TechComponent],
    declared: Mapping[str, Optional[str]],
    aliases: Mapping[str, str] | None = None,
) -> TechGraph:
    """Link the synthetic manifest node to each declared dependency that maps to a component.

    ``aliases`` maps a declared package name to a component id when the two differ.
    """
    aliases = aliases or {}
    nodes: Dict[str, TechGraphNode] = {}
    for component in components:
        nodes.setdefault(
            component.id,
            TechGraphNode(
                id=component.id,
                label=component.name,
                category=component.category,
                version=component.version,
            ),
        )

    if not nodes:
        return TechGraph()

    nodes.setdefault(
        MANIFEST_NODE_ID,
        TechGraphNode(id=MANIFEST_NODE_ID, label=MANIFEST_NODE_LABEL, category=META_CATEGORY),
    )

    edges: Dict[str, TechGraphEdge] = {}
    for name in sorted(declared):
        target = name if name in nodes else aliases.get(name)
        if target is None or target not in nodes or target == MANIFEST_NODE_ID:
            continue
        if target in edges:
            continue
        edges[target] = TechGraphEdge(source=MANIFEST_NODE_ID, target=target, label=declared[name])

    return TechGraph(
        nodes=[nodes[node_id] for node_id in sorted(nodes)],
        edges=[edges[target] for target in sorted(edges)],
    )


def merge_graphs(graphs: Iterable[TechGraph]) -> TechGraph:
    """Union of several graphs; the first occurrence of a node or edge wins."""
    nodes: Dict[str, TechGraphNode] = {}
    edges: Dict[Tuple[str, str], TechGraphEdge] = {}
    for graph in graphs:
        for node in graph.nodes:
            nodes.setdefault(node.id, node)
        for edge in graph.edges:
            edges.setdefault((edge.source, edge.target), edge)
    return TechGraph(
        nodes=[nodes[node_id] for node_id in sorted(nodes)],
        edges=[edges[key] for key in sorted(edges)],
    )


def namespace_graph(graph: TechGraph, prefix: str) -> TechGraph:
    """Copy of ``graph`` with every node id and edge endpoint written as ``<prefix>::<id>``."""
    return TechGraph(
        nodes=[node.model_copy(update={"id": f"{prefix}::{node.id}"}) for node in graph.nodes],
        edges=[
            edge.model_copy(
                update={"source": f"{prefix}::{edge.source}", "target": f"{prefix}::{edge.target}"}
            )
            for edge in graph.edges
        ],
    )


__all__ = [
    "MANIFEST_NODE_ID",
    "build_dependency_graph",
    "merge_graphs",
    "namespace_graph",
    "normalize_components",
]
