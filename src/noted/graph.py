"""Link graph of the notes folder as a :mod:`networkx` ``DiGraph``.

Node ids are note paths, ``tag:<name>`` for tags and ``placeholder:<text>``
for link targets that do not exist.  Every node carries a ``type``
attribute (``note``, ``tag`` or ``placeholder``); every edge a ``type`` of
``note-link``, ``tag-link`` or ``placeholder-link``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import networkx as nx

from noted.parser import format_tag_for_display

if TYPE_CHECKING:
    from noted.links import LinkService
    from noted.tags import TagService


TAG_PREFIX = "tag:"
PLACEHOLDER_PREFIX = "placeholder:"


@dataclass
class GraphStats:
    total_notes: int
    total_links: int
    orphan_notes: int
    most_connected: tuple[str, int] | None
    average_connections: float


def _add_edge(graph: nx.DiGraph, source: str, target: str, edge_type: str) -> None:
    if graph.has_edge(source, target):
        graph[source][target]["count"] += 1
    else:
        graph.add_edge(source, target, type=edge_type, count=1)


def build_graph(
    link_service: "LinkService",
    tag_service: "TagService | None" = None,
    *,
    rebuild: bool = True,
) -> nx.DiGraph:
    """Return the note/tag/placeholder graph.

    With *rebuild* the backlink index is refreshed first; pass ``False`` when
    the caller has just built it.  Tag nodes come from *tag_service*'s
    current index and are omitted without one.
    """
    if rebuild:
        link_service.build_backlinks_index()

    graph = nx.DiGraph()
    notes = link_service.get_all_notes()
    for note_path in notes:
        outgoing = link_service.get_outgoing_links(note_path)
        incoming = link_service.get_backlinks(note_path)
        graph.add_node(
            note_path,
            type="note",
            label=os.path.splitext(os.path.basename(note_path))[0],
            link_count=len(outgoing) + len(incoming),
        )

    for note_path in notes:
        for link in link_service.get_outgoing_links(note_path):
            if link.target_path:
                _add_edge(graph, note_path, link.target_path, "note-link")
                continue
            placeholder = f"{PLACEHOLDER_PREFIX}{link.link_text.strip()}"
            if placeholder not in graph:
                graph.add_node(placeholder, type="placeholder", label=link.link_text.strip())
            _add_edge(graph, note_path, placeholder, "placeholder-link")

    if tag_service is not None:
        for info in tag_service.get_all_tags("alphabetical"):
            tag_node = f"{TAG_PREFIX}{info.name}"
            graph.add_node(tag_node, type="tag", label=format_tag_for_display(info.name), tag_count=info.count)
            for note_path in info.notes:
                if note_path in graph:
                    _add_edge(graph, tag_node, note_path, "tag-link")

    for source, target, data in graph.edges(data=True):
        if data["type"] == "note-link":
            data["bidirectional"] = graph.has_edge(target, source)

    return graph


def note_nodes(graph: nx.DiGraph) -> list[str]:
    return [n for n, kind in graph.nodes(data="type") if kind == "note"]


def graph_stats(graph: nx.DiGraph) -> GraphStats:
    notes = note_nodes(graph)
    note_links = [(s, t, d) for s, t, d in graph.edges(data=True) if d["type"] == "note-link"]
    linked_to = {t for _, t, _ in note_links}

    most_connected: tuple[str, int] | None = None
    total_connections = 0
    for note in notes:
        count = graph.nodes[note]["link_count"]
        total_connections += count
        if most_connected is None or count > most_connected[1]:
            most_connected = (note, count)

    return GraphStats(
        total_notes=len(notes),
        total_links=sum(d["count"] for _, _, d in note_links),
        orphan_notes=sum(1 for note in notes if note not in linked_to),
        most_connected=most_connected,
        average_connections=total_connections / len(notes) if notes else 0.0,
    )


def layout_positions(graph: nx.DiGraph, seed: int = 42) -> dict[str, tuple[float, float]]:
    """Spring-layout coordinates for drawing the graph."""
    if graph.number_of_nodes() == 0:
        return {}
    pos = nx.spring_layout(graph, seed=seed, k=2.0)
    return {node: (float(x), float(y)) for node, (x, y) in pos.items()}
