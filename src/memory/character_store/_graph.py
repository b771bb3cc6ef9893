"""NetworkX graph view of the character relationships."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import networkx as nx
from networkx import DiGraph

from src.utils.validation import name_key

from ._characters import resolve_id

if TYPE_CHECKING:
    from . import CharacterStore

logger = logging.getLogger(__name__)


def invalidate_graph(store: CharacterStore) -> None:
    """Invalidate cached graph."""
    store._graph = None


def rebuild_graph(store: CharacterStore) -> None:
    """Rebuild the relationship graph from the stored characters.

    Nodes are keyed by character name. Edge targets that name no registered
    character become placeholder nodes. Callers must hold store._lock.
    """
    graph: DiGraph[Any] = nx.DiGraph()
    names_by_key = {name_key(c.name): c.name for c in store._characters.values()}

    for character in store._characters.values():
        graph.add_node(
            character.name,
            id=character.id,
            placeholder=False,
            faction=character.metadata.faction,
            location=character.metadata.location,
        )

    for character in store._characters.values():
        for target, label in character.metadata.relationships.items():
            target_name = names_by_key.get(name_key(target), target)
            if target_name == character.name:
                continue  # Self edges are ignored
            if target_name not in graph:
                graph.add_node(target_name, id=None, placeholder=True)
            graph.add_edge(character.name, target_name, label=label)

    store._graph = graph
    logger.debug(
        "Graph rebuilt: %d nodes, %d edges", graph.number_of_nodes(), graph.number_of_edges()
    )


def get_graph(store: CharacterStore) -> DiGraph[Any]:
    """Get the relationship graph (lazy-loaded, rebuilt after writes)."""
    if store._graph is None:
        with store._lock:
            # Double-checked locking: re-check after acquiring the lock
            if store._graph is None:
                rebuild_graph(store)
    assert store._graph is not None  # Guaranteed by rebuild_graph
    return store._graph


def _node_for(store: CharacterStore, identifier: str) -> str:
    """Map an id or name to a graph node name."""
    with store._lock:
        character_id = resolve_id(store, identifier)
        if character_id is not None:
            return store._characters[character_id].name
    return identifier.strip()


def find_path(store: CharacterStore, source: str, target: str) -> list[str]:
    """Find the shortest chain of relationships between two characters.

    Args:
        store: CharacterStore instance.
        source: Id or name of the first character.
        target: Id or name of the second character (may be a placeholder name).

    Returns:
        Names along the path, empty if no path exists.
    """
    graph = get_graph(store)
    try:
        path: list[str] = nx.shortest_path(
            graph, _node_for(store, source), _node_for(store, target)
        )
        return path
    except (nx.NetworkXNoPath, nx.NodeNotFound):
        return []


def get_most_connected(store: CharacterStore, limit: int = 10) -> list[tuple[str, int]]:
    """Get registered characters with the most incoming and outgoing edges.

    Returns:
        List of (name, degree) tuples, highest first.
    """
    graph = get_graph(store)
    degrees = [
        (node, graph.degree(node))
        for node, data in graph.nodes(data=True)
        if not data.get("placeholder")
    ]
    degrees.sort(key=lambda x: x[1], reverse=True)
    return degrees[:limit]
