"""
Graph edits for the editing surface.

Every function takes a Graph and returns a new one; the input is never touched,
so a surface can keep the previous snapshot for undo.
"""
from __future__ import annotations
import logging
import re
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from convo.settings import AppCfg
from convo.narrative.decoder import grid_positions
from convo.narrative.errors import GraphEditError
from convo.narrative.types import Graph, Node, Option, Edge

logger = logging.getLogger(__name__)

# Same character set the goto pattern accepts, so every new id stays reachable
NODE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def _next_number(existing: Iterable[str], prefix: str) -> int:
    highest = 0
    for value in existing:
        if value.startswith(prefix):
            tail = value[len(prefix):]
            if tail.isdigit():
                highest = max(highest, int(tail))
    return highest + 1


def new_node_id(graph: Graph, base: str = "node_") -> str:
    taken = set(graph.node_ids()) | set(graph.passthrough)
    n = _next_number(taken, base)
    while f"{base}{n}" in taken:
        n += 1
    return f"{base}{n}"


def new_option_id(node: Node) -> str:
    prefix = f"{node.id}-opt-"
    taken = {o.id for o in node.options}
    n = _next_number(taken, prefix)
    # The decoder numbers from zero; a fresh node's first option should too
    if not taken:
        n = 0
    while f"{prefix}{n}" in taken:
        n += 1
    return f"{prefix}{n}"


def _require_node(graph: Graph, node_id: str) -> Node:
    node = graph.node(node_id)
    if node is None:
        raise GraphEditError(f"Unknown node '{node_id}'")
    return node


def _check_new_id(graph: Graph, node_id: str) -> str:
    node_id = (node_id or "").strip()
    if not NODE_ID_PATTERN.match(node_id):
        raise GraphEditError(f"Invalid node id '{node_id}': use letters, digits and '_' only")
    if graph.node(node_id) is not None or node_id in graph.passthrough:
        raise GraphEditError(f"Node id '{node_id}' already exists")
    return node_id


# --- Nodes --------------------------------------------------------------------

def add_node(graph: Graph,
             node_id: Optional[str] = None,
             npc: Optional[List[str]] = None,
             position: Optional[Tuple[float, float]] = None,
             settings: Optional[AppCfg] = None) -> Graph:
    cfg = settings or AppCfg()
    g = graph.copy()
    nid = _check_new_id(g, node_id) if node_id is not None else new_node_id(g, cfg.editor.new_node_prefix)
    if position is None:
        position = grid_positions(len(g.nodes) + 1, cfg.layout)[-1]
    g.nodes.append(Node(id=nid, npc=list(npc or []), position=position))
    logger.debug("Added node '%s'", nid)
    return g


def remove_node(graph: Graph, node_id: str) -> Graph:
    g = graph.copy()
    _require_node(g, node_id)
    ids = g.node_ids()
    previous = ids[ids.index(node_id) - 1] if ids.index(node_id) > 0 else None
    # Sections that followed the removed node now follow the one before it
    for key, anchor in g.passthrough_after.items():
        if anchor == node_id:
            g.passthrough_after[key] = previous
    g.nodes = [n for n in g.nodes if n.id != node_id]
    g.edges = [e for e in g.edges if e.source != node_id and e.target != node_id]
    logger.debug("Removed node '%s'", node_id)
    return g


def rename_node(graph: Graph, old_id: str, new_id: str) -> Graph:
    if old_id == new_id:
        return graph.copy()
    g = graph.copy()
    node = _require_node(g, old_id)
    new_id = _check_new_id(g, new_id)

    node.id = new_id
    g.edges = [
        replace(
            e,
            source=new_id if e.source == old_id else e.source,
            target=new_id if e.target == old_id else e.target,
        )
        for e in g.edges
    ]
    for key, anchor in g.passthrough_after.items():
        if anchor == old_id:
            g.passthrough_after[key] = new_id
    logger.info("Renamed node '%s' -> '%s'", old_id, new_id)
    return g


def set_npc_lines(graph: Graph, node_id: str, lines: List[str]) -> Graph:
    g = graph.copy()
    _require_node(g, node_id).npc = [str(line) for line in lines]
    return g


# --- Options ------------------------------------------------------------------

def add_option(graph: Graph, node_id: str, text: Optional[str] = None,
               settings: Optional[AppCfg] = None) -> Graph:
    cfg = settings or AppCfg()
    g = graph.copy()
    node = _require_node(g, node_id)
    # A malformed 'player' kept as loaded gives way to real options
    node.extra.pop("player", None)
    node.options.append(Option(
        id=new_option_id(node),
        text=cfg.editor.new_option_text if text is None else text,
    ))
    return g


def set_option_text(graph: Graph, node_id: str, option_id: str, text: str) -> Graph:
    g = graph.copy()
    opt = _require_node(g, node_id).option(option_id)
    if opt is None:
        raise GraphEditError(f"Node '{node_id}' has no option '{option_id}'")
    opt.text = text
    opt.raw = None
    return g


def remove_option(graph: Graph, node_id: str, option_id: str) -> Graph:
    g = graph.copy()
    node = _require_node(g, node_id)
    if node.option(option_id) is None:
        raise GraphEditError(f"Node '{node_id}' has no option '{option_id}'")
    node.options = [o for o in node.options if o.id != option_id]
    g.edges = [e for e in g.edges if not (e.source == node_id and e.source_option == option_id)]
    return g


# --- Connections --------------------------------------------------------------

def connect(graph: Graph, node_id: str, option_id: str, target: str) -> Graph:
    """Draw option -> target, replacing whatever connection the option had.

    The target may be a node or a passthrough section such as a switch.
    """
    g = graph.copy()
    node = _require_node(g, node_id)
    if node.option(option_id) is None:
        raise GraphEditError(f"Node '{node_id}' has no option '{option_id}'")
    if target not in g.goto_targets():
        raise GraphEditError(f"Unknown node '{target}'")
    g.edges = [e for e in g.edges if not (e.source == node_id and e.source_option == option_id)]
    g.edges.append(Edge(source=node_id, source_option=option_id, target=target))
    return g


def disconnect(graph: Graph, node_id: str, option_id: str) -> Graph:
    g = graph.copy()
    before = len(g.edges)
    g.edges = [e for e in g.edges if not (e.source == node_id and e.source_option == option_id)]
    if len(g.edges) == before:
        logger.debug("Option '%s' of '%s' had no connection to remove", option_id, node_id)
    return g
