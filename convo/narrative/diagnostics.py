from __future__ import annotations
import logging
from collections import Counter, deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from convo.narrative.editing import NODE_ID_PATTERN
from convo.narrative.script import is_goto
from convo.narrative.types import Graph, Edge

logger = logging.getLogger(__name__)

ERROR = "ERROR"
WARNING = "WARNING"


@dataclass(frozen=True)
class Issue:
    level: str
    message: str
    node_id: Optional[str] = None


def unresolved_edges(graph: Graph) -> List[Edge]:
    """Edges whose target is neither a node nor a passthrough section: forward references or renamed nodes."""
    targets = graph.goto_targets()
    return [e for e in graph.edges if e.target not in targets]


def duplicate_node_ids(graph: Graph) -> List[str]:
    counts = Counter(graph.node_ids())
    return [nid for nid, c in counts.items() if c > 1]


def adjacency(graph: Graph) -> Dict[str, List[str]]:
    adj: Dict[str, List[str]] = {n.id: [] for n in graph.nodes}
    for e in graph.edges:
        if e.source in adj and e.target in adj:
            adj[e.source].append(e.target)
    return adj


def unreachable_nodes(graph: Graph, start: Optional[str] = None) -> List[str]:
    """Nodes not reachable from 'start' (default: the first node)."""
    if not graph.nodes:
        return []
    start = start or graph.nodes[0].id
    adj = adjacency(graph)
    if start not in adj:
        return []
    seen: Set[str] = {start}
    q = deque([start])
    while q:
        u = q.popleft()
        for v in adj[u]:
            if v not in seen:
                seen.add(v)
                q.append(v)
    return [n.id for n in graph.nodes if n.id not in seen]


def validate_graph(graph: Graph, start: Optional[str] = None) -> List[Issue]:
    results: List[Issue] = []

    for nid in duplicate_node_ids(graph):
        results.append(Issue(ERROR, "Node id is used more than once.", nid))

    for e in unresolved_edges(graph):
        results.append(Issue(ERROR, f"Option '{e.source_option}' goes to missing node '{e.target}'.", e.source))

    connected = {(e.source, e.source_option) for e in graph.edges}
    for node in graph.nodes:
        if not NODE_ID_PATTERN.match(node.id):
            results.append(Issue(WARNING, "Node id cannot be the target of a goto.", node.id))
        for opt in node.options:
            if is_goto(opt.then) and (node.id, opt.id) not in connected:
                results.append(Issue(
                    WARNING,
                    f"Option '{opt.id}' still has '{opt.then.strip()}' but no connection; it will be dropped on save.",
                    node.id,
                ))
        if not node.npc and not node.options:
            results.append(Issue(WARNING, "Node has neither NPC lines nor options.", node.id))

    for nid in unreachable_nodes(graph, start):
        results.append(Issue(WARNING, "Node is unreachable from the start node.", nid))

    logger.debug("Validation found %d issue(s)", len(results))
    return results
