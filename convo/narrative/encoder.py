from __future__ import annotations
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from convo.settings import AppCfg
from convo.narrative.decoder import NODE_KEYS, OPTION_KEYS
from convo.narrative.script import (
    OptionAction, GotoTarget, PreservedScript, NoAction, is_goto,
)
from convo.narrative.types import Graph, Node, Option, Edge

logger = logging.getLogger(__name__)


@dataclass
class EncodeResult:
    document: Dict[str, Any]
    dangling: List[Edge] = field(default_factory=list)    # Edges whose target is not in the document
    duplicates: List[str] = field(default_factory=list)   # Node ids that appeared more than once


def resolve_option_action(option: Option, edge: Optional[Edge], targets: Set[str]) -> OptionAction:
    """
    Precedence for an option's 'then':
      1. a drawn connection wins over whatever text was loaded
      2. otherwise a non-goto script is kept verbatim
      3. otherwise nothing (a goto whose edge was removed is stale)
    A connection to a key that is not in 'targets' degrades to nothing.
    """
    if edge is not None:
        if edge.target in targets:
            return GotoTarget(edge.target)
        return NoAction()
    raw = option.then
    if raw is None or is_goto(raw):
        return NoAction()
    if isinstance(raw, str) and not raw.strip():
        return NoAction()
    return PreservedScript(raw)


def _index_edges(graph: Graph) -> Dict[Tuple[str, str], Edge]:
    index: Dict[Tuple[str, str], Edge] = {}
    for e in graph.edges:
        key = (e.source, e.source_option)
        if key in index:
            logger.warning("Option '%s' of node '%s' has more than one connection; keeping '%s', ignoring '%s'",
                           e.source_option, e.source, index[key].target, e.target)
            continue
        index[key] = e
    return index


def _encode_option(option: Option, action: OptionAction) -> Any:
    if option.raw is not None and isinstance(action, NoAction):
        return copy.deepcopy(option.raw)
    entry: Dict[str, Any] = {"reply": option.text}
    for k, v in option.extra.items():
        if k not in OPTION_KEYS:
            entry[k] = copy.deepcopy(v)
    script = action.script()
    if script is not None:
        entry["then"] = copy.deepcopy(script)
    return entry


def _encode_node(node: Node, edges: Dict[Tuple[str, str], Edge], targets: Set[str],
                 dangling: List[Edge]) -> Dict[str, Any]:
    player: Any = []
    for opt in node.options:
        edge = edges.get((node.id, opt.id))
        action = resolve_option_action(opt, edge, targets)
        if edge is not None and isinstance(action, NoAction):
            logger.warning("Node '%s', option '%s': connection to missing node '%s' dropped",
                           node.id, opt.id, edge.target)
            dangling.append(edge)
        player.append(_encode_option(opt, action))
    if not player and "player" in node.extra:
        player = copy.deepcopy(node.extra["player"])

    section: Dict[str, Any] = {"npc": list(node.npc), "player": player}
    for k, v in node.extra.items():
        if k not in NODE_KEYS:
            section[k] = copy.deepcopy(v)
    return section


def encode_graph(graph: Graph, settings: Optional[AppCfg] = None) -> EncodeResult:
    """
    Build a fresh conversation document from a (possibly edited) graph.

    Node list order becomes document order and the metadata entry goes first.
    Passthrough sections go back after the node they followed when decoded,
    or at the end when that node is gone. Duplicate node ids are
    last-write-wins; dangling connections are reported, not emitted.
    """
    cfg = settings or AppCfg()
    meta_key = cfg.document.metadata_key
    node_ids = set(graph.node_ids())
    targets = graph.goto_targets()
    edges = _index_edges(graph)

    metadata = graph.metadata if graph.has_metadata else cfg.document.default_metadata
    document: Dict[str, Any] = {meta_key: copy.deepcopy(metadata)}

    # Sections a node of the same id overrides are not written at all
    anchored: Dict[Optional[str], List[str]] = {}
    trailing: List[str] = []
    for key in graph.passthrough:
        if key in node_ids or key == meta_key:
            logger.warning("Passthrough section '%s' shadowed by a node or the metadata key", key)
            continue
        anchor = graph.passthrough_after.get(key)
        if key in graph.passthrough_after and (anchor is None or anchor in node_ids):
            anchored.setdefault(anchor, []).append(key)
        else:
            trailing.append(key)

    def place(keys: List[str]) -> None:
        for key in keys:
            document[key] = copy.deepcopy(graph.passthrough[key])

    result = EncodeResult(document=document)
    place(anchored.pop(None, []))
    for node in graph.nodes:
        if node.id == meta_key:
            logger.warning("Node id '%s' clashes with the metadata key; skipping it", node.id)
            place(anchored.pop(node.id, []))
            continue
        if node.id in document:
            logger.warning("Duplicate node id '%s'; the later node overwrites the earlier one", node.id)
            result.duplicates.append(node.id)
        document[node.id] = _encode_node(node, edges, targets, result.dangling)
        place(anchored.pop(node.id, []))
    # No recorded position, or the node it followed is gone
    place(trailing)

    logger.debug("Encoded %d nodes (%d dangling connections)", len(graph.nodes), len(result.dangling))
    return result


def encode_document(graph: Graph, settings: Optional[AppCfg] = None) -> Dict[str, Any]:
    return encode_graph(graph, settings).document
