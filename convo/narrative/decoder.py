from __future__ import annotations
import copy
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from convo.settings import AppCfg, LayoutCfg
from convo.narrative.errors import DocumentShapeError
from convo.narrative.script import parse_goto
from convo.narrative.types import Graph, Node, Option, Edge

logger = logging.getLogger(__name__)

NODE_KEYS = ("npc", "player")
OPTION_KEYS = ("reply", "then")


def option_id(node_id: str, index: int) -> str:
    return f"{node_id}-opt-{index}"


def is_dialogue_section(section: Any) -> bool:
    """A section is a conversation turn when it carries 'npc' or 'player'."""
    return isinstance(section, Mapping) and any(k in section for k in NODE_KEYS)


def _normalize_npc(raw: Any) -> List[str]:
    # npc: allow str or list[str]; a bare scalar becomes a one-line list
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(line) for line in raw]
    return [str(raw)]


def _normalize_options(node_id: str, raw: Any, placeholder: str) -> List[Option]:
    # Callers keep a non-list 'player' in Node.extra so it is written back as loaded
    if not isinstance(raw, (list, tuple)):
        return []

    options = []
    for idx, entry in enumerate(raw):
        oid = option_id(node_id, idx)
        if not isinstance(entry, Mapping):
            logger.warning("Node '%s': option %d is not a mapping, keeping it as loaded", node_id, idx)
            options.append(Option(id=oid, text=placeholder, raw=copy.deepcopy(entry)))
            continue
        reply = entry.get("reply")
        options.append(Option(
            id=oid,
            text=placeholder if reply is None else str(reply),
            then=copy.deepcopy(entry.get("then")),
            extra={k: copy.deepcopy(v) for k, v in entry.items() if k not in OPTION_KEYS},
        ))
    return options


def grid_positions(count: int, layout: LayoutCfg) -> List[Tuple[float, float]]:
    """Left-to-right, wrapping top-to-bottom. Purely cosmetic but deterministic."""
    x, y = layout.origin_x, layout.origin_y
    out = []
    for _ in range(count):
        out.append((x, y))
        x += layout.step_x
        if x > layout.wrap_x:
            x = layout.origin_x
            y += layout.step_y
    return out


def decode_document(document: Any, settings: Optional[AppCfg] = None) -> Graph:
    """
    Turn a conversation document (already parsed YAML) into a Graph.

    Entries keep their stored order. The metadata entry is carried opaque,
    sections without 'npc'/'player' are kept aside as passthrough, and every
    option whose 'then' is exactly "goto <id>" yields an edge even when <id>
    is not (yet) a node.
    """
    if not isinstance(document, Mapping):
        raise DocumentShapeError(
            f"Conversation document must be a mapping, got {type(document).__name__}"
        )
    cfg = settings or AppCfg()
    meta_key = cfg.document.metadata_key

    has_metadata = meta_key in document
    metadata = copy.deepcopy(document[meta_key]) if has_metadata else None
    nodes: List[Node] = []
    passthrough: Dict[str, Any] = {}
    passthrough_after: Dict[str, Optional[str]] = {}
    seen: Dict[str, Any] = {}   # id -> key it came from

    for key, section in document.items():
        if key == meta_key:
            continue
        # Ids are strings; YAML keys such as 1 or true are stored as "1"/"True"
        node_id = str(key)
        if node_id in seen:
            logger.warning("Keys %r and %r both become id '%s'", seen[node_id], key, node_id)
        seen[node_id] = key

        if not is_dialogue_section(section):
            logger.debug("Section '%s' is not a dialogue node, passing it through", node_id)
            passthrough[node_id] = copy.deepcopy(section)
            passthrough_after[node_id] = nodes[-1].id if nodes else None
            continue

        player = section.get("player")
        extra = {k: copy.deepcopy(v) for k, v in section.items() if k not in NODE_KEYS}
        if player is not None and not isinstance(player, (list, tuple)):
            logger.warning("Node '%s': 'player' is %s, not a list; treating it as terminal",
                           node_id, type(player).__name__)
            extra["player"] = copy.deepcopy(player)

        nodes.append(Node(
            id=node_id,
            npc=_normalize_npc(section.get("npc")),
            options=_normalize_options(node_id, player, cfg.document.reply_placeholder),
            extra=extra,
        ))

    for node, pos in zip(nodes, grid_positions(len(nodes), cfg.layout)):
        node.position = pos

    edges: List[Edge] = []
    for node in nodes:
        for opt in node.options:
            target = parse_goto(opt.then)
            if target is not None:
                edges.append(Edge(source=node.id, source_option=opt.id, target=target))

    logger.debug("Decoded %d nodes, %d edges, %d passthrough sections",
                 len(nodes), len(edges), len(passthrough))
    return Graph(nodes=nodes, edges=edges, metadata=metadata, has_metadata=has_metadata,
                 passthrough=passthrough, passthrough_after=passthrough_after)
