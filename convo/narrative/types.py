from __future__ import annotations
import copy
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any, Set, Tuple


@dataclass
class Option:
    id: str                     # Scoped to the owning node: "<node>-opt-<n>"
    text: str
    then: Any = None            # Raw 'then' exactly as loaded, goto or not
    extra: Dict[str, Any] = field(default_factory=dict)   # Unmodelled keys, e.g. 'if'
    raw: Any = None             # Entry as loaded when it was not a mapping


@dataclass
class Node:
    id: str                     # Graph id and document key
    npc: List[str] = field(default_factory=list)
    options: List[Option] = field(default_factory=list)
    position: Tuple[float, float] = (0.0, 0.0)
    extra: Dict[str, Any] = field(default_factory=dict)   # Unmodelled section keys, e.g. 'agent'

    def option(self, option_id: str) -> Optional[Option]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    @property
    def is_terminal(self) -> bool:
        return not self.options


@dataclass(frozen=True)
class Edge:
    source: str                 # Node id
    source_option: str          # Option id, only unique within 'source'
    target: str                 # Node id, may name a node that does not exist (yet)

    @property
    def id(self) -> str:
        return f"e-{self.source_option}-{self.target}"


@dataclass
class Graph:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    metadata: Any = None        # '__option__' payload, carried opaque
    has_metadata: bool = False  # False: the document had no metadata entry
    passthrough: Dict[str, Any] = field(default_factory=dict)  # Non-dialogue sections
    # Passthrough key -> id of the node it followed in the document (None: before any node)
    passthrough_after: Dict[str, Optional[str]] = field(default_factory=dict)

    def __post_init__(self):
        if self.metadata is not None:
            self.has_metadata = True

    # --- Lookups --------------------------------------------------------------
    def node(self, node_id: str) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def goto_targets(self) -> Set[str]:
        """Every document key a goto may name: nodes and passthrough sections."""
        return set(self.node_ids()) | set(self.passthrough)

    def edges_from(self, node_id: str, option_id: Optional[str] = None) -> List[Edge]:
        return [
            e for e in self.edges
            if e.source == node_id and (option_id is None or e.source_option == option_id)
        ]

    def edge_for(self, node_id: str, option_id: str) -> Optional[Edge]:
        found = self.edges_from(node_id, option_id)
        return found[0] if found else None

    def copy(self) -> "Graph":
        return copy.deepcopy(self)

    # --- Exchange format ------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "nodes": [
                {
                    "id": n.id,
                    "position": {"x": n.position[0], "y": n.position[1]},
                    "npc": list(n.npc),
                    "options": [
                        {"id": o.id, "text": o.text, "then": o.then, "extra": dict(o.extra), "raw": o.raw}
                        for o in n.options
                    ],
                    "extra": dict(n.extra),
                }
                for n in self.nodes
            ],
            "edges": [
                {"id": e.id, "source": e.source, "sourceHandle": e.source_option, "target": e.target}
                for e in self.edges
            ],
            "passthrough": dict(self.passthrough),
            "passthrough_after": dict(self.passthrough_after),
        }
        if self.has_metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Graph":
        if not isinstance(data, dict):
            raise ValueError("Graph data must be a mapping")

        nodes: List[Node] = []
        for raw in data.get("nodes", []) or []:
            pos = raw.get("position") or {}
            options = [
                Option(
                    id=str(o["id"]),
                    text=str(o.get("text", "")),
                    then=o.get("then"),
                    extra=dict(o.get("extra") or {}),
                    raw=o.get("raw"),
                )
                for o in raw.get("options", []) or []
            ]
            nodes.append(Node(
                id=str(raw["id"]),
                npc=[str(line) for line in raw.get("npc", []) or []],
                options=options,
                position=(float(pos.get("x", 0.0)), float(pos.get("y", 0.0))),
                extra=dict(raw.get("extra") or {}),
            ))

        edges = [
            Edge(
                source=str(e["source"]),
                source_option=str(e["sourceHandle"] if "sourceHandle" in e else e["source_option"]),
                target=str(e["target"]),
            )
            for e in data.get("edges", []) or []
        ]
        return cls(
            nodes=nodes,
            edges=edges,
            metadata=data.get("metadata"),
            has_metadata="metadata" in data,
            passthrough=dict(data.get("passthrough") or {}),
            passthrough_after=dict(data.get("passthrough_after") or {}),
        )
