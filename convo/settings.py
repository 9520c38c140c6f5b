from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).resolve().parents[1] / "workspace" / "config" / "defaults.yaml"


@dataclass
class LayoutCfg:
    origin_x: float = 100.0
    origin_y: float = 100.0
    step_x: float = 350.0         # Horizontal gap between node columns
    step_y: float = 400.0         # Vertical gap between rows
    wrap_x: float = 1000.0        # Start a new row once x goes past this


@dataclass
class DocumentCfg:
    metadata_key: str = "__option__"
    default_metadata: Dict[str, Any] = field(
        default_factory=lambda: {"theme": "chat", "title": "{name}"}
    )
    reply_placeholder: str = "..."


@dataclass
class EditorCfg:
    new_node_prefix: str = "node_"
    new_option_text: str = "New Option"


@dataclass
class AppCfg:
    layout: LayoutCfg = field(default_factory=LayoutCfg)
    document: DocumentCfg = field(default_factory=DocumentCfg)
    editor: EditorCfg = field(default_factory=EditorCfg)


def _get(d: dict, path: str, default: Any):
    cur = d
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def load_settings(path: Optional[Union[str, Path]] = None) -> AppCfg:
    """
    Read editor settings from YAML. A missing file means built-in defaults;
    a present but broken file is an error the caller should see.
    """
    data: Dict[str, Any] = {}
    p = Path(path) if path is not None else DEFAULTS_PATH
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{p}: settings must be a mapping")
    elif path is not None:
        logger.warning("Settings file %s not found, using defaults", p)

    base = AppCfg()
    meta = _get(data, "document.default_metadata", base.document.default_metadata)
    return AppCfg(
        layout=LayoutCfg(
            origin_x=float(_get(data, "layout.origin_x", base.layout.origin_x)),
            origin_y=float(_get(data, "layout.origin_y", base.layout.origin_y)),
            step_x=float(_get(data, "layout.step_x", base.layout.step_x)),
            step_y=float(_get(data, "layout.step_y", base.layout.step_y)),
            wrap_x=float(_get(data, "layout.wrap_x", base.layout.wrap_x)),
        ),
        document=DocumentCfg(
            metadata_key=str(_get(data, "document.metadata_key", base.document.metadata_key)),
            default_metadata=dict(meta) if isinstance(meta, dict) else base.document.default_metadata,
            reply_placeholder=str(_get(data, "document.reply_placeholder", base.document.reply_placeholder)),
        ),
        editor=EditorCfg(
            new_node_prefix=str(_get(data, "editor.new_node_prefix", base.editor.new_node_prefix)),
            new_option_text=str(_get(data, "editor.new_option_text", base.editor.new_option_text)),
        ),
    )
