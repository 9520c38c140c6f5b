from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from convo.settings import AppCfg
from convo.narrative.decoder import decode_document
from convo.narrative.errors import DocumentSyntaxError
from convo.narrative.types import Graph

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_document(text: str, path: Optional[str] = None) -> Any:
    """
    Parse conversation YAML. An empty document is an empty mapping; anything
    else is returned as parsed and shape-checked by the decoder.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentSyntaxError(str(e), path=path) from e
    return {} if data is None else data


def dump_document(document: Dict[str, Any]) -> str:
    # YAML preserves order; keep ours instead of sorting keys
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True, default_flow_style=False)


def load_document_file(path: PathLike) -> Any:
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        text = f.read()
    logger.info("Loaded conversation %s", p)
    return load_document(text, path=str(p))


def save_document_file(path: PathLike, document: Dict[str, Any]) -> None:
    p = Path(path)
    with p.open("w", encoding="utf-8") as f:
        f.write(dump_document(document))
    logger.info("Saved conversation %s (%d sections)", p, len(document))


def load_graph_file(path: PathLike, settings: Optional[AppCfg] = None) -> Graph:
    return decode_document(load_document_file(path), settings)
