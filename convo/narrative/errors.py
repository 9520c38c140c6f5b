from __future__ import annotations
from typing import Optional


class ConvoError(Exception):
    """Base class for everything the conversation codec raises on purpose."""


class DocumentShapeError(ConvoError, ValueError):
    """The decoded document value is not a key/value mapping."""


class DocumentSyntaxError(ConvoError):
    """The YAML text could not be parsed at all."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class GraphEditError(ConvoError, ValueError):
    """An editing operation would break a graph invariant (unknown id, id clash)."""
