"""
Option 'then' scripts.

The scripting language itself is opaque here. The only shape we understand is a
fragment that is nothing but ``goto <node>`` (surrounding whitespace allowed);
everything else is kept verbatim so author logic survives a round trip.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

GOTO_COMMAND = "goto"
GOTO_PATTERN = re.compile(r"^\s*goto\s+([A-Za-z0-9_]+)\s*$")


def parse_goto(raw: Any) -> Optional[str]:
    """Return the target node id if 'raw' is exactly a goto fragment, else None."""
    if not isinstance(raw, str):
        return None
    m = GOTO_PATTERN.match(raw)
    return m.group(1) if m else None


def is_goto(raw: Any) -> bool:
    return parse_goto(raw) is not None


def goto_fragment(target: str) -> str:
    return f"{GOTO_COMMAND} {target}"


# --- Resolved option action ---------------------------------------------------
# Computed once per option while encoding:
#   GotoTarget      - an edge leaves the option, emit "goto <target>"
#   PreservedScript - no edge, keep the author's non-goto script as-is
#   NoAction        - emit no 'then' at all

@dataclass(frozen=True)
class GotoTarget:
    target: str

    def script(self) -> str:
        return goto_fragment(self.target)


@dataclass(frozen=True)
class PreservedScript:
    text: Any                   # Usually a str, but lists/blocks are kept too

    def script(self) -> Any:
        return self.text


@dataclass(frozen=True)
class NoAction:
    def script(self) -> None:
        return None


OptionAction = Union[GotoTarget, PreservedScript, NoAction]
