"""Instruction tree and its Dockerfile serialization.

The parser producing the tree lives outside this package. Nodes follow the
engine parser's shape: the root's ``children`` are instructions, each
instruction's ``value`` is its lower-case keyword and its arguments hang off
the ``next`` chain. ``ONBUILD`` wraps a nested instruction in ``next.children``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

__all__ = ["Node", "ast_to_string"]

_NEEDS_QUOTES = re.compile(r"[\s\"'\\$]")


@dataclass
class Node:
    """One node of the instruction tree."""

    value: str = ""
    next: Optional["Node"] = None
    children: List["Node"] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)
    flags: List[str] = field(default_factory=list)
    original: str = ""

    @classmethod
    def instruction(cls, keyword: str, *args: str, **attributes: Any) -> "Node":
        """Build an instruction node with a chain of literal arguments."""
        head: Optional[Node] = None
        for arg in reversed(args):
            head = cls(value=arg, next=head)
        return cls(value=keyword.lower(), next=head, attributes=dict(attributes))

    def args(self) -> List[str]:
        return [node.value for node in self._chain()]

    def is_instruction(self, keyword: str) -> bool:
        return self.value.lower() == keyword.lower()

    def _chain(self) -> Iterator["Node"]:
        node = self.next
        while node is not None:
            yield node
            node = node.next


def _quote(value: str) -> str:
    if value and not _NEEDS_QUOTES.search(value):
        return value
    return json.dumps(value)


def _render_instruction(node: Node) -> str:
    keyword = node.value.upper()
    parts = [keyword, *node.flags]

    if keyword == "ONBUILD":
        nested = node.next.children if node.next is not None else []
        if len(nested) != 1:
            raise ValueError("ONBUILD requires exactly one nested instruction")
        parts.append(_render_instruction(nested[0]))
        return " ".join(parts)

    args = node.args()
    if node.attributes.get("json"):
        parts.append(json.dumps(args))
    elif node.attributes.get("pairs"):
        if len(args) % 2:
            raise ValueError(f"{keyword} expects key/value pairs, got {args!r}")
        parts.extend(
            f"{args[i]}={_quote(args[i + 1])}" for i in range(0, len(args), 2)
        )
    else:
        parts.extend(args)
    return " ".join(parts)


def ast_to_string(root: Node) -> str:
    """Serialize the instructions under ``root`` to Dockerfile text."""
    return "".join(_render_instruction(child) + "\n" for child in root.children)
