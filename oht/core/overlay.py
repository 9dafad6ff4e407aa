"""Nested value overlays, as rendered into localized-values.yaml.

An overlay is a tree of `Node`s whose leaves are `Scalar`s. A slot that holds
nothing yet is `ABSENT`. Inserting at a dot-path creates intermediate nodes
as needed, but never turns a scalar into a node or a node into a scalar: two
paths where one is a strict prefix of the other cannot both be set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .result import Err, Ok, Result

__all__ = ["ABSENT", "Node", "OverlayError", "Scalar", "insert", "to_plain"]


@dataclass(frozen=True, slots=True)
class Scalar:
    value: object


def _empty_children() -> dict[str, Scalar | Node]:
    return {}


@dataclass(slots=True)
class Node:
    children: dict[str, Scalar | Node] = field(default_factory=_empty_children)


class _Absent(Enum):
    ABSENT = "absent"


ABSENT = _Absent.ABSENT

type Slot = Scalar | Node | _Absent


@dataclass(frozen=True, slots=True)
class OverlayError:
    """Error when a path is used both as a value and as a namespace.

    Attributes:
        subpath: The part of the path that could not be inserted
        found: Type name of the scalar already stored there, or "node"
    """

    subpath: str
    found: str

    @property
    def message(self) -> str:
        if self.found == "node":
            return f"cannot insert value into subpath {self.subpath!r} which already holds nested values"
        return f"cannot insert value into subpath {self.subpath!r} of value with type {self.found}"


def insert(node: Node, path: str, value: object) -> Result[None, OverlayError]:
    """Insert `value` at the dot-separated `path` below `node`."""
    key, sep, subpath = path.partition(".")
    slot: Slot = node.children.get(key, ABSENT)

    if not sep:
        match slot:
            case Node():
                return Err(OverlayError(subpath=key, found="node"))
            case Scalar() | _Absent():
                node.children[key] = Scalar(value)
                return Ok(None)

    match slot:
        case Node():
            return insert(slot, subpath, value)
        case _Absent():
            child = Node()
            node.children[key] = child
            return insert(child, subpath, value)
        case Scalar(value=existing):
            return Err(OverlayError(subpath=subpath, found=type(existing).__name__))


def to_plain(node: Node) -> dict[str, object]:
    """Convert an overlay into plain nested dicts for serialization."""
    out: dict[str, object] = {}
    for key, child in node.children.items():
        match child:
            case Node():
                out[key] = to_plain(child)
            case Scalar(value=value):
                out[key] = value
    return out
