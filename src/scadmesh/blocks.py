"""
Building blocks of a parsed model.

The parser turns source text into a list of these nodes. They are plain
data: evaluating them is the evaluator's job.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .lexer import Pos


@dataclass(frozen=True)
class Var:
    """Reference to a variable, possibly negated (``-x``)."""
    name: str
    negate: bool = False

    def __str__(self):
        return f"-{self.name}" if self.negate else self.name


Value = Union[float, bool, Var, list]


@dataclass
class Node:
    """Base class for statements.

    Attributes:
        name: the called module (``cube``, ``translate`` …) or the assigned
            variable.
        pos: where the statement starts.
        modifier: one of OpenSCAD's modifier characters (``*!#%``), or None.
    """
    name: str
    pos: Pos | None = field(default=None, compare=False)
    modifier: str | None = field(default=None, kw_only=True)


@dataclass
class Assignment(Node):
    """``name = value;``"""
    value: float = 0.0


@dataclass
class PrimitiveCall(Node):
    """``cube(…);``, ``sphere(…);`` or ``cylinder(…);``"""
    args: dict[str, Value] = field(default_factory=dict)


@dataclass
class TransformWrapper(Node):
    """``translate(…) child`` or ``rotate(…) child``"""
    args: dict[str, Value] = field(default_factory=dict)
    child: Node | None = None


@dataclass
class BooleanGroup(Node):
    """``union() {…}`` or ``difference() {…}``.

    For ``difference``, the first child is the base; all others are
    subtracted from it.
    """
    children: list[Node] = field(default_factory=list)
