"""
Diagnostics: recoverable problems found while parsing or evaluating.

They are collected instead of raised, so that a caller can report
"5 of 6 shapes rendered, 1 skipped" instead of failing outright.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .lexer import Pos

logger = logging.getLogger(__name__)


class Kind(str, Enum):
    LEX_WARNING = "LexWarning"
    UNMATCHED_STATEMENT = "UnmatchedStatement"
    UNRESOLVED_VARIABLE = "UnresolvedVariable"
    INVALID_ARGUMENT = "InvalidArgument"
    DUPLICATE_ASSIGNMENT = "DuplicateAssignment"
    APPROXIMATE_BOOLEAN = "ApproximateBoolean"


class Diagnostic:
    """A single recoverable problem, with its source position if known."""

    def __init__(self, kind: Kind, message: str, pos: Pos | None = None):
        self.kind = kind
        self.message = message
        self.pos = pos

    def __eq__(self, other):
        if not isinstance(other, Diagnostic):
            return NotImplemented
        return (self.kind, self.message, self.pos) == (other.kind, other.message, other.pos)

    def __repr__(self):
        return f"Diagnostic({self.kind.value}, {self.message !r}, {self.pos !r})"

    def __str__(self):
        if self.pos is None:
            return f"{self.kind.value}: {self.message}"
        return f"{self.pos}: {self.kind.value}: {self.message}"


class Diagnostics(list):
    """A list of `Diagnostic` objects that logs whatever gets added to it."""

    def add(self, kind: Kind, message: str, pos: Pos | None = None) -> Diagnostic:
        d = Diagnostic(kind, message, pos)
        if kind is Kind.APPROXIMATE_BOOLEAN:
            logger.info("%s", d)
        else:
            logger.warning("%s", d)
        self.append(d)
        return d

    def of_kind(self, kind: Kind) -> list[Diagnostic]:
        return [d for d in self if d.kind is kind]

