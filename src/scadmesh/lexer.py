"""
Tokenizer for the OpenSCAD subset.
"""
from __future__ import annotations

import logging
import re
from typing import Iterator, NamedTuple

from .diag import Diagnostics, Kind

logger = logging.getLogger(__name__)

__all__ = ["Pos", "Token", "Lexer", "IDENT", "NUMBER", "SYMBOL", "PUNCT"]

IDENT = "ident"
NUMBER = "number"
SYMBOL = "symbol"
PUNCT = "punct"

PUNCTUATION = "()[]{},;"
SYMBOLS = "=-+!#%*"

_space = re.compile(r"\s+")
_ident = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_number = re.compile(r"[-+]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][-+]?[0-9]+)?")


class Pos(NamedTuple):
    line: int
    col: int
    offset: int

    def __str__(self):
        return f"{self.line}:{self.col}"


class Token(NamedTuple):
    kind: str
    value: str | float
    pos: Pos

    def is_(self, kind: str, value=None) -> bool:
        "Check kind and, optionally, value of this token"
        return self.kind == kind and (value is None or self.value == value)


class Lexer:
    """
    Splits source text into tokens.

    Iterating a `Lexer` scans the text from the start, so it can be
    iterated any number of times. Characters that don't start a token are
    skipped; each one is recorded in `diagnostics`, which is reset
    whenever a new scan starts.
    """

    def __init__(self, text: str):
        self.text = text
        self.diagnostics = Diagnostics()

    def __iter__(self) -> Iterator[Token]:
        return self._scan()

    def _scan(self) -> Iterator[Token]:
        text = self.text
        end = len(text)
        self.diagnostics = diag = Diagnostics()

        off = 0
        line = 1
        bol = 0  # offset of the current line's start

        def pos():
            return Pos(line, off - bol + 1, off)

        def skip_to(new):
            nonlocal off, line, bol
            nl = text.count("\n", off, new)
            if nl:
                line += nl
                bol = text.rindex("\n", off, new) + 1
            off = new

        while off < end:
            if m := _space.match(text, off):
                skip_to(m.end())
                continue

            if text.startswith("//", off):
                nl = text.find("\n", off)
                skip_to(end if nl < 0 else nl)
                continue

            if text.startswith("/*", off):
                cl = text.find("*/", off + 2)
                if cl < 0:
                    logger.debug("Unterminated comment at %s", pos())
                    skip_to(end)
                else:
                    skip_to(cl + 2)
                continue

            c = text[off]
            if c in "-+.0123456789" and (m := _number.match(text, off)):
                yield Token(NUMBER, float(m.group()), pos())
                skip_to(m.end())
            elif m := _ident.match(text, off):
                yield Token(IDENT, m.group(), pos())
                skip_to(m.end())
            elif c in PUNCTUATION:
                yield Token(PUNCT, c, pos())
                skip_to(off + 1)
            elif c in SYMBOLS:
                yield Token(SYMBOL, c, pos())
                skip_to(off + 1)
            else:
                diag.add(Kind.LEX_WARNING, f"Unrecognized character {c !r}", pos())
                skip_to(off + 1)
