"""
Recursive-descent parser for the OpenSCAD subset.

A statement that doesn't match the grammar is dropped and reported as an
``UnmatchedStatement`` diagnostic; parsing then continues with the next
statement, so that one typo doesn't blank the whole model.
"""
from __future__ import annotations

import logging
import warnings
from collections import deque
from typing import Iterable, Iterator

from .blocks import (
    Assignment,
    BooleanGroup,
    Node,
    PrimitiveCall,
    TransformWrapper,
    Value,
    Var,
)
from .diag import Diagnostics, Kind
from .lexer import IDENT, NUMBER, PUNCT, SYMBOL, Lexer, Pos, Token

logger = logging.getLogger(__name__)

__all__ = ["Parser", "SyntaxMismatch", "SIGNATURES"]

MODIFIERS = "*!#%"

# OpenSCAD's parameter order, used to name positional arguments
SIGNATURES: dict[str, tuple[str, ...]] = {
    "cube": ("size", "center"),
    "sphere": ("r", "d"),
    "cylinder": ("h", "r1", "r2", "center", "r", "d", "d1", "d2"),
    "translate": ("v",),
    "rotate": ("a", "v"),
    "union": (),
    "difference": (),
}
# how many of the above may be given positionally
_N_POSITIONAL = {
    "cube": 2,
    "sphere": 1,
    "cylinder": 4,
    "translate": 1,
    "rotate": 2,
    "union": 0,
    "difference": 0,
}


class SyntaxMismatch(ValueError):
    "The current statement doesn't match the grammar"

    def __init__(self, msg, pos: Pos | None):
        super().__init__(msg)
        self.pos = pos


class _EOF:
    kind = None
    value = None
    pos = None

    def is_(self, kind, value=None):
        return False


EOF = _EOF()


class Parser:
    """
    Parses a token stream into a list of top-level statement nodes.

    Usage::

        p = Parser(Lexer(text))
        nodes = p.parse()
        p.diagnostics  # lexer warnings plus dropped statements
    """

    def __init__(self, tokens: Lexer | Iterable[Token], diagnostics: Diagnostics | None = None):
        self._src = tokens
        self.diagnostics = Diagnostics() if diagnostics is None else diagnostics
        self._tokens: Iterator[Token] = iter(())
        self._ahead: deque[Token] = deque()
        self._last_pos: Pos | None = None

    # token handling

    def _peek(self, i: int = 0) -> Token | _EOF:
        while len(self._ahead) <= i:
            try:
                self._ahead.append(next(self._tokens))
            except StopIteration:
                return EOF
        return self._ahead[i]

    def _next(self) -> Token | _EOF:
        tok = self._peek()
        if tok is not EOF:
            self._ahead.popleft()
            self._last_pos = tok.pos
        return tok

    def _expect(self, kind: str, value=None) -> Token:
        tok = self._peek()
        if not tok.is_(kind, value):
            want = repr(value) if value is not None else kind
            if tok is EOF:
                raise SyntaxMismatch(f"expected {want}, got end of input", self._last_pos)
            raise SyntaxMismatch(f"expected {want}, got {tok.value !r}", tok.pos)
        return self._next()

    def _accept(self, kind: str, value=None) -> Token | None:
        if self._peek().is_(kind, value):
            return self._next()
        return None

    # entry point

    def parse(self) -> list[Node]:
        """Parse the whole input."""
        self._tokens = iter(self._src)
        self._ahead.clear()
        try:
            return self._statements(top=True)
        finally:
            if isinstance(self._src, Lexer):
                self.diagnostics[0:0] = self._src.diagnostics

    def _statements(self, top: bool) -> list[Node]:
        """statement* up to a closing brace (which is not consumed) or EOF"""
        res = []
        while True:
            tok = self._peek()
            if tok is EOF:
                return res
            if tok.is_(PUNCT, "}"):
                if not top:
                    return res
                self._next()
                self._unmatched("unbalanced '}'", tok.pos)
                continue
            start = tok.pos
            try:
                node = self._statement()
            except SyntaxMismatch as exc:
                self._unmatched(str(exc), exc.pos or start)
                self._recover()
            else:
                if node is not None:
                    res.append(node)

    def _unmatched(self, msg: str, pos: Pos | None):
        self.diagnostics.add(Kind.UNMATCHED_STATEMENT, msg, pos)

    def _recover(self):
        """Skip to the end of the broken statement.

        That is, past the next semicolon or complete brace block at
        bracket depth zero, or up to the brace that closes the enclosing
        block.
        """
        depth = 0
        while True:
            tok = self._peek()
            if tok is EOF:
                return
            if tok.kind == PUNCT:
                if tok.value in "([":
                    depth += 1
                elif tok.value in ")]":
                    depth = max(depth - 1, 0)
                elif tok.value == "{":
                    self._next()
                    self._skip_block()
                    if depth == 0:
                        return
                    continue
                elif tok.value == "}":
                    return
                elif tok.value == ";" and depth == 0:
                    self._next()
                    return
            self._next()

    def _skip_block(self):
        "skip to the brace matching an already-consumed '{'"
        depth = 1
        while depth:
            tok = self._next()
            if tok is EOF:
                return
            if tok.is_(PUNCT, "{"):
                depth += 1
            elif tok.is_(PUNCT, "}"):
                depth -= 1

    # grammar

    def _statement(self) -> Node | None:
        modifier = None
        while (tok := self._peek()).kind == SYMBOL and tok.value in MODIFIERS:
            self._next()
            if modifier is None or tok.value == "*":
                modifier = tok.value

        tok = self._peek()
        if tok.is_(PUNCT, ";"):
            self._next()
            return None
        if tok.is_(PUNCT, "{"):
            # bare block: OpenSCAD treats it as an implicit union
            self._next()
            return self._block_group("union", tok.pos, modifier)
        if tok.kind != IDENT:
            if tok is EOF:
                raise SyntaxMismatch("incomplete statement", self._last_pos)
            raise SyntaxMismatch(f"unexpected {tok.value !r}", tok.pos)

        if self._peek(1).is_(SYMBOL, "="):
            node = self._assignment()
        else:
            try:
                p = getattr(self, f"_p_{tok.value}")
            except AttributeError:
                raise SyntaxMismatch(f"unknown statement {tok.value !r}", tok.pos) from None
            node = p()
        if node is not None and modifier is not None:
            node.modifier = modifier
        return node

    def _assignment(self) -> Assignment:
        name = self._next()
        self._expect(SYMBOL, "=")
        val = self._expect(NUMBER).value
        self._expect(PUNCT, ";")
        return Assignment(name.value, name.pos, value=val)

    def _primitive(self) -> PrimitiveCall:
        name = self._next()
        args = self._arguments(name)
        self._expect(PUNCT, ";")
        return PrimitiveCall(name.value, name.pos, args=args)

    _p_cube = _primitive
    _p_sphere = _primitive
    _p_cylinder = _primitive

    def _transform(self) -> TransformWrapper | None:
        name = self._next()
        args = self._arguments(name)

        tok = self._peek()
        if tok.is_(PUNCT, "{"):
            self._next()
            child = self._block_group("union", tok.pos, None)
        else:
            child = self._child()
        if child is None:
            # translate(…) ;  or an empty block: nothing to transform
            return None
        return TransformWrapper(name.value, name.pos, args=args, child=child)

    _p_translate = _transform
    _p_rotate = _transform

    def _group(self) -> BooleanGroup | None:
        name = self._next()
        args = self._arguments(name)
        if args:
            warnings.warn(f"{name.value}: arguments are ignored")
        tok = self._peek()
        if tok.is_(PUNCT, "{"):
            self._next()
            return self._block_group(name.value, name.pos, None)
        # union() cube(…);  is legal OpenSCAD too
        child = self._child()
        if child is None:
            return None
        return BooleanGroup(name.value, name.pos, children=[child])

    _p_union = _group
    _p_difference = _group

    def _child(self) -> Node | None:
        "the single statement following a transform"
        tok = self._peek()
        child = self._statement()
        if isinstance(child, Assignment):
            self._unmatched(f"assignment to {child.name !r} cannot be a child object", tok.pos)
            return None
        return child

    def _block_group(self, name: str, pos: Pos, modifier: str | None) -> BooleanGroup | None:
        "parse the rest of a '{' block and wrap it in a group"
        children = self._statements(top=False)
        if not self._accept(PUNCT, "}"):
            logger.debug("Block at %s closed by end of input", pos)
        # assignments stay in the group: they're scoped to it
        if not any(not isinstance(c, Assignment) for c in children):
            return None
        return BooleanGroup(name, pos, children=children, modifier=modifier)

    def _arguments(self, name: Token) -> dict[str, Value]:
        """'(' arglist ')', with positional arguments bound to their names"""
        self._expect(PUNCT, "(")
        pos_args = []
        kw_args = {}
        if not self._accept(PUNCT, ")"):
            while True:
                if self._peek().kind == IDENT and self._peek(1).is_(SYMBOL, "="):
                    key = self._next()
                    self._next()
                    if key.value in kw_args:
                        raise SyntaxMismatch(f"{key.value !r} is already set", key.pos)
                    kw_args[key.value] = self._value()
                else:
                    pos_args.append(self._value())
                if self._accept(PUNCT, ")"):
                    break
                self._expect(PUNCT, ",")
        return self._bind(name, pos_args, kw_args)

    def _bind(self, name: Token, pos_args: list, kw_args: dict) -> dict[str, Value]:
        sig = SIGNATURES[name.value]
        n_pos = _N_POSITIONAL[name.value]
        if len(pos_args) > n_pos:
            warnings.warn(f"Too many params for {name.value}")
            del pos_args[n_pos:]
        res = dict(zip(sig, pos_args))
        for k, v in kw_args.items():
            if k not in sig:
                warnings.warn(f"{name.value}: unknown parameter {k !r}")
                continue
            # named parameters take precedence
            res[k] = v
        return res

    def _value(self) -> Value:
        # a token that can't start a value is left for `_recover`
        tok = self._peek()
        if tok is EOF:
            raise SyntaxMismatch("expected a value, got end of input", self._last_pos)
        if tok.kind == NUMBER:
            self._next()
            return tok.value
        if tok.kind == IDENT:
            self._next()
            if tok.value == "true":
                return True
            if tok.value == "false":
                return False
            return Var(tok.value)
        if tok.is_(SYMBOL, "-"):
            self._next()
            name = self._expect(IDENT)
            return Var(name.value, negate=True)
        if tok.is_(PUNCT, "["):
            self._next()
            res = [self._value()]
            while not self._accept(PUNCT, "]"):
                self._expect(PUNCT, ",")
                res.append(self._value())
            return res
        raise SyntaxMismatch(f"expected a value, got {tok.value !r}", tok.pos)

