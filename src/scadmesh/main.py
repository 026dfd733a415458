"""
Main wrappers to process OpenSCAD source
"""
from __future__ import annotations

from io import IOBase
from pathlib import Path

from .blocks import Node
from .diag import Diagnostics
from .eval import Evaluator
from .lexer import Lexer
from .parser import Parser
from .scene import SceneGraph
from .stl import dumps


def _read(f: Path | str | IOBase) -> str:
    if isinstance(f, IOBase):
        r = f.read()
        f.close()
        return r
    if isinstance(f, Path):
        return f.read_text()
    return f


def parse(f: Path | str | IOBase, /, diagnostics: Diagnostics | None = None) -> list[Node]:
    """Parse OpenSCAD source.

    The single positional argument is either a `Path` or an open file to
    read, or the literal source text.

    Returns the list of top-level statements. Statements that could not
    be parsed are missing; they are reported in ``diagnostics``.
    """
    return Parser(Lexer(_read(f)), diagnostics).parse()


def evaluate(f: Path | str | IOBase, /, exact: bool = False, overrides: dict | None = None, **kw) -> SceneGraph:
    """Evaluate OpenSCAD source.

    Returns the resulting `SceneGraph`. Its ``diagnostics`` attribute lists
    whatever problems have been found and skipped.

    ``overrides`` maps variable names to values that replace the source's
    assignments; further keyword arguments are added to it. Use the dict
    for names that collide with this function's parameters.

    Set ``exact`` to compute ``difference`` with the build123d kernel;
    otherwise only the first child of a ``difference`` is shown.

    Raises `NoGeometryProduced` if the source doesn't describe any shape.
    """
    diag = Diagnostics()
    nodes = parse(f, diagnostics=diag)
    return Evaluator(diag, overrides={**(overrides or {}), **kw}, exact=exact).run(nodes)


def export(scene: SceneGraph | None, /, name: str = "model") -> bytes:
    """Serialize a scene to ASCII STL.

    Raises `EmptyMeshExport` if there is no mesh to export.
    """
    return dumps(scene, name=name)


def write_stl(scene: SceneGraph | None, path: Path | str, /, name: str | None = None) -> None:
    """Write a scene to an ASCII STL file.

    The solid is named after the file unless ``name`` is given.
    """
    path = Path(path)
    data = export(scene, name=name or path.stem or "model")
    path.write_bytes(data)
