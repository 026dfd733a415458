"""
OpenSCAD subset to triangle mesh translator

This package interprets a small subset of OpenSCAD (primitives, numeric
variables, translate/rotate, union/difference), generating a scene of
triangle meshes which can be displayed or exported to ASCII STL.
"""
from __future__ import annotations

__all__ = [
    "evaluate",
    "export",
    "parse",
    "read_stl",
    "write_stl",
    "Session",
    "SceneGraph",
    "EvaluationError",
    "NoGeometryProduced",
    "EmptyMeshExport",
]


class EvaluationError(RuntimeError):
    """Base class for fatal errors of an evaluation or export."""

    def __init__(self, msg, diagnostics=()):
        super().__init__(msg)
        self.diagnostics = list(diagnostics)


class NoGeometryProduced(EvaluationError):
    """The source text didn't yield any shape."""
    pass


class EmptyMeshExport(EvaluationError):
    """Export was requested, but there is no mesh to export."""
    pass


from .main import parse, evaluate, export, write_stl  # noqa:E402
from .scene import SceneGraph  # noqa:E402
from .session import Session  # noqa:E402
from .stl import read_stl  # noqa:E402
