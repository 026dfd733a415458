"""
Exact ``difference`` through build123d / OpenCascade.

Each child of a ``difference`` is rebuilt as a solid, the later ones are
subtracted from the first, and the result is tessellated back into a
single mesh node.
"""
from __future__ import annotations

import logging

import numpy as np
from build123d import Align, Axis, Box, Cone, Cylinder, Pos, Shape, Sphere

from . import mesh as mesh_
from .blocks import Assignment, BooleanGroup, Node
from .diag import Diagnostics, Kind
from .eval import (
    InvalidArgument,
    cube_params,
    cylinder_params,
    resolve_args,
    rotate_params,
    sphere_params,
    translate_params,
)
from .mesh import Mesh
from .scene import MeshNode
from .vars import UnresolvedVariable, VariableTable

logger = logging.getLogger(__name__)

TOLERANCE = 0.01  # tessellation: max. distance between mesh and surface
ANGULAR_TOLERANCE = 0.1

_BOTTOM = (Align.CENTER, Align.CENTER, Align.MIN)


class Kernel:
    """Builds build123d solids from statement nodes.

    ``%`` and ``#`` objects are also meshed by ``evaluator``, so that they
    are displayed at their place in the model. ``%`` objects are not part
    of the solid; ``#`` objects are.
    """

    def __init__(self, diagnostics: Diagnostics, evaluator=None):
        self.diagnostics = diagnostics
        self.evaluator = evaluator
        self._world = np.eye(4)
        self._shown: list[MeshNode] = []
        self._showing = False

    def difference(self, node: BooleanGroup, scope: VariableTable) -> list[MeshNode]:
        """Subtract, then tessellate. ``scope`` is the group's own scope."""
        self._shown = []
        res = self._subtract(node.children, scope)
        if res is None:
            return self._shown

        verts, tris = res.tessellate(TOLERANCE, ANGULAR_TOLERANCE)
        if not tris:
            logger.debug("%s: nothing left after subtraction", node.pos)
            return self._shown
        mesh = Mesh([(v.X, v.Y, v.Z) for v in verts], tris)
        return [MeshNode(mesh, material="difference")] + self._shown

    def build(self, node: Node, scope: VariableTable) -> Shape | None:
        """Build one statement. Problems drop it, as in `Evaluator.eval`."""
        if node.modifier == "*":
            return None
        if node.modifier == "%":
            self._show(node, scope)
            return None
        p = getattr(self, f"_b_{node.name}")
        outer = self._showing
        # objects inside a '#' subtree are displayed along with it
        self._showing = outer or node.modifier == "#"
        try:
            res = p(node, scope)
        except UnresolvedVariable as exc:
            self.diagnostics.add(Kind.UNRESOLVED_VARIABLE, f"{exc}; {node.name} skipped", exc.pos or node.pos)
            return None
        except InvalidArgument as exc:
            self.diagnostics.add(Kind.INVALID_ARGUMENT, f"{node.name}: {exc}", node.pos)
            return None
        finally:
            self._showing = outer
        if res is not None and node.modifier == "#":
            self._show(node, scope)
        return res

    def _show(self, node: Node, scope: VariableTable):
        "mesh a '#' or '%' object, for display only"
        if self.evaluator is None or self._showing:
            return
        res = self.evaluator.eval(node, scope)
        for r in res:
            for n, _ in r.walk():
                n.display_only = True
        if res:
            self._shown.append(MeshNode(transform=self._world, children=res, display_only=True))

    def _build_child(self, node: Node, scope: VariableTable, matrix) -> Shape | None:
        "build a transform's child; ``matrix`` is the transform"
        outer = self._world
        self._world = outer @ matrix
        try:
            return self.build(node, scope)
        finally:
            self._world = outer

    def _subtract(self, nodes, scope) -> Shape | None:
        ch = iter(c for c in nodes if not isinstance(c, Assignment) and c.modifier != "*")
        res = None
        for c in ch:
            res = self.build(c, scope)
            break
        if res is None:
            # an empty base leaves nothing to subtract from
            return None
        for c in ch:
            cut = self.build(c, scope)
            if cut is not None:
                res -= cut
        return res

    def _union(self, nodes, scope) -> Shape | None:
        res = None
        for n in nodes:
            if isinstance(n, Assignment):
                continue
            r = self.build(n, scope)
            if r is None:
                continue
            elif res is None:
                res = r
            else:
                res += r
        return res

    def _b_cube(self, node, scope):
        (x, y, z), center = cube_params(resolve_args(node, scope))
        res = Box(x, y, z)
        if not center:
            res = Pos(x / 2, y / 2, z / 2) * res
        return res

    def _b_sphere(self, node, scope):
        return Sphere(sphere_params(resolve_args(node, scope)))

    def _b_cylinder(self, node, scope):
        h, r1, r2, center = cylinder_params(resolve_args(node, scope))
        if r1 == r2:
            res = Cylinder(r1, h, align=_BOTTOM)
        else:
            res = Cone(r1, r2, h, align=_BOTTOM)
        if center:
            res = Pos(0, 0, -h / 2) * res
        return res

    def _b_translate(self, node, scope):
        v = translate_params(resolve_args(node, scope))
        ch = self._build_child(node.child, scope, mesh_.translation(v))
        if ch is None:
            return None
        return ch.translate(v)

    def _b_rotate(self, node, scope):
        a = rotate_params(resolve_args(node, scope))
        ch = self._build_child(node.child, scope, mesh_.rotation(a))
        if ch is None:
            return None
        if a[0]:
            ch = ch.rotate(Axis.X, a[0])
        if a[1]:
            ch = ch.rotate(Axis.Y, a[1])
        if a[2]:
            ch = ch.rotate(Axis.Z, a[2])
        return ch

    def _b_union(self, node, scope):
        return self._union(node.children, scope.child(node.name, node.children, self.diagnostics))

    def _b_difference(self, node, scope):
        return self._subtract(node.children, scope.child(node.name, node.children, self.diagnostics))
