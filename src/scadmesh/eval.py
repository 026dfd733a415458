"""
Evaluate a parsed model into a scene graph.
"""
from __future__ import annotations

import logging
import math
import warnings

from scipy.spatial.transform import Rotation

from . import NoGeometryProduced
from . import mesh as mesh_
from .blocks import Assignment, BooleanGroup, Node, PrimitiveCall, TransformWrapper, Value, Var
from .diag import Diagnostics, Kind
from .scene import MeshNode, SceneGraph
from .vars import UnresolvedVariable, VariableTable

logger = logging.getLogger(__name__)

__all__ = ["Evaluator", "InvalidArgument"]


class InvalidArgument(ValueError):
    "A parameter has an unusable value"


### Parameter handling, shared with the CSG kernel


def _num(v, what: str) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise InvalidArgument(f"{what} must be a number, not {v !r}")
    return float(v)


def _bool(v, what: str) -> bool:
    if not isinstance(v, bool):
        raise InvalidArgument(f"{what} must be true or false, not {v !r}")
    return v


def _vec(v, what: str, n_min: int = 3) -> tuple[float, float, float]:
    "A vector with up to three elements; missing ones are zero"
    if not isinstance(v, list) or not n_min <= len(v) <= 3:
        raise InvalidArgument(f"{what} must be a vector of {n_min}-3 numbers, not {v !r}")
    res = [_num(x, what) for x in v]
    res += [0.0] * (3 - len(res))
    return tuple(res)


def cube_params(args: dict) -> tuple[tuple[float, float, float], bool]:
    size = args.get("size", 1.0)
    if isinstance(size, list):
        size = _vec(size, "cube size")
    else:
        size = (_num(size, "cube size"),) * 3
    if min(size) <= 0:
        raise InvalidArgument(f"cube size must be positive, not {list(size)}")
    return size, _bool(args.get("center", False), "center")


def sphere_params(args: dict) -> float:
    r = args.get("r")
    d = args.get("d")
    if r is None:
        r = 1.0 if d is None else _num(d, "sphere diameter") / 2
    elif d is not None:
        warnings.warn("sphere: parameters are ambiguous")
    r = _num(r, "sphere radius")
    if r <= 0:
        raise InvalidArgument(f"sphere radius must be positive, not {r}")
    return r


def cylinder_params(args: dict) -> tuple[float, float, float, bool]:
    h = _num(args.get("h", 1.0), "cylinder height")
    r, d = args.get("r"), args.get("d")
    r1, r2 = args.get("r1"), args.get("r2")
    d1, d2 = args.get("d1"), args.get("d2")
    if (
        (
            (r1 is not None)
            + (r2 is not None)
            + (d1 is not None)
            + (d2 is not None)
            + 2 * (r is not None)
            + 2 * (d is not None)
        )
        > 2
        or (r1 is not None and d1 is not None)
        or (r2 is not None and d2 is not None)
    ):
        warnings.warn("cylinder: parameters are ambiguous")

    if r is not None:
        r1 = r2 = _num(r, "cylinder radius")
    if d is not None:
        r1 = r2 = _num(d, "cylinder diameter") / 2
    if d1 is not None:
        r1 = _num(d1, "cylinder diameter") / 2
    if d2 is not None:
        r2 = _num(d2, "cylinder diameter") / 2

    r1 = 1.0 if r1 is None else _num(r1, "cylinder radius")
    r2 = r1 if r2 is None else _num(r2, "cylinder radius")

    if h <= 0 or r1 < 0 or r2 < 0 or r1 == r2 == 0:
        raise InvalidArgument(f"cylinder is empty: h={h} r1={r1} r2={r2}")
    return h, r1, r2, _bool(args.get("center", False), "center")


def translate_params(args: dict) -> tuple[float, float, float]:
    return _vec(args.get("v", [0.0, 0.0, 0.0]), "translation", n_min=2)


def rotate_params(args: dict) -> tuple[float, float, float]:
    """Normalize ``rotate``'s arguments to X/Y/Z angles, in degrees."""
    a = args.get("a", 0.0)
    v = args.get("v")
    if isinstance(a, list):
        # per-axis angles: OpenSCAD ignores the axis
        return _vec(a, "rotation", n_min=1)
    if v is not None:
        a = _num(a, "rotation angle")
        v = _vec(v, "rotation axis")
        vl = math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])
        if vl == 0:
            raise InvalidArgument("rotation axis must not be zero")
        if v[0] == v[1] == 0:
            return (0.0, 0.0, a if v[2] > 0 else -a)
        r = Rotation.from_rotvec(tuple(x / vl * a for x in v), degrees=True)
        return tuple(float(x) for x in r.as_euler("xyz", degrees=True))
    return (0.0, 0.0, _num(a, "rotation angle"))


def resolve_args(node: PrimitiveCall | TransformWrapper, scope: VariableTable) -> dict:
    """Replace variable references in a call's arguments with their values."""
    return {k: _value(v, scope, node) for k, v in node.args.items()}


def _value(v: Value, scope: VariableTable, node: Node):
    if isinstance(v, Var):
        try:
            res = scope[v.name]
        except UnresolvedVariable as exc:
            exc.pos = node.pos
            raise
        return -res if v.negate else res
    if isinstance(v, list):
        return [_value(x, scope, node) for x in v]
    return v


### The evaluator


class Evaluator:
    """
    Walks a list of statements and builds their meshes.

    Problems with a single statement (unknown variable, bad parameter)
    drop that statement and are recorded in ``diagnostics``; the rest of
    the model is still built.

    With ``exact`` set, ``difference`` is computed by the build123d
    kernel instead of being approximated.
    """

    def __init__(
        self,
        diagnostics: Diagnostics | None = None,
        overrides: dict | None = None,
        exact: bool = False,
    ):
        self.diagnostics = Diagnostics() if diagnostics is None else diagnostics
        self.overrides = overrides or {}
        self.exact = exact

    def run(self, nodes: list[Node]) -> SceneGraph:
        """Evaluate a whole program.

        Raises `NoGeometryProduced` if nothing at all was built.
        """
        variables = VariableTable.build(nodes, self.diagnostics, overrides=self.overrides, name="main")

        roots = list(self._roots(nodes, variables))
        if roots:
            logger.debug("Rendering %d '!' statement(s) only", len(roots))
            res = []
            for node, scope in roots:
                res.extend(self.eval(node, scope))
        else:
            res = self.eval_list(nodes, variables)

        if not res:
            raise NoGeometryProduced("The model doesn't contain any geometry", self.diagnostics)
        return SceneGraph(res, self.diagnostics)

    def _roots(self, nodes, scope):
        "find statements marked with '!', with their variable scope"
        for n in nodes:
            if n.modifier == "*":
                continue
            if n.modifier == "!":
                yield n, scope
            elif isinstance(n, TransformWrapper):
                yield from self._roots([n.child], scope)
            elif isinstance(n, BooleanGroup):
                # quiet: the child scope's duplicates get reported when it's evaluated
                yield from self._roots(n.children, scope.child(n.name, n.children, Diagnostics()))

    def eval_list(self, nodes: list[Node], scope: VariableTable) -> list[MeshNode]:
        res = []
        for n in nodes:
            if isinstance(n, Assignment):
                continue
            res.extend(self.eval(n, scope))
        return res

    def eval(self, node: Node, scope: VariableTable) -> list[MeshNode]:
        """Evaluate a single statement."""
        if node.modifier == "*":
            return []
        p = getattr(self, f"_e_{node.name}")
        try:
            res = p(node, scope)
        except UnresolvedVariable as exc:
            self.diagnostics.add(
                Kind.UNRESOLVED_VARIABLE, f"{exc}; {node.name} skipped", exc.pos or node.pos
            )
            return []
        except InvalidArgument as exc:
            self.diagnostics.add(Kind.INVALID_ARGUMENT, f"{node.name}: {exc}", node.pos)
            return []

        if node.modifier == "#":
            for r in res:
                r.retag("highlight", keep=("background",))
        elif node.modifier == "%":
            for r in res:
                r.retag("background")
        return res

    # primitives

    def _e_cube(self, node, scope):
        size, center = cube_params(resolve_args(node, scope))
        return [MeshNode(mesh_.box(size, center), material="cube")]

    def _e_sphere(self, node, scope):
        r = sphere_params(resolve_args(node, scope))
        return [MeshNode(mesh_.sphere(r), material="sphere")]

    def _e_cylinder(self, node, scope):
        h, r1, r2, center = cylinder_params(resolve_args(node, scope))
        return [MeshNode(mesh_.cylinder(h, r1, r2, center), material="cylinder")]

    # transforms

    def _transform(self, node: TransformWrapper, scope, matrix) -> list[MeshNode]:
        children = self.eval(node.child, scope)
        if not children:
            return []
        return [MeshNode(transform=matrix, children=children)]

    def _e_translate(self, node, scope):
        v = translate_params(resolve_args(node, scope))
        return self._transform(node, scope, mesh_.translation(v))

    def _e_rotate(self, node, scope):
        a = rotate_params(resolve_args(node, scope))
        return self._transform(node, scope, mesh_.rotation(a))

    # groups

    def _e_union(self, node, scope):
        # no merging: the children are simply put next to each other
        return self.eval_list(node.children, scope.child(node.name, node.children, self.diagnostics))

    def _e_difference(self, node, scope):
        scope = scope.child(node.name, node.children, self.diagnostics)
        if self.exact:
            from .csg import Kernel

            return Kernel(self.diagnostics, self).difference(node, scope)

        # disabled objects are removed before picking the base
        kids = [c for c in node.children if not isinstance(c, Assignment) and c.modifier != "*"]
        if not kids:
            return []
        parts = [self.eval(c, scope) for c in kids]
        res = parts[0]
        if not res:
            logger.debug("%s: base object is empty", node.pos)
            return []
        if len(parts) > 1:
            self.diagnostics.add(
                Kind.APPROXIMATE_BOOLEAN,
                f"difference: {len(parts) - 1} subtracted object(s) not removed, showing the base only",
                node.pos,
            )
        for r in res:
            r.retag("difference", keep=("highlight", "background"))
        return res
