"""
The scene graph: what an evaluation produces, and what gets displayed or
exported.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator

import numpy as np

from .diag import Diagnostic
from .mesh import Y_UP, Mesh

__all__ = ["Material", "MATERIALS", "MeshNode", "SceneGraph"]


class Material:
    """Display hints. These never affect geometry."""

    def __init__(self, name: str, color: int, opacity: float = 1.0):
        self.name = name
        self.color = color
        self.opacity = opacity

    @property
    def rgb(self) -> tuple[float, float, float]:
        c = self.color
        return ((c >> 16 & 0xFF) / 255, (c >> 8 & 0xFF) / 255, (c & 0xFF) / 255)

    def __eq__(self, other):
        if not isinstance(other, Material):
            return NotImplemented
        return (self.name, self.color, self.opacity) == (other.name, other.color, other.opacity)

    def __repr__(self):
        return f"<Material {self.name} #{self.color:06x}>"


MATERIALS = {
    m.name: m
    for m in (
        Material("default", 0x667EEA, 0.9),
        Material("cube", 0x667EEA, 0.9),
        Material("sphere", 0x764BA2, 0.9),
        Material("cylinder", 0x48BB78, 0.9),
        Material("difference", 0x8B5CF6, 0.85),
        Material("highlight", 0xFF5C5C, 0.6),
        Material("background", 0xA0A0A0, 0.3),
    )
}


class MeshNode:
    """
    A node of the scene graph.

    A node has a local transform, an optional mesh, and children. A node
    without a mesh just positions its children.
    """

    def __init__(
        self,
        mesh: Mesh | None = None,
        transform: np.ndarray | None = None,
        material: Material | str | None = None,
        children: Iterable[MeshNode] = (),
        display_only: bool = False,
    ):
        self.mesh = mesh
        self.transform = np.eye(4) if transform is None else np.asarray(transform, dtype=float)
        if isinstance(material, str):
            material = MATERIALS[material]
        self.material = material or MATERIALS["default"]
        self.children: list[MeshNode] = list(children)
        self.display_only = display_only

    @property
    def exported(self) -> bool:
        "Background and display-only objects are not exported."
        return not self.display_only and self.material.name != "background"

    def retag(self, material: str, keep: Iterable[str] = ()) -> None:
        """Set the material of this node and of all its descendants.

        Nodes whose material is named in ``keep`` are left alone.
        """
        mat = MATERIALS[material]
        for node, _ in self.walk():
            if node.material.name not in keep:
                node.material = mat

    def walk(self, parent: np.ndarray | None = None) -> Iterator[tuple[MeshNode, np.ndarray]]:
        """Yield this node and its descendants, with their world matrices."""
        world = self.transform if parent is None else parent @ self.transform
        yield self, world
        for ch in self.children:
            yield from ch.walk(world)

    def __eq__(self, other):
        if not isinstance(other, MeshNode):
            return NotImplemented
        if (self.mesh is None) != (other.mesh is None):
            return False
        return (
            (self.mesh is None or self.mesh == other.mesh)
            and np.array_equal(self.transform, other.transform)
            and self.material == other.material
            and self.children == other.children
        )

    def __repr__(self):
        return f"<MeshNode {self.material.name} {self.mesh !r} +{len(self.children)}>"


class SceneGraph:
    """
    The fully evaluated model: an ordered sequence of top-level nodes, plus
    the diagnostics collected while building it.

    A scene is never modified after it's built; re-evaluating creates a new
    one.

    Coordinates are OpenSCAD's, i.e. Z-up. Pass ``up="y"`` to `walk` or
    `meshes` to get them in a Y-up renderer's frame instead.
    """

    def __init__(self, nodes: Iterable[MeshNode], diagnostics: Iterable[Diagnostic] = ()):
        self._nodes = tuple(nodes)
        self._diagnostics = tuple(diagnostics)

    @property
    def nodes(self) -> tuple[MeshNode, ...]:
        return self._nodes

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return self._diagnostics

    def __iter__(self):
        return iter(self._nodes)

    def __len__(self):
        return len(self._nodes)

    def __eq__(self, other):
        if not isinstance(other, SceneGraph):
            return NotImplemented
        return self._nodes == other._nodes

    def walk(self, up: str = "z") -> Iterator[tuple[MeshNode, np.ndarray]]:
        """Yield every node that has a mesh, with its world matrix."""
        if up == "z":
            root = None
        elif up == "y":
            root = Y_UP
        else:
            raise ValueError(f"'up' must be 'y' or 'z', not {up !r}")
        for top in self._nodes:
            for node, world in top.walk(root):
                if node.mesh is not None:
                    yield node, world

    def meshes(self, up: str = "z", exported_only: bool = False) -> list[Mesh]:
        """All meshes, in world coordinates."""
        return [
            node.mesh.transformed(world)
            for node, world in self.walk(up)
            if node.exported or not exported_only
        ]

    @property
    def triangle_count(self) -> int:
        return sum(len(node.mesh) for node, _ in self.walk())

    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """World-space axis-aligned bounding box."""
        boxes = [m.bounds() for m in self.meshes() if len(m.vertices)]
        if not boxes:
            raise ValueError("Empty scene")
        return (
            np.min([b[0] for b in boxes], axis=0),
            np.max([b[1] for b in boxes], axis=0),
        )
