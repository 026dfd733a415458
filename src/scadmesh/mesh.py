"""
Triangle meshes, affine matrices and tessellation of the primitive solids.

Tessellation density is fixed policy, not derived from an object's size:
the same source always produces the same mesh.
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial.transform import Rotation

if TYPE_CHECKING:
    from collections.abc import Sequence

    VEC = Sequence[float]

SPHERE_SLICES = 32  # around the Z axis
SPHERE_STACKS = 16  # pole to pole
CYLINDER_SLICES = 32

__all__ = [
    "Mesh",
    "translation",
    "rotation",
    "box",
    "sphere",
    "cylinder",
    "Z_UP",
    "Y_UP",
]


class Mesh:
    """
    A triangle mesh.

    ``vertices`` is an N×3 array. If ``faces`` (M×3 vertex indices) is
    None, the vertices are a flat triangle soup: every three consecutive
    vertices form one triangle.

    ``face_normals``, if present, holds one unit normal per triangle.
    """

    def __init__(self, vertices, faces=None, face_normals=None):
        self.vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
        self.faces = None if faces is None else np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        self.face_normals = (
            None if face_normals is None else np.asarray(face_normals, dtype=float).reshape(-1, 3)
        )
        if self.faces is None and len(self.vertices) % 3:
            raise ValueError("Triangle soup needs a multiple of three vertices")
        if self.face_normals is not None and len(self.face_normals) != len(self):
            raise ValueError("Need one normal per face")

    @property
    def indexed(self) -> bool:
        return self.faces is not None

    def __len__(self):
        "number of triangles"
        if self.faces is None:
            return len(self.vertices) // 3
        return len(self.faces)

    def triangles(self) -> np.ndarray:
        """Return the triangles' corners as an M×3×3 array."""
        if self.faces is None:
            return self.vertices.reshape(-1, 3, 3)
        return self.vertices[self.faces]

    def transformed(self, matrix: np.ndarray) -> Mesh:
        """Return a copy with ``matrix`` applied to vertices and normals."""
        normals = self.face_normals
        if normals is not None:
            normals = normals @ np.linalg.inv(matrix[:3, :3])
            ln = np.linalg.norm(normals, axis=1, keepdims=True)
            normals = np.divide(normals, ln, out=np.zeros_like(normals), where=ln > 0)
        faces = None if self.faces is None else self.faces.copy()
        return Mesh(apply(matrix, self.vertices), faces, normals)

    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounding box, as (min corner, max corner)."""
        if not len(self.vertices):
            raise ValueError("Empty mesh")
        return self.vertices.min(axis=0), self.vertices.max(axis=0)

    def __eq__(self, other):
        if not isinstance(other, Mesh):
            return NotImplemented
        return (
            _arr_eq(self.vertices, other.vertices)
            and _arr_eq(self.faces, other.faces)
            and _arr_eq(self.face_normals, other.face_normals)
        )

    def __repr__(self):
        kind = "indexed" if self.indexed else "soup"
        return f"<Mesh {kind}: {len(self.vertices)} vertices, {len(self)} triangles>"


def _arr_eq(a, b) -> bool:
    if a is None or b is None:
        return a is b
    return a.shape == b.shape and bool(np.array_equal(a, b))


### Affine matrices


def translation(v: VEC) -> np.ndarray:
    res = np.eye(4)
    res[:3, 3] = v
    return res


def rotation(angles: VEC) -> np.ndarray:
    """Rotate about X, then Y, then Z (fixed axes), in degrees.

    This is OpenSCAD's ``rotate([x,y,z])``.
    """
    res = np.eye(4)
    m = Rotation.from_euler("xyz", angles, degrees=True).as_matrix()
    # multiples of 90° should be exact
    rm = np.round(m)
    res[:3, :3] = np.where(np.abs(m - rm) < 1e-15, rm, m)
    return res


def apply(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply an affine 4×4 matrix to an N×3 array of points."""
    return points @ matrix[:3, :3].T + matrix[:3, 3]


# OpenSCAD is Z-up. Renderers often are Y-up.
# Z_UP: +90° about X, maps the Y axis to Z.
# Y_UP: -90° about X, maps the Z axis to Y.
Z_UP = np.array(
    [
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, -1.0, 0.0],
        [0.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ]
)
Y_UP = Z_UP.T.copy()


### Primitive solids

# corner i of a box is at (i&1, i&2, i&4); outward-facing, counter-clockwise
_BOX_FACES = [
    (0, 2, 1), (1, 2, 3),  # -Z
    (4, 5, 6), (5, 7, 6),  # +Z
    (0, 1, 4), (1, 5, 4),  # -Y
    (2, 6, 3), (3, 6, 7),  # +Y
    (0, 4, 2), (2, 4, 6),  # -X
    (1, 3, 5), (3, 7, 5),  # +X
]
_BOX_NORMALS = [
    (0, 0, -1), (0, 0, -1),
    (0, 0, 1), (0, 0, 1),
    (0, -1, 0), (0, -1, 0),
    (0, 1, 0), (0, 1, 0),
    (-1, 0, 0), (-1, 0, 0),
    (1, 0, 0), (1, 0, 0),
]


def box(size: VEC, center: bool = False) -> Mesh:
    """An axis-aligned box.

    Like OpenSCAD's ``cube``, the box's corner sits at the origin unless
    ``center`` is set: the centered box is moved by half its extent.
    """
    x, y, z = size
    half = np.array([x / 2, y / 2, z / 2])
    corners = np.array([((i & 1) * 2 - 1, (i >> 1 & 1) * 2 - 1, (i >> 2 & 1) * 2 - 1) for i in range(8)])
    verts = corners * half
    if not center:
        verts = verts + half
    return Mesh(verts, _BOX_FACES, _BOX_NORMALS)


def sphere(r: float, slices: int = SPHERE_SLICES, stacks: int = SPHERE_STACKS) -> Mesh:
    """A UV sphere around the origin, poles on the Z axis.

    Every vertex is exactly ``r`` away from the origin.
    """
    verts = [(0.0, 0.0, r)]
    for i in range(1, stacks):
        phi = math.pi * i / stacks
        sp, cp = math.sin(phi), math.cos(phi)
        for j in range(slices):
            theta = 2 * math.pi * j / slices
            verts.append((r * sp * math.cos(theta), r * sp * math.sin(theta), r * cp))
    verts.append((0.0, 0.0, -r))
    south = len(verts) - 1

    def ring(i, j):
        return 1 + (i - 1) * slices + j % slices

    faces = []
    for j in range(slices):
        faces.append((0, ring(1, j), ring(1, j + 1)))
    for i in range(1, stacks - 1):
        for j in range(slices):
            a, a1 = ring(i, j), ring(i, j + 1)
            b, b1 = ring(i + 1, j), ring(i + 1, j + 1)
            faces.append((a, b, b1))
            faces.append((a, b1, a1))
    for j in range(slices):
        faces.append((south, ring(stacks - 1, j + 1), ring(stacks - 1, j)))
    return Mesh(verts, faces)


def cylinder(h: float, r1: float, r2: float, center: bool = False, slices: int = CYLINDER_SLICES) -> Mesh:
    """A cylinder, or a frustum if the radii differ, or a cone if one is zero.

    The solid is built along the Y axis (the usual renderer convention)
    and then turned by the fixed `Z_UP` rotation, so that the result
    stands on the XY plane and reaches up to ``z=h``, as in OpenSCAD.
    """
    verts = []

    def add_ring(y, r):
        # the cap's center doubles as the apex of a zero-radius ring
        center_idx = len(verts)
        verts.append((0.0, y, 0.0))
        if r == 0:
            return center_idx, [center_idx] * slices
        start = len(verts)
        for j in range(slices):
            theta = 2 * math.pi * j / slices
            # -sin: Z_UP turns this into a counter-clockwise ring seen from +Z
            verts.append((r * math.cos(theta), y, -r * math.sin(theta)))
        return center_idx, list(range(start, start + slices))

    cb, bottom = add_ring(0.0, r1)
    ct, top = add_ring(float(h), r2)

    faces = []
    for j in range(slices):
        j1 = (j + 1) % slices
        faces.append((cb, bottom[j1], bottom[j]))
        faces.append((top[j], bottom[j], bottom[j1]))
        faces.append((top[j], bottom[j1], top[j1]))
        faces.append((ct, top[j], top[j1]))
    faces = [f for f in faces if len(set(f)) == 3]

    verts = apply(Z_UP, np.array(verts))
    if center:
        verts[:, 2] -= h / 2
    return _compact(Mesh(verts, faces))


def _compact(mesh: Mesh) -> Mesh:
    "drop vertices that no face refers to"
    used = np.unique(mesh.faces)
    remap = np.full(len(mesh.vertices), -1, dtype=np.int64)
    remap[used] = np.arange(len(used))
    return Mesh(mesh.vertices[used], remap[mesh.faces])
