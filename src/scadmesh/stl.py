"""
STL output (and input).
"""
from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from . import EmptyMeshExport
from .mesh import Mesh
from .scene import SceneGraph

logger = logging.getLogger(__name__)

__all__ = ["dumps", "read_stl"]


def _f(x) -> str:
    # shortest repr that reads back exactly; no numpy reprs
    return repr(float(x))


def _solid_name(name: str) -> str:
    "one line of ASCII; anything else becomes '?'"
    name = " ".join(name.split())
    return name.encode("ascii", "replace").decode("ascii") or "model"


def _normals(tris: np.ndarray) -> np.ndarray:
    "unit normals of an M×3×3 triangle array, zero for degenerate triangles"
    n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    ln = np.linalg.norm(n, axis=1, keepdims=True)
    return np.divide(n, ln, out=np.zeros_like(n), where=ln > 0)


def dumps(scene: SceneGraph | None, name: str = "model") -> bytes:
    """Serialize a scene to ASCII STL, in world coordinates.

    Background (``%``) objects are not exported.

    Raises `EmptyMeshExport` if there's nothing to export.
    """
    meshes = [] if scene is None else [m for m in scene.meshes(exported_only=True) if len(m)]
    if not meshes:
        raise EmptyMeshExport("No meshes to export")

    name = _solid_name(name)
    out = [f"solid {name}"]
    n_tri = 0
    for mesh in meshes:
        tris = mesh.triangles()
        normals = mesh.face_normals if mesh.face_normals is not None else _normals(tris)
        for normal, (v1, v2, v3) in zip(normals, tris):
            out.append(f"  facet normal {_f(normal[0])} {_f(normal[1])} {_f(normal[2])}")
            out.append("    outer loop")
            for v in (v1, v2, v3):
                out.append(f"      vertex {_f(v[0])} {_f(v[1])} {_f(v[2])}")
            out.append("    endloop")
            out.append("  endfacet")
        n_tri += len(tris)
    out.append(f"endsolid {name}")
    out.append("")
    logger.debug("STL %r: %d meshes, %d triangles", name, len(meshes), n_tri)
    return "\n".join(out).encode("ascii")


def read_stl(path: Path | str) -> Mesh:
    """Read an STL file (ASCII or binary) into a triangle-soup `Mesh`."""
    from stl.mesh import Mesh as StlMesh

    vectors = StlMesh.from_file(str(path)).vectors
    return Mesh(vectors.reshape((vectors.shape[0] * vectors.shape[1], 3)))
