from __future__ import annotations

import numpy as np
import pytest

from scadmesh import mesh


def test_box():
    m = mesh.box((10, 20, 30))
    lo, hi = m.bounds()
    assert np.array_equal(lo, [0, 0, 0])
    assert np.array_equal(hi, [10, 20, 30])
    assert len(m) == 12

    lo, hi = mesh.box((2, 4, 6), center=True).bounds()
    assert np.array_equal(lo, [-1, -2, -3])
    assert np.array_equal(hi, [1, 2, 3])


def test_box_normals_face_outwards():
    m = mesh.box((1, 1, 1))
    tris = m.triangles()
    n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    n /= np.linalg.norm(n, axis=1, keepdims=True)
    assert np.allclose(n, m.face_normals)


def test_sphere():
    m = mesh.sphere(5)
    assert np.allclose(np.linalg.norm(m.vertices, axis=1), 5)
    assert len(m) == 2 * mesh.SPHERE_SLICES * (mesh.SPHERE_STACKS - 1)
    tris = m.triangles()
    n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    assert (np.einsum("ij,ij->i", n, tris.mean(axis=1)) > 0).all()


def test_cylinder_stands_on_z():
    m = mesh.cylinder(10, 3, 3)
    lo, hi = m.bounds()
    assert np.allclose(lo, [-3, -3, 0])
    assert np.allclose(hi, [3, 3, 10])
    assert np.isin(m.vertices[:, 2], [0.0, 10.0]).all()
    assert len(m) == 4 * mesh.CYLINDER_SLICES


def test_cylinder_center():
    lo, hi = mesh.cylinder(10, 1, 2, center=True).bounds()
    assert np.allclose(lo, [-2, -2, -5])
    assert np.allclose(hi, [2, 2, 5])


def test_cone():
    m = mesh.cylinder(5, 2, 0)
    # bottom center, bottom ring, apex
    assert len(m.vertices) == mesh.CYLINDER_SLICES + 2
    assert len(m) == 2 * mesh.CYLINDER_SLICES
    assert np.allclose(m.vertices.max(axis=0), [2, 2, 5])

    m = mesh.cylinder(5, 0, 2)
    assert len(m) == 2 * mesh.CYLINDER_SLICES
    assert np.allclose(m.vertices.min(axis=0), [-2, -2, 0])


def test_cylinder_outwards():
    m = mesh.cylinder(4, 1, 2)
    tris = m.triangles()
    n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    c = tris.mean(axis=1) - [0, 0, 2]
    assert (np.einsum("ij,ij->i", n, c) > 0).all()


def test_rotation_exact():
    r = mesh.rotation((0, 0, 90))
    assert np.array_equal(r[:3, :3], [[0, -1, 0], [1, 0, 0], [0, 0, 1]])
    assert np.array_equal(mesh.rotation((0, 0, 0)), np.eye(4))


def test_rotation_order():
    # X first, then Z
    r = mesh.rotation((90, 0, 90))
    assert np.allclose(mesh.apply(r, np.array([[0.0, 1.0, 0.0]])), [[0, 0, 1]])
    assert np.allclose(mesh.apply(r, np.array([[1.0, 0.0, 0.0]])), [[0, 1, 0]])


def test_up_axes():
    p = np.array([[0.0, 1.0, 0.0]])
    assert np.array_equal(mesh.apply(mesh.Z_UP, p), [[0, 0, 1]])
    p = np.array([[0.0, 0.0, 1.0]])
    assert np.array_equal(mesh.apply(mesh.Y_UP, p), [[0, 1, 0]])


def test_transformed():
    m = mesh.box((1, 2, 3)).transformed(mesh.translation((5, 0, -1)))
    lo, hi = m.bounds()
    assert np.array_equal(lo, [5, 0, -1])
    assert np.array_equal(hi, [6, 2, 2])
    assert np.array_equal(m.face_normals, mesh.box((1, 2, 3)).face_normals)


def test_soup():
    m = mesh.Mesh(np.zeros((6, 3)))
    assert not m.indexed
    assert len(m) == 2
    with pytest.raises(ValueError):
        mesh.Mesh(np.zeros((4, 3)))


def test_deterministic():
    assert mesh.sphere(2) == mesh.sphere(2)
    assert mesh.cylinder(3, 1, 2) == mesh.cylinder(3, 1, 2)
    assert mesh.sphere(2) != mesh.sphere(3)
