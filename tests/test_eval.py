from __future__ import annotations

import numpy as np
import pytest

from scadmesh import NoGeometryProduced, evaluate, export, mesh
from scadmesh.diag import Kind


def bounds(src, **kw):
    lo, hi = evaluate(src, **kw).bounds()
    return lo.tolist(), hi.tolist()


def kinds(scene):
    return [d.kind for d in scene.diagnostics]


def test_cube():
    assert bounds("cube([10, 20, 30]);") == ([0, 0, 0], [10, 20, 30])
    assert bounds("cube(4, center=true);") == ([-2, -2, -2], [2, 2, 2])
    assert bounds("cube();") == ([0, 0, 0], [1, 1, 1])


def test_translate():
    lo, hi = bounds("translate([10, -5, 2]) sphere(r=1);")
    assert np.allclose(lo, [9, -6, 1])
    assert np.allclose(hi, [11, -4, 3])
    assert bounds("translate([1, 2]) cube(1);") == ([1, 2, 0], [2, 3, 1])


def test_sphere():
    scene = evaluate("sphere(r=5);")
    (m,) = scene.meshes()
    assert np.allclose(np.linalg.norm(m.vertices, axis=1), 5)
    (m,) = evaluate("sphere(d=4);").meshes()
    assert np.allclose(np.linalg.norm(m.vertices, axis=1), 2)


def test_cylinder():
    lo, hi = bounds("cylinder(h=10, r=3);")
    assert np.allclose(lo, [-3, -3, 0])
    assert np.allclose(hi, [3, 3, 10])
    lo, hi = bounds("cylinder(h=4, d1=2, d2=6, center=true);")
    assert np.allclose(lo, [-3, -3, -2])
    assert np.allclose(hi, [3, 3, 2])
    lo, hi = bounds("cylinder(10, 2, 0);")
    assert np.allclose(hi, [2, 2, 10])


def test_cylinder_ambiguous():
    with pytest.warns(UserWarning, match="ambiguous"):
        evaluate("cylinder(h=1, r=1, d=4);")


def test_rotate():
    # rotating [0,10]×[0,1] by 90° about Z gives [-1,0]×[0,10]
    for src in (
        "rotate([0, 0, 90]) cube([10, 1, 1]);",
        "rotate(90) cube([10, 1, 1]);",
        "rotate(a=90, v=[0, 0, 1]) cube([10, 1, 1]);",
    ):
        lo, hi = bounds(src)
        assert np.allclose(lo, [-1, 0, 0]), src
        assert np.allclose(hi, [0, 10, 1]), src


def test_rotate_axis():
    # 180° about the XY diagonal swaps X and Y, and flips Z
    lo, hi = bounds("rotate(a=180, v=[1, 1, 0]) cube([10, 1, 1]);")
    assert np.allclose(lo, [0, 0, -1])
    assert np.allclose(hi, [1, 10, 0])


def test_nested_transforms():
    lo, hi = bounds("translate([10, 0, 0]) rotate([0, 0, 90]) cube([2, 1, 1]);")
    assert np.allclose(lo, [9, 0, 0])
    assert np.allclose(hi, [10, 2, 1])


def test_scene_structure():
    scene = evaluate("translate([1, 0, 0]) { cube(1); sphere(1); }")
    (top,) = scene.nodes
    assert top.mesh is None
    assert np.array_equal(top.transform, mesh.translation((1, 0, 0)))
    assert [c.material.name for c in top.children] == ["cube", "sphere"]
    assert scene.triangle_count == 12 + len(mesh.sphere(1))


def test_union_is_flat():
    scene = evaluate("union() { cube(1); sphere(1); cylinder(1, 1); }")
    assert [n.material.name for n in scene.nodes] == ["cube", "sphere", "cylinder"]


def test_difference_approximation():
    scene = evaluate("difference() { cube([10, 10, 10]); translate([5, 5, 5]) sphere(r=3); }")
    (node,) = scene.nodes
    assert node.material.name == "difference"
    assert node.mesh == mesh.box((10, 10, 10))
    assert kinds(scene) == [Kind.APPROXIMATE_BOOLEAN]


def test_difference_single_child():
    scene = evaluate("difference() { sphere(2); }")
    assert scene.nodes[0].material.name == "difference"
    assert not scene.diagnostics


def test_difference_disabled_base():
    scene = evaluate("difference() { *cube(10); sphere(1); }")
    assert scene.nodes[0].mesh == mesh.sphere(1)


def test_difference_broken_base():
    scene = evaluate("difference() { cube([q, 1, 1]); sphere(1); } cylinder(h=1, r=1);")
    assert [n.material.name for n in scene.nodes] == ["cylinder"]
    assert Kind.UNRESOLVED_VARIABLE in kinds(scene)


def test_variables():
    assert bounds("w = 4; h = 2; cube([w, 1, h]);") == ([0, 0, 0], [4, 1, 2])
    assert bounds("x = 5; translate([-x, 0, 0]) cube(1);") == ([-5, 0, 0], [-4, 1, 1])
    # used before its assignment: still the assigned value
    assert bounds("cube([w, 1, 1]); w = 3;") == ([0, 0, 0], [3, 1, 1])


def test_variable_scopes():
    scene = evaluate("w = 1; union() { w = 4; cube([w, 1, 1]); } translate([0, 5, 0]) cube([w, 1, 1]);")
    a, b = scene.meshes()
    assert a.bounds()[1][0] == 4
    assert b.bounds()[1][0] == 1
    assert not scene.diagnostics


def test_duplicate_assignment():
    scene = evaluate("w = 1; w = 2; cube([w, 1, 1]);")
    assert scene.bounds()[1][0] == 2
    assert kinds(scene) == [Kind.DUPLICATE_ASSIGNMENT]


def test_overrides():
    assert bounds("w = 1; cube([w, 1, 1]);", w=5) == ([0, 0, 0], [5, 1, 1])
    assert bounds("cube([w, 1, 1]);", w=2) == ([0, 0, 0], [2, 1, 1])


def test_unresolved_variable():
    scene = evaluate("cube([w, 1, 1]);\nsphere(2);")
    assert [n.material.name for n in scene.nodes] == ["sphere"]
    (d,) = scene.diagnostics
    assert d.kind is Kind.UNRESOLVED_VARIABLE
    assert "'w'" in d.message
    assert d.pos.line == 1


def test_invalid_argument():
    scene = evaluate("cube([1, 2]); cube(-1); sphere(1);")
    assert [n.material.name for n in scene.nodes] == ["sphere"]
    assert kinds(scene) == [Kind.INVALID_ARGUMENT] * 2


def test_recovery():
    scene = evaluate("cube([10,10,10]); cube(bad syntax")
    assert len(scene) == 1
    assert kinds(scene) == [Kind.UNMATCHED_STATEMENT]
    assert scene.bounds()[1].tolist() == [10, 10, 10]
    assert [n.material.name for n in evaluate("cube(; sphere(1);").nodes] == ["sphere"]


def test_no_geometry():
    for src in ("", "// nothing\n", "x = 1;", "*cube(1);", "union() { }"):
        with pytest.raises(NoGeometryProduced):
            evaluate(src)


def test_no_geometry_diagnostics():
    with pytest.raises(NoGeometryProduced) as exc:
        evaluate("foo(1); cube([w, 1, 1]);")
    assert [d.kind for d in exc.value.diagnostics] == [Kind.UNMATCHED_STATEMENT, Kind.UNRESOLVED_VARIABLE]


def test_disable():
    scene = evaluate("*cube(1); sphere(1);")
    assert [n.material.name for n in scene.nodes] == ["sphere"]


def test_highlight():
    scene = evaluate("#translate([1, 0, 0]) cube(1); sphere(1);")
    names = [n.material.name for n, _ in scene.walk()]
    assert names == ["highlight", "sphere"]


def test_background():
    scene = evaluate("%cube(1); sphere(1);")
    assert [n.material.name for n in scene.nodes] == ["background", "sphere"]
    assert len(scene.meshes()) == 2
    assert len(scene.meshes(exported_only=True)) == 1


def test_root():
    scene = evaluate("cube(1); translate([5, 0, 0]) !sphere(1); cylinder(1, 1);")
    (node,) = scene.nodes
    assert node.mesh == mesh.sphere(1)
    assert np.array_equal(node.transform, np.eye(4))


def test_root_scope():
    scene = evaluate("union() { r = 3; !sphere(r); } cube(1);")
    (m,) = scene.meshes()
    assert np.allclose(np.linalg.norm(m.vertices, axis=1), 3)


def test_y_up():
    scene = evaluate("cylinder(h=10, r=1);")
    (m,) = scene.meshes(up="y")
    lo, hi = m.bounds()
    assert np.allclose([lo[1], hi[1]], [0, 10])
    with pytest.raises(ValueError):
        scene.meshes(up="x")


def test_deterministic():
    src = """
        w = 10;
        difference() {
            cube([w, w, w], center=true);
            rotate([30, 45, 0]) cylinder(h=20, r=2, center=true);
        }
        translate([0, 0, w]) sphere(d=w);
    """
    a, b = evaluate(src), evaluate(src)
    assert a == b
    assert export(a) == export(b)


def test_materials():
    scene = evaluate("cube(1); sphere(1); cylinder(1, 1); difference() { cube(1); }")
    mats = [n.material for n in scene.nodes]
    assert [m.name for m in mats] == ["cube", "sphere", "cylinder", "difference"]
    assert mats[0].rgb == (0x66 / 255, 0x7E / 255, 0xEA / 255)
    assert len({m.color for m in mats}) == 4


def test_rotate_vector_ignores_axis():
    lo, hi = bounds("rotate([0, 0, 90], v=[1, 0, 0]) cube([10, 1, 1]);")
    assert np.allclose(lo, [-1, 0, 0])
    assert np.allclose(hi, [0, 10, 1])


def test_override_named_exact():
    assert bounds("cube([exact, 1, 1]);", overrides={"exact": 3}) == ([0, 0, 0], [3, 1, 1])


def test_modifiers_survive_difference():
    scene = evaluate("difference() { #cube(5); sphere(1); }")
    assert scene.nodes[0].material.name == "highlight"
    scene = evaluate("difference() { translate([1, 0, 0]) %cube(5); sphere(1); }")
    assert [n.material.name for n, _ in scene.walk()] == ["background"]
    scene = evaluate("#union() { %cube(1); sphere(1); }")
    assert [n.material.name for n in scene.nodes] == ["background", "highlight"]
