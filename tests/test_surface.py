import numpy as np
import pytest

from deformap.bspline import BSplineGrid
from deformap.surface import NORMALS_LIMIT, Surface, SurfacePoint


@pytest.fixture
def grid():
    return BSplineGrid(umin=-1.0, umax=1.0, vmin=-0.5, vmax=0.5, nptsu=5, nptsv=6)


def test_surface_point_normal_round_trip():
    sp = SurfacePoint()
    assert not sp.has_normal()
    sp.set_normal([0.1, 0.2, 0.9])
    assert sp.has_normal()
    np.testing.assert_allclose(sp.normal, [0.1, 0.2, 0.9])


def test_surface_point_rejects_bad_vector():
    with pytest.raises(ValueError):
        SurfacePoint().set_normal([1.0, 2.0])


def test_normal_unset_is_none():
    s = Surface(4)
    assert s.normal(2) is None
    assert s.number_of_normals() == 0


def test_normal_counted_once_per_index():
    s = Surface(4)
    s.set_normal(1, [1, 0, 0])
    s.set_normal(1, [0, 1, 0])
    s.set_normal(3, [0, 0, 1])
    assert s.number_of_normals() == 2
    np.testing.assert_allclose(s.normal(1), [0, 1, 0])


def test_enough_normals_threshold():
    s = Surface(NORMALS_LIMIT + 1)
    for i in range(NORMALS_LIMIT - 1):
        s.set_normal(i, [0, 0, 1])
    assert not s.enough_normals()
    s.set_normal(NORMALS_LIMIT - 1, [0, 0, 1])
    assert s.enough_normals()


def test_point_default_and_round_trip():
    s = Surface(3)
    np.testing.assert_allclose(s.point(0), np.zeros(3))
    s.set_point(2, [1.5, -2.0, 3.0])
    np.testing.assert_allclose(s.point(2), [1.5, -2.0, 3.0])


def test_point_returns_copy():
    s = Surface(1)
    s.set_point(0, [1.0, 2.0, 3.0])
    p = s.point(0)
    p[0] = 100.0
    np.testing.assert_allclose(s.point(0), [1.0, 2.0, 3.0])


def test_index_out_of_range():
    s = Surface(2)
    with pytest.raises(IndexError):
        s.set_normal(5, [0, 0, 1])


def test_save_array_wrong_size(grid):
    s = Surface(1)
    with pytest.raises(ValueError):
        s.save_array(np.ones(grid.n_ctrl - 1), grid)


def test_save_array_copies(grid):
    s = Surface(1)
    depths = np.full(grid.n_ctrl, 2.0)
    s.save_array(depths, grid)
    depths[:] = 7.0
    np.testing.assert_allclose(s.nodes_depth, np.full(grid.n_ctrl, 2.0))


def test_get_vertex_without_array():
    with pytest.raises(RuntimeError):
        Surface(1).get_vertex(3, 3)


def test_get_vertex_constant_depth(grid):
    s = Surface(1)
    s.save_array(np.full(grid.n_ctrl, 2.0), grid)
    verts = s.get_vertex(4, 3)
    assert verts.shape == (12, 4)
    np.testing.assert_allclose(verts[:, 2], 2.0)
    np.testing.assert_allclose(verts[:, 3], 1.0)
    u = verts[:, 0] / verts[:, 2]
    v = verts[:, 1] / verts[:, 2]
    assert u.min() == pytest.approx(grid.umin + 0.03)
    assert u.max() == pytest.approx(grid.umax - 0.03)
    assert v.min() == pytest.approx(grid.vmin + 0.03)
    assert v.max() == pytest.approx(grid.vmax - 0.03)
    # u index is outermost: the first ys rows share the same u
    assert np.allclose(u[:3], u[0])


def test_apply_scale_scales_points_and_mesh(grid):
    s = Surface(2)
    rng = np.random.default_rng(0)
    s.save_array(rng.uniform(1.0, 3.0, grid.n_ctrl), grid)
    s.set_point(0, [1.0, 2.0, 4.0])
    before = s.get_vertex(3, 3)
    s.apply_scale(0.5)
    after = s.get_vertex(3, 3)
    np.testing.assert_allclose(after[:, :3], 0.5 * before[:, :3])
    np.testing.assert_allclose(after[:, 3], 1.0)
    np.testing.assert_allclose(s.point(0), [0.5, 1.0, 2.0])


def test_apply_scale_without_array():
    s = Surface(1)
    s.set_point(0, [2.0, 4.0, 6.0])
    s.apply_scale(2.0)
    np.testing.assert_allclose(s.point(0), [4.0, 8.0, 12.0])