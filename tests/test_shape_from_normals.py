import numpy as np
import pytest

from deformap.bspline import BSplineGrid
from deformap.shape_from_normals import ShapeFromNormals, obtain_m
from deformap.surface import Surface


class _MapPoint:
    def __init__(self, bad=False):
        self.bad = bad

    def is_bad(self):
        return self.bad


class _KeyFrame:
    def __init__(self, keypoints, acc_mean=1.0):
        self.umin, self.umax, self.vmin, self.vmax = -1.0, 1.0, -1.0, 1.0
        self.ncu = self.ncv = 5
        self.acc_mean = acc_mean
        self.keypoints_norm = [tuple(p) for p in keypoints]
        self.map_points = [_MapPoint() for _ in keypoints]
        self.surface = Surface(len(keypoints))


def _grid_points(n=6):
    g = np.linspace(-0.9, 0.9, n)
    uu, vv = np.meshgrid(g, g, indexing="ij")
    return np.column_stack([uu.ravel(), vv.ravel()])


def _frontal_keyframe():
    pts = _grid_points()
    kf = _KeyFrame(pts)
    for i in range(len(pts)):
        kf.surface.set_normal(i, (0.0, 0.0, 1.0))
    return kf, pts


def _grid():
    return BSplineGrid(-1.0, 1.0, -1.0, 1.0, 5, 5, 1)


def test_obtain_m_shape():
    pts = _grid_points(3)
    normals = np.tile([0.0, 0.0, 1.0], (len(pts), 1))
    m = obtain_m(_grid(), normals, pts[:, 0], pts[:, 1])
    assert m.shape == (2 * len(pts), 25)


def test_obtain_m_constant_depth_satisfies_frontal_normals():
    pts = _grid_points(4)
    normals = np.tile([0.0, 0.0, 1.0], (len(pts), 1))
    m = obtain_m(_grid(), normals, pts[:, 0], pts[:, 1])
    assert np.allclose(m @ np.ones(25), 0.0, atol=1e-10)


def test_obtain_m_is_invariant_to_normal_length():
    pts = _grid_points(3)
    rng = np.random.default_rng(1)
    normals = rng.normal(size=(len(pts), 3))
    m1 = obtain_m(_grid(), normals, pts[:, 0], pts[:, 1])
    m2 = obtain_m(_grid(), 4.0 * normals, pts[:, 0], pts[:, 1])
    assert np.allclose(m1, m2)


def test_obtain_m_rejects_mismatched_sizes():
    with pytest.raises(ValueError):
        obtain_m(_grid(), [[0.0, 0.0, 1.0]], [0.0, 0.1], [0.0, 0.1])


def test_frontal_plane_is_recovered():
    kf, pts = _frontal_keyframe()
    sfn = ShapeFromNormals(kf, 0.1)
    assert sfn.estimate() is True
    for i, (u, v) in enumerate(pts):
        assert np.allclose(kf.surface.point(i), [u, v, 1.0], atol=1e-8)


def test_saved_depths_have_unit_median():
    kf, _ = _frontal_keyframe()
    ShapeFromNormals(kf, 0.1).estimate()
    depths = kf.surface.nodes_depth
    assert np.sort(depths)[depths.size // 2] == pytest.approx(1.0)
    assert kf.surface.grid.n_ctrl == depths.size


def test_bad_points_and_nan_normals_are_ignored():
    kf, pts = _frontal_keyframe()
    kf.map_points[0] = None
    kf.map_points[1] = _MapPoint(bad=True)
    kf.surface.set_normal(1, (5.0, -3.0, 1.0))
    kf.surface.set_normal(2, (np.nan, 0.0, 1.0))
    sfn = ShapeFromNormals(kf, 0.1)
    assert sfn.estimate() is True
    assert np.allclose(kf.surface.point(5), [pts[5][0], pts[5][1], 1.0], atol=1e-8)


def test_no_keypoints_fails():
    kf = _KeyFrame(np.zeros((0, 2)))
    assert ShapeFromNormals(kf, 0.1).estimate() is False


def test_vertex_sampling_after_estimate_is_flat():
    kf, _ = _frontal_keyframe()
    ShapeFromNormals(kf, 0.1).estimate()
    vertices = kf.surface.get_vertex(3, 3)
    assert np.allclose(vertices[:, 2], 1.0, atol=1e-8)