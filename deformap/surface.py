"""Per-keyframe surface: normals, 3-D points and a B-spline depth map."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from deformap.bspline import BSplineGrid

NORMALS_LIMIT = 10
_VERTEX_MARGIN = 0.03


def _vec3(value) -> np.ndarray:
    arr = np.asarray(value, dtype=float).ravel()
    if arr.size != 3:
        raise ValueError(f"expected a 3-vector, got {arr.size} values")
    return arr.copy()


@dataclass
class SurfacePoint:
    """Normal and 3-D position attached to one keypoint."""

    normal: np.ndarray | None = None
    x3d: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def set_normal(self, normal) -> None:
        """Store a normal for this point."""
        self.normal = _vec3(normal)

    def has_normal(self) -> bool:
        """Whether a normal has been stored."""
        return self.normal is not None


class Surface:
    """Surface estimated for a keyframe, indexed by keypoint."""

    def __init__(self, number_of_points):
        self._points = [SurfacePoint() for _ in range(int(number_of_points))]
        self._number_of_normals = 0
        self._nodes_depth: np.ndarray | None = None
        self._grid: BSplineGrid | None = None

    def __len__(self) -> int:
        return len(self._points)

    @property
    def grid(self) -> BSplineGrid | None:
        """B-spline grid of the saved depth map, if any."""
        return self._grid

    @property
    def nodes_depth(self) -> np.ndarray | None:
        """Copy of the saved control-point depths, if any."""
        return None if self._nodes_depth is None else self._nodes_depth.copy()

    def save_array(self, array, grid) -> None:
        """Save the control-point depths of the spline describing the surface."""
        values = np.asarray(array, dtype=float).ravel()
        if values.size < grid.n_ctrl:
            raise ValueError(f"expected {grid.n_ctrl} depth values, got {values.size}")
        self._grid = grid
        self._nodes_depth = values[: grid.n_ctrl].copy()

    def enough_normals(self) -> bool:
        """Whether enough normals exist to run shape-from-normals."""
        return self._number_of_normals >= NORMALS_LIMIT

    def number_of_normals(self) -> int:
        """Number of distinct keypoints that have a normal."""
        return self._number_of_normals

    def set_normal(self, index, normal) -> None:
        """Set the normal of keypoint ``index``; each keypoint is counted once."""
        point = self._points[index]
        if not point.has_normal():
            self._number_of_normals += 1
        point.set_normal(normal)

    def normal(self, index) -> np.ndarray | None:
        """Normal of keypoint ``index``, or ``None`` if none was set."""
        stored = self._points[index].normal
        return None if stored is None else stored.copy()

    def set_point(self, index, x3d) -> None:
        """Set the 3-D position of keypoint ``index``."""
        self._points[index].x3d = _vec3(x3d)

    def point(self, index) -> np.ndarray:
        """3-D position of keypoint ``index``."""
        return self._points[index].x3d.copy()

    def apply_scale(self, scale) -> None:
        """Scale every 3-D point and the depth map by ``scale``."""
        for sp in self._points:
            sp.x3d = scale * sp.x3d
        if self._nodes_depth is not None:
            self._nodes_depth = scale * self._nodes_depth

    def get_vertex(self, xs, ys) -> np.ndarray:
        """Sample the surface on an ``xs`` x ``ys`` grid of homogeneous 3-D points.

        Rows are ordered with the u index outermost; shape is (xs * ys, 4).
        """
        if self._grid is None or self._nodes_depth is None:
            raise RuntimeError("no depth map has been saved for this surface")
        if xs < 2 or ys < 2:
            raise ValueError("need at least two samples along each axis")
        g = self._grid
        t = _VERTEX_MARGIN
        us = np.linspace(g.umin + t, g.umax - t, xs)
        vs = np.linspace(g.vmin + t, g.vmax - t, ys)
        uu, vv = np.meshgrid(us, vs, indexing="ij")
        u, v = uu.ravel(), vv.ravel()
        depth = g.coloc(u, v) @ self._nodes_depth
        return np.column_stack([u * depth, v * depth, depth, np.ones_like(depth)])