"""Shape-from-normals: integrate per-keypoint normals into a depth spline.

Keyframes handed to :class:`ShapeFromNormals` expose the spline domain
``umin``, ``umax``, ``vmin``, ``vmax``, the grid size ``ncu`` and ``ncv``,
the mean depth ``acc_mean``, a ``surface`` (:class:`deformap.surface.Surface`),
``keypoints_norm`` (normalised ``(u, v)`` keypoint positions) and
``map_points`` (one entry per keypoint, ``None`` where there is no point;
points expose ``is_bad()``).
"""

from __future__ import annotations

import numpy as np

from deformap.bspline import BSplineGrid


def obtain_m(grid, normals, u, v) -> np.ndarray:
    """Matrix penalising depth control points that disagree with the normals.

    For each point the rows ``n . dX/du`` and ``n . dX/dv`` are built, where
    ``X = depth(u, v) * [u, v, 1]``. The first ``len(u)`` rows hold the
    u-constraints, the next ``len(u)`` the v-constraints.
    """
    u = np.atleast_1d(np.asarray(u, dtype=float))
    v = np.atleast_1d(np.asarray(v, dtype=float))
    n = np.asarray(normals, dtype=float).reshape(-1, 3)
    if not (u.shape == v.shape and u.ndim == 1 and n.shape[0] == u.size):
        raise ValueError("normals, u and v must describe the same number of points")

    norms = np.linalg.norm(n, axis=1)
    safe = np.where(norms > 0, norms, 1.0)
    n = n / safe[:, None]

    coloc = grid.coloc(u, v)
    coloc_du = grid.coloc(u, v, 1, 0)
    coloc_dv = grid.coloc(u, v, 0, 1)
    dot = n[:, 0] * u + n[:, 1] * v + n[:, 2]
    rows_u = dot[:, None] * coloc_du + n[:, 0:1] * coloc
    rows_v = dot[:, None] * coloc_dv + n[:, 1:2] * coloc
    return np.vstack([rows_u, rows_v])


class ShapeFromNormals:
    """Recovers an up-to-scale surface for a keyframe from its normals."""

    def __init__(self, keyframe, bending_weight):
        self.keyframe = keyframe
        self.bending_weight = float(bending_weight)
        self.grid = BSplineGrid(
            keyframe.umin,
            keyframe.umax,
            keyframe.vmin,
            keyframe.vmax,
            keyframe.ncu,
            keyframe.ncv,
            1,
        )
        normals, us, vs = self._collect_normals()
        m = obtain_m(self.grid, normals, us, vs)
        self.linear_system = np.vstack([m, self.grid.bending(self.bending_weight)])
        self.rhs = np.zeros(self.linear_system.shape[0])
        self.solution: np.ndarray | None = None

    def _collect_normals(self):
        kf = self.keyframe
        normals, us, vs = [], [], []
        for index, map_point in enumerate(kf.map_points):
            if map_point is None or map_point.is_bad():
                continue
            normal = kf.surface.normal(index)
            if normal is None or np.any(np.isnan(normal)):
                continue
            u, v = kf.keypoints_norm[index]
            normals.append(normal)
            us.append(u)
            vs.append(v)
        return np.reshape(np.asarray(normals, dtype=float), (-1, 3)), us, vs

    def estimate(self) -> bool:
        """Estimate the surface and store it in the keyframe's surface.

        Returns ``False`` when there are no keypoints or the solution is not
        finite.
        """
        kf = self.keyframe
        n_ctrl = self.grid.n_ctrl
        system = np.vstack([self.linear_system, np.ones((1, n_ctrl))])
        rhs = np.concatenate([self.rhs, [n_ctrl * float(kf.acc_mean)]])
        solution, *_ = np.linalg.lstsq(system, rhs, rcond=None)

        keypoints = np.reshape(np.asarray(kf.keypoints_norm, dtype=float), (-1, 2))
        if keypoints.shape[0] == 0:
            return False
        if not np.all(np.isfinite(solution)):
            return False

        median = np.sort(solution)[solution.size // 2]
        if median == 0:
            return False
        depths = solution / median
        if not np.all(np.isfinite(depths)):
            return False
        self.solution = depths

        u, v = keypoints[:, 0], keypoints[:, 1]
        values = self.grid.coloc(u, v) @ depths
        for index, (ui, vi, z) in enumerate(zip(u, v, values)):
            kf.surface.set_point(index, (ui * z, vi * z, z))
        kf.surface.save_array(depths, self.grid)
        return True