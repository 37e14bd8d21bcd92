"""Schwarzian-regularised image warps on a bicubic B-spline grid.

A warp maps normalised points of one keyframe onto another. Its parameters
are the control points of a two-valued spline stored as a flat vector:
the first ``n_ctrl`` entries hold the x values, the next ``n_ctrl`` the
y values. Control point ``k`` matches the grid node ``k`` of
:meth:`deformap.bspline.BSplineGrid.node_coordinates`.
"""

from __future__ import annotations

import numpy as np

from deformap.bspline import BSplineGrid


def _as_points(points, name: str) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} must be an (n, 2) array of points")
    return arr


def _control(x, grid: BSplineGrid) -> np.ndarray:
    """Control points as an (n_ctrl, 2) array from the flat parameter vector."""
    flat = np.asarray(x, dtype=float).ravel()
    if flat.size != 2 * grid.n_ctrl:
        raise ValueError(f"expected {2 * grid.n_ctrl} warp parameters, got {flat.size}")
    return flat.reshape(2, grid.n_ctrl).T


def initialize_warp(kp1, kp2, lam, grid) -> np.ndarray:
    """Warp fitting ``kp1 -> kp2`` in least squares with bending weight ``lam``.

    Returns the flat parameter vector.
    """
    p1 = _as_points(kp1, "kp1")
    p2 = _as_points(kp2, "kp2")
    if p1.shape != p2.shape:
        raise ValueError("kp1 and kp2 must hold the same number of points")
    coloc = grid.coloc(p1[:, 0], p1[:, 1])
    system = coloc.T @ coloc + grid.bending(lam)
    ctrl = np.linalg.solve(system, coloc.T @ p2)
    return ctrl.T.ravel()


def get_estimates(kp1, grid, x, du=0, dv=0) -> np.ndarray:
    """Warped points (or their ``du``/``dv`` derivatives) at ``kp1``, shape (n, 2)."""
    p1 = _as_points(kp1, "kp1")
    ctrl = _control(x, grid)
    return grid.coloc(p1[:, 0], p1[:, 1], du, dv) @ ctrl


class Warp:
    """Reprojection residuals of a warp against matched keypoints.

    Residual ``i`` is ``inv_sigma_i * (kp2_x - warp_x(kp1_i)) * fx`` and
    residual ``i + n`` the same for y with ``fy``.
    """

    def __init__(self, kp1, kp2, inv_sigmas, grid, fx, fy):
        self.kp1 = _as_points(kp1, "kp1")
        self.kp2 = _as_points(kp2, "kp2")
        if self.kp1.shape != self.kp2.shape:
            raise ValueError("kp1 and kp2 must hold the same number of points")
        self.inv_sigmas = np.asarray(inv_sigmas, dtype=float).ravel()
        if self.inv_sigmas.size != self.kp1.shape[0]:
            raise ValueError("one inverse sigma is needed per keypoint")
        self.grid = grid
        self.fx = float(fx)
        self.fy = float(fy)
        self._coloc = grid.coloc(self.kp1[:, 0], self.kp1[:, 1])
        zeros = np.zeros_like(self._coloc)
        weighted = self.inv_sigmas[:, None] * self._coloc
        self._jacobian = np.block(
            [[-weighted * self.fx, zeros], [zeros, -weighted * self.fy]]
        )

    @property
    def num_residuals(self) -> int:
        """Number of residuals, two per keypoint."""
        return 2 * self.kp1.shape[0]

    def residuals(self, x) -> np.ndarray:
        """Residual vector of length ``2 * n``."""
        estimate = self._coloc @ _control(x, self.grid)
        diff = (self.kp2 - estimate) * self.inv_sigmas[:, None]
        return np.concatenate([diff[:, 0] * self.fx, diff[:, 1] * self.fy])

    def jacobian(self, x) -> np.ndarray:
        """Jacobian of the residuals; it does not depend on ``x``."""
        _control(x, self.grid)
        return self._jacobian.copy()


class Schwarzian:
    """Schwarzian-derivative penalty of a warp evaluated at the grid nodes.

    Four residual blocks of ``n_ctrl`` entries each are weighted by ``lam``.
    """

    def __init__(self, lam, grid):
        self.lam = float(lam)
        self.grid = grid
        nodes = grid.node_coordinates()
        u, v = nodes[:, 0], nodes[:, 1]
        self._cu = grid.coloc(u, v, 1, 0)
        self._cv = grid.coloc(u, v, 0, 1)
        self._cuu = grid.coloc(u, v, 2, 0)
        self._cvv = grid.coloc(u, v, 0, 2)
        self._cuv = grid.coloc(u, v, 1, 1)

    @property
    def num_residuals(self) -> int:
        """Number of residuals, four per control point."""
        return 4 * self.grid.n_ctrl

    def _derivatives(self, x):
        ctrl = _control(x, self.grid)
        return {
            name: (mat @ ctrl[:, 0], mat @ ctrl[:, 1])
            for name, mat in (
                ("u", self._cu),
                ("v", self._cv),
                ("uu", self._cuu),
                ("vv", self._cvv),
                ("uv", self._cuv),
            )
        }

    def residuals(self, x) -> np.ndarray:
        """Residual vector of length ``4 * n_ctrl``."""
        d = self._derivatives(x)
        xu, yu = d["u"]
        xv, yv = d["v"]
        xuu, yuu = d["uu"]
        xvv, yvv = d["vv"]
        xuv, yuv = d["uv"]
        r1 = xuu * yu - yuu * xu
        r2 = yvv * xv - xvv * yv
        r3 = xuu * yv - yuu * xv + 2 * (xuv * yu - yuv * xu)
        r4 = yvv * xu - xvv * yu + 2 * (yuv * xv - xuv * yv)
        return self.lam * np.concatenate([r1, r2, r3, r4])

    def jacobian(self, x) -> np.ndarray:
        """Jacobian of the residuals, shape ``(4 * n_ctrl, 2 * n_ctrl)``."""
        d = self._derivatives(x)
        xu, yu = d["u"]
        xv, yv = d["v"]
        xuu, yuu = d["uu"]
        xvv, yvv = d["vv"]
        xuv, yuv = d["uv"]
        cu, cv, cuu, cvv, cuv = self._cu, self._cv, self._cuu, self._cvv, self._cuv

        def dg(vec, mat):
            return vec[:, None] * mat

        blocks = [
            [dg(yu, cuu) - dg(yuu, cu), dg(xuu, cu) - dg(xu, cuu)],
            [dg(yvv, cv) - dg(yv, cvv), dg(xv, cvv) - dg(xvv, cv)],
            [
                dg(yv, cuu) - dg(yuu, cv) + 2 * (dg(yu, cuv) - dg(yuv, cu)),
                dg(xuu, cv) - dg(xv, cuu) + 2 * (dg(xuv, cu) - dg(xu, cuv)),
            ],
            [
                dg(yvv, cu) - dg(yu, cvv) + 2 * (dg(yuv, cv) - dg(yv, cuv)),
                dg(xu, cvv) - dg(xvv, cu) + 2 * (dg(xv, cuv) - dg(xuv, cv)),
            ],
        ]
        return self.lam * np.block(blocks)