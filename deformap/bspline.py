"""Uniform bicubic B-spline grids over a rectangular (u, v) domain."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

_MAX_DERIVATIVE = 3

# Gauss-Legendre nodes and weights on [0, 1]; four nodes integrate
# polynomials up to degree seven exactly.
_GL_NODES, _GL_WEIGHTS = np.polynomial.legendre.leggauss(4)
_GL_NODES = (_GL_NODES + 1.0) / 2.0
_GL_WEIGHTS = _GL_WEIGHTS / 2.0


def _basis(t: np.ndarray, order: int) -> np.ndarray:
    """Cubic B-spline basis (or its derivative) at local parameters ``t``."""
    if order == 0:
        columns = [
            (1 - t) ** 3,
            3 * t**3 - 6 * t**2 + 4,
            -3 * t**3 + 3 * t**2 + 3 * t + 1,
            t**3,
        ]
        return np.stack(columns, axis=1) / 6.0
    if order == 1:
        columns = [
            -((1 - t) ** 2),
            3 * t**2 - 4 * t,
            -3 * t**2 + 2 * t + 1,
            t**2,
        ]
        return np.stack(columns, axis=1) / 2.0
    if order == 2:
        return np.stack([1 - t, 3 * t - 2, 1 - 3 * t, t], axis=1)
    ones = np.ones_like(t)
    return np.stack([-ones, 3 * ones, -3 * ones, ones], axis=1)


@dataclass(frozen=True)
class BSplineGrid:
    """A grid of ``nptsu`` x ``nptsv`` control points spanning a domain.

    Control point ``(i, j)`` is stored at flat index ``i * nptsv + j``.
    Each control point carries ``valdim`` values.
    """

    umin: float
    umax: float
    vmin: float
    vmax: float
    nptsu: int
    nptsv: int
    valdim: int = 1

    def __post_init__(self) -> None:
        if self.nptsu < 4 or self.nptsv < 4:
            raise ValueError("a bicubic grid needs at least 4 control points per axis")
        if not self.umax > self.umin or not self.vmax > self.vmin:
            raise ValueError("domain bounds must satisfy min < max")
        if self.valdim < 1:
            raise ValueError("valdim must be positive")

    @property
    def n_ctrl(self) -> int:
        """Total number of control points."""
        return self.nptsu * self.nptsv

    def node_coordinates(self) -> np.ndarray:
        """Regularly spaced domain points, one per control point, shape (n, 2)."""
        us = np.linspace(self.umin, self.umax, self.nptsu)
        vs = np.linspace(self.vmin, self.vmax, self.nptsv)
        uu, vv = np.meshgrid(us, vs, indexing="ij")
        return np.column_stack([uu.ravel(), vv.ravel()])

    def _axis(self, x: np.ndarray, lo: float, hi: float, n: int, order: int):
        scale = (n - 3) / (hi - lo)
        normalized = (x - lo) * scale
        interval = np.clip(np.floor(normalized), 0, n - 4).astype(int)
        local = normalized - interval
        return interval, _basis(local, order) * scale**order

    def coloc(self, u, v, du=0, dv=0) -> np.ndarray:
        """Collocation matrix mapping control points to values at (u, v).

        ``du`` and ``dv`` select the order of the partial derivative.
        """
        if not (0 <= du <= _MAX_DERIVATIVE and 0 <= dv <= _MAX_DERIVATIVE):
            raise ValueError("derivative order must be between 0 and 3")
        u = np.atleast_1d(np.asarray(u, dtype=float))
        v = np.atleast_1d(np.asarray(v, dtype=float))
        if u.shape != v.shape or u.ndim != 1:
            raise ValueError("u and v must be 1-D arrays of the same length")

        iu, bu = self._axis(u, self.umin, self.umax, self.nptsu, du)
        iv, bv = self._axis(v, self.vmin, self.vmax, self.nptsv, dv)
        rows = np.arange(u.size)
        matrix = np.zeros((u.size, self.n_ctrl))
        for k in range(4):
            for l in range(4):
                cols = (iu + k) * self.nptsv + (iv + l)
                matrix[rows, cols] += bu[:, k] * bv[:, l]
        return matrix

    def evaluate(self, ctrlpts, u, v, du=0, dv=0) -> np.ndarray:
        """Values (or derivatives) of the spline at (u, v), shape (m, valdim)."""
        ctrl = np.asarray(ctrlpts, dtype=float)
        if ctrl.size != self.n_ctrl * self.valdim:
            raise ValueError(
                f"expected {self.n_ctrl * self.valdim} control values, got {ctrl.size}"
            )
        ctrl = ctrl.reshape(self.n_ctrl, self.valdim)
        return self.coloc(u, v, du, dv) @ ctrl

    def bending(self, weight) -> np.ndarray:
        """Bending-energy matrix ``weight * integral(f_uu^2 + 2 f_uv^2 + f_vv^2)``.

        The integral is exact: each knot cell is integrated with Gauss-Legendre
        quadrature of sufficient order.
        """
        hu = (self.umax - self.umin) / (self.nptsu - 3)
        hv = (self.vmax - self.vmin) / (self.nptsv - 3)
        cell_u = (np.arange(self.nptsu - 3)[:, None] + _GL_NODES[None, :]).ravel()
        cell_v = (np.arange(self.nptsv - 3)[:, None] + _GL_NODES[None, :]).ravel()
        wu = np.tile(_GL_WEIGHTS, self.nptsu - 3) * hu
        wv = np.tile(_GL_WEIGHTS, self.nptsv - 3) * hv

        uu, vv = np.meshgrid(self.umin + cell_u * hu, self.vmin + cell_v * hv, indexing="ij")
        weights = np.outer(wu, wv).ravel()
        u, v = uu.ravel(), vv.ravel()

        energy = np.zeros((self.n_ctrl, self.n_ctrl))
        for (du, dv), factor in (((2, 0), 1.0), ((1, 1), 2.0), ((0, 2), 1.0)):
            c = self.coloc(u, v, du, dv)
            energy += factor * (c.T @ (weights[:, None] * c))
        return weight * energy