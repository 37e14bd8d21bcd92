"""Polynomial system relating warp derivatives to normal components (k1, k2)."""

from __future__ import annotations

import numpy as np

_N_COEFFS = 10


def get_coefficients(a, b, c, d, t1, t2, e1, e2, x1, y1, x2, y2, i) -> np.ndarray:
    """Coefficients of the first (``i == 0``) or second bicubic polynomial.

    The result is ordered as the monomials
    ``[k1^3, k1^2 k2, k1 k2^2, k2^3, k1^2, k1 k2, k2^2, k1, k2, 1]``.
    """
    det = a * d - c * b
    if i == 0:
        c30 = det * (t1 * e1 * e2 - det * (e1 * (c * x2 + d * y2) - y1 * e2))
        c21 = -det * (t2 * e1 * e2 - det * (e1 * (a * x2 + b * y2) - x1 * e2))
        c20 = (
            t2 * (e1 * e2 * t1 - det * (x2 * e1 * c + y2 * e1 * d - 2 * e2 * y1))
            - t1 * det * (x2 * e1 * a + e1 * b * y2 + 2 * e2 * x1)
            + det * det
            * (e1 * (a * c + b * d) - 2 * (a * x2 * y1 - c * x1 * x2 + b * y1 * y2 - d * x1 * y2))
        )
        c11 = e1 * (
            -e2 * t2**2
            + 2 * x2 * t2 * a * det
            + 2 * y2 * t2 * b * det
            - (a**2 + b**2) * det * det
        ) + e2 * det * det
        c10 = (
            t1 * (e2 * det + 2 * a * x1 * x2 * det + 2 * x1 * y2 * b * det)
            - t2 * 2 * (e2 * x1 * t1 + det * (x2 * y1 * a - c * x1 * x2 + y1 * y2 * b - x1 * y2 * d))
            + e2 * y1 * t2 * t2
            + det * det * (-2 * x1 * (a * c + b * d) + y1 * (a * a + b * b) - c * x2 - d * y2)
        )
        c01 = (
            t2 * (det * (e2 - 2 * a * x1 * x2 - 2 * b * x1 * y2))
            + x1 * e2 * t2 * t2
            + det * det * (-y2 * b - x2 * a + x1 * (a * a + b * b))
        )
        c00 = (
            t2 * (e2 * t1 - det * (c * x2 + d * y2))
            - t1 * (det * (a * x2 + b * y2))
            + (a * c + b * d) * det * det
        )
        coeffs = [c30, c21, 0.0, 0.0, c20, c11, 0.0, c10, c01, c00]
    else:
        c03 = det * (e1 * e2 * t2 - det * (e1 * (a * x2 + b * y2) - e2 * x1))
        c12 = -det * (e1 * e2 * t1 - det * (e1 * (c * x2 + d * y2) - e2 * y1))
        c02 = (
            t2 * (e1 * e2 * t1 - det * (e1 * c * x2 + e1 * d * y2 + 2 * e2 * y1))
            - t1 * det * (e1 * (a * x2 + b * y2) - 2 * e2 * x1)
            + det * det
            * (e1 * (a * c + b * d) + 2 * (a * x2 * y1 - c * x1 * x2 + b * y1 * y2 - d * x1 * y2))
        )
        c11 = e1 * (
            -e2 * t1 * t1
            + det * (-(c * c + d * d) * det + 2 * t1 * c * x2 + 2 * d * y2 * t1)
        ) + e2 * det * det
        c10 = (
            t1 * det * (e2 - 2 * c * x2 * y1 - 2 * d * y1 * y2)
            + y1 * (e2 * t1 * t1 + det * det * (c * c + d * d))
            - det * det * (c * x2 + d * y2)
        )
        c01 = (
            t2 * (e2 * det + 2 * y1 * det * (c * x2 + d * y2))
            + t1 * (-2 * e2 * y1 * t2 + 2 * det * (a * x2 * y1 - c * x1 * x2 + b * y1 * y2 - d * x1 * y2))
            + e2 * x1 * t1 * t1
            - 2 * det * det
            * (a * c * y1 + 0.5 * a * x2 - 0.5 * c * c * x1 + b * d * y1 + 0.5 * b * y2 - 0.5 * d * d * x1)
        )
        c00 = (
            t2 * (e2 * t1 - det * (c * x2 + d * y2))
            - t1 * (det * (a * x2 + b * y2))
            + det * det * (a * c + b * d)
        )
        coeffs = [0.0, 0.0, c12, c03, 0.0, c11, c02, c10, c01, c00]
    return np.array(coeffs, dtype=float)


def _as_coefficients(eq) -> np.ndarray:
    arr = np.asarray(eq, dtype=float).ravel()
    if arr.size != _N_COEFFS:
        raise ValueError(f"expected {_N_COEFFS} coefficients, got {arr.size}")
    return arr


def _poly(q: np.ndarray, x0: float, x1: float) -> float:
    return (
        q[0] * x0**3
        + q[1] * x0**2 * x1
        + q[2] * x0 * x1**2
        + q[3] * x1**3
        + q[4] * x0**2
        + q[5] * x0 * x1
        + q[6] * x1**2
        + q[7] * x0
        + q[8] * x1
        + q[9]
    )


def _gradient(q: np.ndarray, x0: float, x1: float) -> tuple[float, float]:
    d0 = (
        3 * q[0] * x0**2
        + 2 * q[1] * x0 * x1
        + q[2] * x1**2
        + 2 * q[4] * x0
        + q[5] * x1
        + q[7]
    )
    d1 = (
        q[1] * x0**2
        + 2 * q[2] * x0 * x1
        + 3 * q[3] * x1**2
        + q[5] * x0
        + 2 * q[6] * x1
        + q[8]
    )
    return d0, d1


class PolySolver:
    """Residual block for a pair of bicubic polynomials in (k1, k2)."""

    def __init__(self, eq1, eq2):
        self.eq1 = _as_coefficients(eq1)
        self.eq2 = _as_coefficients(eq2)

    def evaluate(self, x) -> np.ndarray:
        """Residuals of both polynomials at ``x = (k1, k2)``."""
        x0, x1 = (float(val) for val in x)
        return np.array([_poly(self.eq1, x0, x1), _poly(self.eq2, x0, x1)])

    def jacobian(self, x) -> np.ndarray:
        """2x2 Jacobian; row ``r`` holds the partial derivatives of residual ``r``."""
        x0, x1 = (float(val) for val in x)
        return np.array([_gradient(self.eq1, x0, x1), _gradient(self.eq2, x0, x1)])