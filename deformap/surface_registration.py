"""Alignment of an up-to-scale keyframe surface with its registered map points.

Keyframes expose ``pose`` (4x4 camera-from-world transform, writable),
``map_points`` (one entry per keypoint or ``None``) and ``surface``
(:class:`deformap.surface.Surface`). Map points expose ``is_bad()``,
``facet`` (truthy when attached to the template), ``cov_norm`` (``None``
until a normal was estimated) and ``keyframe_positions``, a mapping from
keyframe to the point's 3-D position recorded for it.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

MIN_POINTS = 15
DEFAULT_CHI_LIMIT = 0.07


@dataclass(frozen=True)
class Sim3:
    """Similarity ``x -> scale * rotation @ x + translation``."""

    scale: float
    rotation: np.ndarray
    translation: np.ndarray
    chi2: float

    @property
    def matrix(self) -> np.ndarray:
        """Homogeneous 4x4 form."""
        m = np.eye(4)
        m[:3, :3] = self.scale * self.rotation
        m[:3, 3] = self.translation
        return m

    def apply(self, points) -> np.ndarray:
        """Transform an (n, 3) array of points."""
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        return self.scale * pts @ self.rotation.T + self.translation


def align_sim3(source, target) -> Sim3:
    """Least-squares similarity taking ``source`` points onto ``target`` points.

    ``chi2`` is the mean squared distance between the transformed source and
    the target.
    """
    src = np.asarray(source, dtype=float).reshape(-1, 3)
    dst = np.asarray(target, dtype=float).reshape(-1, 3)
    if src.shape != dst.shape:
        raise ValueError("source and target must have the same number of points")
    if src.shape[0] < 3:
        raise ValueError("at least three points are needed for an alignment")

    mu_src = src.mean(axis=0)
    mu_dst = dst.mean(axis=0)
    src_c = src - mu_src
    dst_c = dst - mu_dst
    var_src = np.mean(np.sum(src_c**2, axis=1))
    if var_src == 0:
        raise ValueError("source points are all identical")

    cov = dst_c.T @ src_c / src.shape[0]
    u, sigma, vt = np.linalg.svd(cov)
    sign = np.ones(3)
    if np.linalg.det(u) * np.linalg.det(vt) < 0:
        sign[-1] = -1.0
    rotation = u @ np.diag(sign) @ vt
    scale = float(np.sum(sigma * sign) / var_src)
    translation = mu_dst - scale * rotation @ mu_src

    residual = dst - (scale * src @ rotation.T + translation)
    chi2 = float(np.mean(np.sum(residual**2, axis=1)))
    return Sim3(scale, rotation, translation, chi2)


class SurfaceRegistration:
    """Recovers the scale of a keyframe surface by aligning it with map points."""

    def __init__(self, keyframe, chi_limit=DEFAULT_CHI_LIMIT, check_chi=True):
        self.keyframe = keyframe
        self.chi_limit = float(chi_limit)
        self.check_chi = bool(check_chi)

    def _clouds(self, twc: np.ndarray):
        kf = self.keyframe
        map_cloud, surface_cloud = [], []
        for index, map_point in enumerate(kf.map_points):
            if map_point is None or map_point.is_bad():
                continue
            if not map_point.facet or map_point.cov_norm is None:
                continue
            position = map_point.keyframe_positions.get(kf)
            if position is None:
                continue
            map_cloud.append(np.asarray(position, dtype=float).ravel()[:3])
            x = np.append(kf.surface.point(index), 1.0)
            surface_cloud.append((twc @ x)[:3])
        return np.array(map_cloud), np.array(surface_cloud)

    def register_surfaces(self) -> bool:
        """Align the surface with the map points and apply the recovered scale.

        Returns ``False`` when there are too few points, or when the residual
        exceeds the limit and ``check_chi`` is set; nothing is changed then.
        """
        kf = self.keyframe
        twc = np.linalg.inv(np.asarray(kf.pose, dtype=float))
        map_cloud, surface_cloud = self._clouds(twc)
        if len(map_cloud) < MIN_POINTS:
            return False

        transform = align_sim3(surface_cloud, map_cloud)
        if transform.chi2 > self.chi_limit and self.check_chi:
            return False

        scale = transform.scale
        kf.surface.apply_scale(scale)
        new_twc = transform.matrix @ twc
        new_twc[:3, :3] /= scale
        kf.pose = np.linalg.inv(new_twc)
        return True