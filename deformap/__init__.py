"""Deformable mapping: B-spline grids, Schwarzian warps, normal polynomials, surfaces, shape-from-normals, registration and image masks."""

__version__ = "0.1.0"

__all__ = [
    "bspline",
    "polysolver",
    "surface",
    "masks",
    "masker",
    "shape_from_normals",
    "surface_registration",
    "schwarp",
]