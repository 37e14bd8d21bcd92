# deformap

Building blocks for deformable monocular mapping: bicubic B-spline grids,
image warps with a Schwarzian regulariser, the polynomial system that links
warp derivatives to surface normals, per-keyframe surfaces, surface
reconstruction from normals, scale alignment of a surface with map points,
and image masks.

## Installation

```
pip install .
```

Add the `test` extra to install pytest as well:

```
pip install ".[test]"
```

## Modules

- `deformap.bspline.BSplineGrid`: a frozen dataclass for a uniform bicubic
  B-spline over `[umin, umax] x [vmin, vmax]`, with `nptsu x nptsv` control
  points (at least 4 per axis) that each carry `valdim` values.
  `node_coordinates()` gives one domain point per control point.
  `coloc(u, v, du, dv)` gives the collocation matrix or one of its
  derivatives (order 0 to 3). `evaluate(ctrlpts, u, v, du, dv)` evaluates
  the spline. `bending(weight)` returns the exact bending-energy matrix.
- `deformap.polysolver`: `get_coefficients(a, b, c, d, t1, t2, e1, e2, x1, y1, x2, y2, i)`
  returns the ten coefficients of the first (`i == 0`) or second bicubic
  polynomial in the normal components `(k1, k2)`. `PolySolver(eq1, eq2)`
  gives their residuals (`evaluate`) and their 2x2 Jacobian (`jacobian`).
- `deformap.surface`: `SurfacePoint` holds an optional normal and a 3-D
  position. `Surface(number_of_points)` holds one of them per keypoint. It
  counts distinct normals: `enough_normals()` is true from 10 normals up. It
  also stores a depth spline (`save_array`), rescales points and depths
  (`apply_scale`) and samples the surface as homogeneous vertices
  (`get_vertex(xs, ys)`, shape `(xs * ys, 4)`).
- `deformap.shape_from_normals`: `obtain_m(grid, normals, u, v)` builds the
  matrix that ties depth control points to normals. `ShapeFromNormals(keyframe, bending_weight)`
  solves for a depth spline normalised to median 1 and writes the 3-D points
  and depths into the keyframe's `surface`. It returns `False` when there
  are no keypoints or the solution is not finite.
- `deformap.surface_registration`: `align_sim3(source, target)` returns a
  `Sim3` (scale, rotation, translation and mean squared residual `chi2`).
  `SurfaceRegistration(keyframe, chi_limit, check_chi)` aligns a keyframe
  surface with its map points. It needs at least 15 points and a `chi2`
  within the limit when `check_chi` is set. On success it rescales the
  surface and updates `keyframe.pose`.
- `deformap.schwarp`: warps stored as flat control-point vectors.
  `initialize_warp(kp1, kp2, lam, grid)` makes a bending-regularised
  least-squares fit. `get_estimates(kp1, grid, x, du, dv)` gives warped
  points or their derivatives. `Warp` gives reprojection residuals and their
  Jacobian. `Schwarzian` gives the four Schwarzian residual blocks at the
  grid nodes and their analytic Jacobian.
- `deformap.masks`: `to_gray`, the abstract `Filter` and two filters.
  `BorderMask(rb, re, cb, ce, th)` masks out border rows and columns and
  zero pixels, then erodes. `BrightMask(th)` masks out pixels brighter than
  `th`, then erodes and blurs.
- `deformap.masker.Masker`: intersects the masks of its filters. It has
  `add_filter`, `delete_filter`, `mask`, `print_filters` and
  `load_from_txt`.

Keyframes and map points are duck-typed objects. The module docstrings of
`shape_from_normals` and `surface_registration` list the attributes they read.

## Example: masking an image

```python
import numpy as np
from deformap.masks import BorderMask, BrightMask
from deformap.masker import Masker

image = np.full((120, 160), 100, dtype=np.uint8)

masker = Masker()
masker.add_filter(BorderMask(5, 5, 5, 5, 0))
masker.add_filter(BrightMask(220))

mask = masker.mask(image)          # uint8 array, 255 where pixels are kept
print(masker.print_filters())
```

Filters can also be loaded from a text file with one filter per line:

```
BorderFilter 5 5 5 5 0
BrightFilter 220
```

```python
masker = Masker()
masker.load_from_txt("filters.txt")   # returns the number of filters added
```

Unknown names are skipped and a missing file loads nothing. A `CNN` line
raises `ValueError`, because CNN segmentation is not available.

## Example: fitting a warp

```python
import numpy as np
from scipy.optimize import least_squares
from deformap.bspline import BSplineGrid
from deformap.schwarp import Warp, Schwarzian, initialize_warp, get_estimates

grid = BSplineGrid(-1.0, 1.0, -1.0, 1.0, 5, 5, 2)
rng = np.random.default_rng(0)
kp1 = rng.uniform(-0.9, 0.9, size=(40, 2))
kp2 = kp1 * 1.05 + 0.01

x0 = initialize_warp(kp1, kp2, 1e-3, grid)
warp = Warp(kp1, kp2, np.ones(len(kp1)), grid, 500.0, 500.0)
schwarzian = Schwarzian(1e-2, grid)

result = least_squares(
    lambda x: np.concatenate([warp.residuals(x), schwarzian.residuals(x)]),
    x0,
    jac=lambda x: np.vstack([warp.jacobian(x), schwarzian.jacobian(x)]),
)
jacobian_u = get_estimates(kp1, grid, result.x, 1, 0)
```

## Example: normal polynomials

```python
from deformap.polysolver import get_coefficients, PolySolver

eq1 = get_coefficients(1.0, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 0.0, 0.0, 0)
eq2 = get_coefficients(1.0, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1)
solver = PolySolver(eq1, eq2)
print(solver.evaluate([0.0, 0.0]), solver.jacobian([0.0, 0.0]))
```

## What the package does not do

It gives the pieces, not a running mapping pipeline. There is no store of
warps and differential properties between keyframes. Normals are not
estimated or carried between keyframes automatically. Warps are not chosen
or fitted between covisible keyframes. You solve the `PolySolver` systems and
fill each `Surface` with normals yourself. There is no command-line tool,
viewer or keyframe/map storage.

## Running the tests

```
pytest
```