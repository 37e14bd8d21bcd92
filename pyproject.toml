[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deformap"
version = "0.1.0"
description = "Deformable mapping building blocks: bicubic B-spline grids, Schwarzian-regularised warps, normal polynomials, surfaces, shape-from-normals, Sim(3) surface registration and image masks."
requires-python = ">=3.10"
keywords = ["slam", "deformable", "nrsfm", "b-spline", "schwarp", "shape-from-normals", "mask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["deformap"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
