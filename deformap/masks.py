"""Image filters that produce binary masks of pixels usable for tracking."""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from scipy import ndimage

_ERODE_SIZE = 21
_BLUR_SIZE = 11
_BLUR_SIGMA = 5.0


def to_gray(image) -> np.ndarray:
    """Convert a BGR or BGRA image to grayscale; single-channel images pass through."""
    img = np.asarray(image)
    if img.ndim == 2:
        return img
    if img.ndim == 3 and img.shape[2] == 1:
        return img[..., 0]
    if img.ndim == 3 and img.shape[2] in (3, 4):
        channels = img[..., :3].astype(float)
        gray = 0.114 * channels[..., 0] + 0.587 * channels[..., 1] + 0.299 * channels[..., 2]
        return np.clip(np.rint(gray), 0, 255).astype(np.uint8)
    raise ValueError(f"unsupported image shape {img.shape}")


def _erode(mask: np.ndarray) -> np.ndarray:
    return ndimage.grey_erosion(
        mask, size=(_ERODE_SIZE, _ERODE_SIZE), mode="constant", cval=255
    )


def _gaussian_kernel(size: int, sigma: float) -> np.ndarray:
    offsets = np.arange(size) - (size - 1) / 2
    kernel = np.exp(-(offsets**2) / (2 * sigma**2))
    return kernel / kernel.sum()


def _gaussian_blur(mask: np.ndarray) -> np.ndarray:
    kernel = _gaussian_kernel(_BLUR_SIZE, _BLUR_SIGMA)
    blurred = ndimage.correlate1d(mask.astype(float), kernel, axis=0, mode="mirror")
    blurred = ndimage.correlate1d(blurred, kernel, axis=1, mode="mirror")
    return np.clip(np.rint(blurred), 0, 255).astype(np.uint8)


class Filter(ABC):
    """A filter that generates one mask from an input image."""

    @abstractmethod
    def generate_mask(self, image) -> np.ndarray:
        """Return a uint8 mask with the image's height and width."""

    @abstractmethod
    def description(self) -> str:
        """Short description of the filter."""


class BorderMask(Filter):
    """Masks out ``rb``/``re`` rows and ``cb``/``ce`` columns at the image borders."""

    def __init__(self, rb, re, cb, ce, th):
        self.rb = int(rb)
        self.re = int(re)
        self.cb = int(cb)
        self.ce = int(ce)
        self.th = int(th)

    def generate_mask(self, image) -> np.ndarray:
        gray = to_gray(image)
        rows, cols = gray.shape
        width = cols - self.ce - self.cb
        height = rows - self.re - self.rb
        if self.rb < 0 or self.cb < 0 or width < 0 or height < 0:
            raise ValueError("border sizes do not fit inside the image")
        mask = np.zeros((rows, cols), dtype=np.uint8)
        mask[self.rb : self.rb + height, self.cb : self.cb + width] = 255
        mask[gray == 0] = 0
        return _erode(mask)

    def description(self) -> str:
        return f"Border mask with parameters [{self.rb},{self.re},{self.cb},{self.ce}]"


class BrightMask(Filter):
    """Masks out pixels brighter than ``th`` and a margin around them."""

    def __init__(self, th):
        self.th = int(th)

    def generate_mask(self, image) -> np.ndarray:
        gray = to_gray(image)
        mask = np.where(gray > self.th, 0, 255).astype(np.uint8)
        return _gaussian_blur(_erode(mask))

    def description(self) -> str:
        return f"Bright mask with th_ = {self.th}"