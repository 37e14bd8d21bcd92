"""Combination of several filters into one global mask."""

from __future__ import annotations

import numpy as np

from deformap.masks import BorderMask, BrightMask, Filter


class Masker:
    """Holds a list of filters and intersects their masks."""

    def __init__(self):
        self.filters: list[Filter] = []

    def __len__(self) -> int:
        return len(self.filters)

    def load_from_txt(self, path) -> int:
        """Load filters from a text file with lines ``<name> <param_1> ...``.

        Unknown filter names are ignored and a missing file loads nothing.
        Returns the number of filters added.
        """
        try:
            with open(path, encoding="utf-8") as handle:
                lines = handle.read().splitlines()
        except FileNotFoundError:
            return 0

        added = 0
        for line in lines:
            tokens = line.split()
            if not tokens:
                continue
            name, args = tokens[0], tokens[1:]
            if name == "CNN":
                raise ValueError("CNN segmentation filters are not supported")
            if name == "BorderFilter":
                f = BorderMask(*self._ints(args, 5, name))
            elif name == "BrightFilter":
                f = BrightMask(*self._ints(args, 1, name))
            else:
                continue
            self.add_filter(f)
            added += 1
        return added

    @staticmethod
    def _ints(args, count, name):
        if len(args) < count:
            raise ValueError(f"{name} needs {count} integer parameters")
        return [int(arg) for arg in args[:count]]

    def add_filter(self, f: Filter) -> None:
        """Append a filter."""
        self.filters.append(f)

    def delete_filter(self, idx) -> None:
        """Remove the filter at position ``idx``."""
        if not 0 <= idx < len(self.filters):
            raise IndexError(f"no filter at position {idx}")
        del self.filters[idx]

    def mask(self, image) -> np.ndarray:
        """Intersection of all filter masks; all 255 when no filter is set."""
        img = np.asarray(image)
        rows, cols = img.shape[:2]
        result = np.full((rows, cols), 255, dtype=np.uint8)
        for f in self.filters:
            result &= np.asarray(f.generate_mask(img), dtype=np.uint8)
        return result

    def print_filters(self) -> str:
        """Human-readable list of the filters."""
        lines = [f"List of filters ({len(self.filters)}):\n"]
        lines.extend(f"\t-{f.description()}\n" for f in self.filters)
        return "".join(lines)