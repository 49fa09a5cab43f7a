"""Uniform grid spatial index over bounding boxes."""

import math
from typing import Dict, Generic, List, Tuple, TypeVar

from .geometry import Bounds

T = TypeVar("T")


class SpatialGrid(Generic[T]):
    """
    Buckets items by the grid cells their bounding box covers.

    Queries return every item sharing at least one cell with the query box;
    callers still run their own exact overlap test on the candidates.
    """

    def __init__(self, cell_size: float):
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self.cell_size = cell_size
        self.cells: Dict[Tuple[int, int], List[T]] = {}

    def _cell_range(self, bounds: Bounds) -> Tuple[int, int, int, int]:
        cs = self.cell_size
        return (
            math.floor(bounds.min_x / cs),
            math.floor(bounds.max_x / cs),
            math.floor(bounds.min_y / cs),
            math.floor(bounds.max_y / cs),
        )

    def insert(self, item: T, bounds: Bounds) -> None:
        min_x, max_x, min_y, max_y = self._cell_range(bounds)
        for iy in range(min_y, max_y + 1):
            for ix in range(min_x, max_x + 1):
                self.cells.setdefault((ix, iy), []).append(item)

    def query(self, bounds: Bounds) -> List[T]:
        """Candidates whose cells intersect the query box, each listed once."""
        min_x, max_x, min_y, max_y = self._cell_range(bounds)
        out: List[T] = []
        seen = set()
        for iy in range(min_y, max_y + 1):
            for ix in range(min_x, max_x + 1):
                for item in self.cells.get((ix, iy), ()):
                    if id(item) in seen:
                        continue
                    seen.add(id(item))
                    out.append(item)
        return out

    def __len__(self) -> int:
        return len({id(item) for bucket in self.cells.values() for item in bucket})
