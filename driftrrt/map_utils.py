import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


@dataclass
class GridMap:
    """
    Simple occupancy grid.
    data: numpy array (H, W), 1/True for occupied, 0/False for free.
    resolution: world units per cell.
    origin: world coordinates of grid index (0,0) cell center.

    Planning happens in grid coordinates; `normalize` is the only entry point for
    world coordinates.
    """

    data: np.ndarray
    resolution: float = 1.0
    origin: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        self.data = np.asarray(self.data)
        if self.data.ndim != 2:
            raise ValueError(f"Occupancy data must be 2-D, got shape {self.data.shape}")
        if self.resolution <= 0:
            raise ValueError("resolution must be positive")

    @classmethod
    def empty(cls, width: int, height: int, resolution: float = 1.0, origin: Tuple[float, float] = (0.0, 0.0)):
        return cls(np.zeros((height, width), dtype=np.uint8), resolution, origin)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def world_to_grid(self, x: float, y: float) -> Tuple[int, int]:
        gx = int(round((x - self.origin[0]) / self.resolution))
        gy = int(round((y - self.origin[1]) / self.resolution))
        return gx, gy

    def grid_to_world(self, gx: int, gy: int) -> Tuple[float, float]:
        x = gx * self.resolution + self.origin[0]
        y = gy * self.resolution + self.origin[1]
        return x, y

    def normalize(self, point: Sequence[float]) -> Tuple[int, int]:
        """Map a world point into the grid coordinates used by the planner."""
        return self.world_to_grid(float(point[0]), float(point[1]))

    def in_bounds(self, gx: int, gy: int) -> bool:
        return 0 <= gx < self.width and 0 <= gy < self.height

    def is_occupied(self, gx: int, gy: int) -> bool:
        """True if the cell is blocked; cells outside the grid count as blocked."""
        if not self.in_bounds(gx, gy):
            return True
        return bool(self.data[gy, gx])

    def copy(self) -> "GridMap":
        return GridMap(self.data.copy(), self.resolution, self.origin)

    def inflate(self, margin: float) -> "GridMap":
        """
        Inflate occupied cells by margin (world units) to add a safety buffer around
        obstacles, since the planner checks a single cell per pose.
        """
        cells = int(math.ceil(margin / self.resolution))
        if cells <= 0:
            return self.copy()
        occupied = self.data.astype(bool)
        padded = np.pad(occupied, cells, constant_values=False)
        inflated = np.zeros_like(occupied)
        h, w = occupied.shape
        for dy in range(2 * cells + 1):
            for dx in range(2 * cells + 1):
                inflated |= padded[dy : dy + h, dx : dx + w]
        return GridMap(inflated.astype(self.data.dtype), self.resolution, self.origin)
