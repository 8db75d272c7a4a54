#!/usr/bin/env python3
"""
Per-cell state of the erosion model.

Every field is a float64 array of shape (length, width), so the flat buffer
behind it is addressed by y * width + x. Outflow flux is a (4, length, width)
array indexed by direction and velocity a (2, length, width) array holding
(vx, vy).
"""
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from terrain_erosion.config import ConfigurationError

# Direction indices into the flux array, with the (dx, dy) offset of the
# neighbour each one points at.
LEFT, RIGHT, TOP, BOTTOM = 0, 1, 2, 3
DIRECTIONS = (LEFT, RIGHT, TOP, BOTTOM)
OFFSETS = {LEFT: (-1, 0), RIGHT: (1, 0), TOP: (0, -1), BOTTOM: (0, 1)}
OPPOSITE = {LEFT: RIGHT, RIGHT: LEFT, TOP: BOTTOM, BOTTOM: TOP}


@dataclass(frozen=True)
class FlowFlux:
    left: float = 0.0
    right: float = 0.0
    top: float = 0.0
    bottom: float = 0.0

    @property
    def total(self) -> float:
        return self.left + self.right + self.top + self.bottom


@dataclass(frozen=True)
class Cell:
    """Copy of one cell's state. Writing to it does not touch the grid."""
    terrain_height: float
    water_depth: float
    suspended_sediment: float
    outflow_flux: FlowFlux
    velocity: Tuple[float, float]
    terrain_hardness: float


def neighbor_values(field, direction, fill=0.0):
    """
    Returns an array holding, at every cell, the value of `field` at the
    neighbour in `direction`. Cells without such a neighbour get `fill`.
    """
    out = np.full_like(field, fill)
    if direction == LEFT:
        out[:, 1:] = field[:, :-1]
    elif direction == RIGHT:
        out[:, :-1] = field[:, 1:]
    elif direction == TOP:
        out[1:, :] = field[:-1, :]
    elif direction == BOTTOM:
        out[:-1, :] = field[1:, :]
    else:
        raise ValueError(f"Unknown direction {direction}")
    return out


class GridState:
    """Owns the terrain, water, sediment, flux, velocity and hardness fields."""

    def __init__(self, width: int, length: int):
        if int(width) <= 0 or int(length) <= 0:
            raise ConfigurationError(f"Grid dimensions must be positive, got {width}x{length}")
        self._width = int(width)
        self._length = int(length)
        shape = (self._length, self._width)

        self.terrain_height = np.zeros(shape)      # b
        self.water_depth = np.zeros(shape)         # d
        self.suspended_sediment = np.zeros(shape)  # s
        self.outflow_flux = np.zeros((4,) + shape)  # f
        self.velocity = np.zeros((2,) + shape)     # v
        self.terrain_hardness = np.zeros(shape)

        self._valid = np.stack([
            neighbor_values(np.ones(shape, dtype=bool), d, fill=False) for d in DIRECTIONS
        ])
        self._valid.setflags(write=False)

    @property
    def width(self) -> int:
        return self._width

    @property
    def length(self) -> int:
        return self._length

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._length, self._width)

    @property
    def valid_directions(self):
        """(4, length, width) boolean mask, True where the neighbour exists."""
        return self._valid

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self._width and 0 <= y < self._length

    def index(self, x: int, y: int) -> int:
        """Flat buffer index of (x, y)."""
        if not self.in_bounds(x, y):
            raise IndexError(f"Cell ({x}, {y}) is outside the {self._width}x{self._length} grid")
        return y * self._width + x

    def get(self, x: int, y: int) -> Optional[Cell]:
        if not self.in_bounds(x, y):
            return None
        f = self.outflow_flux[:, y, x]
        return Cell(
            terrain_height=float(self.terrain_height[y, x]),
            water_depth=float(self.water_depth[y, x]),
            suspended_sediment=float(self.suspended_sediment[y, x]),
            outflow_flux=FlowFlux(float(f[LEFT]), float(f[RIGHT]), float(f[TOP]), float(f[BOTTOM])),
            velocity=(float(self.velocity[0, y, x]), float(self.velocity[1, y, x])),
            terrain_hardness=float(self.terrain_hardness[y, x]),
        )

    def neighbor(self, x: int, y: int, direction: int) -> Optional[Cell]:
        dx, dy = OFFSETS[direction]
        return self.get(x + dx, y + dy)

    def neighbor_count(self, x: int, y: int) -> int:
        if not self.in_bounds(x, y):
            return 0
        return int(self._valid[:, y, x].sum())

    def set_terrain_height(self, x: int, y: int, value: float):
        self.terrain_height[y, x] = value

    def set_water_depth(self, x: int, y: int, value: float):
        self.water_depth[y, x] = max(0.0, value)

    def set_suspended_sediment(self, x: int, y: int, value: float):
        self.suspended_sediment[y, x] = max(0.0, value)

    def cell_centers(self, cell_length: float):
        """World-space (x, y) coordinate arrays of every cell centre."""
        ys, xs = np.mgrid[0:self._length, 0:self._width]
        return xs * cell_length, ys * cell_length

    def fill(self, terrain_height, water_depth=0.0, terrain_hardness=0.0):
        """Reinitialises every field in place from the given terrain heights."""
        terrain_height = np.asarray(terrain_height, dtype=float)
        if terrain_height.shape != self.shape:
            raise ConfigurationError(
                f"Height samples have shape {terrain_height.shape}, grid expects {self.shape}")
        self.terrain_height[...] = terrain_height
        self.water_depth[...] = np.maximum(water_depth, 0.0)
        self.suspended_sediment.fill(0.0)
        self.outflow_flux.fill(0.0)
        self.velocity.fill(0.0)
        self.terrain_hardness[...] = terrain_hardness

    def clamp_non_negative(self):
        np.maximum(self.water_depth, 0.0, out=self.water_depth)
        np.maximum(self.suspended_sediment, 0.0, out=self.suspended_sediment)
