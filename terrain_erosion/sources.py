#!/usr/bin/env python3
"""
Collaborators the model talks to: where initial terrain heights come from,
and where surface normals for the slope term come from.
"""
import logging
from pathlib import Path
from typing import Optional, Protocol

import numpy as np

from terrain_erosion.config import ConfigurationError

logger = logging.getLogger(__name__)


class HeightSource(Protocol):
    def sample(self, x: int, y: int) -> float: ...

    def heights(self, width: int, length: int) -> np.ndarray: ...

    def reseed(self) -> None: ...


class NormalProvider(Protocol):
    def normals(self, grid, cell_length: float) -> np.ndarray: ...

    def normal_at(self, x: int, y: int) -> np.ndarray: ...


class ArrayHeightSource:
    """Serves heights from a fixed (length, width) array. Reseeding changes nothing."""

    def __init__(self, heights):
        self._heights = np.array(heights, dtype=float)
        if self._heights.ndim != 2:
            raise ConfigurationError(f"Height samples must be 2D, got shape {self._heights.shape}")

    @property
    def shape(self):
        """(length, width) of the stored samples."""
        return self._heights.shape

    def sample(self, x, y):
        return float(self._heights[y, x])

    def heights(self, width, length):
        if self._heights.shape != (length, width):
            raise ConfigurationError(
                f"Height samples have shape {self._heights.shape}, grid expects {(length, width)}")
        return self._heights.copy()

    def reseed(self):
        pass


class NpyHeightSource(ArrayHeightSource):
    """Heights loaded from a .npy file."""

    def __init__(self, path: Path):
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Height map not found at: {path}")
        super().__init__(np.load(path))
        logger.info(f"Loaded {self._heights.shape[1]}x{self._heights.shape[0]} height map from {path}")


class ValleyHeightSource:
    """
    A sloped, meandering valley with smoothed random noise on top.

    Heights fall off along x and a valley winds along the middle of y.
    `reseed` draws a new noise seed from the source's own generator.
    """

    def __init__(self, width, length, cell_length=1.0, slope=0.01, valley_depth=2.0,
                 noise_amplitude=0.1, seed: Optional[int] = None):
        self.width = width
        self.length = length
        self.cell_length = cell_length
        self.slope = slope
        self.valley_depth = valley_depth
        self.noise_amplitude = noise_amplitude
        self._seed_rng = np.random.default_rng(seed)
        self.seed = int(self._seed_rng.integers(0, 2**31 - 1))
        self._heights = self._generate()

    def _generate(self):
        w, h = self.width, self.length

        # Base slope, high at x = 0
        x_coords = np.arange(w)
        terrain = np.zeros((h, w))
        terrain += ((w - x_coords) * self.cell_length * self.slope)[np.newaxis, :]

        # Carve a meandering valley
        y_coords = np.arange(h)
        valley_center = h / 2
        for i in range(w):
            offset = 3 * np.sin(2 * np.pi * i / max(w * 0.3, 1.0))
            dist = np.abs(y_coords - valley_center - offset) * self.cell_length
            terrain[:, i] -= self.valley_depth * np.exp(-(dist**2) / 100)

        # Smooth the noise with its four neighbours
        rng = np.random.default_rng(self.seed)
        noise = rng.normal(0, self.noise_amplitude, (h, w))
        padded = np.pad(noise, 1, mode='edge')
        noise = (noise + padded[:-2, 1:-1] + padded[2:, 1:-1] +
                 padded[1:-1, :-2] + padded[1:-1, 2:]) / 5
        terrain += noise
        return terrain

    def sample(self, x, y):
        return float(self._heights[y, x])

    def heights(self, width, length):
        if (width, length) != (self.width, self.length):
            raise ConfigurationError(
                f"Valley was generated at {self.width}x{self.length}, grid is {width}x{length}")
        return self._heights.copy()

    def reseed(self):
        self.seed = int(self._seed_rng.integers(0, 2**31 - 1))
        self._heights = self._generate()
        logger.info(f"Regenerated valley terrain with seed {self.seed}")


class TerrainNormals:
    """Unit surface normals from central differences of the current terrain."""

    def __init__(self, cell_length=1.0):
        self.cell_length = cell_length
        self._normals = None

    def normals(self, grid, cell_length=None):
        """Recomputes the normals; `cell_length` overrides the spacing given at construction."""
        spacing = self.cell_length if cell_length is None else cell_length
        terrain = grid.terrain_height
        if min(terrain.shape) > 1:
            dz_dy, dz_dx = np.gradient(terrain, spacing)
        else:
            # np.gradient needs two samples along an axis
            dz_dy = np.gradient(terrain, spacing, axis=0) if terrain.shape[0] > 1 \
                else np.zeros_like(terrain)
            dz_dx = np.gradient(terrain, spacing, axis=1) if terrain.shape[1] > 1 \
                else np.zeros_like(terrain)

        normals = np.stack([-dz_dx, -dz_dy, np.ones_like(terrain)], axis=-1)
        normals /= np.linalg.norm(normals, axis=-1, keepdims=True)
        self._normals = normals
        return normals

    def normal_at(self, x, y):
        if self._normals is None:
            raise RuntimeError("normals() has not been computed yet")
        return self._normals[y, x].copy()
