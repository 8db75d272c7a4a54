import os

os.environ.setdefault("MPLBACKEND", "Agg")

import numpy as np
import pytest

from terrain_erosion.config import ErosionConfig
from terrain_erosion.grid import GridState
from terrain_erosion.simulation import ErosionSimulation
from terrain_erosion.sources import ArrayHeightSource


def make_config(width, length, **overrides):
    cfg = ErosionConfig(width=width, length=length, metrics_interval=0)
    for key, value in overrides.items():
        setattr(cfg, key, value)
    return cfg


def make_grid(terrain, water=None):
    terrain = np.asarray(terrain, dtype=float)
    grid = GridState(terrain.shape[1], terrain.shape[0])
    grid.fill(terrain, water_depth=0.0 if water is None else np.asarray(water, dtype=float))
    return grid


def make_simulation(terrain, **overrides):
    terrain = np.asarray(terrain, dtype=float)
    cfg = make_config(terrain.shape[1], terrain.shape[0], **overrides)
    return ErosionSimulation(cfg, ArrayHeightSource(terrain))


@pytest.fixture
def rough_terrain():
    rng = np.random.default_rng(42)
    return rng.random((12, 16)) * 4.0
