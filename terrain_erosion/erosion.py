#!/usr/bin/env python3
import logging

import numpy as np

from terrain_erosion.grid import DIRECTIONS, OPPOSITE, neighbor_values

logger = logging.getLogger(__name__)

UP = np.array([0.0, 0.0, 1.0])
# Upper bound on sin(tilt) so near-vertical faces don't explode the capacity
MAX_TILT_SINE = 0.05
# Erosion runs at half the rate of deposition
EROSION_RATE_FACTOR = 0.5


def compute_transport_capacity(velocity, normals, cfg):
    """
    Sediment the flow can carry at each cell, from its speed and local slope.

    `normals` is a (length, width, 3) array of unit surface normals.
    """
    cos_tilt = np.clip(normals @ UP, -1.0, 1.0)
    tilt = np.arccos(cos_tilt)
    speed = np.hypot(velocity[0], velocity[1])
    return speed * cfg.sediment_capacity * np.minimum(np.sin(tilt), MAX_TILT_SINE)


def erode_and_deposit(grid, capacity, dt):
    """
    Moves mass between the terrain and the suspended sediment so that the
    suspended amount moves toward the transport capacity.

    Returns (terrain_height, suspended_sediment) as new arrays. The sum of the
    two is unchanged cell by cell.
    """
    terrain = grid.terrain_height
    sediment = grid.suspended_sediment

    eroding = sediment < capacity
    erodibility = 1.0 - grid.terrain_hardness
    eroded = np.where(eroding, EROSION_RATE_FACTOR * dt * (capacity - sediment) * erodibility, 0.0)
    # Never deposit more than is suspended
    deposited = np.where(eroding, 0.0, np.minimum(dt * (sediment - capacity), sediment))

    new_terrain = terrain - eroded + deposited
    new_sediment = np.maximum(sediment + eroded - deposited, 0.0)

    logger.debug(f"Eroded {eroded.sum():.5f}, deposited {deposited.sum():.5f}")
    return new_terrain, new_sediment


def _round_away_from_zero(values):
    return np.where(values < 0.0, np.floor(values), np.ceil(values)).astype(np.int64)


def advect_sediment(sediment, velocity, dt):
    """
    Semi-Lagrangian transport of suspended sediment.

    Every cell traces back along its own velocity and takes the sediment of
    the cell it lands on (nearest cell, no blending). Sources outside the grid
    leave the cell unchanged. Reads only from `sediment` and returns a new array.
    """
    length, width = sediment.shape
    ys, xs = np.indices(sediment.shape)
    source_x = _round_away_from_zero(xs - velocity[0] * dt)
    source_y = _round_away_from_zero(ys - velocity[1] * dt)

    inside = (source_x >= 0) & (source_x < width) & (source_y >= 0) & (source_y < length)
    advected = sediment.copy()
    advected[inside] = sediment[source_y[inside], source_x[inside]]
    return advected


def apply_thermal_erosion(grid, cfg, dt):
    """
    Slides terrain from a cell to each lower neighbour whose height difference
    exceeds the talus threshold. All transfers are computed from the current
    heights before any is applied, so the grid total is preserved.

    This is an explicit relaxation and is not unconditionally stable: with
    large dt a cell can overshoot past its neighbour. `thermal_transfer_limit`
    caps each transfer at the amount that brings the pair to the talus slope.
    """
    terrain = grid.terrain_height
    valid = grid.valid_directions
    talus = cfg.talus

    new_terrain = terrain.copy()
    for d in DIRECTIONS:
        excess = terrain - neighbor_values(terrain, d) - talus
        moved = np.where(valid[d] & (excess > 0.0), dt * excess, 0.0)
        if cfg.thermal_transfer_limit:
            moved = np.minimum(moved, np.maximum(excess, 0.0) / 2.0)
        new_terrain -= moved
        # What leaves a cell toward d arrives at that neighbour from OPPOSITE[d]
        new_terrain += neighbor_values(moved, OPPOSITE[d])
    return new_terrain
