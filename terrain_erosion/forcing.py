#!/usr/bin/env python3
import logging

import numpy as np

from terrain_erosion.config import PaintMode

logger = logging.getLogger(__name__)

# Each cell draws an integer in [1, RAIN_SAMPLE_RANGE] per step and gets a
# drop when the draw is at or below the rain threshold.
RAIN_SAMPLE_RANGE = 10_000


def rain_threshold(cfg, shape):
    """Draw threshold for one rain trial; larger grids get a smaller per-cell chance."""
    return cfg.rain_amount * cfg.rain_density * RAIN_SAMPLE_RANGE / min(shape)


def apply_precipitation(water_depth, cfg, rng, dt):
    """Adds rain to a random, independent subset of cells. Returns a new array."""
    if not cfg.is_raining:
        return water_depth.copy()

    draws = rng.integers(1, RAIN_SAMPLE_RANGE + 1, size=water_depth.shape)
    hits = draws <= rain_threshold(cfg, water_depth.shape)
    drop = dt * cfg.rain_intensity * cfg.simulation_speed

    logger.debug(f"Rain fell on {int(hits.sum())} cells")
    return water_depth + np.where(hits, drop, 0.0)


def apply_evaporation(water_depth, cfg, dt):
    """Exponential decay of the water column. Returns a new array."""
    factor = max(0.0, 1.0 - cfg.simulation_speed * cfg.evaporation_rate * dt)
    return water_depth * factor


def apply_brush(grid, stroke, cfg, dt):
    """
    Paints water or terrain under the cursor, in place.

    Every cell whose centre lies within the brush radius of the cursor gets
    dt * intensity added or removed. Terrain strokes fade linearly toward the
    rim when `cfg.brush_falloff` is set. Returns the number of cells touched.
    """
    mode = PaintMode.parse(stroke.mode)
    if not stroke.active:
        return 0

    radius = cfg.brush_radius if stroke.radius is None else stroke.radius
    intensity = cfg.brush_intensity if stroke.intensity is None else stroke.intensity

    xs, ys = grid.cell_centers(cfg.cell_length)
    px, py = stroke.position
    distance = np.hypot(xs - px, ys - py)
    inside = distance <= radius
    amount = dt * intensity

    if mode is PaintMode.WATER_ADD:
        grid.water_depth[inside] += amount
    elif mode is PaintMode.WATER_REMOVE:
        grid.water_depth[inside] = np.maximum(grid.water_depth[inside] - amount, 0.0)
    else:
        if cfg.brush_falloff and radius > 0:
            weight = 1.0 - distance[inside] / radius
        else:
            weight = 1.0
        sign = 1.0 if mode is PaintMode.TERRAIN_ADD else -1.0
        grid.terrain_height[inside] += sign * amount * weight

    touched = int(inside.sum())
    logger.debug(f"Brush {mode.value} touched {touched} cells at {stroke.position}")
    return touched
