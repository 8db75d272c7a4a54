#!/usr/bin/env python3
import logging

import numpy as np

from terrain_erosion.grid import BOTTOM, DIRECTIONS, LEFT, RIGHT, TOP, neighbor_values

logger = logging.getLogger(__name__)


def compute_outflow_flux(grid, cfg, dt):
    """
    Computes the four outward pipe fluxes of every cell (virtual pipe model).

    Returns a new (4, length, width) array; the grid's current flux is only read.
    """
    area = cfg.cell_area
    surface = grid.terrain_height + grid.water_depth
    valid = grid.valid_directions

    flux = np.zeros_like(grid.outflow_flux)
    for d in DIRECTIONS:
        # Hydrostatic pressure difference across the pipe to the neighbour
        delta_height = surface - neighbor_values(surface, d)
        delta_pressure = cfg.fluid_density * cfg.gravity * delta_height
        acceleration = delta_pressure / (cfg.fluid_density * cfg.cell_length)

        candidate = grid.outflow_flux[d] + dt * cfg.simulation_speed * area * acceleration
        # Edge cells have no pipe across the boundary
        flux[d] = np.where(valid[d], np.maximum(0.0, candidate), 0.0)

    # Scale so that no cell drains more water than it holds this step
    total = flux.sum(axis=0)
    volume = np.maximum(grid.water_depth, 0.0) * area
    with np.errstate(divide='ignore', invalid='ignore'):
        k = np.where(total > 0.0, np.minimum(1.0, volume / (dt * total)), 1.0)
    flux *= k

    np.maximum(flux, 0.0, out=flux)
    return flux


def inbound_flux(flux):
    """Per-direction flux arriving at each cell from its neighbours, as a (4, ...) array."""
    return np.stack([
        neighbor_values(flux[RIGHT], LEFT),   # from the left neighbour
        neighbor_values(flux[LEFT], RIGHT),   # from the right neighbour
        neighbor_values(flux[BOTTOM], TOP),   # from the top neighbour
        neighbor_values(flux[TOP], BOTTOM),   # from the bottom neighbour
    ])


def update_water_height(grid, cfg, dt):
    """
    Applies the continuity equation with the finalised flux field.

    Returns (next_water_depth, velocity) without writing to the grid.
    """
    flux = grid.outflow_flux
    incoming = inbound_flux(flux)
    inbound = incoming.sum(axis=0)
    outbound = flux.sum(axis=0)

    current = grid.water_depth
    next_depth = current + dt * (inbound - outbound) / cfg.cell_area
    next_depth = np.maximum(next_depth, 0.0)

    # Net flow through the cell along each axis, averaged over both faces
    delta_wx = (incoming[LEFT] - flux[LEFT] + flux[RIGHT] - incoming[RIGHT]) / 2.0
    delta_wy = (incoming[TOP] - flux[TOP] + flux[BOTTOM] - incoming[BOTTOM]) / 2.0

    velocity = np.stack([delta_wx, delta_wy]) / cfg.cell_length

    # Shallow cells are scaled down by their depth, deep ones divided by it.
    # The divisor is always >= 1 so it can never be zero.
    average_depth = (current + next_depth) / 2.0
    shallow = average_depth < 1.0
    scale = np.where(shallow, average_depth, 1.0 / np.where(shallow, 1.0, average_depth))
    velocity *= scale

    logger.debug(f"Water step: inbound={inbound.sum():.4f}, outbound={outbound.sum():.4f}")
    return next_depth, velocity
