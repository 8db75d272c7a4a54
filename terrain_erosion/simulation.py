#!/usr/bin/env python3
import enum
import logging
from pathlib import Path

import numpy as np

from terrain_erosion.config import ConfigurationError, ErosionConfig, PaintMode
from terrain_erosion.erosion import (
    advect_sediment,
    apply_thermal_erosion,
    compute_transport_capacity,
    erode_and_deposit,
)
from terrain_erosion.forcing import apply_brush, apply_evaporation, apply_precipitation
from terrain_erosion.grid import GridState
from terrain_erosion.hydraulics import compute_outflow_flux, update_water_height
from terrain_erosion.sources import TerrainNormals

logger = logging.getLogger(__name__)


class ClockState(enum.Enum):
    PAUSED = "paused"
    RUNNING = "running"


class ErosionSimulation:
    """Owns the grid and advances it one fixed-order step per running tick."""

    def __init__(self, config: ErosionConfig, height_source, normal_provider=None):
        config.validate()
        self.cfg = config
        self.height_source = height_source
        self.normal_provider = normal_provider or TerrainNormals(config.cell_length)
        self.state = ClockState.PAUSED

        self.grid = GridState(config.width, config.length)
        self.time = 0.0
        self.step_count = 0
        self.rng = np.random.default_rng(config.seed)
        self.initial_terrain = None

        self.metrics = {
            'total_water': [],
            'total_sediment': [],
            'total_terrain': [],
            'max_water_depth': [],
            'mean_velocity': [],
            'max_erosion': [],
        }
        self.output_dir = Path(config.output_dir) / config.experiment_name

        self._initialize()

    # --- Run state ---

    @property
    def is_running(self) -> bool:
        return self.state is ClockState.RUNNING

    def resume(self):
        if not self.is_running:
            self.state = ClockState.RUNNING
            logger.info(f"Simulation resumed at step {self.step_count}")

    def pause(self):
        if self.is_running:
            self.state = ClockState.PAUSED
            logger.info(f"Simulation paused at step {self.step_count}")

    def toggle(self):
        if self.is_running:
            self.pause()
        else:
            self.resume()

    # --- Lifecycle ---

    def _initialize(self):
        cfg = self.cfg
        heights = self.height_source.heights(cfg.width, cfg.length)

        water = np.full(self.grid.shape, cfg.initial_water_depth)
        if cfg.sea_level is not None:
            water = np.maximum(water, cfg.sea_level - np.asarray(heights, dtype=float))

        self.grid.fill(heights, water_depth=water, terrain_hardness=cfg.terrain_hardness)
        self.initial_terrain = self.grid.terrain_height.copy()
        self.time = 0.0
        self.step_count = 0
        self.rng = np.random.default_rng(cfg.seed)
        for values in self.metrics.values():
            values.clear()

    def reset(self, reseed=False):
        """Reinitialises every field from the height source. Valid while paused or running."""
        if reseed:
            self.height_source.reseed()
        self._initialize()
        logger.info(f"Reset {self.grid.width}x{self.grid.length} grid (reseed={reseed})")

    # --- Stepping ---

    def tick(self, dt=None, brush=None) -> bool:
        """One frame. Runs a step only while running; returns whether it did."""
        if not self.is_running:
            return False
        self.step(dt, brush)
        return True

    def _check_runnable(self, dt, brush=None):
        self.cfg.validate()
        if (self.cfg.width, self.cfg.length) != (self.grid.width, self.grid.length):
            raise ConfigurationError(
                f"Grid is {self.grid.width}x{self.grid.length}; resizing to "
                f"{self.cfg.width}x{self.cfg.length} requires a new simulation")
        if not dt > 0:
            raise ValueError(f"dt must be positive, got {dt}")
        if brush is not None:
            # Reject a bad stroke before any stage touches the grid
            PaintMode.parse(brush.mode)

    def step(self, dt=None, brush=None):
        """Performs one full step of the simulation, regardless of run state."""
        dt = self.cfg.base_dt if dt is None else dt
        self._check_runnable(dt, brush)
        cfg, grid = self.cfg, self.grid

        # 1. Rain and brush edits
        grid.water_depth = apply_precipitation(grid.water_depth, cfg, self.rng, dt)
        if brush is not None:
            apply_brush(grid, brush, cfg, dt)
        grid.clamp_non_negative()

        # 2. Outflow flux, finalised for the whole grid before the water update reads it
        grid.outflow_flux = compute_outflow_flux(grid, cfg, dt)

        # 3. Water depth and velocity
        grid.water_depth, grid.velocity = update_water_height(grid, cfg, dt)

        # 4. Erosion/deposition then transport of the suspended sediment
        normals = self.normal_provider.normals(grid, cfg.cell_length)
        capacity = compute_transport_capacity(grid.velocity, normals, cfg)
        grid.terrain_height, grid.suspended_sediment = erode_and_deposit(grid, capacity, dt)
        grid.suspended_sediment = advect_sediment(grid.suspended_sediment, grid.velocity, dt)
        grid.clamp_non_negative()

        # 5. Slope relaxation
        if cfg.use_thermal_erosion:
            grid.terrain_height = apply_thermal_erosion(grid, cfg, dt)

        # 6. Evaporation
        grid.water_depth = apply_evaporation(grid.water_depth, cfg, dt)
        grid.clamp_non_negative()

        self.time += dt
        self.step_count += 1
        self._update_metrics()

    def _update_metrics(self):
        """Calculates and stores metrics for the current step."""
        grid = self.grid
        erosion = float(np.max(self.initial_terrain - grid.terrain_height))
        self.metrics['total_water'].append(float(grid.water_depth.sum()))
        self.metrics['total_sediment'].append(float(grid.suspended_sediment.sum()))
        self.metrics['total_terrain'].append(float(grid.terrain_height.sum()))
        self.metrics['max_water_depth'].append(float(grid.water_depth.max()))
        self.metrics['max_erosion'].append(erosion)

        wet = grid.water_depth > 0.0
        if np.any(wet):
            self.metrics['mean_velocity'].append(float(np.mean(self.velocity_magnitude()[wet])))
        else:
            self.metrics['mean_velocity'].append(0.0)

        if self.cfg.metrics_interval and self.step_count % self.cfg.metrics_interval == 0:
            logger.info(
                f"Step {self.step_count}, Time {self.time:.2f}s, "
                f"Water: {self.metrics['total_water'][-1]:.3f}, "
                f"Max depth: {np.max(grid.water_depth):.3f}, Max erosion: {erosion:.4f}"
            )

    # --- Read-only views for rendering ---

    def snapshot(self):
        """Read-only copies of the fields a renderer consumes."""
        views = {
            'terrain_height': self.grid.terrain_height.copy(),
            'water_depth': self.grid.water_depth.copy(),
            'velocity': self.grid.velocity.copy(),
            'suspended_sediment': self.grid.suspended_sediment.copy(),
        }
        for array in views.values():
            array.setflags(write=False)
        return views

    def water_surface(self):
        return self.grid.terrain_height + self.grid.water_depth

    def velocity_magnitude(self):
        return np.hypot(self.grid.velocity[0], self.grid.velocity[1])

    def total_mass(self) -> float:
        grid = self.grid
        return float(grid.terrain_height.sum() + grid.water_depth.sum() + grid.suspended_sediment.sum())

    # --- Batch runs ---

    def run(self, steps=None, frame_callback=None):
        """Runs `steps` ticks (config.total_steps by default) at config.base_dt."""
        steps = self.cfg.total_steps if steps is None else steps
        logger.info(f"Starting simulation for {steps} steps...")
        self.resume()
        try:
            if frame_callback is not None:
                frame_callback(self)

            for _ in range(steps):
                self.tick()
                if frame_callback is not None and self.step_count % self.cfg.output_interval == 0:
                    frame_callback(self)
        finally:
            self.pause()
        logger.info(f"Simulation completed in {self.step_count} steps.")

    def save_final_metrics(self):
        """Saves final summary metrics to a text file."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        metrics_file = self.output_dir / "summary_metrics.txt"
        mean_velocity = np.mean(self.metrics['mean_velocity']) if self.metrics['mean_velocity'] else 0.0
        max_erosion = self.metrics['max_erosion'][-1] if self.metrics['max_erosion'] else 0.0
        with open(metrics_file, 'w') as f:
            f.write(f"Simulation: {self.cfg.experiment_name}\n")
            f.write(f"Grid: {self.grid.width}x{self.grid.length}\n")
            f.write(f"Total simulated time: {self.time:.2f}s\n")
            f.write(f"Total steps: {self.step_count}\n")
            f.write(f"Final max erosion: {max_erosion:.4f}\n")
            f.write(f"Average mean velocity: {mean_velocity:.4f}\n")
            f.write(f"Final water volume: {self.grid.water_depth.sum() * self.cfg.cell_area:.4f}\n")
            f.write(f"Final max depth: {np.max(self.grid.water_depth):.4f}\n")
        return metrics_file
