#!/usr/bin/env python3
import enum
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


class ErosionError(Exception):
    """Base class for errors raised by the erosion model."""


class ConfigurationError(ErosionError):
    """Raised when the model is configured with values it cannot run with."""


class InvalidPaintModeError(ErosionError, ValueError):
    """Raised when a brush stroke names a paint mode that does not exist."""


class PaintMode(enum.Enum):
    WATER_ADD = "water_add"
    WATER_REMOVE = "water_remove"
    TERRAIN_ADD = "terrain_add"
    TERRAIN_REMOVE = "terrain_remove"

    @classmethod
    def parse(cls, value) -> "PaintMode":
        """Accepts a PaintMode or its string value; anything else is rejected."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        raise InvalidPaintModeError(f"Unknown paint mode: {value!r}")


@dataclass
class BrushStroke:
    """One frame of interactive input from the pointer."""
    position: Tuple[float, float]  # world-space cursor (x, y)
    mode: PaintMode = PaintMode.WATER_ADD
    active: bool = True
    radius: Optional[float] = None     # falls back to config.brush_radius
    intensity: Optional[float] = None  # falls back to config.brush_intensity

    def __post_init__(self):
        self.mode = PaintMode.parse(self.mode)


@dataclass
class ErosionConfig:
    # Domain
    width: int = 128
    length: int = 128
    cell_length: float = 1.0

    # Hydraulics
    gravity: float = 9.81
    fluid_density: float = 1.0
    simulation_speed: float = 1.0

    # Precipitation / evaporation
    is_raining: bool = False
    rain_intensity: float = 1.0
    rain_amount: float = 1.0
    # Multiplier on the per-cell rain trial threshold
    rain_density: float = 1.0
    evaporation_rate: float = 0.02

    # Sediment
    sediment_capacity: float = 0.1
    # 0 erodes at the full rate, 1 does not erode at all
    terrain_hardness: float = 0.0

    # Thermal erosion
    use_thermal_erosion: bool = True
    slippage_angle: float = 45.0  # degrees
    # Cap each slide at the amount that brings the pair to the talus slope
    thermal_transfer_limit: bool = False

    # Initial water
    initial_water_depth: float = 0.0
    sea_level: Optional[float] = None

    # Brush
    brush_radius: float = 5.0
    brush_intensity: float = 1.0
    brush_falloff: bool = False

    # Time
    base_dt: float = 0.05
    total_steps: int = 1000
    output_interval: int = 200
    metrics_interval: int = 100
    seed: Optional[int] = None

    # Output
    output_dir: str = "output"
    experiment_name: str = "terrain_erosion"

    @property
    def cell_area(self) -> float:
        return self.cell_length * self.cell_length

    @property
    def talus(self) -> float:
        """Largest height difference between neighbours that does not slip."""
        return self.cell_length * math.tan(math.radians(self.slippage_angle))

    def validate(self):
        """Raises ConfigurationError if the model cannot run with these values."""
        if int(self.width) <= 0 or int(self.length) <= 0:
            raise ConfigurationError(
                f"Grid dimensions must be positive, got {self.width}x{self.length}")
        if self.cell_length <= 0:
            raise ConfigurationError(f"cell_length must be positive, got {self.cell_length}")
        if self.fluid_density <= 0:
            raise ConfigurationError(f"fluid_density must be positive, got {self.fluid_density}")
        if not 0.0 <= self.slippage_angle < 90.0:
            raise ConfigurationError(
                f"slippage_angle must be in [0, 90) degrees, got {self.slippage_angle}")
        for name in ("simulation_speed", "rain_intensity", "rain_amount", "rain_density",
                     "evaporation_rate", "sediment_capacity", "initial_water_depth",
                     "brush_radius", "brush_intensity"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative, got {getattr(self, name)}")
        if not 0.0 <= self.terrain_hardness <= 1.0:
            raise ConfigurationError(
                f"terrain_hardness must be in [0, 1], got {self.terrain_hardness}")
        if int(self.output_interval) <= 0:
            raise ConfigurationError(f"output_interval must be positive, got {self.output_interval}")
        if int(self.total_steps) < 0:
            raise ConfigurationError(f"total_steps must not be negative, got {self.total_steps}")
        if int(self.metrics_interval) < 0:
            raise ConfigurationError(f"metrics_interval must not be negative, got {self.metrics_interval}")


def load_config(config_path: Path) -> ErosionConfig:
    """Loads configuration from a YAML file into the dataclass."""
    with open(config_path, 'r') as f:
        config_dict = yaml.safe_load(f) or {}

    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {config_path}")

    # Create a config instance and update it from the file
    config = ErosionConfig()
    for key, value in config_dict.items():
        if hasattr(config, key) and not isinstance(getattr(type(config), key, None), property):
            setattr(config, key, value)
        else:
            logger.warning(f"Unknown configuration key '{key}' in {config_path}")

    config.validate()
    return config
