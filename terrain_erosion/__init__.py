"""Hydraulic and thermal erosion of a terrain height field."""
from terrain_erosion.config import (
    BrushStroke,
    ConfigurationError,
    ErosionConfig,
    ErosionError,
    InvalidPaintModeError,
    PaintMode,
    load_config,
)
from terrain_erosion.grid import GridState
from terrain_erosion.simulation import ClockState, ErosionSimulation
from terrain_erosion.sources import ArrayHeightSource, NpyHeightSource, TerrainNormals, ValleyHeightSource
