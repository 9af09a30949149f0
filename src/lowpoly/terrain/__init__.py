"""Procedural low-poly terrain tile generation package.

This package implements a seeded pipeline that triangulates a rectangular
tile, lifts it with multi-octave noise, routes a road and a river across
it, places decorations, and builds flat-shaded mesh buffers.
"""

from .config import TerrainConfig
from .generator import (
    GenerationContext,
    GenerationResult,
    GenerationRun,
    generate_and_save_terrain,
    generate_terrain,
)
from .persistence import load_tile, save_tile
from .validation import ValidationResult, validate_terrain

__all__ = [
    "GenerationContext",
    "GenerationResult",
    "GenerationRun",
    "TerrainConfig",
    "ValidationResult",
    "generate_and_save_terrain",
    "generate_terrain",
    "load_tile",
    "save_tile",
    "validate_terrain",
]
