"""Line-of-sight simulation for Dota 2 maps."""

from .errors import (
    ConfigError,
    InitializationError,
    InvalidOriginError,
    NotReadyError,
    VisionSimulationError,
)
from .simulation import VisionSimulation
from .terrain import RasterTerrainSource, encode_raster
from .terrain_io import (
    ImageTerrainSource,
    load_world_bounds,
    save_map_image,
    save_world_bounds,
)
from .types import LightMap, WorldBounds

__all__ = [
    "ConfigError",
    "ImageTerrainSource",
    "InitializationError",
    "InvalidOriginError",
    "LightMap",
    "NotReadyError",
    "RasterTerrainSource",
    "VisionSimulation",
    "VisionSimulationError",
    "WorldBounds",
    "encode_raster",
    "load_world_bounds",
    "save_map_image",
    "save_world_bounds",
]
