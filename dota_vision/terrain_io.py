"""Load map data images and world bounds from disk.

``ImageTerrainSource`` decodes the map data PNG with Pillow and serves it
through the ``TerrainSource`` scan interface. ``load_world_bounds`` reads the
``worlddata.json`` that accompanies each map image. ``save_map_image`` writes
an authored raster back out.
"""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
from PIL import Image

from .terrain import RasterTerrainSource
from .types import WorldBounds


class ImageTerrainSource(RasterTerrainSource):
    """Terrain source backed by an image file, decoded on ``load()``."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)

    def load(self) -> None:
        with Image.open(self.path) as img:
            self.pixels = np.asarray(img.convert("RGB"))
        super().load()


def save_map_image(pixels: np.ndarray, path: str | Path) -> None:
    """Write an RGB map data raster (see ``terrain.encode_raster``) as a PNG."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(path)


def load_world_bounds(path: str | Path) -> WorldBounds:
    """Read world bounds from a ``worlddata.json`` file.

    Raises ConfigError if keys are missing or the bounds are not a whole
    number of tiles.
    """
    with open(path) as f:
        return WorldBounds.from_dict(json.load(f))


def save_world_bounds(bounds: WorldBounds, path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(bounds.to_dict(), f, indent=2)
        f.write("\n")
