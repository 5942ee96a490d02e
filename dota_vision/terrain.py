"""Terrain model built from the decoded map data raster.

The map data image is five ``grid_width x grid_height`` bands laid side by
side, left to right:

  band 0  elevation     red channel is the cell's terrain height (0-255)
  band 1  tree markers  a pixel with green == blue == 0 marks a tree; red is
                        the height of the ground it stands on
  band 2  gridnav       red == 0 marks an unwalkable cell
  band 3  fow blockers  red == 0 marks a cell that is always vision-opaque
  band 4  no wards      red == 0 marks a cell where wards may not be placed

This layout is shared with existing map assets, so it is fixed.

Bands are read through a ``TerrainSource``: anything that can load itself
and then scan a rectangle of pixels, reporting ``(x, y, (r, g, b))`` in
coordinates local to the rectangle. ``RasterTerrainSource`` serves an
in-memory numpy array; ``terrain_io.ImageTerrainSource`` decodes a PNG with
Pillow.

Trees are 2x2 tiles. The marker pixel is the tree origin rounded up, i.e.
the top-right tile of the footprint, so the true origin sits half a tile
down-left of it and the footprint is every floor/ceil combination of that
origin. Several trees may share a footprint corner; ``tree_relations``
keeps every tree per corner.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

import numpy as np

from .coords import GridTransform, xy2key, xy2pt
from .errors import InitializationError
from .types import TREE_ELEVATION_OFFSET, Tree

logger = logging.getLogger(__name__)

BAND_ELEVATION = 0
BAND_TREES = 1
BAND_GRIDNAV = 2
BAND_FOW_BLOCKERS = 3
BAND_NO_WARDS = 4
BAND_COUNT = 5

# Channel value marking a blocked cell in the gridnav/fow/no-wards bands.
BLOCKED_VALUE = 0

Pixel = tuple[int, int, int]
PixelHandler = Callable[[int, int, Pixel], None]
Cell = tuple[int, int]


class TerrainSource(Protocol):
    def load(self) -> None: ...

    @property
    def size(self) -> tuple[int, int]: ...

    def scan(
        self, offset: int, width: int, height: int, handler: PixelHandler
    ) -> None: ...


class RasterTerrainSource:
    """Terrain source over an RGB(A) array of shape ``(rows, cols, channels)``."""

    def __init__(self, pixels: np.ndarray | None = None) -> None:
        self.pixels = pixels

    def load(self) -> None:
        if self.pixels is None:
            raise InitializationError("no raster data")
        if self.pixels.ndim != 3 or self.pixels.shape[2] < 3:
            raise InitializationError(
                f"expected an RGB raster, got shape {self.pixels.shape}"
            )

    @property
    def size(self) -> tuple[int, int]:
        rows, cols = self.pixels.shape[:2]
        return cols, rows

    def scan(
        self, offset: int, width: int, height: int, handler: PixelHandler
    ) -> None:
        region = self.pixels[:height, offset : offset + width, :3].tolist()
        for y, row in enumerate(region):
            for x, (r, g, b) in enumerate(row):
                handler(x, y, (r, g, b))


@dataclass
class Terrain:
    width: int
    height: int
    elevation: np.ndarray
    elevation_values: tuple[int, ...]
    trees: dict[str, Tree]
    tree_relations: dict[Cell, list[str]]
    gridnav: np.ndarray
    fow_blockers: np.ndarray
    no_wards: np.ndarray

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def trees_at(self, x: int, y: int) -> list[Tree]:
        return [self.trees[k] for k in self.tree_relations.get((x, y), ())]


def _frozen(a: np.ndarray) -> np.ndarray:
    a.flags.writeable = False
    return a


def _parse_blockers(
    source: TerrainSource, band: int, transform: GridTransform
) -> np.ndarray:
    w, h = transform.grid_width, transform.grid_height
    grid = np.zeros((w, h), dtype=bool)

    def handler(x: int, y: int, p: Pixel) -> None:
        if p[0] == BLOCKED_VALUE:
            gx, gy = transform.image_to_grid(x, y)
            grid[gx, gy] = True

    source.scan(band * w, w, h, handler)
    return _frozen(grid)


def _parse_elevation(
    source: TerrainSource, transform: GridTransform
) -> tuple[np.ndarray, tuple[int, ...]]:
    w, h = transform.grid_width, transform.grid_height
    rows = [[0] * h for _ in range(w)]
    seen: set[int] = set()

    def handler(x: int, y: int, p: Pixel) -> None:
        gx, gy = transform.image_to_grid(x, y)
        rows[gx][gy] = p[0]
        seen.add(p[0])

    source.scan(BAND_ELEVATION * w, w, h, handler)
    return _frozen(np.array(rows, dtype=np.int16)), tuple(sorted(seen))


def _parse_trees(
    source: TerrainSource, transform: GridTransform
) -> tuple[dict[str, Tree], dict[Cell, list[str]]]:
    w, h = transform.grid_width, transform.grid_height
    trees: dict[str, Tree] = {}
    relations: dict[Cell, list[str]] = {}

    def handler(x: int, y: int, p: Pixel) -> None:
        if p[1] != 0 or p[2] != 0:
            return
        gx, gy = transform.image_to_grid(x, y)
        ox, oy = gx - 0.5, gy - 0.5
        key = xy2key(ox, oy)
        corners = tuple(
            xy2pt(fx(ox), fy(oy))
            for fx in (math.floor, math.ceil)
            for fy in (math.floor, math.ceil)
        )
        trees[key] = Tree(
            x=ox,
            y=oy,
            key=key,
            elevation=p[0] + TREE_ELEVATION_OFFSET,
            corners=corners,
        )
        for c in corners:
            relations.setdefault((c.x, c.y), []).append(key)

    source.scan(BAND_TREES * w, w, h, handler)
    return trees, relations


def encode_raster(
    elevation: np.ndarray,
    trees: Iterable[tuple[int, int, int]] = (),
    gridnav: np.ndarray | None = None,
    fow_blockers: np.ndarray | None = None,
    no_wards: np.ndarray | None = None,
) -> np.ndarray:
    """Lay grid layers out as a map data raster (the inverse of parsing).

    Used to author map data for custom or edited maps; write the result
    with ``terrain_io.save_map_image`` or feed it to ``RasterTerrainSource``.

    ``elevation`` and the blocker masks are indexed ``[x, y]`` in grid
    coordinates. ``trees`` holds ``(x, y, ground)`` marker cells, where
    ``ground`` is the red value of the marker (tree height minus 40).
    Returns an ``(rows, cols, 3)`` uint8 array.
    """
    w, h = elevation.shape
    img = np.full((h, w * BAND_COUNT, 3), 255, dtype=np.uint8)

    def band(i: int) -> np.ndarray:
        return img[:, i * w : (i + 1) * w]

    def to_image(a: np.ndarray) -> np.ndarray:
        # grid [x, y] -> image [h - y - 1, x]
        return np.flipud(np.asarray(a).T)

    band(BAND_ELEVATION)[:, :, 0] = to_image(elevation)
    for x, y, ground in trees:
        band(BAND_TREES)[h - y - 1, x] = (ground, 0, 0)
    for i, mask in (
        (BAND_GRIDNAV, gridnav),
        (BAND_FOW_BLOCKERS, fow_blockers),
        (BAND_NO_WARDS, no_wards),
    ):
        if mask is not None:
            band(i)[to_image(mask).astype(bool)] = BLOCKED_VALUE
    return img


def build_terrain(source: TerrainSource, transform: GridTransform) -> Terrain:
    """Parse all five bands of a loaded source into a ``Terrain``.

    Raises InitializationError if the source is too small to hold them.
    """
    w, h = transform.grid_width, transform.grid_height
    src_w, src_h = source.size
    if src_w < w * BAND_COUNT or src_h < h:
        raise InitializationError(
            f"map data is {src_w}x{src_h}, need at least "
            f"{w * BAND_COUNT}x{h} for a {w}x{h} grid"
        )

    t0 = time.perf_counter()
    gridnav = _parse_blockers(source, BAND_GRIDNAV, transform)
    fow_blockers = _parse_blockers(source, BAND_FOW_BLOCKERS, transform)
    no_wards = _parse_blockers(source, BAND_NO_WARDS, transform)
    trees, relations = _parse_trees(source, transform)
    elevation, elevation_values = _parse_elevation(source, transform)
    logger.debug(
        "parsed %dx%d terrain: %d trees, %d elevation levels in %.1f ms",
        w,
        h,
        len(trees),
        len(elevation_values),
        (time.perf_counter() - t0) * 1000,
    )

    return Terrain(
        width=w,
        height=h,
        elevation=elevation,
        elevation_values=elevation_values,
        trees=trees,
        tree_relations=relations,
        gridnav=gridnav,
        fow_blockers=fow_blockers,
        no_wards=no_wards,
    )


def load_terrain(source: TerrainSource, transform: GridTransform) -> Terrain:
    """Load a source and build its terrain, normalizing failures.

    Any error from the source (missing file, decode failure, bad shape)
    surfaces as InitializationError.
    """
    t0 = time.perf_counter()
    try:
        source.load()
    except InitializationError:
        raise
    except Exception as e:
        raise InitializationError(f"could not load map data: {e}") from e
    logger.debug("map data loaded in %.1f ms", (time.perf_counter() - t0) * 1000)
    return build_terrain(source, transform)
