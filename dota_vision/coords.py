"""Conversions between world, grid and image coordinates, plus cell keys.

Three coordinate spaces are in play:

  world   Game units. One tile is ``TILE_SIZE`` (64) units; the map spans
          ``[min_x, max_x] x [min_y, max_y]``.
  grid    Integer tile coordinates, ``0 <= x < grid_width``, with y growing
          north like the world.
  image   Pixel coordinates inside one band of the map data image. Same x as
          grid, y flipped because image rows grow downward.

Cell keys are the ``"x,y"`` strings used at the public boundary (light map
keys, tree ids). Internally the simulation indexes numpy arrays with
integers and only builds keys on the way out.
"""

from __future__ import annotations

import math

from .types import TILE_SIZE, Point, WorldBounds


def _fmt(v: float) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def xy2key(x: float, y: float) -> str:
    return f"{_fmt(x)},{_fmt(y)}"


def xy2pt(x: int, y: int) -> Point:
    return Point(x=x, y=y, key=xy2key(x, y))


def pt2key(pt: Point) -> str:
    return xy2key(pt.x, pt.y)


class PointCache:
    """Memo of key -> Point, owned by a single simulation instance."""

    def __init__(self) -> None:
        self._points: dict[str, Point] = {}

    def __len__(self) -> int:
        return len(self._points)

    def key2pt(self, key: str) -> Point:
        pt = self._points.get(key)
        if pt is None:
            sx, sy = key.split(",")
            pt = Point(x=int(sx), y=int(sy), key=key)
            self._points[key] = pt
        return pt

    def clear(self) -> None:
        self._points.clear()


def _round_half_up(v: float) -> int:
    return math.floor(v + 0.5)


class GridTransform:
    """Coordinate conversions for one set of world bounds."""

    def __init__(self, bounds: WorldBounds) -> None:
        self.bounds = bounds
        self.grid_width = bounds.grid_width
        self.grid_height = bounds.grid_height

    def in_bounds(self, gx: int, gy: int) -> bool:
        return 0 <= gx < self.grid_width and 0 <= gy < self.grid_height

    def world_to_grid(
        self, wx: float, wy: float, exact: bool = False
    ) -> tuple[float, float]:
        """Map world units to grid tiles.

        Rounds to the nearest tile (halves round up) unless ``exact`` is set,
        in which case the fractional tile position is returned.
        """
        x = (wx - self.bounds.min_x) / TILE_SIZE
        y = (wy - self.bounds.min_y) / TILE_SIZE
        if exact:
            return x, y
        return _round_half_up(x), _round_half_up(y)

    def grid_to_world(self, gx: float, gy: float) -> tuple[float, float]:
        return (
            gx * TILE_SIZE + self.bounds.min_x,
            gy * TILE_SIZE + self.bounds.min_y,
        )

    def grid_to_image(self, gx: int, gy: int) -> tuple[int, int]:
        return gx, self.grid_height - gy - 1

    def image_to_grid(self, ix: int, iy: int) -> tuple[int, int]:
        return ix, self.grid_height - iy - 1

    def world_to_image(self, wx: float, wy: float) -> tuple[int, int]:
        gx, gy = self.world_to_grid(wx, wy)
        return self.grid_to_image(gx, gy)
