"""Data types for the vision simulation.

World bounds arrive as the ``worlddata`` dict shipped with the map assets
(``worldMinX`` / ``worldMinY`` / ``worldMaxX`` / ``worldMaxY``). Everything
else here is produced by the simulation itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ConfigError

# World units per grid tile.
TILE_SIZE = 64

# Default vision radius, in tiles (1600 world units).
DEFAULT_RADIUS = 1600 // TILE_SIZE

# Extra blocking height trees always have over the terrain they stand on.
TREE_ELEVATION_OFFSET = 40

# Value stored in ``LightMap.lights`` for a lit cell.
LIGHT_VALUE = 255


@dataclass(frozen=True)
class WorldBounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self) -> None:
        for name, span in (
            ("x", self.max_x - self.min_x),
            ("y", self.max_y - self.min_y),
        ):
            if span < 0:
                raise ConfigError(f"world {name} range is inverted: {span}")
            if span % TILE_SIZE != 0:
                raise ConfigError(
                    f"world {name} range {span} is not a multiple of "
                    f"{TILE_SIZE}; grid size would be non-integral"
                )

    @property
    def grid_width(self) -> int:
        return int((self.max_x - self.min_x) // TILE_SIZE) + 1

    @property
    def grid_height(self) -> int:
        return int((self.max_y - self.min_y) // TILE_SIZE) + 1

    @staticmethod
    def from_dict(d: dict) -> WorldBounds:
        try:
            return WorldBounds(
                min_x=d["worldMinX"],
                min_y=d["worldMinY"],
                max_x=d["worldMaxX"],
                max_y=d["worldMaxY"],
            )
        except KeyError as e:
            raise ConfigError(f"world data is missing {e.args[0]}") from e

    def to_dict(self) -> dict:
        return {
            "worldMinX": self.min_x,
            "worldMinY": self.min_y,
            "worldMaxX": self.max_x,
            "worldMaxY": self.max_y,
        }


@dataclass(frozen=True)
class Point:
    x: int
    y: int
    key: str


@dataclass
class Tree:
    """A 2x2 tree. ``x``/``y`` is the half-integer origin of its footprint."""

    x: float
    y: float
    key: str
    elevation: int
    corners: tuple[Point, ...]
    standing: bool = True


@dataclass
class LightMap:
    lights: dict[str, int] = field(default_factory=dict)
    area: int = 0
    elevation: int | None = None
    origin: tuple[int, int] | None = None
    radius: int = 0

    @property
    def light_area(self) -> int:
        return len(self.lights)
