"""Vision simulation for one map.

``VisionSimulation`` ties the pieces together:

  * ``initialize`` loads terrain from a ``TerrainSource`` and builds the
    obstruction caches. Loading may run on an executor. Each call takes a
    new generation token, and a load that finishes after a newer
    ``initialize`` call is dropped instead of overwriting the newer state.
  * ``update_visibility`` computes the light map from one cell.
  * ``toggle_tree`` cuts or regrows the trees at a footprint corner and
    keeps the tree walls of every elevation level in step.
  * ``is_valid_xy`` answers placement questions (bounds, gridnav, no-ward
    zones, standing trees).

Until a load succeeds, ``update_visibility`` and ``toggle_tree`` raise
NotReadyError and ``is_valid_xy`` returns False.

A light map only counts cells the sweep saw in full. On top of the
sweep's geometry, fow blocker cells are never lit, and neither is a cell
under a standing tree taller than the observer: you see the tree, not the
ground beneath it. When trees share a corner, the corner counts as covered
if any of them qualifies.

An instance is meant to be driven by one caller at a time; only the
completion of a background load is synchronized.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from types import MappingProxyType
from typing import Callable, Mapping

from .coords import GridTransform, PointCache, pt2key, xy2key, xy2pt
from .errors import InitializationError, InvalidOriginError, NotReadyError
from .obstruction import ObstructionModel
from .shadowcast import precise_shadowcast
from .terrain import Terrain, TerrainSource, load_terrain
from .types import DEFAULT_RADIUS, LIGHT_VALUE, LightMap, Point, Tree, WorldBounds

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[InitializationError | None], None]


class VisionSimulation:
    def __init__(
        self, bounds: WorldBounds | dict, radius: int | None = None
    ) -> None:
        if isinstance(bounds, dict):
            bounds = WorldBounds.from_dict(bounds)
        self.bounds = bounds
        self.transform = GridTransform(bounds)
        self.grid_width = self.transform.grid_width
        self.grid_height = self.transform.grid_height
        self.radius = DEFAULT_RADIUS if radius is None else radius
        self.points = PointCache()
        self.light_map = LightMap()
        self._obstruction: ObstructionModel | None = None
        self._generation = 0
        self._lock = threading.Lock()

    # -- initialization --

    @property
    def ready(self) -> bool:
        return self._obstruction is not None

    @property
    def generation(self) -> int:
        return self._generation

    def initialize(
        self,
        source: TerrainSource,
        on_ready: ReadyCallback | None = None,
        executor: Executor | None = None,
    ) -> Future:
        """Start loading terrain from ``source``.

        Without an executor the load runs before this returns. ``on_ready``
        is called once with None or the InitializationError, unless a newer
        ``initialize`` call has superseded this one by the time it finishes.
        """
        with self._lock:
            self._generation += 1
            token = self._generation
            self._obstruction = None
            self.light_map = LightMap()
            self.points.clear()

        if executor is None:
            future: Future = Future()
            try:
                future.set_result(self._build(source))
            except Exception as e:
                future.set_exception(e)
            # errors raised by on_ready propagate to the caller
            self._finish_initialize(token, future, on_ready)
            return future

        future = executor.submit(self._build, source)
        future.add_done_callback(
            lambda f: self._finish_initialize(token, f, on_ready)
        )
        return future

    def _build(self, source: TerrainSource) -> ObstructionModel:
        return ObstructionModel(load_terrain(source, self.transform))

    def _finish_initialize(
        self, token: int, future: Future, on_ready: ReadyCallback | None
    ) -> None:
        err = future.exception()
        if err is not None and not isinstance(err, InitializationError):
            wrapped = InitializationError(f"terrain build failed: {err}")
            wrapped.__cause__ = err
            err = wrapped

        with self._lock:
            if token != self._generation:
                logger.debug(
                    "discarding terrain load %d, current is %d",
                    token,
                    self._generation,
                )
                return
            if err is None:
                self._obstruction = future.result()
            else:
                logger.warning("terrain load %d failed: %s", token, err)

        if on_ready is not None:
            on_ready(err)

    def _require_ready(self) -> ObstructionModel:
        model = self._obstruction
        if model is None:
            raise NotReadyError("terrain has not finished loading")
        return model

    @property
    def terrain(self) -> Terrain:
        return self._require_ready().terrain

    @property
    def obstruction(self) -> ObstructionModel:
        return self._require_ready()

    # -- visibility --

    def set_radius(self, r: int) -> None:
        self.radius = r

    def update_visibility(
        self, gx: int, gy: int, radius: int | None = None
    ) -> LightMap:
        """Recompute the light map as seen from grid cell (gx, gy).

        Replaces the previous light map and returns the new one.
        """
        model = self._require_ready()
        terrain = model.terrain
        if radius is None:
            radius = self.radius
        if radius < 0:
            raise ValueError(f"radius must be non-negative, got {radius}")
        if not terrain.in_bounds(gx, gy):
            raise InvalidOriginError(
                f"({gx}, {gy}) is outside the "
                f"{terrain.width}x{terrain.height} grid"
            )

        elevation = int(terrain.elevation[gx, gy])
        sweep = precise_shadowcast(gx, gy, radius, model.opacity(elevation))

        hidden = terrain.fow_blockers | model.tree_walls(elevation).mask()
        lights: dict[str, int] = {}
        for x, y in sweep.fully_visible():
            if terrain.in_bounds(x, y) and not hidden[x, y]:
                lights[xy2key(x, y)] = LIGHT_VALUE

        self.light_map = LightMap(
            lights=lights,
            area=sweep.area,
            elevation=elevation,
            origin=(gx, gy),
            radius=radius,
        )
        return self.light_map

    @property
    def lights(self) -> dict[str, int]:
        return self.light_map.lights

    @property
    def light_area(self) -> int:
        return self.light_map.light_area

    @property
    def area(self) -> int:
        return self.light_map.area

    @property
    def elevation(self) -> int | None:
        return self.light_map.elevation

    # -- trees --

    @property
    def trees(self) -> Mapping[str, Tree]:
        return MappingProxyType(self.terrain.trees)

    def trees_at(self, x: int, y: int) -> list[Tree]:
        return self.terrain.trees_at(x, y)

    def toggle_tree(self, x: int, y: int) -> bool:
        """Cut or regrow every tree whose footprint has a corner at (x, y).

        Returns False, changing nothing, if the cell is off the grid or no
        tree covers it.
        """
        model = self._require_ready()
        if not model.terrain.in_bounds(x, y):
            return False
        trees = model.terrain.trees_at(x, y)
        if not trees:
            return False
        for tree in trees:
            tree.standing = not tree.standing
            model.update_tree(tree)
            logger.debug(
                "tree %s %s", tree.key, "regrown" if tree.standing else "cut"
            )
        return True

    # -- placement --

    def is_valid_xy(
        self,
        x: int,
        y: int,
        check_gridnav: bool = False,
        check_no_wards: bool = False,
        check_tree_state: bool = False,
    ) -> bool:
        model = self._obstruction
        if model is None:
            return False
        terrain = model.terrain
        if not terrain.in_bounds(x, y):
            return False
        if check_gridnav and terrain.gridnav[x, y]:
            return False
        if check_no_wards and terrain.no_wards[x, y]:
            return False
        if check_tree_state and any(
            t.standing for t in terrain.trees_at(x, y)
        ):
            return False
        return True

    # -- coordinates --

    def key2pt(self, key: str) -> Point:
        return self.points.key2pt(key)

    xy2key = staticmethod(xy2key)
    xy2pt = staticmethod(xy2pt)
    pt2key = staticmethod(pt2key)

    def world_to_grid(
        self, wx: float, wy: float, exact: bool = False
    ) -> tuple[float, float]:
        return self.transform.world_to_grid(wx, wy, exact)

    def grid_to_world(self, gx: float, gy: float) -> tuple[float, float]:
        return self.transform.grid_to_world(gx, gy)

    def grid_to_image(self, gx: int, gy: int) -> tuple[int, int]:
        return self.transform.grid_to_image(gx, gy)

    def image_to_grid(self, ix: int, iy: int) -> tuple[int, int]:
        return self.transform.image_to_grid(ix, iy)

    def world_to_image(self, wx: float, wy: float) -> tuple[int, int]:
        return self.transform.world_to_image(wx, wy)

    # Names used by existing map tooling.
    updateVisibility = update_visibility
    toggleTree = toggle_tree
    isValidXY = is_valid_xy
    setRadius = set_radius
    WorldXYtoGridXY = world_to_grid
    GridXYtoWorldXY = grid_to_world
    GridXYtoImageXY = grid_to_image
    ImageXYtoGridXY = image_to_grid
    WorldXYtoImageXY = world_to_image
