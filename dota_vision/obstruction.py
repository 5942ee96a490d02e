"""Per-elevation obstruction caches and the combined opacity predicate.

Whether a cell blocks vision depends on the observer's elevation E:

  elevation walls  Cells higher than E that touch (8-neighbour) a cell at or
                   below E. This is the contour line of the high ground: an
                   observer below it can see the cliff edge but nothing
                   behind it. Terrain never changes, so each E's wall mask
                   is computed on first use and kept forever.
  tree walls       Footprint corners of standing trees taller than E. Trees
                   can be cut and regrown, so every level's set is kept in
                   step with the tree registry on each toggle, not just the
                   level being viewed right now.
  fow blockers     Always opaque, independent of E.

Gridnav and no-ward cells are placement rules and never block vision.

``TreeWallSet`` mirrors its corner lists in a per-cell count array so the
opacity mask for a level can be assembled with a couple of array ops.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import numpy as np

from .terrain import Cell, Terrain
from .types import Tree

logger = logging.getLogger(__name__)

OpacityFn = Callable[[int, int], bool]

_NEIGHBOR_OFFSETS = [
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if dx or dy
]


def generate_elevation_walls(elevation: np.ndarray, level: int) -> np.ndarray:
    """Boolean mask of cells above ``level`` with a neighbour at or below it.

    Neighbours outside the grid are ignored.
    """
    w, h = elevation.shape
    low = np.pad(elevation <= level, 1, constant_values=False)
    near_low = np.zeros((w, h), dtype=bool)
    for dx, dy in _NEIGHBOR_OFFSETS:
        near_low |= low[1 + dx : 1 + dx + w, 1 + dy : 1 + dy + h]
    return (elevation > level) & near_low


class TreeWallSet:
    """Tree walls seen by an observer at one elevation level."""

    def __init__(self, level: int, width: int, height: int) -> None:
        self.level = level
        self.walls: dict[Cell, list[str]] = {}
        self._count = np.zeros((width, height), dtype=np.int32)

    def _bump(self, x: int, y: int, n: int) -> None:
        w, h = self._count.shape
        if 0 <= x < w and 0 <= y < h:
            self._count[x, y] += n

    def add(self, tree: Tree) -> None:
        for c in tree.corners:
            self.walls.setdefault((c.x, c.y), []).append(tree.key)
            self._bump(c.x, c.y, 1)

    def remove(self, tree: Tree) -> None:
        for c in tree.corners:
            keys = self.walls.get((c.x, c.y))
            if not keys:
                continue
            kept = [k for k in keys if k != tree.key]
            self._bump(c.x, c.y, len(kept) - len(keys))
            keys[:] = kept

    def has_wall(self, x: int, y: int) -> bool:
        return bool(self.walls.get((x, y)))

    def mask(self) -> np.ndarray:
        return self._count > 0

    def snapshot(self) -> dict[Cell, list[str]]:
        """Non-empty corners with their tree keys, sorted, for comparison."""
        return {c: sorted(keys) for c, keys in self.walls.items() if keys}


class ObstructionModel:
    def __init__(self, terrain: Terrain) -> None:
        self.terrain = terrain
        self._elevation_walls: dict[int, np.ndarray] = {}
        self._tree_walls: dict[int, TreeWallSet] = {}

        t0 = time.perf_counter()
        for level in terrain.elevation_values:
            self.tree_walls(level)
        logger.debug(
            "tree walls for %d levels built in %.1f ms",
            len(self._tree_walls),
            (time.perf_counter() - t0) * 1000,
        )

    @property
    def levels(self) -> list[int]:
        return sorted(self._tree_walls)

    def elevation_walls(self, level: int) -> np.ndarray:
        walls = self._elevation_walls.get(level)
        if walls is None:
            t0 = time.perf_counter()
            walls = generate_elevation_walls(self.terrain.elevation, level)
            walls.flags.writeable = False
            self._elevation_walls[level] = walls
            logger.debug(
                "elevation walls for level %d: %d cells in %.1f ms",
                level,
                int(walls.sum()),
                (time.perf_counter() - t0) * 1000,
            )
        return walls

    def tree_walls(self, level: int) -> TreeWallSet:
        """Tree walls for ``level``, built from the registry on first use.

        Once built, a level is patched by ``update_tree`` on every toggle.
        """
        walls = self._tree_walls.get(level)
        if walls is None:
            walls = TreeWallSet(level, self.terrain.width, self.terrain.height)
            for tree in self.terrain.trees.values():
                if tree.standing and tree.elevation > level:
                    walls.add(tree)
            self._tree_walls[level] = walls
        return walls

    def has_tree_wall(self, level: int, x: int, y: int) -> bool:
        return self.tree_walls(level).has_wall(x, y)

    def update_tree(self, tree: Tree) -> None:
        """Re-sync every level the tree is tall enough to block."""
        for level, walls in self._tree_walls.items():
            if level >= tree.elevation:
                continue
            walls.remove(tree)
            if tree.standing:
                walls.add(tree)

    def opacity_mask(self, level: int) -> np.ndarray:
        return (
            self.elevation_walls(level)
            | self.tree_walls(level).mask()
            | self.terrain.fow_blockers
        )

    def opacity(self, level: int) -> OpacityFn:
        """Predicate telling whether a cell blocks vision at ``level``.

        Cells outside the grid never block.
        """
        rows = self.opacity_mask(level).tolist()
        w, h = self.terrain.width, self.terrain.height

        def is_opaque(x: int, y: int) -> bool:
            return 0 <= x < w and 0 <= y < h and rows[x][y]

        return is_opaque
