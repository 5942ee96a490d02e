"""Precise shadowcasting field of view on a square (8-connected) grid.

The sweep walks outward from the observer in square rings: ring r is the
8r cells at Chebyshev distance r. Each ring cell covers an equal slice of
the full circle; going round ring r, cell i spans the angular interval
``[(2i - 1) / 16r, (2i + 1) / 16r]`` (in turns), shifted half a cell back so
that cell 0 straddles angle zero.

Shadows are kept as a sorted flat list of interval endpoints
``[start0, end0, start1, end1, ...]``, each endpoint an exact fraction
``(numerator, denominator)`` compared by cross-multiplication. A cell is
visible in proportion to how much of its interval is not yet shadowed.
An opaque cell is itself reported (you can see a wall) and merges its own
interval into the shadow list, hiding what lies behind it.

Once a single shadow covers the whole circle the sweep stops.

The function is pure: opacity comes in as a predicate, results go out as a
return value. Nothing is read from or written to shared state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

Fraction = tuple[int, int]

# Ring walking directions for 8-topology: up, right, down, left.
_RING_DIRS = ((0, -1), (1, 0), (0, 1), (-1, 0))


@dataclass
class SweepResult:
    """Cells reached by a sweep.

    ``cells`` maps ``(x, y)`` to the visible fraction of the cell in
    (0, 1]. ``area`` is every cell the sweep examined, visible or not.
    """

    cells: dict[tuple[int, int], float] = field(default_factory=dict)
    area: int = 0

    def fully_visible(self) -> list[tuple[int, int]]:
        return [c for c, v in self.cells.items() if v == 1]


def ring(cx: int, cy: int, r: int) -> list[tuple[int, int]]:
    """Cells at Chebyshev distance ``r``, starting at (cx - r, cy + r)."""
    x = cx - r
    y = cy + r
    result = []
    for dx, dy in _RING_DIRS:
        for _ in range(2 * r):
            result.append((x, y))
            x += dx
            y += dy
    return result


def _check_visibility(
    a1: Fraction, a2: Fraction, blocks: bool, shadows: list[Fraction]
) -> float:
    """Visible fraction of arc [a1, a2]; merges it into ``shadows`` if opaque."""
    if a1[0] > a2[0]:
        # Arc wraps past angle zero: split it into two sub-arcs.
        v1 = _check_visibility(a1, (a1[1], a1[1]), blocks, shadows)
        v2 = _check_visibility((0, 1), a2, blocks, shadows)
        return (v1 + v2) / 2

    # index1: first shadow endpoint >= a1
    index1 = 0
    edge1 = False
    while index1 < len(shadows):
        old = shadows[index1]
        diff = old[0] * a1[1] - a1[0] * old[1]
        if diff >= 0:
            if diff == 0 and not index1 % 2:
                edge1 = True
            break
        index1 += 1

    # index2: last shadow endpoint <= a2
    index2 = len(shadows) - 1
    edge2 = False
    while index2 >= 0:
        old = shadows[index2]
        diff = a2[0] * old[1] - old[0] * a2[1]
        if diff >= 0:
            if diff == 0 and index2 % 2:
                edge2 = True
            break
        index2 -= 1

    if index1 == index2 and (edge1 or edge2):
        # inside one shadow, touching an edge
        return 0.0
    if edge1 and edge2 and index1 + 1 == index2 and index2 % 2:
        # exactly an existing shadow
        return 0.0
    if index1 > index2 and index1 % 2:
        # strictly inside one shadow
        return 0.0

    remove = index2 - index1 + 1
    if remove % 2:
        if index1 % 2:
            # a1 in shadow, a2 in light
            p = shadows[index1]
            visible_length = (a2[0] * p[1] - p[0] * a2[1]) / (p[1] * a2[1])
            if blocks:
                shadows[index1 : index1 + remove] = [a2]
        else:
            # a1 in light, a2 in shadow
            p = shadows[index2]
            visible_length = (p[0] * a1[1] - a1[0] * p[1]) / (a1[1] * p[1])
            if blocks:
                shadows[index1 : index1 + remove] = [a1]
    else:
        if index1 % 2:
            # both ends shadowed, light in between
            p1 = shadows[index1]
            p2 = shadows[index2]
            visible_length = (p2[0] * p1[1] - p1[0] * p2[1]) / (p1[1] * p2[1])
            if blocks:
                del shadows[index1 : index1 + remove]
        else:
            # both ends in light
            if blocks:
                shadows[index1 : index1 + remove] = [a1, a2]
            return 1.0

    arc_length = (a2[0] * a1[1] - a1[0] * a2[1]) / (a1[1] * a2[1])
    return visible_length / arc_length


def precise_shadowcast(
    ox: int,
    oy: int,
    radius: int,
    is_opaque: Callable[[int, int], bool],
) -> SweepResult:
    """Compute which cells within ``radius`` of (ox, oy) can be seen.

    The origin is always visible. If the origin itself is opaque nothing
    else is.
    """
    result = SweepResult()
    result.cells[(ox, oy)] = 1.0
    result.area = 1
    if is_opaque(ox, oy):
        return result

    shadows: list[Fraction] = []
    for r in range(1, radius + 1):
        cells = ring(ox, oy, r)
        n = len(cells)
        for i, (cx, cy) in enumerate(cells):
            a1 = (2 * i - 1 if i else 2 * n - 1, 2 * n)
            a2 = (2 * i + 1, 2 * n)
            result.area += 1
            visibility = _check_visibility(a1, a2, is_opaque(cx, cy), shadows)
            if visibility:
                result.cells[(cx, cy)] = visibility
            if (
                len(shadows) == 2
                and shadows[0][0] == 0
                and shadows[1][0] == shadows[1][1]
            ):
                return result
    return result
