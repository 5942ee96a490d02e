"""Tests for the precise shadowcasting sweep."""

from dota_vision.shadowcast import _check_visibility, precise_shadowcast, ring


def _open(x, y):
    return False


def _walls(cells):
    cells = set(cells)
    return lambda x, y: (x, y) in cells


def _chebyshev_square(cx, cy, r):
    return {
        (x, y)
        for x in range(cx - r, cx + r + 1)
        for y in range(cy - r, cy + r + 1)
    }


class TestRing:
    def test_sizes(self):
        for r in range(1, 6):
            cells = ring(0, 0, r)
            assert len(cells) == 8 * r
            assert len(set(cells)) == 8 * r

    def test_cells_at_chebyshev_distance(self):
        for x, y in ring(3, -2, 4):
            assert max(abs(x - 3), abs(y + 2)) == 4

    def test_start(self):
        assert ring(0, 0, 1)[0] == (-1, 1)


class TestCheckVisibility:
    def test_empty_shadows_fully_visible(self):
        shadows = []
        assert _check_visibility((1, 8), (3, 8), False, shadows) == 1
        assert shadows == []

    def test_blocking_adds_shadow(self):
        shadows = []
        _check_visibility((1, 8), (3, 8), True, shadows)
        assert shadows == [(1, 8), (3, 8)]

    def test_inside_shadow_hidden(self):
        shadows = [(1, 8), (3, 8)]
        assert _check_visibility((5, 32), (7, 32), False, shadows) == 0

    def test_partial(self):
        shadows = [(1, 8), (3, 8)]
        v = _check_visibility((2, 8), (4, 8), False, shadows)
        assert 0 < v < 1


class TestPreciseShadowcast:
    def test_radius_zero(self):
        result = precise_shadowcast(4, 4, 0, _open)
        assert result.cells == {(4, 4): 1.0}
        assert result.area == 1

    def test_open_field_is_chebyshev_square(self):
        result = precise_shadowcast(0, 0, 5, _open)
        assert set(result.fully_visible()) == _chebyshev_square(0, 0, 5)
        assert len(result.cells) == 121
        assert result.area == 121

    def test_opaque_origin_sees_only_itself(self):
        result = precise_shadowcast(0, 0, 5, _walls([(0, 0)]))
        assert result.cells == {(0, 0): 1.0}
        assert result.area == 1

    def test_wall_is_seen_but_hides_what_is_behind(self):
        result = precise_shadowcast(0, 0, 6, _walls([(2, 0)]))
        visible = set(result.fully_visible())
        assert (1, 0) in visible
        assert (2, 0) in visible
        assert (3, 0) not in result.cells
        assert (6, 0) not in result.cells
        assert (0, 6) in visible
        assert (-6, 0) in visible

    def test_enclosed_origin_stops_early(self):
        result = precise_shadowcast(0, 0, 10, _walls(ring(0, 0, 1)))
        assert set(result.cells) == _chebyshev_square(0, 0, 1)
        assert result.area == 9

    def test_full_wall_line_blocks_half_plane(self):
        wall = [(2, y) for y in range(-20, 21)]
        result = precise_shadowcast(0, 0, 8, _walls(wall))
        for x, _y in result.cells:
            assert x <= 2

    def test_only_reads_through_predicate(self):
        seen = []

        def record(x, y):
            seen.append((x, y))
            return False

        result = precise_shadowcast(1, 1, 2, record)
        assert seen[0] == (1, 1)
        assert set(seen) == _chebyshev_square(1, 1, 2)
        assert result.area == len(seen)

    def test_deterministic(self):
        walls = _walls([(2, 1), (-1, 3), (0, -2), (3, 3)])
        a = precise_shadowcast(0, 0, 7, walls)
        b = precise_shadowcast(0, 0, 7, walls)
        assert a.cells == b.cells
        assert a.area == b.area

    def test_larger_radius_sees_superset(self):
        walls = _walls([(2, 1), (-1, 3), (0, -2), (3, 3), (-4, -4)])
        small = set(precise_shadowcast(0, 0, 3, walls).fully_visible())
        large = set(precise_shadowcast(0, 0, 7, walls).fully_visible())
        assert small <= large
