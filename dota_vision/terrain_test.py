"""Tests for parsing map data rasters into terrain."""

import numpy as np
import pytest

from dota_vision.coords import GridTransform
from dota_vision.errors import InitializationError
from dota_vision.terrain import (
    BAND_COUNT,
    RasterTerrainSource,
    build_terrain,
    encode_raster,
    load_terrain,
)
from dota_vision.types import WorldBounds


def _transform(w, h):
    return GridTransform(
        WorldBounds(min_x=0, min_y=0, max_x=(w - 1) * 64, max_y=(h - 1) * 64)
    )


def _mask(w, h, cells):
    m = np.zeros((w, h), dtype=bool)
    for x, y in cells:
        m[x, y] = True
    return m


def _sample_raster():
    w, h = 8, 6
    elevation = np.zeros((w, h), dtype=np.int16)
    elevation[5:, :] = 128
    elevation[0, 0] = 7
    return encode_raster(
        elevation,
        trees=[(3, 3, 0), (6, 2, 128)],
        gridnav=_mask(w, h, [(1, 1)]),
        fow_blockers=_mask(w, h, [(2, 4), (7, 5)]),
        no_wards=_mask(w, h, [(0, 5)]),
    )


def _build(pixels):
    source = RasterTerrainSource(pixels)
    h = pixels.shape[0]
    w = pixels.shape[1] // BAND_COUNT
    return load_terrain(source, _transform(w, h))


class TestEncodeRaster:
    def test_shape(self):
        img = encode_raster(np.zeros((8, 6), dtype=np.int16))
        assert img.shape == (6, 40, 3)
        assert img.dtype == np.uint8

    def test_elevation_band_is_y_flipped(self):
        elevation = np.zeros((4, 3), dtype=np.int16)
        elevation[1, 0] = 9
        img = encode_raster(elevation)
        # grid (1, 0) is the bottom row of the image
        assert img[2, 1, 0] == 9
        assert img[0, 1, 0] == 0


class TestBuildTerrain:
    def test_elevation(self):
        t = _build(_sample_raster())
        assert t.elevation.shape == (8, 6)
        assert t.elevation[0, 0] == 7
        assert t.elevation[5, 3] == 128
        assert t.elevation[4, 3] == 0
        assert t.elevation_values == (0, 7, 128)

    def test_grids_are_read_only(self):
        t = _build(_sample_raster())
        with pytest.raises(ValueError):
            t.elevation[0, 0] = 1
        with pytest.raises(ValueError):
            t.gridnav[0, 0] = True

    def test_static_blockers(self):
        t = _build(_sample_raster())
        assert np.argwhere(t.gridnav).tolist() == [[1, 1]]
        assert np.argwhere(t.fow_blockers).tolist() == [[2, 4], [7, 5]]
        assert np.argwhere(t.no_wards).tolist() == [[0, 5]]

    def test_tree_origin_and_footprint(self):
        t = _build(_sample_raster())
        tree = t.trees["2.5,2.5"]
        assert (tree.x, tree.y) == (2.5, 2.5)
        assert tree.elevation == 40
        assert tree.standing
        assert sorted((c.x, c.y) for c in tree.corners) == [
            (2, 2),
            (2, 3),
            (3, 2),
            (3, 3),
        ]

    def test_tree_elevation_offset(self):
        t = _build(_sample_raster())
        assert t.trees["5.5,1.5"].elevation == 168

    def test_tree_relations(self):
        t = _build(_sample_raster())
        assert t.tree_relations[(3, 3)] == ["2.5,2.5"]
        assert t.tree_relations[(5, 2)] == ["5.5,1.5"]
        assert (4, 4) not in t.tree_relations
        assert [tr.key for tr in t.trees_at(2, 2)] == ["2.5,2.5"]
        assert t.trees_at(0, 0) == []

    def test_shared_corner(self):
        w, h = 8, 8
        img = encode_raster(
            np.zeros((w, h), dtype=np.int16), trees=[(5, 5, 0), (6, 6, 0)]
        )
        t = _build(img)
        assert sorted(t.tree_relations[(5, 5)]) == ["4.5,4.5", "5.5,5.5"]
        assert t.tree_relations[(4, 4)] == ["4.5,4.5"]
        assert t.tree_relations[(6, 6)] == ["5.5,5.5"]

    def test_black_pixel_is_a_tree(self):
        img = encode_raster(np.zeros((4, 4), dtype=np.int16))
        img[0, 4 + 1] = (0, 0, 0)
        t = _build(img)
        # image row 0 is grid y 3
        assert list(t.trees) == ["0.5,2.5"]

    def test_deterministic(self):
        img = _sample_raster()
        a = _build(img)
        b = _build(img)
        assert np.array_equal(a.elevation, b.elevation)
        assert a.elevation_values == b.elevation_values
        assert a.trees == b.trees
        assert a.tree_relations == b.tree_relations
        for name in ("gridnav", "fow_blockers", "no_wards"):
            assert np.array_equal(getattr(a, name), getattr(b, name))

    def test_raster_too_small(self):
        img = _sample_raster()
        source = RasterTerrainSource(img)
        source.load()
        with pytest.raises(InitializationError, match="need at least"):
            build_terrain(source, _transform(9, 6))


class TestLoadTerrain:
    def test_missing_raster(self):
        with pytest.raises(InitializationError):
            load_terrain(RasterTerrainSource(None), _transform(2, 2))

    def test_wrong_shape(self):
        source = RasterTerrainSource(np.zeros((4, 4), dtype=np.uint8))
        with pytest.raises(InitializationError, match="RGB"):
            load_terrain(source, _transform(2, 2))

    def test_source_failure_is_wrapped(self):
        class Broken(RasterTerrainSource):
            def load(self):
                raise OSError("disk on fire")

        with pytest.raises(InitializationError, match="disk on fire"):
            load_terrain(Broken(), _transform(2, 2))
