# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import math
from typing import Optional
from collections.abc import Iterator

import shapely.geometry

from geodap.util.assertions import assert_true
from geodap.util.types import Pair
from geodap.util.types import ScalarOrPair
from geodap.util.types import normalize_scalar_or_pair
from .geom import Bounds


class TileGrid:
    """A regular grid of spatial tiles that subdivide
    a dataset's extent.

    Tiles are counted from the upper left corner, that is,
    row 0 is at the maximum y edge. The tile index is
    ``row * num_tiles_x + col``.

    Args:
        extent: The dataset's extent (x_min, y_min, x_max, y_max)
            in units of its CRS.
        num_tiles: The number of tiles in x and y direction.
        overlap: Width of the margin by which tiles overlap their
            neighbours, in units of the CRS. Tile bounds are
            clipped to *extent*.
    """

    def __init__(
        self, extent: Bounds, num_tiles: ScalarOrPair[int], overlap: float = 0.0
    ):
        x_min, y_min, x_max, y_max = extent
        assert_true(
            x_min < x_max and y_min < y_max, f"invalid extent {extent}"
        )
        num_tiles_x, num_tiles_y = normalize_scalar_or_pair(
            num_tiles, item_type=int, name="num_tiles"
        )
        assert_true(
            num_tiles_x > 0 and num_tiles_y > 0, "num_tiles must be positive"
        )
        assert_true(overlap >= 0, "overlap must not be negative")
        self._extent = tuple(map(float, extent))
        self._num_tiles = num_tiles_x, num_tiles_y
        self._overlap = float(overlap)

    @property
    def extent(self) -> Bounds:
        return self._extent

    @property
    def num_tiles(self) -> Pair[int]:
        """The number of tiles in x and y directions."""
        return self._num_tiles

    @property
    def overlap(self) -> float:
        return self._overlap

    @property
    def tile_size(self) -> Pair[float]:
        """The size of a tile without overlap in units of the CRS."""
        x_min, y_min, x_max, y_max = self._extent
        num_tiles_x, num_tiles_y = self._num_tiles
        return (x_max - x_min) / num_tiles_x, (y_max - y_min) / num_tiles_y

    @property
    def num_tiles_total(self) -> int:
        num_tiles_x, num_tiles_y = self._num_tiles
        return num_tiles_x * num_tiles_y

    def get_tile_index(self, row: int, col: int) -> int:
        num_tiles_x, num_tiles_y = self._num_tiles
        assert_true(
            0 <= row < num_tiles_y and 0 <= col < num_tiles_x,
            f"tile position ({row}, {col}) out of grid",
        )
        return row * num_tiles_x + col

    def get_tile_position(self, index: int) -> Pair[int]:
        """Get the (row, col) position of the tile with *index*."""
        assert_true(
            0 <= index < self.num_tiles_total, f"tile index {index} out of grid"
        )
        return divmod(index, self._num_tiles[0])

    def get_tile_bounds(self, row: int, col: int) -> Bounds:
        """Get the bounds of the tile at (*row*, *col*),
        including its overlap margin.
        """
        self.get_tile_index(row, col)
        x_min, y_min, x_max, y_max = self._extent
        num_tiles_x, num_tiles_y = self._num_tiles
        tile_w, tile_h = self.tile_size
        x1 = x_min + col * tile_w
        x2 = x_max if col == num_tiles_x - 1 else x_min + (col + 1) * tile_w
        y2 = y_max - row * tile_h
        y1 = y_min if row == num_tiles_y - 1 else y_max - (row + 1) * tile_h
        overlap = self._overlap
        if overlap > 0:
            x1 = max(x_min, x1 - overlap)
            y1 = max(y_min, y1 - overlap)
            x2 = min(x_max, x2 + overlap)
            y2 = min(y_max, y2 + overlap)
        return x1, y1, x2, y2

    def get_tile_geometry(self, row: int, col: int) -> shapely.geometry.Polygon:
        return shapely.geometry.box(*self.get_tile_bounds(row, col))

    def get_tile_range(self, bbox: Bounds) -> tuple[range, range]:
        """Get the ranges of rows and columns of the tiles that
        may intersect *bbox*, taking overlaps into account.
        """
        x_min, y_min, x_max, y_max = self._extent
        num_tiles_x, num_tiles_y = self._num_tiles
        tile_w, tile_h = self.tile_size
        overlap = self._overlap
        bx1, by1, bx2, by2 = bbox
        # Tiles whose far edge touches bbox are candidates too
        col1 = math.ceil((bx1 - overlap - x_min) / tile_w) - 1
        col2 = int((bx2 + overlap - x_min) // tile_w)
        row1 = math.ceil((y_max - (by2 + overlap)) / tile_h) - 1
        row2 = int((y_max - (by1 - overlap)) // tile_h)
        cols = range(max(0, col1), min(num_tiles_x - 1, col2) + 1)
        rows = range(max(0, row1), min(num_tiles_y - 1, row2) + 1)
        return rows, cols

    def iter_tiles(self, bbox: Optional[Bounds] = None) -> Iterator[tuple[int, int, int]]:
        """Iterate the (index, row, col) of all tiles,
        or of those that may intersect *bbox*.
        """
        if bbox is None:
            num_tiles_x, num_tiles_y = self._num_tiles
            rows, cols = range(num_tiles_y), range(num_tiles_x)
        else:
            rows, cols = self.get_tile_range(bbox)
        for row in rows:
            for col in cols:
                yield self.get_tile_index(row, col), row, col

    def __repr__(self) -> str:
        return (
            f"TileGrid({self._extent!r},"
            f" num_tiles={self._num_tiles!r},"
            f" overlap={self._overlap!r})"
        )
