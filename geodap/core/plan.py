# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import math
from typing import Any, NamedTuple, Optional
from collections.abc import Iterator, Sequence

import affine
import numpy as np
import pandas as pd
import pyproj
import shapely.geometry
import shapely.ops

from geodap.constants import LOG
from geodap.constants import TILING_NONE
from geodap.constants import TILING_SPATIAL
from geodap.constants import TILING_TEMPORAL
from geodap.util.assertions import assert_true
from geodap.util.types import Pair
from .aoi import AreaOfInterest
from .aoi import AreaOfInterestLike
from .descriptor import DatasetDescriptor
from .geom import Bounds
from .geom import CrsLike
from .geom import intersect_bboxes
from .geom import is_same_crs
from .geom import normalize_crs
from .error import OutOfBoundsError
from .error import OutOfRangeError
from .tilegrid import TileGrid
from .timetiles import get_period_tiles
from .timewindow import TimeWindow
from .timewindow import TimeWindowLike


class TileRef(NamedTuple):
    """Reference to one physical file or shard of a dataset
    and the portion of a request it must satisfy.
    """

    index: int
    """Tile index, row-major for spatial tiles,
    period ordinal for temporal tiles, 0 otherwise."""
    url: str
    """The tile's resolved URL."""
    bbox: Optional[Bounds] = None
    """Crop window in the dataset's native CRS."""
    time_window: Optional[TimeWindow] = None
    """Crop time window, clipped to the tile's period."""
    row: Optional[int] = None
    col: Optional[int] = None
    period_start: Optional[pd.Timestamp] = None

    @property
    def label(self) -> str:
        return f"#{self.index} {self.url}"

    def to_dict(self) -> dict[str, Any]:
        d = dict(index=self.index, url=self.url)
        if self.bbox is not None:
            d.update(bbox=list(self.bbox))
        if self.time_window is not None:
            d.update(time_window=list(self.time_window.to_tuple()))
        if self.row is not None:
            d.update(row=self.row, col=self.col)
        if self.period_start is not None:
            d.update(period_start=self.period_start.isoformat())
        return d


class TargetGrid:
    """A regular grid in the CRS of an area of interest
    into which tiles are reprojected.

    Args:
        crs: The target CRS.
        bbox: The target extent in units of *crs*.
        shape: The grid size (height, width). If not given,
            use :meth:`with_res` to derive it.
    """

    def __init__(
        self, crs: CrsLike, bbox: Bounds, shape: Optional[Pair[int]] = None
    ):
        x1, y1, x2, y2 = bbox
        assert_true(x1 < x2 and y1 < y2, f"invalid target extent {bbox}")
        if shape is not None:
            assert_true(
                shape[0] > 0 and shape[1] > 0, "shape must be positive"
            )
        self._crs = normalize_crs(crs)
        self._bbox = tuple(map(float, bbox))
        self._shape = tuple(shape) if shape is not None else None

    @classmethod
    def from_native_res(
        cls,
        crs: CrsLike,
        bbox: Bounds,
        native_bbox: Bounds,
        native_res: Pair[float],
    ) -> "TargetGrid":
        """Create a grid over *bbox* having the same number of
        cells as a grid of *native_res* over *native_bbox*.
        """
        width = _num_cells(native_bbox[2] - native_bbox[0], native_res[0])
        height = _num_cells(native_bbox[3] - native_bbox[1], native_res[1])
        return TargetGrid(crs, bbox, shape=(height, width))

    def with_res(self, native_bbox: Bounds, native_res: Pair[float]) -> "TargetGrid":
        if self._shape is not None:
            return self
        return TargetGrid.from_native_res(
            self._crs, self._bbox, native_bbox, native_res
        )

    @property
    def crs(self) -> pyproj.CRS:
        return self._crs

    @property
    def bbox(self) -> Bounds:
        return self._bbox

    @property
    def shape(self) -> Optional[Pair[int]]:
        return self._shape

    @property
    def res(self) -> Pair[float]:
        self._assert_shape()
        x1, y1, x2, y2 = self._bbox
        height, width = self._shape
        return (x2 - x1) / width, (y2 - y1) / height

    @property
    def transform(self) -> affine.Affine:
        x_res, y_res = self.res
        return affine.Affine(x_res, 0.0, self._bbox[0], 0.0, -y_res, self._bbox[3])

    @property
    def x_coords(self) -> np.ndarray:
        x_res, _ = self.res
        width = self._shape[1]
        return self._bbox[0] + x_res * (np.arange(width) + 0.5)

    @property
    def y_coords(self) -> np.ndarray:
        """Cell center y-coordinates, descending."""
        _, y_res = self.res
        height = self._shape[0]
        return self._bbox[3] - y_res * (np.arange(height) + 0.5)

    def _assert_shape(self):
        assert_true(self._shape is not None, "target grid has no shape")

    def __repr__(self) -> str:
        return (
            f"TargetGrid({self._crs.to_string()!r},"
            f" {self._bbox!r}, shape={self._shape!r})"
        )


class TilePlan:
    """The ordered sequence of tiles required to satisfy a request.

    Args:
        descriptor: The dataset descriptor.
        aoi: The requested area of interest.
        native_aoi: The area of interest in the dataset's native CRS.
        time_window: The requested time window clipped to the
            dataset's temporal coverage, if any.
        tiles: Tile references in ascending index order.
        target_grid: The grid into which tiles are reprojected,
            if the area of interest's CRS differs from the
            dataset's native CRS.
    """

    def __init__(
        self,
        descriptor: DatasetDescriptor,
        aoi: AreaOfInterest,
        native_aoi: AreaOfInterest,
        time_window: Optional[TimeWindow],
        tiles: Sequence[TileRef],
        target_grid: Optional[TargetGrid] = None,
    ):
        indexes = [tile.index for tile in tiles]
        assert_true(
            indexes == sorted(set(indexes)),
            "tiles must have unique indexes in ascending order",
        )
        self.descriptor = descriptor
        self.aoi = aoi
        self.native_aoi = native_aoi
        self.time_window = time_window
        self.tiles = tuple(tiles)
        self.target_grid = target_grid

    @property
    def data_id(self) -> str:
        return self.descriptor.data_id

    @property
    def tile_indexes(self) -> list[int]:
        return [tile.index for tile in self.tiles]

    @property
    def needs_reprojection(self) -> bool:
        return self.target_grid is not None

    def __len__(self) -> int:
        return len(self.tiles)

    def __iter__(self) -> Iterator[TileRef]:
        return iter(self.tiles)

    def to_dict(self) -> dict[str, Any]:
        d = dict(
            data_id=self.data_id,
            tiling=self.descriptor.tiling,
            aoi=shapely.geometry.mapping(self.aoi.geometry),
            aoi_crs=self.aoi.crs.to_string(),
            tiles=[tile.to_dict() for tile in self.tiles],
        )
        if self.time_window is not None:
            d.update(time_window=list(self.time_window.to_tuple()))
        if self.target_grid is not None:
            d.update(
                target_grid=dict(
                    crs=self.target_grid.crs.to_string(),
                    bbox=list(self.target_grid.bbox),
                    shape=(
                        list(self.target_grid.shape)
                        if self.target_grid.shape
                        else None
                    ),
                )
            )
        return d

    def __repr__(self) -> str:
        return f"TilePlan({self.data_id!r}, tiles={self.tile_indexes!r})"


def plan_tiles(
    descriptor: DatasetDescriptor,
    aoi: AreaOfInterestLike,
    time_window: Optional[TimeWindowLike] = None,
) -> TilePlan:
    """Determine the minimal set of tiles of the dataset
    described by *descriptor* that intersect the given area of
    interest and optional time window.

    Args:
        descriptor: The dataset descriptor.
        aoi: The area of interest, geometry-like objects are
            assumed to be given in geographic coordinates.
        time_window: Optional time window.

    Returns:
        A tile plan ordered by ascending tile index.

    Raises:
        OutOfBoundsError: if *aoi* lies outside the dataset's extent.
        OutOfRangeError: if *time_window* lies outside the
            dataset's temporal coverage.
    """
    aoi = AreaOfInterest.normalize(aoi)
    time_window = TimeWindow.normalize(time_window)
    native_aoi = aoi.to_crs(descriptor.crs)
    geometry = native_aoi.geometry
    extent = descriptor.bbox

    if extent is not None and not _overlaps(
        geometry, shapely.geometry.box(*extent)
    ):
        raise OutOfBoundsError(
            "area of interest is outside the dataset's extent",
            data_id=descriptor.data_id,
            bbox=aoi.bounds,
            extent=extent,
        )

    time_window = _clip_time_window(descriptor, time_window)

    crop_bbox = native_aoi.bounds
    if extent is not None:
        crop_bbox = intersect_bboxes(crop_bbox, extent)

    if descriptor.tiling == TILING_SPATIAL:
        tiles = _plan_spatial_tiles(descriptor, geometry, time_window)
    elif descriptor.tiling == TILING_TEMPORAL:
        tiles = _plan_temporal_tiles(descriptor, crop_bbox, time_window)
    else:
        assert descriptor.tiling == TILING_NONE
        tiles = [
            TileRef(
                index=0,
                url=descriptor.format_url(index=0),
                bbox=crop_bbox,
                time_window=time_window,
            )
        ]

    target_grid = None
    x1, y1, x2, y2 = aoi.bounds
    if not is_same_crs(aoi.crs, descriptor.crs) and x1 < x2 and y1 < y2:
        target_grid = _new_target_grid(descriptor, aoi, native_aoi)

    plan = TilePlan(
        descriptor,
        aoi,
        native_aoi,
        time_window,
        tiles,
        target_grid=target_grid,
    )
    LOG.info(
        f"Planned {len(plan)} tile(s) of dataset {descriptor.data_id!r}:"
        f" {plan.tile_indexes}"
    )
    return plan


def _overlaps(
    geometry: shapely.geometry.base.BaseGeometry,
    other: shapely.geometry.base.BaseGeometry,
) -> bool:
    """Test for an intersection of positive area,
    or for any intersection if *geometry* has no area.
    """
    if geometry.area > 0:
        return geometry.intersection(other).area > 0
    return geometry.intersects(other)


def _clip_time_window(
    descriptor: DatasetDescriptor, time_window: Optional[TimeWindow]
) -> Optional[TimeWindow]:
    coverage = descriptor.time_coverage
    if time_window is None:
        return coverage
    if coverage is None:
        # Unknown coverage, tiles are cropped by the window as given
        return time_window
    clipped = coverage.intersection(time_window)
    if clipped is None:
        raise OutOfRangeError(
            "time window is outside the dataset's temporal coverage",
            data_id=descriptor.data_id,
            time_window=str(time_window),
            time_coverage=str(coverage),
        )
    return clipped


def _plan_spatial_tiles(
    descriptor: DatasetDescriptor,
    geometry: shapely.geometry.base.BaseGeometry,
    time_window: Optional[TimeWindow],
) -> list[TileRef]:
    grid = TileGrid(
        descriptor.bbox, descriptor.num_tiles, overlap=descriptor.tile_overlap
    )
    candidates = []
    for index, row, col in grid.iter_tiles(geometry.bounds):
        tile_geometry = grid.get_tile_geometry(row, col)
        if not _overlaps(geometry, tile_geometry):
            continue
        intersection = geometry.intersection(tile_geometry)
        if intersection.is_empty:
            # Point or line on the tile's boundary
            intersection = geometry
        candidates.append((index, row, col, intersection))

    # Larger intersections first, then lower indexes. A tile is
    # redundant if kept tiles already cover its intersection.
    candidates.sort(key=lambda c: (-c[3].area, c[0]))
    kept = []
    covered = None
    for index, row, col, intersection in candidates:
        if covered is not None and intersection.covered_by(covered):
            LOG.debug(f"Skipping redundant tile #{index}")
            continue
        kept.append((index, row, col, intersection))
        covered = (
            intersection
            if covered is None
            else shapely.ops.unary_union([covered, intersection])
        )

    if not kept:
        raise OutOfBoundsError(
            "area of interest does not intersect any tile",
            data_id=descriptor.data_id,
            bbox=tuple(geometry.bounds),
        )

    kept.sort(key=lambda c: c[0])
    return [
        TileRef(
            index=index,
            url=descriptor.format_url(index=index, row=row, col=col),
            bbox=intersect_bboxes(
                tuple(intersection.bounds), grid.get_tile_bounds(row, col)
            ),
            time_window=time_window,
            row=row,
            col=col,
        )
        for index, row, col, intersection in kept
    ]


def _plan_temporal_tiles(
    descriptor: DatasetDescriptor,
    crop_bbox: Optional[Bounds],
    time_window: Optional[TimeWindow],
) -> list[TileRef]:
    periods = get_period_tiles(
        descriptor.time_coverage, descriptor.tile_period, time_window
    )
    if not periods:
        raise OutOfRangeError(
            "time window does not intersect any tile period",
            data_id=descriptor.data_id,
            time_window=str(time_window) if time_window else None,
        )
    tiles = []
    for index, start, end in periods:
        period = TimeWindow(start, end)
        tiles.append(
            TileRef(
                index=index,
                url=descriptor.format_url(index=index, time=start),
                bbox=crop_bbox,
                time_window=(
                    period.intersection(time_window) if time_window else period
                ),
                period_start=start,
            )
        )
    return tiles


def _new_target_grid(
    descriptor: DatasetDescriptor,
    aoi: AreaOfInterest,
    native_aoi: AreaOfInterest,
) -> TargetGrid:
    native_bbox = native_aoi.bounds
    if descriptor.bbox is not None:
        native_bbox = intersect_bboxes(native_bbox, descriptor.bbox) or native_bbox
    if descriptor.spatial_res is None:
        return TargetGrid(aoi.crs, aoi.bounds)
    return TargetGrid.from_native_res(
        aoi.crs, aoi.bounds, native_bbox, descriptor.spatial_res
    )


def _num_cells(size: float, res: float) -> int:
    return max(1, int(math.ceil(round(size / res, 6))))
