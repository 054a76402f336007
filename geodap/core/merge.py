# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from collections.abc import Sequence

import rioxarray  # noqa: F401, registers the "rio" accessor
import xarray as xr

from geodap.constants import LOG
from geodap.constants import TILING_TEMPORAL
from geodap.util.assertions import assert_true
from .descriptor import DatasetDescriptor
from .geom import get_coord_res
from .geom import get_geometry_mask
from .geom import intersect_bboxes
from .plan import TargetGrid
from .plan import TilePlan
from .select import select_spatial_subset
from .select import select_temporal_subset
from .subset import SubsetResult


def merge_tiles(
    plan: TilePlan, pieces: Sequence[xr.Dataset], mask_geometry: bool = True
) -> SubsetResult:
    """Merge the datasets read for the tiles of *plan*.

    Pieces are reprojected into the plan's target grid, if any.
    Tiles of temporally tiled datasets are concatenated along
    the time axis, spatial tiles are stitched by coordinate in
    ascending tile index order, where lower indexes take precedence
    in overlapping areas. The result is clipped to the area of
    interest and the time window.

    Args:
        plan: The tile plan.
        pieces: One dataset per tile of *plan*, in plan order.
        mask_geometry: Whether to set cells outside of a
            non-rectangular area of interest to NaN.

    Returns:
        The subset result.
    """
    assert_true(
        len(pieces) == len(plan.tiles),
        f"expected {len(plan.tiles)} dataset(s), got {len(pieces)}",
    )
    assert_true(len(pieces) > 0, "at least one dataset expected")

    descriptor = plan.descriptor
    x_name, y_name = descriptor.x_name, descriptor.y_name

    target_grid = plan.target_grid
    if target_grid is not None:
        target_grid = _resolve_target_grid(plan, pieces)
        pieces = [
            _reproject(piece, descriptor, target_grid) for piece in pieces
        ]

    if descriptor.tiling == TILING_TEMPORAL:
        dataset = _concat_in_time(pieces, descriptor.time_name)
    else:
        dataset = _stitch_in_space(pieces, x_name, y_name)

    aoi = plan.aoi if target_grid is not None else plan.native_aoi

    clip_bbox = aoi.bounds
    if target_grid is None and descriptor.bbox is not None:
        clip_bbox = intersect_bboxes(clip_bbox, descriptor.bbox) or clip_bbox
    res = target_grid.res if target_grid is not None else descriptor.res
    dataset = select_spatial_subset(
        dataset, clip_bbox, x_name=x_name, y_name=y_name, res=res
    )
    if plan.time_window is not None and descriptor.time_name in dataset.coords:
        dataset = select_temporal_subset(
            dataset, plan.time_window, time_name=descriptor.time_name
        )

    if mask_geometry and aoi.geometry.area > 0 and not aoi.is_box:
        dataset = _mask(dataset, aoi.geometry, x_name, y_name)

    LOG.info(
        f"Merged {len(pieces)} tile(s) of dataset {plan.data_id!r},"
        f" sizes: {dict(dataset.sizes)}"
    )
    return SubsetResult(
        dataset,
        plan.data_id,
        aoi.crs,
        plan.tile_indexes,
        plan.aoi,
        time_window=plan.time_window,
        x_name=x_name,
        y_name=y_name,
        time_name=descriptor.time_name,
    )


def _resolve_target_grid(plan: TilePlan, pieces: Sequence[xr.Dataset]) -> TargetGrid:
    target_grid = plan.target_grid
    if target_grid.shape is not None:
        return target_grid
    descriptor = plan.descriptor
    piece = pieces[0]
    native_res = (
        get_coord_res(piece[descriptor.x_name]),
        get_coord_res(piece[descriptor.y_name]),
    )
    assert_true(
        native_res[0] > 0 and native_res[1] > 0,
        "cannot determine the native resolution of the dataset",
    )
    native_bbox = plan.native_aoi.bounds
    if descriptor.bbox is not None:
        native_bbox = intersect_bboxes(native_bbox, descriptor.bbox) or native_bbox
    return target_grid.with_res(native_bbox, native_res)


def _reproject(
    piece: xr.Dataset, descriptor: DatasetDescriptor, target_grid: TargetGrid
) -> xr.Dataset:
    piece = piece.rio.set_spatial_dims(
        x_dim=descriptor.x_name, y_dim=descriptor.y_name
    )
    piece = piece.rio.write_crs(descriptor.crs)
    reprojected = piece.rio.reproject(
        target_grid.crs,
        shape=target_grid.shape,
        transform=target_grid.transform,
    )
    renames = {
        dim: name
        for dim, name in (
            (reprojected.rio.x_dim, descriptor.x_name),
            (reprojected.rio.y_dim, descriptor.y_name),
        )
        if dim != name
    }
    if renames:
        reprojected = reprojected.rename(renames)
    # Use the exact cell centers of the target grid
    return reprojected.assign_coords(
        {
            descriptor.x_name: target_grid.x_coords,
            descriptor.y_name: target_grid.y_coords,
        }
    )


def _concat_in_time(pieces: Sequence[xr.Dataset], time_name: str) -> xr.Dataset:
    if len(pieces) == 1:
        return pieces[0]
    dataset = xr.concat(
        pieces,
        dim=time_name,
        data_vars="minimal",
        coords="minimal",
        compat="override",
        join="outer",
    )
    dataset = dataset.drop_duplicates(time_name, keep="first")
    return dataset.sortby(time_name)


def _stitch_in_space(
    pieces: Sequence[xr.Dataset], x_name: str, y_name: str
) -> xr.Dataset:
    dataset = pieces[0]
    if len(pieces) == 1:
        return dataset
    y_descending = any(
        piece[y_name].size > 1 and bool(piece[y_name].values[0] > piece[y_name].values[-1])
        for piece in pieces
    )
    # Values of lower tile indexes take precedence
    for piece in pieces[1:]:
        dataset = dataset.combine_first(piece)
    dataset = dataset.sortby(x_name)
    return dataset.sortby(y_name, ascending=not y_descending)


def _mask(dataset: xr.Dataset, geometry, x_name: str, y_name: str) -> xr.Dataset:
    if dataset.sizes.get(x_name, 0) == 0 or dataset.sizes.get(y_name, 0) == 0:
        return dataset
    mask = get_geometry_mask(geometry, dataset[x_name], dataset[y_name])
    masked_vars = {
        var_name: var.where(mask)
        for var_name, var in dataset.data_vars.items()
        if x_name in var.dims and y_name in var.dims
    }
    return dataset.assign(masked_vars)
