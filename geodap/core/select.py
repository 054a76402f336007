# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Optional
from collections.abc import Collection

import numpy as np
import pandas as pd
import xarray as xr

from geodap.constants import DEFAULT_TIME_NAME
from geodap.constants import DEFAULT_X_NAME
from geodap.constants import DEFAULT_Y_NAME
from geodap.util.assertions import assert_given
from geodap.util.types import Pair
from .geom import Bounds
from .geom import get_coord_res
from .timewindow import TimeWindow

# Relative tolerance used when comparing cell edges
_EDGE_EPS = 1e-6


def select_subset(
    dataset: xr.Dataset,
    *,
    var_names: Optional[Collection[str]] = None,
    bbox: Optional[Bounds] = None,
    time_window: Optional[TimeWindow] = None,
    x_name: str = DEFAULT_X_NAME,
    y_name: str = DEFAULT_Y_NAME,
    time_name: str = DEFAULT_TIME_NAME,
) -> xr.Dataset:
    """Create a subset from *dataset* given *var_names*,
    *bbox*, *time_window*.

    This is a high-level convenience function that may invoke

    * :func:`select_variables_subset`
    * :func:`select_spatial_subset`
    * :func:`select_temporal_subset`

    Returns:
        a subset of *dataset*, or unchanged *dataset* if no keyword-
        arguments are used.
    """
    if var_names:
        dataset = select_variables_subset(dataset, var_names=var_names)
    if bbox is not None:
        dataset = select_spatial_subset(
            dataset, bbox, x_name=x_name, y_name=y_name
        )
    if time_window is not None:
        dataset = select_temporal_subset(dataset, time_window, time_name=time_name)
    return dataset


def select_variables_subset(
    dataset: xr.Dataset, var_names: Optional[Collection[str]] = None
) -> xr.Dataset:
    """Select data variables from given *dataset*.

    Args:
        dataset: The dataset from which to select variables.
        var_names: The names of data variables to select.

    Returns:
        A new dataset or *dataset*, if *var_names* is None.

    Raises:
        ValueError: if a variable is not found in *dataset*.
    """
    if var_names is None:
        return dataset
    missing = [var_name for var_name in var_names if var_name not in dataset]
    if missing:
        raise ValueError(f"variable(s) not found in dataset: {', '.join(missing)}")
    dropped_variables = set(dataset.data_vars.keys()).difference(var_names)
    if not dropped_variables:
        return dataset
    return dataset.drop_vars(dropped_variables)


def select_spatial_subset(
    dataset: xr.Dataset,
    bbox: Bounds,
    x_name: str = DEFAULT_X_NAME,
    y_name: str = DEFAULT_Y_NAME,
    res: Optional[Pair[float]] = None,
) -> xr.Dataset:
    """Select the cells of *dataset* whose footprint intersects
    the bounding box *bbox*.

    Cells that only touch *bbox* along an edge are not selected.
    If *bbox* is degenerate in a dimension, that is, a point
    or a line, the nearest cell in that dimension is selected.
    Both ascending and descending coordinates are supported.

    Args:
        dataset: Source dataset with 1D x and y coordinates.
        bbox: The bounding box (x_min, y_min, x_max, y_max).
        x_name: Name of the x coordinate.
        y_name: Name of the y coordinate.
        res: Optional cell size (x_res, y_res). Defaults to the
            coordinate spacing. If not given, a dimension of size one
            is not subsetted, as its cell size is unknown.

    Returns:
        Spatial dataset subset, may be empty.
    """
    x1, y1, x2, y2 = bbox
    x_res, y_res = res if res is not None else (None, None)
    x_slice = _get_index_slice(dataset[x_name], x1, x2, x_res)
    y_slice = _get_index_slice(dataset[y_name], y1, y2, y_res)
    return dataset.isel({dataset[x_name].dims[0]: x_slice, dataset[y_name].dims[0]: y_slice})


def _get_index_slice(
    coord: xr.DataArray, v1: float, v2: float, res: Optional[float] = None
) -> slice:
    values = coord.values
    if res is None:
        if values.size == 1:
            return slice(0, 1)
        res = get_coord_res(coord)
    res = abs(res)
    half = 0.5 * res
    eps = _EDGE_EPS * res
    if v2 > v1:
        mask = (values + half > v1 + eps) & (values - half < v2 - eps)
    else:
        distance = np.abs(values - v1)
        mask = np.zeros(values.shape, dtype=bool)
        if distance.size and distance.min() <= half + eps:
            mask[int(np.argmin(distance))] = True
    indexes = np.nonzero(mask)[0]
    if indexes.size == 0:
        return slice(0, 0)
    return slice(int(indexes[0]), int(indexes[-1]) + 1)


def select_temporal_subset(
    dataset: xr.Dataset,
    time_window: TimeWindow,
    time_name: str = DEFAULT_TIME_NAME,
) -> xr.Dataset:
    """Select the time steps of *dataset* within the half-open
    *time_window* ``[start, end)``.

    Args:
        dataset: The dataset. Must include time
        time_window: The time window.
        time_name: optional name of the time coordinate variable.
            Defaults to "time".

    Returns:
        Temporal dataset subset, may be empty.
    """
    assert_given(time_window, "time_window")
    if time_window.start is None and time_window.end is None:
        return dataset
    if time_name not in dataset.coords:
        raise ValueError(
            f"cannot compute temporal subset: variable"
            f' "{time_name}" not found in dataset'
        )
    if dataset[time_name].ndim == 0:
        dataset = dataset.expand_dims(time_name)
    times = pd.DatetimeIndex(dataset[time_name].values)
    mask = np.ones(times.shape, dtype=bool)
    if time_window.start is not None:
        mask &= times >= time_window.start
    if time_window.end is not None:
        mask &= times < time_window.end
    return dataset.isel({dataset[time_name].dims[0]: np.nonzero(mask)[0]})
