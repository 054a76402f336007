# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Any, Callable, Optional, Union
from collections.abc import Sequence

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely.geometry
import xarray as xr

from geodap.constants import DEFAULT_CRS_NAME
from geodap.constants import DEFAULT_TIME_NAME
from geodap.constants import DEFAULT_X_NAME
from geodap.constants import DEFAULT_Y_NAME
from geodap.util.geojson import GeoJSON
from .geom import CrsLike
from .geom import GeometryLike
from .geom import get_geometry_mask
from .geom import normalize_crs
from .geom import normalize_geometry
from .subset import SubsetResult

FeaturesLike = Union[gpd.GeoDataFrame, dict[str, Any], Sequence[GeometryLike]]

_Reducer = Callable[[xr.DataArray, list[str]], xr.DataArray]

_STATS: dict[str, _Reducer] = {
    "mean": lambda a, dims: a.mean(dim=dims, skipna=True),
    "sum": lambda a, dims: a.sum(dim=dims, skipna=True, min_count=1),
    "min": lambda a, dims: a.min(dim=dims, skipna=True),
    "max": lambda a, dims: a.max(dim=dims, skipna=True),
    "median": lambda a, dims: a.median(dim=dims, skipna=True),
    "std": lambda a, dims: a.std(dim=dims, skipna=True),
    "count": lambda a, dims: a.count(dim=dims),
}

STAT_NAMES = tuple(_STATS.keys())

DEFAULT_ID_NAME = "feature_id"


def zonal_statistics(
    result_or_dataset: Union[SubsetResult, xr.Dataset],
    features: FeaturesLike,
    var_names: Optional[Sequence[str]] = None,
    stats: Sequence[str] = ("mean",),
    id_property: Optional[str] = None,
    all_touched: bool = False,
    features_crs: CrsLike = DEFAULT_CRS_NAME,
    dataset_crs: Optional[CrsLike] = None,
    x_name: str = DEFAULT_X_NAME,
    y_name: str = DEFAULT_Y_NAME,
    time_name: str = DEFAULT_TIME_NAME,
) -> pd.DataFrame:
    """Compute statistics of the cells of a gridded dataset
    inside the polygons of vector *features*.

    Points select the nearest cell. NaN values are ignored.

    Args:
        result_or_dataset: A subset result or a dataset.
        features: A ``geopandas.GeoDataFrame``, a GeoJSON feature
            collection, or a sequence of geometry-like objects.
        var_names: Names of the variables to summarize,
            defaults to all variables with x and y dimensions.
        stats: Names of the statistics to compute, any of
            "mean", "sum", "min", "max", "median", "std", "count".
        id_property: Name of the feature property that identifies
            a feature. If not given, the GeoJSON feature ids or the
            feature positions are used.
        all_touched: If True, all cells touched by a feature's
            outline are included. Otherwise, only cells whose
            center is within the feature.
        features_crs: The CRS of *features*, if not given by a
            ``GeoDataFrame``.
        dataset_crs: The CRS of the dataset. Ignored, if a subset
            result is given. Defaults to "OGC:CRS84".
        x_name: Name of the x coordinate. Ignored, if a subset
            result is given.
        y_name: Name of the y coordinate. Ignored, if a subset
            result is given.
        time_name: Name of the time coordinate. Ignored, if a subset
            result is given.

    Returns:
        A data frame indexed by feature identifier (and time, if
        the dataset has a time dimension) with one column
        ``<var_name>_<stat>`` per variable and statistic.

    Raises:
        ValueError: if a statistic or variable is unknown.
    """
    unknown = [stat for stat in stats if stat not in _STATS]
    if unknown:
        raise ValueError(
            f"unknown statistic(s) {', '.join(unknown)},"
            f" must be any of {', '.join(STAT_NAMES)}"
        )

    if isinstance(result_or_dataset, SubsetResult):
        dataset = result_or_dataset.dataset
        dataset_crs = result_or_dataset.crs
        x_name = result_or_dataset.x_name
        y_name = result_or_dataset.y_name
        time_name = result_or_dataset.time_name
    else:
        dataset = result_or_dataset
        dataset_crs = dataset_crs or DEFAULT_CRS_NAME

    if var_names is None:
        var_names = [
            str(var_name)
            for var_name, var in dataset.data_vars.items()
            if x_name in var.dims and y_name in var.dims
        ]
    missing = [var_name for var_name in var_names if var_name not in dataset]
    if missing:
        raise ValueError(f"variable(s) not found in dataset: {', '.join(missing)}")

    gdf = _to_geo_data_frame(features, features_crs)
    gdf = gdf.to_crs(normalize_crs(dataset_crs))
    if id_property is not None:
        if id_property not in gdf.columns:
            raise ValueError(f"feature property {id_property!r} not found")
        feature_ids = list(gdf[id_property])
    else:
        feature_ids = list(gdf.index)

    x, y = dataset[x_name], dataset[y_name]
    dims = [y.dims[0], x.dims[0]]
    frames = []
    for feature_id, geometry in zip(feature_ids, gdf.geometry):
        if geometry is None or geometry.is_empty:
            continue
        if geometry.area > 0:
            mask = get_geometry_mask(geometry, x, y, all_touched=all_touched)
        else:
            mask = _get_nearest_cell_mask(geometry, x, y)
        columns = {}
        for var_name in var_names:
            masked = dataset[var_name].where(mask)
            for stat in stats:
                columns[f"{var_name}_{stat}"] = _STATS[stat](masked, dims)
        stats_ds = xr.Dataset(columns).reset_coords(drop=True)
        if time_name in stats_ds.dims:
            frame = stats_ds.to_dataframe().reset_index()
        else:
            frame = pd.DataFrame(
                [{k: float(v.values) for k, v in stats_ds.data_vars.items()}]
            )
        frame.insert(0, DEFAULT_ID_NAME, feature_id)
        frames.append(frame)

    index_names = [DEFAULT_ID_NAME]
    if time_name in dataset.dims:
        index_names.append(time_name)
    if not frames:
        columns = index_names + [
            f"{var_name}_{stat}" for var_name in var_names for stat in stats
        ]
        return pd.DataFrame(columns=columns).set_index(index_names)
    return pd.concat(frames, ignore_index=True).set_index(index_names)


def _to_geo_data_frame(features: FeaturesLike, crs: CrsLike) -> gpd.GeoDataFrame:
    if isinstance(features, gpd.GeoDataFrame):
        if features.crs is None:
            return features.set_crs(normalize_crs(crs))
        return features
    if isinstance(features, dict):
        if GeoJSON.is_feature_collection(features):
            items = GeoJSON.get_feature_collection_features(features) or []
        elif GeoJSON.is_feature(features):
            items = [features]
        else:
            items = [dict(type="Feature", geometry=features, properties={})]
        gdf = gpd.GeoDataFrame.from_features(items, crs=normalize_crs(crs))
        ids = [item.get("id") for item in items]
        if all(feature_id is not None for feature_id in ids):
            gdf.index = ids
        return gdf
    geometries = [normalize_geometry(geometry) for geometry in features]
    return gpd.GeoDataFrame(geometry=geometries, crs=normalize_crs(crs))


def _get_nearest_cell_mask(
    geometry: shapely.geometry.base.BaseGeometry, x: xr.DataArray, y: xr.DataArray
) -> xr.DataArray:
    point = geometry.centroid
    mask = np.zeros((y.size, x.size), dtype=bool)
    if x.size and y.size:
        mask[
            int(np.argmin(np.abs(y.values - point.y))),
            int(np.argmin(np.abs(x.values - point.x))),
        ] = True
    return xr.DataArray(
        mask, coords={y.name: y, x.name: x}, dims=(y.dims[0], x.dims[0])
    )
