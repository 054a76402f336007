# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Any, Optional, Union
from collections.abc import Sequence

import affine
import numpy as np
import pyproj
import rasterio.features
import shapely
import shapely.errors
import shapely.geometry
import shapely.ops
import shapely.wkt
import xarray as xr

from geodap.constants import BBOX_DENSIFY_PTS
from geodap.util.geojson import GeoJSON

GeometryLike = Union[
    shapely.geometry.base.BaseGeometry, dict[str, Any], str, Sequence[Union[float, int]]
]
CrsLike = Union[str, pyproj.CRS]
Bounds = tuple[float, float, float, float]
SplitBounds = tuple[Bounds, Optional[Bounds]]

_INVALID_GEOMETRY_MSG = (
    "Geometry must be either a shapely geometry object, "
    "a GeoJSON-serializable dictionary, a geometry WKT string, "
    "box coordinates (x1, y1, x2, y2), "
    "or point coordinates (x, y)"
)

_INVALID_BOX_COORDS_MSG = "Invalid box coordinates"


def normalize_geometry(
    geometry: Optional[GeometryLike],
) -> Optional[shapely.geometry.base.BaseGeometry]:
    """Convert a geometry-like object into a shapely geometry
    object (``shapely.geometry.BaseGeometry``).

    A geometry-like object may be any shapely geometry object,
    * a dictionary that can be serialized to valid GeoJSON,
    * a WKT string,
    * a box given by a string of the form "<x1>,<y1>,<x2>,<y2>"
      or by a sequence of four numbers x1, y1, x2, y2,
    * a point by a string of the form "<x>,<y>"
      or by a sequence of two numbers x, y.

    If box coordinates are given, it is allowed to pass x1, x2
    where x1 > x2, which is interpreted as a box crossing the
    anti-meridian. In this case the function splits the box
    along the anti-meridian and returns a multi-polygon.

    Args:
        geometry: A geometry-like object

    Returns:
        Shapely geometry object or None.
    """
    if geometry is None:
        return None

    if isinstance(geometry, shapely.geometry.base.BaseGeometry):
        return geometry

    if isinstance(geometry, dict):
        if GeoJSON.is_geometry(geometry):
            return shapely.geometry.shape(geometry)
        elif GeoJSON.is_feature(geometry):
            geometry = GeoJSON.get_feature_geometry(geometry)
            if geometry is not None:
                return shapely.geometry.shape(geometry)
        elif GeoJSON.is_feature_collection(geometry):
            features = GeoJSON.get_feature_collection_features(geometry)
            geometries = [
                g
                for g in (GeoJSON.get_feature_geometry(f) for f in features or [])
                if g is not None
            ]
            if geometries:
                return shapely.geometry.shape(
                    dict(type="GeometryCollection", geometries=geometries)
                )
        raise ValueError(_INVALID_GEOMETRY_MSG)

    if isinstance(geometry, str):
        if "," in geometry and "(" not in geometry:
            try:
                geometry = [float(c) for c in geometry.split(",")]
            except ValueError as e:
                raise ValueError(_INVALID_GEOMETRY_MSG) from e
        else:
            try:
                return shapely.wkt.loads(geometry)
            except shapely.errors.ShapelyError as e:
                raise ValueError(_INVALID_GEOMETRY_MSG) from e

    invalid_box_coords = False
    # noinspection PyBroadException
    try:
        x1, y1, x2, y2 = geometry
        is_point = x1 == x2 and y1 == y2
        if is_point:
            return shapely.geometry.Point(x1, y1)
        invalid_box_coords = x1 == x2 or y1 >= y2
        if not invalid_box_coords:
            return get_box_split_bounds_geometry(x1, y1, x2, y2)
    except Exception:
        # noinspection PyBroadException
        try:
            x, y = geometry
            return shapely.geometry.Point(x, y)
        except Exception:
            pass

    if invalid_box_coords:
        raise ValueError(_INVALID_BOX_COORDS_MSG)
    raise ValueError(_INVALID_GEOMETRY_MSG)


def normalize_crs(crs: CrsLike) -> pyproj.CRS:
    if isinstance(crs, pyproj.CRS):
        return crs
    return pyproj.CRS.from_user_input(crs)


def is_same_crs(crs1: CrsLike, crs2: CrsLike) -> bool:
    """Test whether two CRS are equivalent, ignoring axis order."""
    crs1, crs2 = normalize_crs(crs1), normalize_crs(crs2)
    return crs1 == crs2 or crs1.equals(crs2, ignore_axis_order=True)


def get_box_split_bounds(
    lon_min: float, lat_min: float, lon_max: float, lat_max: float
) -> SplitBounds:
    if lon_max >= lon_min:
        return (lon_min, lat_min, lon_max, lat_max), None
    else:
        return (lon_min, lat_min, 180.0, lat_max), (-180.0, lat_min, lon_max, lat_max)


def get_box_split_bounds_geometry(
    lon_min: float, lat_min: float, lon_max: float, lat_max: float
) -> shapely.geometry.base.BaseGeometry:
    box_1, box_2 = get_box_split_bounds(lon_min, lat_min, lon_max, lat_max)
    if box_2 is not None:
        return shapely.geometry.MultiPolygon(
            polygons=[shapely.geometry.box(*box_1), shapely.geometry.box(*box_2)]
        )
    else:
        return shapely.geometry.box(*box_1)


def transform_geometry(
    geometry: shapely.geometry.base.BaseGeometry,
    src_crs: CrsLike,
    dst_crs: CrsLike,
) -> shapely.geometry.base.BaseGeometry:
    """Transform *geometry* from *src_crs* into *dst_crs*.
    Coordinates are always in x, y (lon, lat) order.
    """
    if is_same_crs(src_crs, dst_crs):
        return geometry
    transformer = pyproj.Transformer.from_crs(
        normalize_crs(src_crs), normalize_crs(dst_crs), always_xy=True
    )
    # Densify so that straight edges follow the projection
    geometry = _densify(geometry)
    return shapely.ops.transform(transformer.transform, geometry)


def transform_bbox(bbox: Bounds, src_crs: CrsLike, dst_crs: CrsLike) -> Bounds:
    """Transform bounding box *bbox* from *src_crs* into *dst_crs*.
    The edges of the box are densified, so the result
    encloses the transformed box.
    """
    if is_same_crs(src_crs, dst_crs):
        return tuple(map(float, bbox))
    transformer = pyproj.Transformer.from_crs(
        normalize_crs(src_crs), normalize_crs(dst_crs), always_xy=True
    )
    return tuple(
        map(float, transformer.transform_bounds(*bbox, densify_pts=BBOX_DENSIFY_PTS))
    )


def _densify(geometry: shapely.geometry.base.BaseGeometry):
    if geometry.geom_type == "Point" or geometry.is_empty:
        return geometry
    x1, y1, x2, y2 = geometry.bounds
    max_segment_length = max(x2 - x1, y2 - y1) / BBOX_DENSIFY_PTS
    if max_segment_length <= 0:
        return geometry
    return shapely.segmentize(geometry, max_segment_length)


def intersect_bboxes(bbox1: Bounds, bbox2: Bounds) -> Optional[Bounds]:
    """Compute the intersection of two bounding boxes.
    Returns None if they do not intersect.
    Boxes that touch along an edge intersect in a degenerate box.
    """
    x1 = max(bbox1[0], bbox2[0])
    y1 = max(bbox1[1], bbox2[1])
    x2 = min(bbox1[2], bbox2[2])
    y2 = min(bbox1[3], bbox2[3])
    if x1 > x2 or y1 > y2:
        return None
    return x1, y1, x2, y2


def get_coord_res(coord: xr.DataArray) -> float:
    """Get the absolute spacing of 1D coordinate *coord*,
    0.0 if it has less than two values.
    """
    if coord.size < 2:
        return 0.0
    return float(abs(coord.values[1] - coord.values[0]))


def get_dataset_bounds(
    dataset: Union[xr.Dataset, xr.DataArray], x_name: str, y_name: str
) -> Bounds:
    """Get the outer bounds of the cells of a regular grid."""
    x, y = dataset[x_name], dataset[y_name]
    x_res, y_res = get_coord_res(x), get_coord_res(y)
    x_min, x_max = float(x.min()), float(x.max())
    y_min, y_max = float(y.min()), float(y.max())
    return (
        x_min - 0.5 * x_res,
        y_min - 0.5 * y_res,
        x_max + 0.5 * x_res,
        y_max + 0.5 * y_res,
    )


def get_geometry_mask(
    geometry: shapely.geometry.base.BaseGeometry,
    x: xr.DataArray,
    y: xr.DataArray,
    all_touched: bool = False,
) -> xr.DataArray:
    """Compute a 2D boolean mask that is True for the cells of
    the grid given by the 1D coordinates *x* and *y*
    which are covered by *geometry*.

    Cells of irregular grids are tested by their center only.

    Args:
        geometry: A shapely geometry in the grid's CRS.
        x: 1D x-coordinates of cell centers.
        y: 1D y-coordinates of cell centers, ascending or descending.
        all_touched: If True, all cells touched by the geometry
            outlines are included. Otherwise, only cells whose center
            is within the geometry.

    Returns:
        A boolean data array with dimensions (y, x).
    """
    width, height = x.size, y.size
    if (
        width >= 2
        and height >= 2
        and geometry.area > 0
        and _is_regular(x.values)
        and _is_regular(y.values)
    ):
        x_res = get_coord_res(x)
        y_res = get_coord_res(y)
        x_min = float(x.min()) - 0.5 * x_res
        y_max = float(y.max()) + 0.5 * y_res
        transform = affine.Affine(x_res, 0.0, x_min, 0.0, -y_res, y_max)
        mask_data = rasterio.features.geometry_mask(
            [geometry],
            out_shape=(height, width),
            transform=transform,
            all_touched=all_touched,
            invert=True,
        )
        if x.values[0] > x.values[-1]:
            mask_data = mask_data[:, ::-1]
        if y.values[0] < y.values[-1]:
            mask_data = mask_data[::-1, :]
    else:
        xx, yy = np.meshgrid(x.values, y.values)
        mask_data = shapely.intersects_xy(geometry, xx, yy)
    return xr.DataArray(
        mask_data,
        coords={y.name: y, x.name: x},
        dims=(y.dims[0], x.dims[0]),
    )


def _is_regular(values: np.ndarray) -> bool:
    deltas = np.diff(values)
    return bool(np.allclose(deltas, deltas[0]))
