# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Optional, Union

import pyproj
import shapely.geometry

from geodap.constants import DEFAULT_CRS_NAME
from geodap.util.assertions import assert_true
from .geom import Bounds
from .geom import CrsLike
from .geom import GeometryLike
from .geom import is_same_crs
from .geom import normalize_crs
from .geom import normalize_geometry
from .geom import transform_geometry

AreaOfInterestLike = Union["AreaOfInterest", GeometryLike]


class AreaOfInterest:
    """The spatial extent of a data request: a geometry,
    its coordinate reference system, and an optional buffer.

    Instances are immutable, :meth:`to_crs` returns a new instance.

    Args:
        geometry: A geometry-like object,
            see :func:`geodap.core.geom.normalize_geometry`.
        crs: The geometry's CRS, defaults to "OGC:CRS84".
        buffer: Optional buffer distance in units of *crs*.
            Buffering is applied before any reprojection.
    """

    __slots__ = ("_geometry", "_crs", "_buffer")

    def __init__(
        self,
        geometry: GeometryLike,
        crs: CrsLike = DEFAULT_CRS_NAME,
        buffer: Optional[float] = None,
    ):
        geometry = normalize_geometry(geometry)
        assert_true(geometry is not None, "geometry must be given")
        assert_true(not geometry.is_empty, "geometry must not be empty")
        assert_true(
            buffer is None or buffer >= 0, "buffer must not be a negative number"
        )
        object.__setattr__(self, "_crs", normalize_crs(crs))
        object.__setattr__(self, "_buffer", buffer or None)
        object.__setattr__(
            self, "_geometry", geometry.buffer(buffer) if buffer else geometry
        )

    @classmethod
    def normalize(
        cls, aoi: AreaOfInterestLike, crs: CrsLike = DEFAULT_CRS_NAME
    ) -> "AreaOfInterest":
        """Return *aoi* if it is an area of interest,
        otherwise create one from geometry-like *aoi* in *crs*.
        """
        if isinstance(aoi, AreaOfInterest):
            return aoi
        return AreaOfInterest(aoi, crs=crs)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def geometry(self) -> shapely.geometry.base.BaseGeometry:
        """The effective (buffered) geometry."""
        return self._geometry

    @property
    def crs(self) -> pyproj.CRS:
        return self._crs

    @property
    def buffer(self) -> Optional[float]:
        return self._buffer

    @property
    def bounds(self) -> Bounds:
        """The bounding box (x_min, y_min, x_max, y_max)."""
        return tuple(map(float, self._geometry.bounds))

    @property
    def is_point(self) -> bool:
        return self._geometry.geom_type == "Point"

    @property
    def is_box(self) -> bool:
        """True, if the geometry equals its own bounding box."""
        geometry = self._geometry
        if geometry.area <= 0:
            return False
        return geometry.equals(shapely.geometry.box(*geometry.bounds))

    def to_crs(self, crs: CrsLike) -> "AreaOfInterest":
        """Get this area of interest in another CRS."""
        if is_same_crs(self._crs, crs):
            return self
        geometry = transform_geometry(self._geometry, self._crs, crs)
        return AreaOfInterest(geometry, crs=crs)

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, AreaOfInterest)
            and self._geometry.equals(other._geometry)
            and is_same_crs(self._crs, other._crs)
        )

    def __hash__(self) -> int:
        return hash((self._geometry.wkb, self._crs.to_string()))

    def __repr__(self) -> str:
        return (
            f"AreaOfInterest({self._geometry.wkt!r},"
            f" crs={self._crs.to_string()!r})"
        )
