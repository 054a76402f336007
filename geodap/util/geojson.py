# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Any, Optional
from collections.abc import Sequence

from geodap.util.undefined import UNDEFINED

_GEOMETRY_MEMBERS = {
    "Point": "coordinates",
    "LineString": "coordinates",
    "Polygon": "coordinates",
    "MultiPoint": "coordinates",
    "MultiLineString": "coordinates",
    "MultiPolygon": "coordinates",
    "GeometryCollection": "geometries",
}


class GeoJSON:
    """Checks and accessors for the GeoJSON dictionaries accepted as
    areas of interest and zones.
    """

    FEATURE_TYPE = "Feature"
    FEATURE_COLLECTION_TYPE = "FeatureCollection"

    @classmethod
    def get_type_name(cls, obj: Any) -> Optional[str]:
        if isinstance(obj, dict):
            return obj.get("type") or None
        return None

    @classmethod
    def is_geometry(cls, obj: Any) -> bool:
        member = _GEOMETRY_MEMBERS.get(cls.get_type_name(obj))
        return member is not None and _get_member(obj, member) is not UNDEFINED

    @classmethod
    def is_feature(cls, obj: Any) -> bool:
        return cls.get_type_name(obj) == cls.FEATURE_TYPE

    @classmethod
    def is_feature_collection(cls, obj: Any) -> bool:
        return (
            cls.get_type_name(obj) == cls.FEATURE_COLLECTION_TYPE
            and _get_member(obj, "features") is not UNDEFINED
        )

    @classmethod
    def get_feature_collection_features(cls, obj: Any) -> Optional[Sequence[dict]]:
        if not cls.is_feature_collection(obj):
            return None
        return obj["features"] or []

    @classmethod
    def get_feature_geometry(cls, obj: Any) -> Optional[dict]:
        if not cls.is_feature(obj):
            return None
        geometry = obj.get("geometry")
        return geometry if cls.is_geometry(geometry) else None


def _get_member(obj: dict, name: str) -> Any:
    """Get the array member *name* of *obj*, which may be null.
    Returns ``UNDEFINED`` if it is missing or not an array.
    """
    if name not in obj:
        return UNDEFINED
    value = obj[name]
    if value is None or isinstance(value, (list, tuple)):
        return value
    return UNDEFINED
