# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import datetime
import string
from typing import Any, Optional, Union
from collections.abc import Mapping, Sequence

from geodap.constants import CRS84
from geodap.constants import DEFAULT_TIME_NAME
from geodap.constants import DEFAULT_X_NAME
from geodap.constants import DEFAULT_Y_NAME
from geodap.constants import FORMAT_NAMES
from geodap.constants import FORMAT_NAME_ZARR
from geodap.constants import GLOBAL_GEO_EXTENT
from geodap.constants import TILING_AXES
from geodap.constants import TILING_NONE
from geodap.constants import TILING_SPATIAL
from geodap.constants import TILING_TEMPORAL
from geodap.util.assertions import assert_given
from geodap.util.assertions import assert_in
from geodap.util.assertions import assert_true
from geodap.util.jsonschema import JsonArraySchema
from geodap.util.jsonschema import JsonComplexSchema
from geodap.util.jsonschema import JsonIntegerSchema
from geodap.util.jsonschema import JsonNumberSchema
from geodap.util.jsonschema import JsonObject
from geodap.util.jsonschema import JsonObjectSchema
from geodap.util.jsonschema import JsonStringSchema
from geodap.util.types import Pair
from geodap.util.types import ScalarOrPair
from geodap.util.types import normalize_scalar_or_pair
from .geom import Bounds
from .geom import is_same_crs
from .timewindow import TimeWindow

_URL_TEMPLATE_FIELDS = {"index", "row", "col", "time", "data_id", "var_name"}


class DatasetDescriptor(JsonObject):
    """Describes a remote dataset that may be split into tiles.

    Instances are immutable; use :meth:`derive` to create
    modified copies.

    Args:
        data_id: Unique identifier of the dataset in a catalog.
        url_template: URL or path of the dataset's resource(s).
            May contain the format fields ``{index}``, ``{row}``,
            ``{col}`` (spatial tiles), ``{time}`` (temporal tiles,
            accepts a strftime format spec, e.g. ``{time:%Y%m}``),
            ``{data_id}``, and ``{var_name}``. GDAL virtual file
            system paths such as ``/vsicurl/https://...`` are allowed.
        title: Human-readable title.
        description: Human-readable description.
        keywords: Search keywords.
        var_names: Names of the data variables to read.
            If empty, all data variables are read.
        crs: Native coordinate reference system.
        spatial_res: Native grid resolution in units of *crs*,
            a scalar or an x, y pair.
        bbox: Native spatial extent (x_min, y_min, x_max, y_max).
            Defaults to the global extent for geographic datasets.
        time_range: Temporal coverage ``[start, end)``;
            either may be ``None``.
        tiling: One of "none", "spatial", "temporal".
        num_tiles: Number of tiles in x and y direction
            for "spatial" tiling.
        tile_overlap: Width of the margin by which spatial tiles
            overlap their neighbours, in units of *crs*.
        tile_period: Pandas offset alias giving the period covered
            by each tile for "temporal" tiling, e.g. "MS", "YS", "D".
        format: One of "zarr", "netcdf", "geotiff".
        storage_options: Options passed to the fsspec filesystem.
        x_name: Name of the x coordinate.
        y_name: Name of the y coordinate.
        time_name: Name of the time coordinate.
    """

    def __init__(
        self,
        data_id: str,
        url_template: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        keywords: Sequence[str] = (),
        var_names: Sequence[str] = (),
        crs: str = CRS84,
        spatial_res: Optional[ScalarOrPair[float]] = None,
        bbox: Optional[Sequence[float]] = None,
        time_range: Optional[Sequence[Any]] = None,
        tiling: str = TILING_NONE,
        num_tiles: Optional[ScalarOrPair[int]] = None,
        tile_overlap: float = 0.0,
        tile_period: Optional[str] = None,
        format: str = FORMAT_NAME_ZARR,
        storage_options: Optional[Mapping[str, Any]] = None,
        x_name: str = DEFAULT_X_NAME,
        y_name: str = DEFAULT_Y_NAME,
        time_name: str = DEFAULT_TIME_NAME,
    ):
        assert_given(data_id, name="data_id")
        assert_given(url_template, name="url_template")
        assert_in(tiling, TILING_AXES, name="tiling")
        assert_in(format, FORMAT_NAMES, name="format")
        _validate_url_template(url_template)

        if bbox is None and is_same_crs(crs, CRS84):
            bbox = GLOBAL_GEO_EXTENT
        if bbox is not None:
            assert_true(len(bbox) == 4, "bbox must have four coordinates")
            bbox = tuple(map(float, bbox))
            assert_true(
                bbox[0] < bbox[2] and bbox[1] < bbox[3],
                f"bbox must have positive extent, was {bbox}",
            )
        if spatial_res is not None:
            spatial_res = tuple(map(float, normalize_scalar_or_pair(spatial_res)))
        if num_tiles is not None:
            num_tiles = tuple(normalize_scalar_or_pair(num_tiles, item_type=int))
            assert_true(
                num_tiles[0] > 0 and num_tiles[1] > 0,
                "num_tiles must be positive integers",
            )
        assert_true(tile_overlap >= 0, "tile_overlap must not be negative")

        time_coverage = None
        if time_range is not None:
            assert_true(len(time_range) == 2, "time_range must be a pair")
            time_coverage = TimeWindow(*time_range)

        if tiling == TILING_SPATIAL:
            assert_true(
                bbox is not None and num_tiles is not None,
                "spatial tiling requires bbox and num_tiles",
            )
        elif tiling == TILING_TEMPORAL:
            assert_true(
                tile_period is not None
                and time_coverage is not None
                and time_coverage.start is not None,
                "temporal tiling requires tile_period and a time_range start",
            )

        self._init(
            data_id=data_id,
            url_template=url_template,
            title=title,
            description=description,
            keywords=tuple(keywords or ()),
            var_names=tuple(var_names or ()),
            crs=crs,
            spatial_res=spatial_res,
            bbox=bbox,
            time_range=time_coverage.to_tuple() if time_coverage else None,
            tiling=tiling,
            num_tiles=num_tiles,
            tile_overlap=float(tile_overlap),
            tile_period=tile_period,
            format=format,
            storage_options=dict(storage_options or {}),
            x_name=x_name,
            y_name=y_name,
            time_name=time_name,
            _time_coverage=time_coverage,
        )

    def _init(self, **attrs):
        for k, v in attrs.items():
            object.__setattr__(self, k, v)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def time_coverage(self) -> Optional[TimeWindow]:
        """The temporal coverage as time window, if any."""
        return self._time_coverage

    @property
    def extent(self) -> Optional[Bounds]:
        return self.bbox

    @property
    def res(self) -> Optional[Pair[float]]:
        return self.spatial_res

    def format_url(self, **fields) -> str:
        """Format the URL template with the given tile *fields*."""
        fields.setdefault("data_id", self.data_id)
        fields.setdefault("var_name", self.var_names[0] if self.var_names else "")
        fields.setdefault("index", 0)
        return self.url_template.format(**fields)

    def derive(self, **kwargs) -> "DatasetDescriptor":
        """Create a copy with the given properties replaced."""
        properties = self.to_dict()
        properties.update(kwargs)
        return DatasetDescriptor(**properties)

    @property
    def search_text(self) -> str:
        return " ".join(
            [self.data_id, self.title or "", " ".join(self.keywords), self.description or ""]
        )

    @classmethod
    def from_dict(cls, value: Mapping[str, Any]) -> "DatasetDescriptor":
        value = dict(value)
        time_range = value.get("time_range")
        if isinstance(time_range, (list, tuple)):
            # YAML parses unquoted dates into date objects
            value["time_range"] = [
                t.isoformat() if isinstance(t, (datetime.date, datetime.datetime)) else t
                for t in time_range
            ]
        # noinspection PyTypeChecker
        return super().from_dict(value)

    @classmethod
    def get_schema(cls) -> JsonObjectSchema:
        return JsonObjectSchema(
            properties=dict(
                data_id=JsonStringSchema(min_length=1),
                url_template=JsonStringSchema(min_length=1),
                title=JsonStringSchema(),
                description=JsonStringSchema(),
                keywords=JsonArraySchema(items=JsonStringSchema()),
                var_names=JsonArraySchema(items=JsonStringSchema(min_length=1)),
                crs=JsonStringSchema(min_length=1),
                spatial_res=JsonComplexSchema(
                    one_of=[
                        JsonNumberSchema(exclusive_minimum=0),
                        JsonArraySchema(
                            items=JsonNumberSchema(exclusive_minimum=0),
                            min_items=2,
                            max_items=2,
                        ),
                    ],
                    serializer=_serialize_scalar_or_pair,
                ),
                bbox=JsonArraySchema(
                    items=JsonNumberSchema(), min_items=4, max_items=4
                ),
                time_range=JsonArraySchema(
                    items=JsonStringSchema(nullable=True),
                    min_items=2,
                    max_items=2,
                ),
                tiling=JsonStringSchema(enum=TILING_AXES, default=TILING_NONE),
                num_tiles=JsonComplexSchema(
                    one_of=[
                        JsonIntegerSchema(minimum=1),
                        JsonArraySchema(
                            items=JsonIntegerSchema(minimum=1),
                            min_items=2,
                            max_items=2,
                        ),
                    ],
                    serializer=_serialize_scalar_or_pair,
                ),
                tile_overlap=JsonNumberSchema(minimum=0),
                tile_period=JsonStringSchema(min_length=1),
                format=JsonStringSchema(enum=FORMAT_NAMES, default=FORMAT_NAME_ZARR),
                storage_options=JsonObjectSchema(additional_properties=True),
                x_name=JsonStringSchema(min_length=1),
                y_name=JsonStringSchema(min_length=1),
                time_name=JsonStringSchema(min_length=1),
            ),
            required=["data_id", "url_template"],
            additional_properties=False,
            factory=cls,
        )

    def __eq__(self, other) -> bool:
        return isinstance(other, DatasetDescriptor) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(self.data_id)

    def __repr__(self) -> str:
        return f"DatasetDescriptor({self.data_id!r}, {self.url_template!r})"


def _serialize_scalar_or_pair(value: Any) -> Any:
    return list(value) if isinstance(value, tuple) else value


def _validate_url_template(url_template: str):
    for _, field_name, _, _ in string.Formatter().parse(url_template):
        if field_name is None:
            continue
        field_name = field_name.split(".")[0].split("[")[0]
        if field_name not in _URL_TEMPLATE_FIELDS:
            names = ", ".join(sorted(_URL_TEMPLATE_FIELDS))
            raise ValueError(
                f"url_template contains unknown field {field_name!r},"
                f" must be one of {names}"
            )


DescriptorLike = Union[DatasetDescriptor, Mapping[str, Any]]


def normalize_descriptor(descriptor: DescriptorLike) -> DatasetDescriptor:
    if isinstance(descriptor, DatasetDescriptor):
        return descriptor
    return DatasetDescriptor.from_dict(descriptor)
