# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import datetime
import unittest

import jsonschema
import pandas as pd

from geodap.core.descriptor import DatasetDescriptor
from geodap.core.descriptor import normalize_descriptor
from geodap.core.timewindow import TimeWindow


class DatasetDescriptorTest(unittest.TestCase):
    def test_defaults(self):
        descriptor = DatasetDescriptor("dem", "https://data.org/dem.zarr")
        self.assertEqual("dem", descriptor.data_id)
        self.assertEqual("OGC:CRS84", descriptor.crs)
        self.assertEqual((-180.0, -90.0, 180.0, 90.0), descriptor.bbox)
        self.assertEqual(descriptor.bbox, descriptor.extent)
        self.assertEqual("none", descriptor.tiling)
        self.assertEqual("zarr", descriptor.format)
        self.assertEqual((), descriptor.var_names)
        self.assertEqual(("lon", "lat", "time"), (
            descriptor.x_name, descriptor.y_name, descriptor.time_name
        ))
        self.assertIsNone(descriptor.time_range)
        self.assertIsNone(descriptor.time_coverage)

    def test_projected_crs_has_no_default_bbox(self):
        descriptor = DatasetDescriptor(
            "dem-utm", "dem.tif", crs="EPSG:32633", format="geotiff"
        )
        self.assertIsNone(descriptor.bbox)

    def test_spatial_tiling(self):
        descriptor = DatasetDescriptor(
            "dem",
            "https://data.org/dem/tile_{row}_{col}.tif",
            tiling="spatial",
            num_tiles=2,
            spatial_res=0.25,
            format="geotiff",
        )
        self.assertEqual((2, 2), descriptor.num_tiles)
        self.assertEqual((0.25, 0.25), descriptor.spatial_res)
        self.assertEqual((0.25, 0.25), descriptor.res)
        self.assertEqual(
            "https://data.org/dem/tile_1_0.tif",
            descriptor.format_url(index=2, row=1, col=0),
        )

    def test_temporal_tiling(self):
        descriptor = DatasetDescriptor(
            "gridmet-pr",
            "https://data.org/pr/{var_name}_{time:%Y%m}.nc",
            var_names=["pr"],
            time_range=["1979-01-01", None],
            tiling="temporal",
            tile_period="MS",
            format="netcdf",
        )
        self.assertEqual(("1979-01-01T00:00:00", None), descriptor.time_range)
        self.assertEqual(TimeWindow("1979-01-01", None), descriptor.time_coverage)
        self.assertEqual(
            "https://data.org/pr/pr_201708.nc",
            descriptor.format_url(index=463, time=pd.Timestamp("2017-08-01")),
        )

    def test_invalid(self):
        with self.assertRaises(ValueError):
            DatasetDescriptor("", "dem.zarr")
        with self.assertRaises(ValueError):
            DatasetDescriptor("dem", "dem.zarr", tiling="diagonal")
        with self.assertRaises(ValueError):
            DatasetDescriptor("dem", "dem.zarr", format="hdf4")
        with self.assertRaises(ValueError):
            DatasetDescriptor("dem", "dem.zarr", bbox=(10, 10, 0, 20))
        with self.assertRaises(ValueError):
            DatasetDescriptor("dem", "dem.zarr", tiling="spatial")
        with self.assertRaises(ValueError):
            DatasetDescriptor("dem", "dem.zarr", tiling="temporal", tile_period="D")
        with self.assertRaises(ValueError):
            DatasetDescriptor("dem", "dem.zarr", time_range=["2017-09-03", "2017-08-17"])

    def test_unknown_url_template_field(self):
        with self.assertRaises(ValueError) as cm:
            DatasetDescriptor("dem", "dem_{tile}.tif")
        self.assertIn("unknown field 'tile'", f"{cm.exception}")

    def test_immutable(self):
        descriptor = DatasetDescriptor("dem", "dem.zarr")
        with self.assertRaises(AttributeError):
            descriptor.data_id = "dem2"

    def test_derive(self):
        descriptor = DatasetDescriptor("dem", "dem.zarr", var_names=["z", "slope"])
        derived = descriptor.derive(var_names=["z"])
        self.assertEqual(("z",), derived.var_names)
        self.assertEqual(("z", "slope"), descriptor.var_names)
        self.assertEqual("dem", derived.data_id)

    def test_dict_round_trip(self):
        d = dict(
            data_id="dem",
            url_template="https://data.org/dem/tile_{index}.tif",
            title="Digital elevation model",
            keywords=["elevation", "dem"],
            var_names=["z"],
            bbox=[0, 0, 20, 10],
            spatial_res=[0.5, 0.25],
            tiling="spatial",
            num_tiles=[2, 1],
            format="geotiff",
        )
        descriptor = DatasetDescriptor.from_dict(d)
        self.assertEqual((0.0, 0.0, 20.0, 10.0), descriptor.bbox)
        self.assertEqual((2, 1), descriptor.num_tiles)
        self.assertEqual(("elevation", "dem"), descriptor.keywords)
        d2 = descriptor.to_dict()
        self.assertEqual([0.0, 0.0, 20.0, 10.0], d2["bbox"])
        self.assertEqual([2, 1], d2["num_tiles"])
        self.assertEqual([0.5, 0.25], d2["spatial_res"])
        self.assertEqual(["elevation", "dem"], d2["keywords"])
        self.assertNotIn("time_range", d2)
        self.assertEqual(descriptor, DatasetDescriptor.from_dict(d2))

    def test_from_dict_converts_dates(self):
        descriptor = DatasetDescriptor.from_dict(
            dict(
                data_id="pr",
                url_template="pr.nc",
                format="netcdf",
                time_range=[datetime.date(1979, 1, 1), None],
            )
        )
        self.assertEqual(("1979-01-01T00:00:00", None), descriptor.time_range)

    def test_from_dict_rejects_unknown_properties(self):
        with self.assertRaises(jsonschema.ValidationError):
            DatasetDescriptor.from_dict(
                dict(data_id="dem", url_template="dem.zarr", color="red")
            )

    def test_normalize_descriptor(self):
        descriptor = DatasetDescriptor("dem", "dem.zarr")
        self.assertIs(descriptor, normalize_descriptor(descriptor))
        self.assertEqual(
            descriptor, normalize_descriptor(dict(data_id="dem", url_template="dem.zarr"))
        )

    def test_search_text(self):
        descriptor = DatasetDescriptor(
            "gridmet-pr", "pr.nc", title="Precipitation", keywords=["daily"]
        )
        self.assertEqual("gridmet-pr Precipitation daily ", descriptor.search_text)
