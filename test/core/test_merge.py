# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import unittest

import numpy as np
import pandas as pd
import shapely.geometry
import xarray as xr

from geodap.core.aoi import AreaOfInterest
from geodap.core.descriptor import DatasetDescriptor
from geodap.core.geom import transform_bbox
from geodap.core.merge import merge_tiles
from geodap.core.plan import plan_tiles
from geodap.core.select import select_spatial_subset
from test.sampledata import DatasetTileReader
from test.sampledata import new_grid_dataset


def read_pieces(plan, datasets):
    reader = DatasetTileReader(datasets)
    return [reader.read_tile(tile, plan.descriptor) for tile in plan]


class MergeSpatialTilesTest(unittest.TestCase):
    def test_stitched_tiles_equal_direct_subset(self):
        dataset = new_grid_dataset()
        descriptor = DatasetDescriptor(
            "global",
            "tile_{index}.zarr",
            tiling="spatial",
            num_tiles=2,
        )
        plan = plan_tiles(descriptor, (-10, -10, 10, 10))
        self.assertEqual([0, 1, 2, 3], plan.tile_indexes)
        datasets = {tile.url: dataset for tile in plan}
        result = merge_tiles(plan, read_pieces(plan, datasets))
        expected = select_spatial_subset(dataset, (-10, -10, 10, 10))
        xr.testing.assert_equal(expected, result.dataset)
        self.assertEqual([0, 1, 2, 3], result.tile_indexes)
        self.assertEqual("global", result.data_id)

    def test_lower_index_wins_in_overlap(self):
        dataset = new_grid_dataset(bbox=(0, 0, 20, 10))
        descriptor = DatasetDescriptor(
            "dem",
            "tile_{index}.zarr",
            bbox=(0, 0, 20, 10),
            tiling="spatial",
            num_tiles=(2, 1),
            tile_overlap=2,
        )
        plan = plan_tiles(descriptor, (5, 2, 15, 4))
        self.assertEqual([0, 1], plan.tile_indexes)
        datasets = {"tile_0.zarr": dataset, "tile_1.zarr": dataset + 0.5}
        result = merge_tiles(plan, read_pieces(plan, datasets))
        merged = result.dataset
        np.testing.assert_equal(np.arange(5.5, 15.0, 1.0), merged.lon.values)
        np.testing.assert_equal([3.5, 2.5], merged.lat.values)
        expected = dataset.pr.sel(lon=11.5)
        np.testing.assert_equal(expected.sel(lat=[3.5, 2.5]).values,
                                merged.pr.sel(lon=11.5).values)
        expected = dataset.pr.sel(lon=12.5) + 0.5
        np.testing.assert_equal(expected.sel(lat=[3.5, 2.5]).values,
                                merged.pr.sel(lon=12.5).values)

    def test_anti_meridian(self):
        dataset = new_grid_dataset()
        descriptor = DatasetDescriptor(
            "global", "tile_{index}.zarr", tiling="spatial", num_tiles=2
        )
        plan = plan_tiles(descriptor, (170, 10, -170, 20))
        datasets = {tile.url: dataset for tile in plan}
        merged = merge_tiles(plan, read_pieces(plan, datasets)).dataset
        self.assertEqual(20, merged.lon.size)
        self.assertEqual(10, merged.lat.size)
        self.assertEqual(-179.5, float(merged.lon[0]))
        self.assertEqual(179.5, float(merged.lon[-1]))
        self.assertEqual(200, int(merged.pr.count()))


class MergeTemporalTilesTest(unittest.TestCase):
    def test_concat_in_time(self):
        aug = new_grid_dataset(
            bbox=(0, 0, 4, 4), time=pd.date_range("2017-08-01", "2017-08-31")
        )
        sep = new_grid_dataset(
            bbox=(0, 0, 4, 4), time=pd.date_range("2017-09-01", "2017-09-30")
        )
        descriptor = DatasetDescriptor(
            "pr",
            "pr_{time:%Y%m}.nc",
            format="netcdf",
            time_range=["2017-01-01", None],
            tiling="temporal",
            tile_period="MS",
        )
        plan = plan_tiles(descriptor, (1, 1, 3, 3), ("2017-08-17", "2017-09-03"))
        datasets = {"pr_201708.nc": aug, "pr_201709.nc": sep}
        result = merge_tiles(plan, read_pieces(plan, datasets))
        merged = result.dataset
        self.assertEqual(
            list(pd.date_range("2017-08-17", "2017-09-02")),
            list(pd.DatetimeIndex(merged.time.values)),
        )
        self.assertEqual({"time": 17, "lat": 2, "lon": 2}, dict(merged.sizes))
        self.assertEqual(plan.time_window, result.time_window)


class MergeMaskTest(unittest.TestCase):
    def setUp(self):
        self.dataset = new_grid_dataset(bbox=(0, 0, 4, 4))
        self.descriptor = DatasetDescriptor("grid", "grid.zarr", bbox=(0, 0, 4, 4))
        self.triangle = shapely.geometry.Polygon([(0, 0), (4.2, 0), (0, 4.2)])

    def test_cells_outside_polygon_are_masked(self):
        plan = plan_tiles(self.descriptor, self.triangle)
        result = merge_tiles(plan, read_pieces(plan, {"grid.zarr": self.dataset}))
        pr = result.dataset.pr
        self.assertEqual({"lat": 4, "lon": 4}, dict(pr.sizes))
        self.assertEqual(10, int(pr.count()))
        self.assertTrue(np.isnan(float(pr.sel(lat=3.5, lon=1.5))))
        self.assertEqual(3500.5, float(pr.sel(lat=3.5, lon=0.5)))

    def test_no_mask(self):
        plan = plan_tiles(self.descriptor, self.triangle)
        result = merge_tiles(
            plan, read_pieces(plan, {"grid.zarr": self.dataset}), mask_geometry=False
        )
        self.assertEqual(16, int(result.dataset.pr.count()))

    def test_box_is_not_masked(self):
        plan = plan_tiles(self.descriptor, (0.2, 0.2, 3.8, 3.8))
        result = merge_tiles(plan, read_pieces(plan, {"grid.zarr": self.dataset}))
        self.assertEqual(16, int(result.dataset.pr.count()))

    def test_point(self):
        plan = plan_tiles(self.descriptor, (1.2, 2.7))
        result = merge_tiles(plan, read_pieces(plan, {"grid.zarr": self.dataset}))
        self.assertEqual({"lat": 1, "lon": 1}, dict(result.dataset.pr.sizes))
        self.assertEqual(2501.5, float(result.dataset.pr[0, 0]))

    def test_pieces_must_match_plan(self):
        plan = plan_tiles(self.descriptor, (0, 0, 4, 4))
        with self.assertRaises(ValueError):
            merge_tiles(plan, [])


class MergeReprojectionTest(unittest.TestCase):
    def test_reproject_into_aoi_crs(self):
        dataset = new_grid_dataset(bbox=(0, 0, 20, 20))
        descriptor = DatasetDescriptor(
            "grid", "grid.zarr", bbox=(0, 0, 20, 20), spatial_res=1.0
        )
        bbox = transform_bbox((2, 2, 12, 12), "OGC:CRS84", "EPSG:3857")
        aoi = AreaOfInterest(bbox, crs="EPSG:3857")
        plan = plan_tiles(descriptor, aoi)
        self.assertEqual((10, 10), plan.target_grid.shape)
        result = merge_tiles(plan, read_pieces(plan, {"grid.zarr": dataset}))
        self.assertEqual("EPSG:3857", result.crs.to_string())
        merged = result.dataset
        self.assertEqual({"lat": 10, "lon": 10}, dict(merged.pr.sizes))
        np.testing.assert_allclose(
            plan.target_grid.x_coords, merged.lon.values
        )
        self.assertFalse(bool(merged.pr.isnull().any()))
