# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import os.path
import shutil
import tempfile
import unittest
import zipfile

import numpy as np
import pandas as pd
import rioxarray  # noqa: F401
import xarray as xr

from geodap.core.descriptor import DatasetDescriptor
from geodap.core.error import PermanentFetchError
from geodap.core.error import TransientFetchError
from geodap.core.plan import TileRef
from geodap.core.reader import FsTileReader
from geodap.core.reader import classify_error
from geodap.core.timewindow import TimeWindow
from test.sampledata import new_grid_dataset


class FsTileReaderTest(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="geodap-test-")
        self.dataset = new_grid_dataset(
            bbox=(0, 0, 10, 10),
            time=["2017-08-16", "2017-08-17", "2017-08-18"],
            var_names=("pr", "tmax"),
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def path(self, name: str) -> str:
        return os.path.join(self.temp_dir, name)

    def assert_subset(self, subset: xr.Dataset):
        self.assertEqual(["pr"], list(subset.data_vars))
        self.assertEqual({"time": 2, "lat": 3, "lon": 3}, dict(subset.sizes))
        np.testing.assert_equal([2.5, 3.5, 4.5], subset.lon.values)
        np.testing.assert_equal([5.5, 4.5, 3.5], subset.lat.values)
        self.assertEqual(
            list(pd.to_datetime(["2017-08-17", "2017-08-18"])),
            list(pd.DatetimeIndex(subset.time.values)),
        )
        self.assertEqual(105502.5, float(subset.pr[0, 0, 0]))

    def new_tile(self, url: str) -> TileRef:
        return TileRef(
            0,
            url,
            bbox=(2, 3, 5, 6),
            time_window=TimeWindow("2017-08-17", None),
        )

    def test_zarr(self):
        path = self.path("grid.zarr")
        self.dataset.to_zarr(path)
        descriptor = DatasetDescriptor("grid", path, var_names=["pr"])
        subset = FsTileReader().read_tile(self.new_tile(path), descriptor)
        self.assert_subset(subset)

    def test_netcdf(self):
        path = self.path("grid.nc")
        self.dataset.to_netcdf(path)
        descriptor = DatasetDescriptor("grid", path, var_names=["pr"], format="netcdf")
        subset = FsTileReader().read_tile(self.new_tile(path), descriptor)
        self.assert_subset(subset)

    def test_netcdf_in_zip_archive(self):
        nc_path = self.path("grid.nc")
        self.dataset.to_netcdf(nc_path)
        zip_path = self.path("tiles.zip")
        with zipfile.ZipFile(zip_path, "w") as zf:
            zf.write(nc_path, arcname="grid.nc")
        url = f"/vsizip/{zip_path}/grid.nc"
        descriptor = DatasetDescriptor("grid", url, var_names=["pr"], format="netcdf")
        subset = FsTileReader().read_tile(self.new_tile(url), descriptor)
        self.assert_subset(subset)

    def test_netcdf_per_period_without_time(self):
        path = self.path("grid_201708.nc")
        self.dataset.isel(time=0, drop=True).to_netcdf(path)
        descriptor = DatasetDescriptor("grid", path, var_names=["pr"], format="netcdf")
        tile = TileRef(
            0,
            path,
            bbox=(2, 3, 5, 6),
            time_window=TimeWindow("2017-08-17", "2017-09-01"),
            period_start=pd.Timestamp("2017-08-01"),
        )
        subset = FsTileReader().read_tile(tile, descriptor)
        self.assertEqual({"time": 1, "lat": 3, "lon": 3}, dict(subset.sizes))
        self.assertEqual(
            pd.Timestamp("2017-08-01"), pd.Timestamp(subset.time.values[0])
        )

    def test_geotiff(self):
        path = self.path("grid.tif")
        data_array = (
            self.dataset.pr.isel(time=0, drop=True)
            .rename(lon="x", lat="y")
            .rio.write_crs("EPSG:4326")
        )
        data_array.rio.to_raster(path)
        descriptor = DatasetDescriptor("grid", path, var_names=["z"], format="geotiff")
        tile = TileRef(0, path, bbox=(2, 3, 5, 6))
        subset = FsTileReader().read_tile(tile, descriptor)
        self.assertEqual(["z"], list(subset.data_vars))
        self.assertEqual({"lat": 3, "lon": 3}, dict(subset.sizes))
        np.testing.assert_allclose([2.5, 3.5, 4.5], subset.lon.values)
        np.testing.assert_allclose([5.5, 4.5, 3.5], subset.lat.values)
        self.assertAlmostEqual(5502.5, float(subset.z[0, 0]))

    def test_missing_zarr(self):
        path = self.path("missing.zarr")
        descriptor = DatasetDescriptor("grid", path)
        with self.assertRaises(PermanentFetchError) as cm:
            FsTileReader().read_tile(self.new_tile(path), descriptor)
        self.assertEqual(0, cm.exception.context["tile_index"])
        self.assertEqual("grid", cm.exception.context["data_id"])

    def test_missing_netcdf(self):
        path = self.path("missing.nc")
        descriptor = DatasetDescriptor("grid", path, format="netcdf")
        with self.assertRaises(PermanentFetchError):
            FsTileReader().read_tile(self.new_tile(path), descriptor)

    def test_missing_variable(self):
        path = self.path("grid.zarr")
        self.dataset.to_zarr(path)
        descriptor = DatasetDescriptor("grid", path, var_names=["tmin"])
        with self.assertRaises(PermanentFetchError) as cm:
            FsTileReader().read_tile(self.new_tile(path), descriptor)
        self.assertIn("tmin", f"{cm.exception}")


class _HttpError(Exception):
    def __init__(self, status):
        super().__init__(f"HTTP {status}")
        self.status = status


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code


class _RequestError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.response = _Response(status_code)


class ClassifyErrorTest(unittest.TestCase):
    tile = TileRef(3, "https://data.org/tile_3.nc")
    descriptor = DatasetDescriptor("srtm", "https://data.org/tile_{index}.nc")

    def classify(self, error):
        return classify_error(error, self.tile, self.descriptor)

    def test_http_status(self):
        self.assertIsInstance(self.classify(_HttpError(404)), PermanentFetchError)
        self.assertIsInstance(self.classify(_HttpError(410)), PermanentFetchError)
        self.assertIsInstance(self.classify(_HttpError(403)), PermanentFetchError)
        self.assertIsInstance(self.classify(_HttpError(429)), TransientFetchError)
        self.assertIsInstance(self.classify(_HttpError(503)), TransientFetchError)
        self.assertIsInstance(self.classify(_RequestError(500)), TransientFetchError)
        self.assertIsInstance(self.classify(_RequestError(404)), PermanentFetchError)

    def test_context(self):
        error = self.classify(_HttpError(404))
        self.assertEqual(
            dict(data_id="srtm", tile_index=3, url="https://data.org/tile_3.nc"),
            error.context,
        )
        self.assertEqual("tile not found (HTTP 404)", error.message)

    def test_os_errors(self):
        self.assertIsInstance(
            self.classify(FileNotFoundError("no such file")), PermanentFetchError
        )
        self.assertIsInstance(
            self.classify(ConnectionResetError("reset")), TransientFetchError
        )
        self.assertIsInstance(self.classify(TimeoutError()), TransientFetchError)
        self.assertIsInstance(self.classify(OSError("disk")), TransientFetchError)

    def test_other_errors(self):
        self.assertIsInstance(self.classify(ValueError("bad")), PermanentFetchError)
        self.assertIsNone(self.classify(RuntimeError("bug")))
        self.assertIsNone(self.classify(TypeError("bug")))
