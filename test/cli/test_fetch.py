# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import os.path

import numpy as np
import xarray as xr

from geodap.core.error import IncompleteSubsetError
from test.cli.helpers import CliDataTest


class FetchTest(CliDataTest):
    def fetch(self, *args: str):
        return self.invoke_cli(
            [
                "fetch",
                "dem",
                "-c",
                self.catalog_path,
                "--bbox",
                "2,2,5,4",
                "--time",
                "2020-01-02/..",
                *args,
            ]
        )

    def test_netcdf(self):
        output_path = self.get_path("out.nc")
        result = self.fetch("-o", output_path)
        self.assertEqual(0, result.exit_code)
        self.assertIn(f"Subset of 'dem' written to {output_path}", result.output)
        self.assertTrue(os.path.isfile(output_path))
        with xr.open_dataset(output_path) as dataset:
            self.assertEqual({"pr", "tmax"}, set(dataset.data_vars))
            self.assertEqual({"time": 2, "lat": 2, "lon": 3}, dict(dataset.sizes))
            np.testing.assert_equal([2.5, 3.5, 4.5], dataset.lon.values)
            np.testing.assert_equal([3.5, 2.5], dataset.lat.values)

    def test_zarr_with_var(self):
        output_path = self.get_path("out.zarr")
        result = self.fetch("--var", "tmax", "-o", output_path)
        self.assertEqual(0, result.exit_code)
        with xr.open_zarr(output_path) as dataset:
            self.assertEqual(["tmax"], list(dataset.data_vars))

    def test_csv(self):
        output_path = self.get_path("out.csv")
        result = self.fetch("--workers", "2", "--retries", "0", "-o", output_path)
        self.assertEqual(0, result.exit_code)
        df = self.read_csv(output_path)
        self.assertEqual(12, len(df))
        self.assertTrue({"time", "lat", "lon", "pr", "tmax"}.issubset(df.columns))

    def test_summary(self):
        result = self.fetch()
        self.assertEqual(0, result.exit_code)
        self.assertIn("Dataset: dem", result.output)
        self.assertIn("Tiles: 0", result.output)
        self.assertIn("<xarray.Dataset>", result.output)

    def test_config_file(self):
        config_path = self.get_path("config.yaml")
        with open(config_path, "w") as fp:
            fp.write("max_workers: 1\nmax_retries: 1\n")
        result = self.fetch("--config", config_path)
        self.assertEqual(0, result.exit_code)

    def test_config_files_merged(self):
        base_path = self.get_path("base.yaml")
        with open(base_path, "w") as fp:
            fp.write("max_workers: 1\nmax_retries: 1\n")
        site_path = self.get_path("site.yaml")
        with open(site_path, "w") as fp:
            fp.write("max_retries: -1\n")
        result = self.fetch("--config", base_path, "--config", site_path)
        self.assertEqual(1, result.exit_code)
        self.assertIn("Invalid fetch options", result.output)
        result = self.fetch("--config", site_path, "--config", base_path)
        self.assertEqual(0, result.exit_code)

    def test_invalid_options(self):
        result = self.fetch("--workers", "0")
        self.assertEqual(1, result.exit_code)
        self.assertIn("Invalid fetch options", result.output)

    def test_invalid_output(self):
        result = self.fetch("-o", self.get_path("out.tif"))
        self.assertEqual(2, result.exit_code)

    def test_missing_store(self):
        with self.assertRaises(IncompleteSubsetError):
            self.invoke_cli(
                ["fetch", "sst", "-c", self.catalog_path, "--bbox", "1,1,2,2"]
            )
