# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import json
import logging
import os.path
import shutil
import tempfile
import unittest
from abc import ABCMeta

import click.testing
import pandas as pd
import yaml

from geodap.cli.common import remove_log_handlers
from geodap.cli.main import cli
from geodap.constants import LOG
from test.sampledata import new_grid_dataset


class CliTest(unittest.TestCase, metaclass=ABCMeta):
    def invoke_cli(self, args: list[str]):
        self.runner = click.testing.CliRunner()
        # noinspection PyTypeChecker
        return self.runner.invoke(cli, args, catch_exceptions=False)

    def tearDown(self):
        # Console handlers refer to the runner's closed streams
        remove_log_handlers(LOG)
        LOG.setLevel(logging.NOTSET)
        logging.getLogger().setLevel(logging.WARNING)


class CliDataTest(CliTest, metaclass=ABCMeta):
    """Provides a catalog with dataset "dem", a single
    Zarr store with variables "pr" and "tmax" covering
    (0, 0, 10, 10) in three daily time steps.
    """

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="geodap-test-")
        dataset = new_grid_dataset(
            bbox=(0, 0, 10, 10),
            time=["2020-01-01", "2020-01-02", "2020-01-03"],
            var_names=("pr", "tmax"),
        )
        dataset.to_zarr(self.get_path("dem.zarr"), mode="w")
        self.catalog_path = self.get_path("catalog.yaml")
        with open(self.catalog_path, "w") as fp:
            yaml.safe_dump(
                {
                    "datasets": [
                        dict(
                            data_id="dem",
                            title="Precipitation and temperature",
                            keywords=["precipitation", "temperature", "daily"],
                            url_template=self.get_path("dem.zarr"),
                            format="zarr",
                            var_names=["pr", "tmax"],
                            bbox=[0, 0, 10, 10],
                            spatial_res=1.0,
                        ),
                        dict(
                            data_id="sst",
                            title="Sea surface temperature",
                            keywords=["ocean", "temperature"],
                            url_template=self.get_path("sst.zarr"),
                            bbox=[0, 0, 10, 10],
                        ),
                    ]
                },
                fp,
            )

    def tearDown(self):
        super().tearDown()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def get_path(self, name: str) -> str:
        return os.path.join(self.temp_dir, name)

    def write_features(self, name: str = "features.geojson") -> str:
        path = self.get_path(name)
        with open(path, "w") as fp:
            json.dump(
                {
                    "type": "FeatureCollection",
                    "features": [
                        {
                            "type": "Feature",
                            "properties": {"name": "field"},
                            "geometry": {
                                "type": "Polygon",
                                "coordinates": [
                                    [[1, 1], [3, 1], [3, 3], [1, 3], [1, 1]]
                                ],
                            },
                        }
                    ],
                },
                fp,
            )
        return path

    @staticmethod
    def read_csv(path: str) -> pd.DataFrame:
        return pd.read_csv(path)
