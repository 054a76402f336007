# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Optional
from collections.abc import Sequence

import pandas as pd
import pyproj
import xarray as xr

from geodap.constants import DEFAULT_TIME_NAME
from geodap.constants import DEFAULT_X_NAME
from geodap.constants import DEFAULT_Y_NAME
from .aoi import AreaOfInterest
from .timewindow import TimeWindow


class SubsetResult:
    """The merged subset of a dataset for an area of interest
    and an optional time window.

    Args:
        dataset: The merged, clipped dataset.
        data_id: Identifier of the dataset.
        crs: The CRS of *dataset*'s x and y coordinates.
        tile_indexes: Indexes of the tiles merged.
        aoi: The requested area of interest.
        time_window: The time window, clipped to the
            dataset's temporal coverage.
        x_name: Name of the x coordinate.
        y_name: Name of the y coordinate.
        time_name: Name of the time coordinate.
    """

    def __init__(
        self,
        dataset: xr.Dataset,
        data_id: str,
        crs: pyproj.CRS,
        tile_indexes: Sequence[int],
        aoi: AreaOfInterest,
        time_window: Optional[TimeWindow] = None,
        x_name: str = DEFAULT_X_NAME,
        y_name: str = DEFAULT_Y_NAME,
        time_name: str = DEFAULT_TIME_NAME,
    ):
        self.dataset = dataset
        self.data_id = data_id
        self.crs = crs
        self.tile_indexes = list(tile_indexes)
        self.aoi = aoi
        self.time_window = time_window
        self.x_name = x_name
        self.y_name = y_name
        self.time_name = time_name

    @property
    def var_names(self) -> list[str]:
        return [str(var_name) for var_name in self.dataset.data_vars]

    def to_dataframe(self, dropna: bool = True) -> pd.DataFrame:
        """Convert the subset into a table with one row per cell
        and time step and one column per variable.

        Args:
            dropna: Whether to drop rows without any valid value,
                for example cells outside a non-rectangular
                area of interest.
        """
        dataset = self.dataset.drop_vars("spatial_ref", errors="ignore")
        df = dataset.to_dataframe()
        var_names = [v for v in self.var_names if v in df.columns]
        if dropna and var_names:
            df = df.dropna(how="all", subset=var_names)
        return df

    def __repr__(self) -> str:
        return (
            f"SubsetResult({self.data_id!r},"
            f" tiles={self.tile_indexes!r},"
            f" dims={dict(self.dataset.sizes)!r})"
        )
