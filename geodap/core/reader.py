# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import os.path
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Optional
from collections.abc import Mapping

import fsspec
import rioxarray
import xarray as xr

from geodap.constants import FORMAT_NAME_GEOTIFF
from geodap.constants import FORMAT_NAME_NETCDF
from geodap.constants import FORMAT_NAME_ZARR
from geodap.constants import LOG
from geodap.util.fspath import is_https_fs
from geodap.util.fspath import is_local_fs
from geodap.util.fspath import normalize_uri
from geodap.util.logtime import log_time
from .descriptor import DatasetDescriptor
from .error import FetchError
from .error import GeodapError
from .error import PermanentFetchError
from .error import TransientFetchError
from .plan import TileRef
from .select import select_subset

_ZARR_MARKERS = (".zmetadata", ".zgroup", "zarr.json")

# HTTP status codes worth a retry
_RETRY_STATUS_CODES = (408, 425, 429)
_NOT_FOUND_STATUS_CODES = (404, 410)


class TileReader(ABC):
    """Reads the subset of a single tile."""

    @abstractmethod
    def read_tile(self, tile: TileRef, descriptor: DatasetDescriptor) -> xr.Dataset:
        """Read the subset of *tile* given by its crop window
        and time window into memory.

        Implementations must be thread-safe, as tiles
        are read concurrently.

        Args:
            tile: The tile reference.
            descriptor: The descriptor of the tile's dataset.

        Returns:
            An in-memory dataset.

        Raises:
            TransientFetchError: if reading failed for a reason
                that may go away, e.g., a network error.
            PermanentFetchError: if reading failed for a reason
                that will not go away, e.g., the tile does not exist.
        """


class FsTileReader(TileReader):
    """Reads tiles from any filesystem supported by ``fsspec``.

    Only the required data is transferred where the format allows:
    Zarr chunks are read lazily, NetCDF files served over HTTP
    are read using byte-range requests, and GeoTIFFs are read
    window-wise by GDAL. NetCDF files on other filesystems
    are downloaded into a temporary file.

    Args:
        storage_options: Options for the ``fsspec`` filesystem,
            updated by the descriptor's storage options.
        open_params: Extra keyword arguments passed to the
            ``xarray`` opener.
    """

    def __init__(
        self,
        storage_options: Optional[Mapping[str, Any]] = None,
        open_params: Optional[Mapping[str, Any]] = None,
    ):
        self._storage_options = dict(storage_options or {})
        self._open_params = dict(open_params or {})

    def read_tile(self, tile: TileRef, descriptor: DatasetDescriptor) -> xr.Dataset:
        url = normalize_uri(tile.url)
        storage_options = dict(self._storage_options)
        storage_options.update(descriptor.storage_options)
        try:
            with log_time(LOG, "Reading tile {}", tile.label):
                return self._read(url, storage_options, tile, descriptor)
        except GeodapError:
            raise
        except Exception as e:
            error = classify_error(e, tile, descriptor)
            if error is None:
                raise
            raise error from e

    def _read(
        self,
        url: str,
        storage_options: dict[str, Any],
        tile: TileRef,
        descriptor: DatasetDescriptor,
    ) -> xr.Dataset:
        fs, path = fsspec.core.url_to_fs(url, **storage_options)
        if descriptor.format == FORMAT_NAME_ZARR:
            if not any(fs.exists(f"{path}/{marker}") for marker in _ZARR_MARKERS):
                raise FileNotFoundError(f"Zarr dataset not found: {url}")
            dataset = xr.open_zarr(
                url, storage_options=storage_options or None, **self._open_params
            )
            with dataset:
                return self._load_subset(dataset, tile, descriptor)

        if not fs.exists(path):
            raise FileNotFoundError(f"file not found: {url}")

        if descriptor.format == FORMAT_NAME_NETCDF:
            if is_local_fs(fs):
                return self._read_netcdf(path, tile, descriptor)
            if is_https_fs(fs):
                return self._read_netcdf(f"{url}#mode=bytes", tile, descriptor)
            with tempfile.TemporaryDirectory(prefix="geodap-") as temp_dir:
                file_path = os.path.join(temp_dir, "tile.nc")
                fs.get_file(path, file_path)
                return self._read_netcdf(file_path, tile, descriptor)

        assert descriptor.format == FORMAT_NAME_GEOTIFF
        if is_local_fs(fs):
            return self._read_geotiff(path, tile, descriptor)
        with fs.open(path, mode="rb") as fp:
            return self._read_geotiff(fp, tile, descriptor)

    def _read_netcdf(
        self, file_path: str, tile: TileRef, descriptor: DatasetDescriptor
    ) -> xr.Dataset:
        open_params = dict(self._open_params)
        engine = open_params.pop("engine", "netcdf4")
        with xr.open_dataset(file_path, engine=engine, **open_params) as dataset:
            return self._load_subset(dataset, tile, descriptor)

    def _read_geotiff(
        self, file: Any, tile: TileRef, descriptor: DatasetDescriptor
    ) -> xr.Dataset:
        with rioxarray.open_rasterio(
            file, band_as_variable=True, **self._open_params
        ) as dataset:
            renames = {
                name: new_name
                for name, new_name in (
                    ("x", descriptor.x_name),
                    ("y", descriptor.y_name),
                )
                if name != new_name and new_name not in dataset.variables
            }
            if renames:
                dataset = dataset.rename(renames)
            if (
                len(descriptor.var_names) == 1
                and descriptor.var_names[0] not in dataset
                and list(dataset.data_vars) == ["band_1"]
            ):
                dataset = dataset.rename({"band_1": descriptor.var_names[0]})
            return self._load_subset(dataset, tile, descriptor)

    @staticmethod
    def _load_subset(
        dataset: xr.Dataset, tile: TileRef, descriptor: DatasetDescriptor
    ) -> xr.Dataset:
        time_name = descriptor.time_name
        time_window = tile.time_window
        if time_name not in dataset.variables:
            time_window = None
            if tile.period_start is not None:
                # File per period without a time coordinate
                dataset = dataset.expand_dims({time_name: [tile.period_start]})
        subset = select_subset(
            dataset,
            var_names=descriptor.var_names or None,
            bbox=tile.bbox,
            time_window=time_window,
            x_name=descriptor.x_name,
            y_name=descriptor.y_name,
            time_name=time_name,
        )
        return subset.load()


def classify_error(
    error: BaseException, tile: TileRef, descriptor: DatasetDescriptor
) -> Optional[FetchError]:
    """Classify an error raised while reading *tile*.

    Returns:
        A :class:`TransientFetchError` for errors worth a retry,
        a :class:`PermanentFetchError` for errors that will
        not go away, or ``None`` for errors not related to I/O.
    """
    context = dict(data_id=descriptor.data_id, tile_index=tile.index, url=tile.url)
    status = _get_http_status(error)
    if status is not None:
        if status in _NOT_FOUND_STATUS_CODES:
            return PermanentFetchError(
                f"tile not found (HTTP {status})", **context
            )
        if status >= 500 or status in _RETRY_STATUS_CODES:
            return TransientFetchError(f"server error (HTTP {status})", **context)
        return PermanentFetchError(f"request failed (HTTP {status})", **context)
    if isinstance(error, (FileNotFoundError, KeyError)):
        return PermanentFetchError(f"tile not found: {error}", **context)
    if isinstance(error, (TimeoutError, ConnectionError)):
        return TransientFetchError(f"network error: {error}", **context)
    if isinstance(error, OSError):
        return TransientFetchError(f"I/O error: {error}", **context)
    if isinstance(error, ValueError):
        return PermanentFetchError(f"invalid tile: {error}", **context)
    return None


def _get_http_status(error: BaseException) -> Optional[int]:
    status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None
