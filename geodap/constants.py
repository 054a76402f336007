# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import logging

GLOBAL_GEO_EXTENT = -180.0, -90.0, 180.0, 90.0

CRS84 = "OGC:CRS84"
DEFAULT_CRS_NAME = CRS84

#: Tiling axes of a remote dataset
TILING_NONE = "none"
TILING_SPATIAL = "spatial"
TILING_TEMPORAL = "temporal"
TILING_AXES = (TILING_NONE, TILING_SPATIAL, TILING_TEMPORAL)

FORMAT_NAME_ZARR = "zarr"
FORMAT_NAME_NETCDF = "netcdf"
FORMAT_NAME_GEOTIFF = "geotiff"
FORMAT_NAMES = (FORMAT_NAME_ZARR, FORMAT_NAME_NETCDF, FORMAT_NAME_GEOTIFF)

DEFAULT_X_NAME = "lon"
DEFAULT_Y_NAME = "lat"
DEFAULT_TIME_NAME = "time"

DEFAULT_MAX_WORKERS = 4
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF = 0.5  # seconds
DEFAULT_RETRY_BACKOFF_MAX = 8.0  # seconds
DEFAULT_TILE_TIMEOUT = 60.0  # seconds

# Number of points per edge used when transforming bounding boxes
BBOX_DENSIFY_PTS = 21

LOG_LEVEL_OFF_NAME = "OFF"
LOG_LEVEL_OFF = logging.CRITICAL + 5

LOG_LEVEL_DETAIL_NAME = "DETAIL"
LOG_LEVEL_DETAIL = logging.DEBUG + 5

LOG_LEVEL_TRACE_NAME = "TRACE"
LOG_LEVEL_TRACE = logging.DEBUG - 5

logging.addLevelName(LOG_LEVEL_DETAIL, LOG_LEVEL_DETAIL_NAME)
logging.addLevelName(LOG_LEVEL_TRACE, LOG_LEVEL_TRACE_NAME)

LOG_LEVELS = [
    LOG_LEVEL_OFF_NAME,
    "CRITICAL",
    "ERROR",
    "WARNING",
    "INFO",
    LOG_LEVEL_DETAIL_NAME,
    "DEBUG",
    LOG_LEVEL_TRACE_NAME,
]

DEFAULT_GEODAP_LOG_LEVEL = logging.WARNING

GENERAL_LOG_FORMAT = "[%(levelname).1s %(asctime)s %(name)s] %(message)s"
GEODAP_LOG_FORMAT = "%(levelname)s: %(message)s"

# geodap logger
LOG = logging.getLogger("geodap")
LOG.setLevel(DEFAULT_GEODAP_LOG_LEVEL)
