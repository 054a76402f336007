# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Optional
from collections.abc import Sequence

from geodap.constants import LOG
from geodap.util.assertions import assert_instance
from geodap.util.logtime import log_time
from .aoi import AreaOfInterestLike
from .cancel import CancellationToken
from .catalog import Catalog
from .config import FetchConfig
from .descriptor import DatasetDescriptor
from .fetch import fetch_tiles
from .merge import merge_tiles
from .plan import plan_tiles
from .reader import TileReader
from .subset import SubsetResult
from .timewindow import TimeWindowLike


def dap(
    query_or_id: str,
    aoi: AreaOfInterestLike,
    time_window: Optional[TimeWindowLike] = None,
    *,
    catalog: Catalog,
    var_names: Optional[Sequence[str]] = None,
    reader: Optional[TileReader] = None,
    config: Optional[FetchConfig] = None,
    token: Optional[CancellationToken] = None,
) -> SubsetResult:
    """Get the subset of a remote dataset for an area of interest
    and an optional time window.

    The dataset is resolved from *catalog* by identifier or by
    free-text query, in which case the best ranked dataset is used.
    Then the tiles of the dataset that intersect the request are
    planned, read concurrently, and merged.

    Example::

        catalog = Catalog.from_file("catalog.yaml")
        result = dap(
            "daily precipitation",
            (-105.3, 39.9, -104.9, 40.1),
            ("2017-08-17", "2017-09-03"),
            catalog=catalog,
        )
        result.dataset.pr.mean("time").plot()

    Args:
        query_or_id: Dataset identifier or free-text query.
        aoi: The area of interest, geometry-like objects are
            assumed to be given in geographic coordinates.
        time_window: Optional half-open time window ``[start, end)``.
        catalog: The catalog of datasets.
        var_names: Optional names of variables to read,
            defaults to the dataset's variables.
        reader: The tile reader, defaults to
            :class:`geodap.core.reader.FsTileReader`.
        config: Fetch options.
        token: Optional cancellation token.

    Returns:
        The subset result.

    Raises:
        NotFoundError: if no dataset matches *query_or_id*.
        OutOfBoundsError: if *aoi* is outside the dataset's extent.
        OutOfRangeError: if *time_window* is outside the dataset's
            temporal coverage.
        IncompleteSubsetError: if any tile could not be read.
        FetchCancelledError: if the request has been cancelled.
        DeadlineExceededError: if the request exceeded its deadline.
    """
    assert_instance(catalog, Catalog, name="catalog")
    config = config if config is not None else FetchConfig()
    token = token if token is not None else CancellationToken()
    if config.deadline is not None:
        token.set_timeout(config.deadline)

    token.raise_if_cancelled()
    descriptor = catalog.resolve(query_or_id)[0]
    if descriptor.data_id != query_or_id:
        LOG.info(f"Query {query_or_id!r} resolved to dataset {descriptor.data_id!r}")
    if var_names:
        descriptor = descriptor.derive(var_names=list(var_names))

    return subset_dataset(
        descriptor, aoi, time_window, reader=reader, config=config, token=token
    )


def subset_dataset(
    descriptor: DatasetDescriptor,
    aoi: AreaOfInterestLike,
    time_window: Optional[TimeWindowLike] = None,
    *,
    reader: Optional[TileReader] = None,
    config: Optional[FetchConfig] = None,
    token: Optional[CancellationToken] = None,
) -> SubsetResult:
    """Plan, fetch, and merge the subset of the dataset
    described by *descriptor*.

    Like :func:`dap`, but for a given descriptor.
    """
    config = config if config is not None else FetchConfig()
    token = token if token is not None else CancellationToken()
    with log_time(LOG, "Subsetting dataset {!r}", descriptor.data_id):
        token.raise_if_cancelled(data_id=descriptor.data_id)
        plan = plan_tiles(descriptor, aoi, time_window)
        pieces = fetch_tiles(plan, reader=reader, config=config, token=token)
        token.raise_if_cancelled(data_id=descriptor.data_id)
        return merge_tiles(plan, pieces, mask_geometry=config.mask_geometry)
