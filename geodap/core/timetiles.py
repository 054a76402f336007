# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Optional

import pandas as pd
from pandas.tseries.frequencies import to_offset
from pandas.tseries.offsets import BaseOffset
from pandas.tseries.offsets import Tick

from geodap.util.assertions import assert_given
from geodap.util.assertions import assert_true
from .timewindow import TimeWindow

PeriodTile = tuple[int, pd.Timestamp, pd.Timestamp]


def get_offset(period: str) -> BaseOffset:
    """Convert a pandas offset alias such as "MS" or "D"
    into an offset object.
    """
    assert_given(period, name="period")
    try:
        return to_offset(period)
    except ValueError as e:
        raise ValueError(f"invalid tile period {period!r}: {e}") from e


def get_period_anchor(time: pd.Timestamp, offset: BaseOffset) -> pd.Timestamp:
    """Get the start of the period of *offset* that contains *time*."""
    if isinstance(offset, Tick):
        return time.floor(offset)
    return offset.rollback(time.normalize())


def now() -> pd.Timestamp:
    return pd.Timestamp.now(tz="UTC").tz_localize(None)


def get_period_tiles(
    coverage: TimeWindow, period: str, window: Optional[TimeWindow] = None
) -> list[PeriodTile]:
    """Enumerate the period tiles of a dataset with the given
    temporal *coverage* whose intervals intersect *window*.

    Periods are anchored at the coverage start. Each tile is
    given as (index, start, end) where index is the ordinal of
    the period counted from the coverage start and
    ``[start, end)`` is the period's interval.

    If both the coverage and the window are unbounded at their
    end, periods are enumerated up to the current time.
    """
    assert_true(
        coverage.start is not None,
        "temporal coverage must have a start for period tiles",
    )
    offset = get_offset(period)
    window = window or TimeWindow()
    request = coverage.intersection(window)
    if request is None:
        return []

    last = request.end if request.end is not None else now()
    anchor = get_period_anchor(coverage.start, offset)
    starts = pd.date_range(start=anchor, end=last, freq=offset)

    tiles = []
    for index, start in enumerate(starts):
        end = start + offset
        if end <= start:
            raise ValueError(f"tile period {period!r} does not advance time")
        if TimeWindow(start, end).intersects(request):
            tiles.append((index, start, end))
    return tiles
