# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import datetime
from typing import Optional, Union
from collections.abc import Sequence

import numpy as np
import pandas as pd

TimeLike = Union[None, str, datetime.date, datetime.datetime, np.datetime64, pd.Timestamp]
TimeWindowLike = Union["TimeWindow", Sequence[TimeLike], str]


def to_timestamp(value: TimeLike) -> Optional[pd.Timestamp]:
    """Convert *value* into a timezone-naive UTC timestamp.
    ``None``, empty strings and ``".."`` map to ``None``.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value in ("", "..", "null", "None"):
            return None
    timestamp = pd.Timestamp(value)
    if timestamp is pd.NaT:
        return None
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert("UTC").tz_localize(None)
    return timestamp


class TimeWindow:
    """A half-open time interval ``[start, end)``.

    Either end may be ``None`` meaning the interval is unbounded
    on that side. Instances are immutable.

    Args:
        start: Inclusive start time.
        end: Exclusive end time.
    """

    __slots__ = ("_start", "_end")

    def __init__(self, start: TimeLike = None, end: TimeLike = None):
        start, end = to_timestamp(start), to_timestamp(end)
        if start is not None and end is not None and end < start:
            raise ValueError(f"end {end} must not be before start {start}")
        object.__setattr__(self, "_start", start)
        object.__setattr__(self, "_end", end)

    @classmethod
    def normalize(cls, value: Optional[TimeWindowLike]) -> Optional["TimeWindow"]:
        """Convert *value* into a time window.

        *value* may be a time window, a pair ``(start, end)``,
        or a string ``"<start>/<end>"`` as used by ISO 8601
        and OGC APIs, where ``".."`` denotes an open end.
        """
        if value is None or isinstance(value, TimeWindow):
            return value
        if isinstance(value, str):
            parts = value.split("/")
            if len(parts) != 2:
                raise ValueError(
                    f"time window must have the form <start>/<end>, was {value!r}"
                )
            return TimeWindow(*parts)
        try:
            start, end = value
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"time window must be a pair (start, end), was {value!r}"
            ) from e
        return TimeWindow(start, end)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def start(self) -> Optional[pd.Timestamp]:
        return self._start

    @property
    def end(self) -> Optional[pd.Timestamp]:
        return self._end

    @property
    def is_unbounded(self) -> bool:
        return self._start is None or self._end is None

    @property
    def is_empty(self) -> bool:
        return (
            self._start is not None and self._end is not None and self._start >= self._end
        )

    def contains(self, time: TimeLike) -> bool:
        time = to_timestamp(time)
        return (self._start is None or self._start <= time) and (
            self._end is None or time < self._end
        )

    def intersects(self, other: "TimeWindow") -> bool:
        """Test whether the two half-open intervals share any instant."""
        intersection = self.intersection(other)
        return intersection is not None

    def intersection(self, other: "TimeWindow") -> Optional["TimeWindow"]:
        """Get the intersection with *other*, None if it is empty."""
        start = _max_start(self._start, other.start)
        end = _min_end(self._end, other.end)
        if start is not None and end is not None and start >= end:
            return None
        return TimeWindow(start, end)

    def to_slice(self) -> slice:
        """A label slice for ``xarray`` selection.

        Note, label slices include their end, use
        :func:`geodap.core.select.select_temporal_subset` for
        half-open selection.
        """
        return slice(self._start, self._end)

    def to_tuple(self) -> tuple[Optional[str], Optional[str]]:
        return _isoformat(self._start), _isoformat(self._end)

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, TimeWindow)
            and self._start == other.start
            and self._end == other.end
        )

    def __hash__(self) -> int:
        return hash((self._start, self._end))

    def __str__(self) -> str:
        start, end = self.to_tuple()
        return f"{start or '..'}/{end or '..'}"

    def __repr__(self) -> str:
        start, end = self.to_tuple()
        return f"TimeWindow({start!r}, {end!r})"


def _max_start(t1: Optional[pd.Timestamp], t2: Optional[pd.Timestamp]):
    if t1 is None:
        return t2
    if t2 is None:
        return t1
    return max(t1, t2)


def _min_end(t1: Optional[pd.Timestamp], t2: Optional[pd.Timestamp]):
    if t1 is None:
        return t2
    if t2 is None:
        return t1
    return min(t1, t2)


def _isoformat(time: Optional[pd.Timestamp]) -> Optional[str]:
    return time.isoformat() if time is not None else None
