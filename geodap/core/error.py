# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Any, Optional
from collections.abc import Mapping, Sequence


class GeodapError(Exception):
    """Base class for errors raised while resolving, planning,
    or fetching a dataset subset.

    Keyword arguments other than *message* are collected as
    the error's *context*, e.g., ``data_id``, ``tile_index``,
    ``bbox``, or ``time_window``. The context is appended
    to the message so that errors are actionable without
    re-deriving request state.

    Args:
        message: The error message.
        **context: Request context.
    """

    def __init__(self, message: str, **context):
        self.context: dict[str, Any] = {
            k: v for k, v in context.items() if v is not None
        }
        self.message = message
        super().__init__(self._format(message, self.context))

    @staticmethod
    def _format(message: str, context: Mapping[str, Any]) -> str:
        if not context:
            return message
        details = ", ".join(f"{k}={v!r}" for k, v in context.items())
        return f"{message} ({details})"


class NotFoundError(GeodapError):
    """Raised if no catalog entry matches a query or identifier."""


class OutOfBoundsError(GeodapError):
    """Raised if an area of interest lies outside a dataset's extent."""


class OutOfRangeError(GeodapError):
    """Raised if a time window lies outside a dataset's
    temporal coverage.
    """


class FetchError(GeodapError):
    """Raised if reading a tile fails."""


class TransientFetchError(FetchError):
    """A tile read failed for a reason that may go away,
    e.g., a network error or server overload. Will be retried.
    """


class PermanentFetchError(FetchError):
    """A tile read failed for a reason that will not go away,
    e.g., the tile does not exist. Will not be retried.
    """


class IncompleteSubsetError(GeodapError):
    """Raised if one or more tiles of a plan could not be read.
    A subset with gaps is never returned.

    Args:
        message: The error message.
        missing_tiles: The tile references that could not be read.
        causes: Mapping from tile index to the last error
            encountered for that tile.
        **context: Request context.
    """

    def __init__(
        self,
        message: str,
        missing_tiles: Sequence[Any] = (),
        causes: Optional[Mapping[int, BaseException]] = None,
        **context,
    ):
        self.missing_tiles = list(missing_tiles)
        self.causes = dict(causes or {})
        context.setdefault(
            "missing_tiles", [_tile_label(tile) for tile in self.missing_tiles]
        )
        super().__init__(message, **context)

    @property
    def missing_tile_indexes(self) -> list[int]:
        return [tile.index for tile in self.missing_tiles]


class FetchCancelledError(GeodapError):
    """Raised if a request has been cancelled."""


class DeadlineExceededError(FetchCancelledError):
    """Raised if a request did not complete before its deadline."""


def _tile_label(tile: Any) -> str:
    url = getattr(tile, "url", None)
    index = getattr(tile, "index", tile)
    return f"#{index} {url}" if url else f"#{index}"
