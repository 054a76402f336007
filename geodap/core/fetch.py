# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import heapq
import time
from concurrent.futures import FIRST_COMPLETED
from concurrent.futures import Future
from concurrent.futures import wait
from concurrent.futures.thread import ThreadPoolExecutor
from typing import Optional

import xarray as xr

from geodap.constants import LOG
from geodap.util.logtime import log_time
from .cancel import CancellationToken
from .config import FetchConfig
from .error import FetchCancelledError
from .error import IncompleteSubsetError
from .error import PermanentFetchError
from .error import TransientFetchError
from .plan import TilePlan
from .plan import TileRef
from .reader import FsTileReader
from .reader import TileReader

# Interval in seconds in which the coordinator checks for cancellation
_POLL_INTERVAL = 0.05


class _Attempt:
    """A single read attempt of the tile at plan *position*."""

    def __init__(self, position: int, number: int):
        self.position = position
        self.number = number
        # Set by the worker thread
        self.started: Optional[float] = None

    def expires_at(self, timeout: Optional[float]) -> Optional[float]:
        # Time spent waiting for a free worker does not count
        if timeout is None or self.started is None:
            return None
        return self.started + timeout


def fetch_tiles(
    plan: TilePlan,
    reader: Optional[TileReader] = None,
    config: Optional[FetchConfig] = None,
    token: Optional[CancellationToken] = None,
) -> list[xr.Dataset]:
    """Read all tiles of *plan* concurrently.

    Tiles are read on a bounded pool of worker threads. Tile reads
    that fail transiently are retried with exponential backoff,
    an attempt that exceeds the per-tile timeout counts as a
    transient failure. The function returns only after every tile
    has either been read, failed permanently, or exhausted its retries.

    Args:
        plan: The tile plan.
        reader: The tile reader, defaults to :class:`FsTileReader`.
        config: Fetch options, see :class:`FetchConfig`.
        token: Optional cancellation token. Its deadline is
            narrowed by ``config.deadline``, if given.

    Returns:
        One in-memory dataset per tile in plan order.

    Raises:
        IncompleteSubsetError: if any tile could not be read.
        FetchCancelledError: if *token* has been cancelled.
        DeadlineExceededError: if the deadline has been exceeded.
    """
    reader = reader if reader is not None else FsTileReader()
    config = config if config is not None else FetchConfig()
    token = token if token is not None else CancellationToken()
    if config.deadline is not None:
        token.set_timeout(config.deadline)
    with log_time(LOG, "Fetching {} tile(s) of {!r}", len(plan), plan.data_id):
        return _TileFetcher(plan, reader, config, token).run()


class _TileFetcher:
    """Coordinates the concurrent reads of a plan's tiles.

    Workers only read tiles; every result is written by the
    coordinating thread into the slot of the tile's plan position.
    """

    def __init__(
        self,
        plan: TilePlan,
        reader: TileReader,
        config: FetchConfig,
        token: CancellationToken,
    ):
        self._plan = plan
        self._reader = reader
        self._config = config
        self._token = token
        num_tiles = len(plan.tiles)
        self._results: list[Optional[xr.Dataset]] = [None] * num_tiles
        self._errors: dict[int, BaseException] = {}
        self._num_attempts = [0] * num_tiles
        self._ready = list(range(num_tiles))
        self._retries: list[tuple[float, int]] = []
        self._in_flight: dict[Future, _Attempt] = {}
        self._max_workers = config.max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executors: list[ThreadPoolExecutor] = []

    def run(self) -> list[xr.Dataset]:
        plan = self._plan
        if not plan.tiles:
            return []
        try:
            self._loop()
        except FetchCancelledError:
            LOG.warning(f"Fetching tiles of {plan.data_id!r} has been cancelled")
            for future in self._in_flight:
                future.cancel()
            self._results = []
            raise
        finally:
            # Abandoned attempts may still run, don't wait for them
            for executor in self._executors:
                executor.shutdown(wait=False, cancel_futures=True)

        missing = [
            position
            for position, result in enumerate(self._results)
            if result is None
        ]
        if missing:
            missing_tiles = [plan.tiles[position] for position in missing]
            raise IncompleteSubsetError(
                f"{len(missing)} of {len(plan.tiles)} tile(s) could not be read",
                missing_tiles=missing_tiles,
                causes={
                    plan.tiles[position].index: self._errors.get(position)
                    for position in missing
                },
                data_id=plan.data_id,
                time_window=str(plan.time_window) if plan.time_window else None,
            )
        return list(self._results)

    def _loop(self):
        token = self._token
        while True:
            token.raise_if_cancelled(data_id=self._plan.data_id)
            now = time.monotonic()

            while self._retries and self._retries[0][0] <= now:
                _, position = heapq.heappop(self._retries)
                self._ready.append(position)

            while self._ready and len(self._in_flight) < self._max_workers:
                self._submit(self._ready.pop(0))

            if not self._in_flight and not self._ready and not self._retries:
                return

            timeout = self._next_timeout(now)
            if self._in_flight:
                done, _ = wait(
                    list(self._in_flight), timeout=timeout, return_when=FIRST_COMPLETED
                )
                for future in done:
                    self._on_done(future, self._in_flight.pop(future))
            else:
                token.wait(timeout)

            self._abandon_expired()

    def _submit(self, position: int):
        self._num_attempts[position] += 1
        attempt = _Attempt(position, self._num_attempts[position])
        tile = self._plan.tiles[position]
        LOG.debug(f"Reading tile {tile.label}, attempt {attempt.number}")
        future = self._get_executor().submit(self._read_tile, attempt, tile)
        self._in_flight[future] = attempt

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="geodap-fetch"
            )
            self._executors.append(self._executor)
        return self._executor

    def _retire_executor(self):
        """Stop submitting to the current executor, whose workers
        are held by abandoned reads. A new one is created on demand.
        """
        if self._executor is not None:
            LOG.debug("Replacing tile reader pool blocked by abandoned reads")
            self._executor.shutdown(wait=False)
            self._executor = None

    def _read_tile(self, attempt: _Attempt, tile: TileRef) -> xr.Dataset:
        attempt.started = time.monotonic()
        return self._reader.read_tile(tile, self._plan.descriptor)

    def _next_timeout(self, now: float) -> float:
        timeout = _POLL_INTERVAL
        if self._retries:
            timeout = min(timeout, self._retries[0][0] - now)
        remaining = self._token.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)
        return max(0.0, timeout)

    def _on_done(self, future: Future, attempt: _Attempt):
        position = attempt.position
        tile = self._plan.tiles[position]
        error = future.exception()
        if error is None:
            self._results[position] = future.result()
            self._errors.pop(position, None)
            LOG.debug(f"Tile {tile.label} read")
        else:
            self._on_failure(attempt, error)

    def _abandon_expired(self):
        timeout = self._config.tile_timeout
        if timeout is None:
            return
        now = time.monotonic()
        expired = []
        for future, attempt in self._in_flight.items():
            expires_at = attempt.expires_at(timeout)
            if expires_at is not None and expires_at <= now:
                expired.append((future, attempt))
        for future, attempt in expired:
            del self._in_flight[future]
            if not future.cancel():
                # The abandoned read keeps its worker busy
                self._retire_executor()
            tile = self._plan.tiles[attempt.position]
            self._on_failure(
                attempt,
                TransientFetchError(
                    f"tile read timed out after {timeout} s",
                    data_id=self._plan.data_id,
                    tile_index=tile.index,
                    url=tile.url,
                ),
            )

    def _on_failure(self, attempt: _Attempt, error: BaseException):
        position = attempt.position
        tile = self._plan.tiles[position]
        self._errors[position] = error
        if isinstance(error, TransientFetchError):
            if attempt.number <= self._config.max_retries:
                delay = self._config.get_retry_delay(attempt.number)
                LOG.warning(
                    f"Reading tile {tile.label} failed: {error},"
                    f" retrying in {delay:.2f} s"
                )
                heapq.heappush(self._retries, (time.monotonic() + delay, position))
            else:
                LOG.error(
                    f"Reading tile {tile.label} failed"
                    f" after {attempt.number} attempt(s): {error}"
                )
        elif isinstance(error, PermanentFetchError):
            LOG.error(f"Reading tile {tile.label} failed permanently: {error}")
        else:
            LOG.error(
                f"Reading tile {tile.label} failed unexpectedly: {error!r}",
                exc_info=error,
            )
