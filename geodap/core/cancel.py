# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import threading
import time
from typing import Optional

from .error import DeadlineExceededError
from .error import FetchCancelledError


class CancellationToken:
    """A thread-safe cancellation signal with an optional deadline.

    The token is shared between the caller and a running
    resolve-plan-fetch pipeline. Calling :meth:`cancel` from any
    thread makes the pipeline abort outstanding tile reads.

    Args:
        timeout: Optional overall time budget in seconds,
            counted from the token's creation.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout is not None:
            self.set_timeout(timeout)

    def cancel(self):
        """Signal cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """``True`` if :meth:`cancel` has been called."""
        return self._event.is_set()

    @property
    def deadline(self) -> Optional[float]:
        """The deadline as a ``time.monotonic()`` value, if any."""
        return self._deadline

    def set_timeout(self, timeout: float):
        """Set the deadline to *timeout* seconds from now.
        An existing, earlier deadline is kept.
        """
        if timeout < 0:
            raise ValueError("timeout must not be negative")
        deadline = time.monotonic() + timeout
        if self._deadline is None or deadline < self._deadline:
            self._deadline = deadline

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, ``None`` if unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self, **context):
        """Raise if cancelled or the deadline has passed.

        Raises:
            FetchCancelledError: if cancelled.
            DeadlineExceededError: if the deadline has passed.
        """
        if self.cancelled:
            raise FetchCancelledError("request cancelled", **context)
        if self.expired:
            raise DeadlineExceededError("request deadline exceeded", **context)

    def wait(self, timeout: Optional[float]) -> bool:
        """Block until cancelled or *timeout* elapsed.
        Returns ``True`` if cancelled.
        """
        return self._event.wait(timeout)
