# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import logging
import time
from typing import Optional


class log_time:
    """Context manager that allows for logging the time
    spend to execute its context block.

    The elapsed time is available as *duration* after the block
    has been executed, even if logging is disabled.
    """

    def __init__(self, logger: Optional[logging.Logger], message: str, *args, **kwargs):
        self.enabled = logger is not None and logger.isEnabledFor(logging.DEBUG)
        self.logger = logger
        self.message = message.format(*args, **kwargs) if self.enabled else message
        self.start_time = None
        self.duration = None

    def __enter__(self) -> "log_time":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *exc):
        self.duration = time.perf_counter() - self.start_time
        if self.enabled:
            self.logger.debug(f"{self.message} took {int(1000 * self.duration)} ms")
