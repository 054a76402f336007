# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from typing import Any, Optional

from geodap.constants import DEFAULT_MAX_RETRIES
from geodap.constants import DEFAULT_MAX_WORKERS
from geodap.constants import DEFAULT_RETRY_BACKOFF
from geodap.constants import DEFAULT_RETRY_BACKOFF_MAX
from geodap.constants import DEFAULT_TILE_TIMEOUT
from geodap.util.assertions import assert_true
from geodap.util.config import load_configs
from geodap.util.jsonschema import JsonBooleanSchema
from geodap.util.jsonschema import JsonIntegerSchema
from geodap.util.jsonschema import JsonNumberSchema
from geodap.util.jsonschema import JsonObject
from geodap.util.jsonschema import JsonObjectSchema


class FetchConfig(JsonObject):
    """Options that control how tiles are fetched.

    Args:
        max_workers: Maximum number of tiles read concurrently.
        max_retries: Maximum number of retries of a tile read
            that failed transiently.
        retry_backoff: Delay in seconds before the first retry.
            The delay doubles with every further retry.
        retry_backoff_max: Maximum delay in seconds between retries.
        tile_timeout: Timeout in seconds of a single tile read
            attempt, ``None`` for no timeout.
        deadline: Overall time budget in seconds of a request,
            ``None`` for no deadline.
        mask_geometry: Whether to mask cells outside of
            non-rectangular areas of interest.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        retry_backoff_max: float = DEFAULT_RETRY_BACKOFF_MAX,
        tile_timeout: Optional[float] = DEFAULT_TILE_TIMEOUT,
        deadline: Optional[float] = None,
        mask_geometry: bool = True,
    ):
        assert_true(max_workers >= 1, "max_workers must be a positive integer")
        assert_true(max_retries >= 0, "max_retries must not be negative")
        assert_true(
            retry_backoff >= 0 and retry_backoff_max >= 0,
            "retry backoff must not be negative",
        )
        assert_true(
            tile_timeout is None or tile_timeout > 0,
            "tile_timeout must be a positive number",
        )
        assert_true(
            deadline is None or deadline > 0, "deadline must be a positive number"
        )
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.retry_backoff_max = retry_backoff_max
        self.tile_timeout = tile_timeout
        self.deadline = deadline
        self.mask_geometry = mask_geometry

    @classmethod
    def from_file(cls, *config_paths: str) -> "FetchConfig":
        """Load the configuration from YAML or JSON files or URLs.
        Options of later files take precedence.
        """
        # noinspection PyTypeChecker
        return cls.from_dict(load_configs(*config_paths))

    def get_retry_delay(self, attempt: int) -> float:
        """Get the delay in seconds before retry number *attempt*,
        counted from 1.
        """
        assert_true(attempt >= 1, "attempt must be a positive integer")
        return min(self.retry_backoff * 2 ** (attempt - 1), self.retry_backoff_max)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        # "null" means "no timeout" and must survive a round trip
        d.setdefault("tile_timeout", None)
        return d

    @classmethod
    def get_schema(cls) -> JsonObjectSchema:
        return JsonObjectSchema(
            properties=dict(
                max_workers=JsonIntegerSchema(minimum=1, default=DEFAULT_MAX_WORKERS),
                max_retries=JsonIntegerSchema(minimum=0, default=DEFAULT_MAX_RETRIES),
                retry_backoff=JsonNumberSchema(
                    minimum=0, default=DEFAULT_RETRY_BACKOFF
                ),
                retry_backoff_max=JsonNumberSchema(
                    minimum=0, default=DEFAULT_RETRY_BACKOFF_MAX
                ),
                tile_timeout=JsonNumberSchema(exclusive_minimum=0, nullable=True),
                deadline=JsonNumberSchema(exclusive_minimum=0, nullable=True),
                mask_geometry=JsonBooleanSchema(default=True),
            ),
            additional_properties=False,
            factory=cls,
        )

    def __repr__(self) -> str:
        return f"FetchConfig(**{self.to_dict()!r})"
