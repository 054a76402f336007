# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from collections.abc import Sequence
from typing import Optional, TypeVar, Union

T = TypeVar("T")

Pair = tuple[T, T]
ScalarOrPair = Union[T, Pair]


def normalize_scalar_or_pair(
    value: ScalarOrPair[T],
    *,
    item_type: Optional[type] = None,
    name: Optional[str] = None,
) -> Pair:
    """Turn a cell size or tile count given either for both axes
    or as (x, y) into an (x, y) tuple.
    """
    if isinstance(value, Sequence) and not isinstance(value, str):
        if len(value) != 2:
            raise ValueError(
                f"{name or 'Value'} must be a scalar or pair of"
                f" {item_type or 'scalars'}, was '{value}'"
            )
        x, y = value
    else:
        x, y = value, value
    if item_type is not None and not (
        isinstance(x, item_type) and isinstance(y, item_type)
    ):
        raise ValueError(
            f"{name or 'Value'} must be a scalar or pair of {item_type}, was '{value}'"
        )
    return x, y
