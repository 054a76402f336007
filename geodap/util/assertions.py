# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

from collections.abc import Container
from typing import Any, Union


def assert_given(value: Any, name: str):
    """Raise a ``ValueError`` if *value* is empty or None.

    Used for mandatory constructor arguments such as dataset
    identifiers, URL templates and catalog paths.
    """
    if not value:
        raise ValueError(f"{name} must be given")


def assert_instance(value: Any, dtype: Union[type, tuple[type, ...]], name: str):
    """Raise a ``TypeError`` if *value* is not an instance of *dtype*."""
    if not isinstance(value, dtype):
        raise TypeError(f"{name} must be an instance of {dtype}, was {type(value)}")


def assert_in(value: Any, container: Container, name: str):
    """Raise a ``ValueError`` if *value* is not one of the
    allowed values in *container*, e.g. a tiling axis or format name.
    """
    if value not in container:
        raise ValueError(f"{name} must be one of {container}")


def assert_true(value: Any, message: str):
    """Raise a ``ValueError`` with *message* if *value* is false."""
    if not value:
        raise ValueError(message)
