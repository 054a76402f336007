# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import logging
import os
import sys
from typing import Any, Optional, Union
from collections.abc import Sequence

import click

from geodap.constants import GENERAL_LOG_FORMAT
from geodap.constants import GEODAP_LOG_FORMAT
from geodap.constants import LOG
from geodap.constants import LOG_LEVEL_OFF
from geodap.constants import LOG_LEVEL_OFF_NAME
from geodap.core.error import GeodapError

#: Environment variable that provides the default catalog
CATALOG_ENV_VAR = "GEODAP_CATALOG"


def new_cli_ctx_obj():
    return {
        "traceback": False,
    }


def cli_option_traceback(func):
    """Decorator for adding a reusable CLI option `--traceback`."""

    # noinspection PyUnusedLocal
    def _callback(ctx: click.Context, param: click.Option, value: bool):
        ctx_obj = ctx.ensure_object(dict)
        ctx_obj["traceback"] = value
        return value

    return click.option(
        "--traceback",
        is_flag=True,
        help="Enable tracing back errors by dumping the Python call stack. "
        "Pass as very first option to also trace back error during command-line validation.",
        callback=_callback,
    )(func)


def cli_option_catalog(func):
    """Decorator for adding a reusable CLI option `--catalog`/`-c`."""
    return click.option(
        "--catalog",
        "-c",
        "catalog_path",
        metavar="CATALOG",
        envvar=CATALOG_ENV_VAR,
        required=True,
        help="Path or URL of a YAML, JSON, or CSV dataset catalog."
        f" Defaults to the value of environment variable {CATALOG_ENV_VAR}.",
    )(func)


def cli_options_request(func):
    """Decorator for adding the reusable CLI options that
    define the area of interest and time window of a request.
    """
    options = [
        click.option(
            "--bbox",
            "-b",
            metavar="BBOX",
            help="Area of interest given as bounding box"
            ' "<x_min>,<y_min>,<x_max>,<y_max>" or as point "<x>,<y>".',
        ),
        click.option(
            "--geometry",
            "-g",
            metavar="GEOMETRY",
            help="Area of interest given as WKT string"
            " or as path of a GeoJSON file.",
        ),
        click.option(
            "--crs",
            metavar="CRS",
            default="OGC:CRS84",
            show_default=True,
            help="Coordinate reference system of the area of interest.",
        ),
        click.option(
            "--buffer",
            metavar="BUFFER",
            type=float,
            help="Buffer distance applied to the area of interest"
            " in units of its CRS.",
        ),
        click.option(
            "--time",
            "-t",
            "time_window",
            metavar="TIME",
            help='Half-open time window "<start>/<end>",'
            ' use ".." for an open end.',
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def parse_cli_aoi(
    bbox: Optional[str],
    geometry: Optional[str],
    crs: str,
    buffer: Optional[float] = None,
):
    """Create an area of interest from the values of
    the options added by :func:`cli_options_request`.
    """
    from geodap.core.aoi import AreaOfInterest
    from geodap.util.config import load_json_or_yaml

    if bool(bbox) == bool(geometry):
        raise click.UsageError("Exactly one of --bbox and --geometry must be given.")
    if bbox:
        coords = parse_cli_sequence(
            bbox,
            metavar="BBOX",
            item_parser=float,
            num_items_min=2,
            num_items_max=4,
            item_plural_name="coordinates",
        )
        if len(coords) == 3:
            raise click.BadParameter(
                "BBOX must have 2 or 4 coordinates", param_hint="--bbox"
            )
        value = coords
    elif os.path.isfile(geometry):
        value = load_json_or_yaml(geometry)
    else:
        value = geometry
    try:
        return AreaOfInterest(value, crs=crs, buffer=buffer)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def parse_cli_time_window(value: Optional[str]):
    from geodap.core.timewindow import TimeWindow

    if not value:
        return None
    try:
        return TimeWindow.normalize(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--time") from e


def parse_cli_sequence(
    seq_value: Union[None, str, Sequence[Any]],
    metavar: str = "parameter",
    item_parser=None,
    allow_none: bool = True,
    strip_items: bool = True,
    item_plural_name: str = "items",
    num_items_min: int = None,
    num_items_max: int = None,
    separator: str = ",",
    error_type: type[Exception] = click.ClickException,
) -> Optional[tuple[Any, ...]]:
    """Parse a CLI argument that is supposed to be a sequence.

    Args:
        seq_value: A string, a string sequence, or None.
        metavar: CLI metavar name
        item_parser: an optional function that takes a string and parses
            it
        allow_none: whether it is ok for *seq_value* to be None
        strip_items: whether to strip values in *seq_value*
        item_plural_name: a name for multiple items
        num_items_min: expected minimum number of items
        num_items_max: expected maximum number of items
        separator: expected separator if *seq_value* is a string,
            default is ','.
        error_type: value error to be raised in case, defaults to
            ``click.ClickException``

    Returns:
        parsed and validated *seq_value* as a tuple of values
    """
    if seq_value is None:
        if allow_none:
            return None
        raise error_type(f"{metavar} must be given")
    if isinstance(seq_value, str):
        items = seq_value.split(separator)
    else:
        items = seq_value
    item_count = len(items)
    if num_items_min is not None and item_count < num_items_min:
        raise error_type(
            f"{metavar} must have at least {num_items_min} {item_plural_name} separated by {separator!r}"
        )
    if num_items_max is not None and item_count > num_items_max:
        raise error_type(
            f"{metavar} must have no more than {num_items_max} {item_plural_name} separated by {separator!r}"
        )
    if strip_items:
        items = tuple(item.strip() for item in items)
    for item in items:
        if not item:
            raise error_type(f"{item_plural_name} in {metavar} must not be empty")
    if item_parser:
        try:
            items = tuple(map(item_parser, items))
        except ValueError as e:
            raise error_type(f"Invalid {item_plural_name} in {metavar} found: {e}")
    return tuple(items)


def handle_cli_exception(
    e: BaseException, exit_code: int = None, traceback_mode: bool = False
) -> int:
    exc_info = traceback_mode and e
    if isinstance(e, click.Abort):
        LOG.error("Aborted.", exc_info=exc_info)
        exit_code = exit_code or 1
    elif isinstance(e, click.ClickException):
        LOG.error("%s", e, exc_info=exc_info)
        exit_code = exit_code or e.exit_code
    elif isinstance(e, GeodapError):
        LOG.error("%s", e, exc_info=exc_info)
        exit_code = exit_code or 1
    elif isinstance(e, OSError):
        LOG.error("OS error: %s", e, exc_info=exc_info)
        exit_code = exit_code or 2
    else:
        LOG.error("Internal error: %s", e, exc_info=exc_info)
        exit_code = exit_code or 3
    LOG.debug("Exit with code %d", exit_code)
    return exit_code


def configure_warnings(enable_warnings: bool):
    import warnings

    warnings.simplefilter(
        "default" if enable_warnings else "ignore", category=DeprecationWarning
    )
    warnings.simplefilter(
        "default" if enable_warnings else "ignore", category=RuntimeWarning
    )


def configure_logging(
    log_file: Optional[str],
    log_level: Optional[str],
    logger: logging.Logger = logging.getLogger(),
):
    """Configure the root logger. Messages of the geodap
    logger of level WARNING and above always go to the console.
    """
    remove_log_handlers(logger)
    if log_level == LOG_LEVEL_OFF_NAME:
        logger.setLevel(LOG_LEVEL_OFF)
        LOG.setLevel(logging.WARNING)
    else:
        logger.setLevel(log_level)
        LOG.setLevel(log_level)
        formatter = logging.Formatter(GENERAL_LOG_FORMAT)
        if log_file:
            handler = logging.FileHandler(log_file, "a", encoding="utf8")
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    _configure_console_output(log_level, log_file)


def _configure_console_output(log_level: Optional[str], log_file: Optional[str]):
    remove_log_handlers(LOG)
    if log_level == LOG_LEVEL_OFF_NAME or log_file:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.WARNING)
        handler.setFormatter(logging.Formatter(GEODAP_LOG_FORMAT))
        LOG.addHandler(handler)


def remove_log_handlers(logger: logging.Logger):
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
