# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import sys

import click

from geodap.cli.catalog import describe
from geodap.cli.catalog import search
from geodap.cli.common import cli_option_traceback
from geodap.cli.common import configure_logging
from geodap.cli.common import configure_warnings
from geodap.cli.common import handle_cli_exception
from geodap.cli.common import new_cli_ctx_obj
from geodap.cli.fetch import fetch
from geodap.cli.plan import plan
from geodap.cli.stats import stats
from geodap.constants import LOG_LEVELS
from geodap.constants import LOG_LEVEL_OFF_NAME
from geodap.version import version


# noinspection PyShadowingBuiltins,PyUnusedLocal
@click.group(name="geodap")
@click.version_option(version)
@cli_option_traceback
@click.option(
    "--loglevel",
    "log_level",
    metavar="LOG_LEVEL",
    type=click.Choice(LOG_LEVELS),
    default=LOG_LEVEL_OFF_NAME,
    help=f"Log level."
    f' Must be one of {", ".join(LOG_LEVELS)}.'
    f" Defaults to {LOG_LEVEL_OFF_NAME}."
    f" If the level is not {LOG_LEVEL_OFF_NAME},"
    f" any log messages up to the given level will be"
    f" written either to the console (stderr)"
    f" or LOG_FILE, if provided.",
)
@click.option(
    "--logfile",
    "log_file",
    metavar="LOG_FILE",
    help=f"Log file path."
    f" If given, any log messages will redirected into"
    f" LOG_FILE. Warnings and errors are still written"
    f" to the console."
    f" Effective only if LOG_LEVEL"
    f" is not {LOG_LEVEL_OFF_NAME}.",
)
@click.option(
    "--warnings",
    "-w",
    is_flag=True,
    help="Show any warnings emitted during operation"
    " (warnings are hidden by default).",
)
def cli(traceback=False, log_level=None, log_file=None, warnings=None):
    """geodap - subsets of tiled remote geospatial datasets"""
    configure_logging(log_file=log_file, log_level=log_level)
    configure_warnings(warnings)


cli.add_command(search)
cli.add_command(describe)
cli.add_command(plan)
cli.add_command(fetch)
cli.add_command(stats)


def main(args=None):
    # noinspection PyBroadException
    ctx_obj = new_cli_ctx_obj()
    try:
        exit_code = cli.main(args=args, obj=ctx_obj, standalone_mode=False) or 0
    except Exception as e:
        exit_code = handle_cli_exception(
            e, traceback_mode=ctx_obj.get("traceback", False)
        )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
