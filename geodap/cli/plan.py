# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import click

from geodap.cli.common import cli_option_catalog
from geodap.cli.common import cli_options_request
from geodap.cli.common import parse_cli_aoi
from geodap.cli.common import parse_cli_time_window


# noinspection PyShadowingBuiltins
@click.command(name="plan")
@click.argument("query_or_id")
@cli_option_catalog
@cli_options_request
def plan(query_or_id, catalog_path, bbox, geometry, crs, buffer, time_window):
    """Show the tiles required to subset a dataset.

    QUERY_OR_ID is a dataset identifier or a free-text query,
    in which case the best ranked dataset is used. The plan is
    written as JSON to stdout, no data is read.
    """
    import json

    from geodap.core.catalog import Catalog
    from geodap.core.plan import plan_tiles

    aoi = parse_cli_aoi(bbox, geometry, crs, buffer=buffer)
    time_window = parse_cli_time_window(time_window)
    catalog = Catalog.from_file(catalog_path)
    descriptor = catalog.resolve(query_or_id)[0]
    tile_plan = plan_tiles(descriptor, aoi, time_window)
    click.echo(json.dumps(tile_plan.to_dict(), indent=2))
