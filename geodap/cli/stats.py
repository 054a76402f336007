# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import click

from geodap.cli.common import cli_option_catalog
from geodap.cli.common import parse_cli_sequence
from geodap.cli.common import parse_cli_time_window


# noinspection PyShadowingBuiltins
@click.command(name="stats")
@click.argument("query_or_id")
@click.argument("features_path", metavar="FEATURES")
@cli_option_catalog
@click.option(
    "--time",
    "-t",
    "time_window",
    metavar="TIME",
    help='Half-open time window "<start>/<end>", use ".." for an open end.',
)
@click.option(
    "--var",
    "-v",
    "var_names",
    metavar="VARIABLE",
    multiple=True,
    help="Name of a variable to summarize (multiple allowed).",
)
@click.option(
    "--stat",
    "-s",
    "stat_names",
    metavar="STATS",
    default="mean",
    show_default=True,
    help="Comma-separated names of statistics, any of"
    " mean, sum, min, max, median, std, count.",
)
@click.option(
    "--id-property",
    metavar="PROPERTY",
    help="Feature property that identifies a feature.",
)
@click.option(
    "--all-touched",
    is_flag=True,
    help="Include all cells touched by a feature's outline.",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    metavar="OUTPUT",
    help="Path of a CSV output file. If omitted, the table is printed.",
)
def stats(
    query_or_id,
    features_path,
    catalog_path,
    time_window,
    var_names,
    stat_names,
    id_property,
    all_touched,
    output_path,
):
    """Compute zonal statistics of a dataset.

    The subset of the dataset QUERY_OR_ID covering the features
    of the GeoJSON file FEATURES is fetched, then statistics of
    the cells within each feature are computed.
    """
    from geodap.core.aoi import AreaOfInterest
    from geodap.core.catalog import Catalog
    from geodap.core.dap import dap
    from geodap.core.zonal import zonal_statistics
    from geodap.util.config import load_json_or_yaml

    features = load_json_or_yaml(features_path)
    stat_names = parse_cli_sequence(
        stat_names, metavar="STATS", item_plural_name="statistics"
    )
    time_window = parse_cli_time_window(time_window)
    try:
        aoi = AreaOfInterest(features)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="FEATURES") from e

    catalog = Catalog.from_file(catalog_path)
    result = dap(
        query_or_id,
        aoi,
        time_window,
        catalog=catalog,
        var_names=var_names or None,
    )
    try:
        df = zonal_statistics(
            result,
            features,
            stats=stat_names,
            id_property=id_property,
            all_touched=all_touched,
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if output_path:
        df.to_csv(output_path)
        click.echo(f"Statistics of {len(df)} row(s) written to {output_path}")
    else:
        click.echo(df.to_string())
