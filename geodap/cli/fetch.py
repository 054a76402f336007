# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import click

from geodap.cli.common import cli_option_catalog
from geodap.cli.common import cli_options_request
from geodap.cli.common import parse_cli_aoi
from geodap.cli.common import parse_cli_time_window

OUTPUT_EXTENSIONS = (".nc", ".zarr", ".csv")


# noinspection PyShadowingBuiltins
@click.command(name="fetch")
@click.argument("query_or_id")
@cli_option_catalog
@cli_options_request
@click.option(
    "--var",
    "-v",
    "var_names",
    metavar="VARIABLE",
    multiple=True,
    help="Name of a variable to read (multiple allowed)."
    " Defaults to the dataset's variables.",
)
@click.option(
    "--config",
    "config_paths",
    metavar="CONFIG",
    multiple=True,
    help="Path or URL of a YAML or JSON file with fetch options."
    " If multiple are passed, they are merged in order.",
)
@click.option(
    "--workers",
    type=int,
    metavar="WORKERS",
    help="Maximum number of tiles read concurrently.",
)
@click.option(
    "--retries",
    type=int,
    metavar="RETRIES",
    help="Maximum number of retries of a tile read.",
)
@click.option(
    "--timeout",
    type=float,
    metavar="TIMEOUT",
    help="Timeout in seconds of a single tile read.",
)
@click.option(
    "--deadline",
    type=float,
    metavar="DEADLINE",
    help="Overall time budget in seconds.",
)
@click.option(
    "--no-mask",
    is_flag=True,
    help="Do not mask cells outside of non-rectangular areas of interest.",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    metavar="OUTPUT",
    help="Output path, the format is given by its extension"
    f" which must be one of {', '.join(OUTPUT_EXTENSIONS)}."
    " If omitted, a summary of the subset is printed.",
)
def fetch(
    query_or_id,
    catalog_path,
    bbox,
    geometry,
    crs,
    buffer,
    time_window,
    var_names,
    config_paths,
    workers,
    retries,
    timeout,
    deadline,
    no_mask,
    output_path,
):
    """Fetch the subset of a dataset.

    QUERY_OR_ID is a dataset identifier or a free-text query,
    in which case the best ranked dataset is used.
    The tiles of the dataset that intersect the area of interest
    and time window are read concurrently and merged.
    """
    import jsonschema

    from geodap.core.catalog import Catalog
    from geodap.core.config import FetchConfig
    from geodap.core.dap import dap

    if output_path and not output_path.lower().rstrip("/").endswith(
        OUTPUT_EXTENSIONS
    ):
        raise click.BadParameter(
            f"extension must be one of {', '.join(OUTPUT_EXTENSIONS)}",
            param_hint="--output",
        )

    aoi = parse_cli_aoi(bbox, geometry, crs, buffer=buffer)
    time_window = parse_cli_time_window(time_window)

    overrides = dict(
        max_workers=workers,
        max_retries=retries,
        tile_timeout=timeout,
        deadline=deadline,
    )
    try:
        config_dict = {}
        if config_paths:
            config_dict = FetchConfig.from_file(*config_paths).to_dict()
        config_dict.update({k: v for k, v in overrides.items() if v is not None})
        if no_mask:
            config_dict.update(mask_geometry=False)
        config = FetchConfig.from_dict(config_dict)
    except (ValueError, jsonschema.ValidationError) as e:
        raise click.ClickException(f"Invalid fetch options: {e}") from e

    catalog = Catalog.from_file(catalog_path)
    result = dap(
        query_or_id,
        aoi,
        time_window,
        catalog=catalog,
        var_names=var_names or None,
        config=config,
    )

    if not output_path:
        click.echo(f"Dataset: {result.data_id}")
        click.echo(f"Tiles: {', '.join(map(str, result.tile_indexes))}")
        click.echo(str(result.dataset))
        return

    _write_result(result, output_path)
    click.echo(f"Subset of {result.data_id!r} written to {output_path}")


def _write_result(result, output_path: str):
    extension = output_path.lower().rstrip("/")
    if extension.endswith(".csv"):
        result.to_dataframe().to_csv(output_path)
        return
    dataset = result.dataset.drop_encoding()
    if extension.endswith(".zarr"):
        dataset.to_zarr(output_path, mode="w")
    else:
        dataset.to_netcdf(output_path)
