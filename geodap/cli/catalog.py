# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import click

from geodap.cli.common import cli_option_catalog

OUTPUT_FORMATS = ("text", "json", "yaml")


@click.command(name="search")
@click.argument("query")
@cli_option_catalog
@click.option(
    "--limit",
    "-l",
    type=int,
    metavar="LIMIT",
    help="Maximum number of datasets listed.",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="text",
    show_default=True,
    help="Output format.",
)
def search(query, catalog_path, limit, output_format):
    """Search a catalog for datasets matching QUERY.

    Datasets are listed by descending relevance.
    """
    from geodap.core.catalog import Catalog

    catalog = Catalog.from_file(catalog_path)
    results = catalog.search_scores(query, limit=limit)
    if not results:
        raise click.ClickException(f"No dataset matches query {query!r}")
    if output_format == "text":
        for descriptor, score in results:
            title = f"  {descriptor.title}" if descriptor.title else ""
            click.echo(f"{descriptor.data_id}  ({score:.2f}){title}")
    else:
        _echo_object(
            [
                dict(data_id=descriptor.data_id, title=descriptor.title, score=score)
                for descriptor, score in results
            ],
            output_format,
        )


@click.command(name="describe")
@click.argument("data_id")
@cli_option_catalog
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS[1:]),
    default="yaml",
    show_default=True,
    help="Output format.",
)
def describe(data_id, catalog_path, output_format):
    """Describe the dataset DATA_ID of a catalog."""
    from geodap.core.catalog import Catalog

    catalog = Catalog.from_file(catalog_path)
    _echo_object(catalog.get(data_id).to_dict(), output_format)


def _echo_object(obj, output_format: str):
    if output_format == "json":
        import json

        click.echo(json.dumps(obj, indent=2))
    else:
        import yaml

        click.echo(yaml.safe_dump(obj, sort_keys=False))
