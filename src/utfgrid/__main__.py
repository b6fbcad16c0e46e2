"""CLI entry point for utfgrid."""

from __future__ import annotations

import logging
import sys
from functools import partial
from pathlib import Path

import click
from tqdm import tqdm

from utfgrid.config import DEFAULT_LEVELS, DEFAULT_WORKERS
from utfgrid.core.errors import ConfigurationError, MapOpenError, ProjectionMismatchError
from utfgrid.core.pyramid import count_tiles, describe_pyramid, parse_levels
from utfgrid.core.types import GenerationConfig, GeoExtent
from utfgrid.generate import GenerationStats, generate_tiles, prepare_map
from utfgrid.maps import open_map

logger = logging.getLogger(__name__)


def _parse_fields(text: str | None) -> frozenset[str] | None:
    """Split a comma separated field allowlist."""
    if text is None:
        return None
    fields = frozenset(f.strip() for f in text.split(",") if f.strip())
    if not fields:
        raise ConfigurationError("--fields must name at least one field")
    return fields


def _fail(message: str) -> None:
    """Print an error and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _print_header(
    map_location: str,
    config: GenerationConfig,
    levels: tuple[int, ...],
    extent: GeoExtent,
    total: int,
) -> None:
    """Print the CLI banner with generation parameters."""
    click.echo(click.style("UTFGrid Generation", fg="cyan", bold=True))
    click.echo(click.style("=" * 40, fg="cyan"))
    click.echo(f"Map: {map_location}")
    click.echo(f"Output directory: {config.destination}")
    click.echo(f"Levels: {', '.join(str(l) for l in levels)}")
    click.echo(
        f"Extent: {extent.xmin:.1f}, {extent.ymin:.1f}, {extent.xmax:.1f}, {extent.ymax:.1f}"
    )
    click.echo(f"Tiles: {total} | Workers: {config.workers} | Gzip: {'on' if config.gzip else 'off'}")
    if config.fields is not None:
        click.echo(f"Fields: {', '.join(sorted(config.fields))}")
    if config.overwrite:
        click.echo(click.style("Overwrite mode: existing grids will be regenerated", fg="yellow"))
    click.echo()


def _print_summary(stats: GenerationStats, overwrite: bool) -> None:
    """Print the colored generation summary and exit with error if any tile failed."""
    click.echo()
    click.echo(click.style("=" * 40, fg="cyan"))

    parts = []
    if stats.written > 0:
        parts.append(click.style(f"{stats.written} written", fg="green"))
    if stats.skipped > 0:
        parts.append(click.style(f"{stats.skipped} skipped", fg="cyan"))
    if stats.empty > 0:
        parts.append(f"{stats.empty} empty")
    if stats.failed > 0:
        parts.append(click.style(f"{stats.failed} failed", fg="red"))

    summary = ", ".join(parts) if parts else "Nothing to generate"
    click.echo(click.style("Completed: ", bold=True) + summary)

    if stats.skipped > 0 and not overwrite:
        click.echo(click.style("  (use --overwrite to regenerate skipped tiles)", fg="cyan"))

    if stats.errors:
        click.echo()
        click.echo(click.style("Failed tiles:", fg="red"))
        for tile, error in stats.errors:
            click.echo(f"  {tile}: {error}")
        sys.exit(1)


def _run(
    map_location: str,
    config: GenerationConfig,
    levels: tuple[int, ...],
    extent: GeoExtent | None,
) -> GenerationStats:
    map_factory = partial(open_map, map_location)
    extent = prepare_map(map_factory, extent)
    total = count_tiles(levels, extent)
    _print_header(map_location, config, levels, extent, total)

    config.destination.mkdir(parents=True, exist_ok=True)
    tiles = describe_pyramid(levels, extent)
    logger.info("Generating %d tile(s) at levels %s", total, list(levels))
    with tqdm(total=total, desc="Generating grids", unit="tile") as pbar:
        return generate_tiles(
            map_factory, tiles, config, progress=pbar.update, check_projection=False
        )


@click.command()
@click.argument("map_location")
@click.argument("destination", type=click.Path(file_okay=False))
@click.option(
    "--levels",
    "-l",
    default=f"{DEFAULT_LEVELS[0]}-{DEFAULT_LEVELS[-1]}",
    show_default=True,
    help="Zoom levels to generate, e.g. '0,1,2' or '0-12'",
)
@click.option(
    "--fields",
    "-f",
    default=None,
    help="Comma separated attribute names to keep (default: all)",
)
@click.option(
    "--workers",
    "-w",
    type=int,
    default=DEFAULT_WORKERS,
    show_default=True,
    help="Number of worker threads",
)
@click.option("--gzip", "-z", "compress", is_flag=True, help="Write .grid.json.gz files")
@click.option("--overwrite", is_flag=True, help="Regenerate grids that already exist")
@click.option(
    "--extent",
    default=None,
    help="Extent to tile as 'xmin,ymin,xmax,ymax' in Web Mercator meters "
         "(default: the map's full extent)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every tile")
def main(
    map_location: str,
    destination: str,
    levels: str,
    fields: str | None,
    workers: int,
    compress: bool,
    overwrite: bool,
    extent: str | None,
    verbose: bool,
) -> None:
    """Generate UTFGrid interactivity tiles for a Web Mercator map.

    MAP_LOCATION is the URL of an ArcGIS REST MapServer. Grids are written
    to DESTINATION/{level}/{col}/{row}.grid.json. Existing grids are
    skipped, so an interrupted run can simply be restarted.

    Examples:

        # All levels 0-19 for the map's full extent
        python -m utfgrid https://host/arcgis/rest/services/Parks/MapServer ./grids

        # Levels 0-8, only the NAME field, compressed
        python -m utfgrid https://host/.../MapServer ./grids -l 0-8 -f NAME -z
    """
    logging.basicConfig(
        format="%(asctime)s - %(threadName)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
    )

    try:
        level_list = parse_levels(levels)
        config = GenerationConfig(
            destination=Path(destination),
            gzip=compress,
            overwrite=overwrite,
            fields=_parse_fields(fields),
            workers=workers,
        )
        requested_extent = GeoExtent.parse(extent) if extent is not None else None
    except ConfigurationError as e:
        _fail(str(e))
        return

    try:
        stats = _run(map_location, config, level_list, requested_extent)
    except (MapOpenError, ProjectionMismatchError, ConfigurationError) as e:
        _fail(str(e))
        return

    _print_summary(stats, overwrite)


if __name__ == "__main__":
    main()
