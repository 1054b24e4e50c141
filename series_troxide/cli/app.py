"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import datetime
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from functools import cached_property
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from series_troxide import __version__
from series_troxide.api.client import TvMazeClient
from series_troxide.core.catalog import SeriesCatalog
from series_troxide.core.tracker import SeriesTracker
from series_troxide.exceptions import (
    ConfigurationError,
    DatabasePathNotFoundError,
    SeriesTroxideError,
)
from series_troxide.models.config import AppConfig
from series_troxide.models.series import AddResult
from series_troxide.models.stats import CacheStats
from series_troxide.storage.cache import CacheStore, ResourceIdentifier, ResourceKind
from series_troxide.storage.config_manager import ConfigManager
from series_troxide.storage.datastore import Datastore
from series_troxide.storage.transfer import CollectionTransfer
from series_troxide.utils.path import get_config_dir, parse_number_range

from .formatters import (
    print_cache_stats,
    print_cast_table,
    print_config,
    print_crew_table,
    print_episodes_table,
    print_schedule_table,
    print_search_results,
    print_seasons_table,
    print_series_info,
    print_series_table,
    print_watch_time_panel,
)

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("series_troxide")

app = typer.Typer(
    name="series-troxide",
    help=(
        "Track the TV series you watch, backed by TVmaze. Use 'series-troxide"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
database_app = typer.Typer(help="Create, import and export the series database.")
series_app = typer.Typer(help="Manage and inspect series.")
season_app = typer.Typer(help="Add or remove watched seasons.")
episode_app = typer.Typer(help="Add or remove watched episodes.")
cache_app = typer.Typer(help="Manage the TVmaze document cache.")

app.add_typer(database_app, name="database")
app.add_typer(series_app, name="series")
app.add_typer(season_app, name="season")
app.add_typer(episode_app, name="episode")
app.add_typer(cache_app, name="cache")

CONFIG_FILE_NAME = "config.ini"

# Kinds keyed by series id
_SERIES_RESOURCE_KINDS = {
    kind.value: kind
    for kind in ResourceKind
    if kind not in (ResourceKind.IMAGE, ResourceKind.SCHEDULE_BY_DATE)
}


class AppContext:
    """
    Per-invocation state shared by every command.

    The datastore and the cache are only opened when a command needs them.
    """

    def __init__(self, config: AppConfig, verbose: int = 0):
        self.config = config
        self.verbose = verbose
        self.cache_stats = CacheStats()

    @cached_property
    def data_dir(self) -> Path:
        data_dir = self.config.resolve_data_dir()
        if data_dir is None:
            raise DatabasePathNotFoundError()
        return data_dir

    @cached_property
    def datastore(self) -> Datastore:
        return Datastore.open(self.data_dir)

    @cached_property
    def transfer(self) -> CollectionTransfer:
        return CollectionTransfer(self.config.resolve_data_dir)

    @cached_property
    def cache(self) -> CacheStore:
        cache_dir = self.config.resolve_cache_dir()
        if cache_dir is None:
            raise ConfigurationError(
                "Cache directory could not be determined. Set 'cache_dir' in the "
                "configuration file."
            )
        return CacheStore(cache_dir, stats_callback=self.cache_stats.record)

    @asynccontextmanager
    async def open_catalog(self) -> AsyncIterator[SeriesCatalog]:
        async with TvMazeClient(
            self.config.request_timeout, self.config.max_connections
        ) as client:
            yield SeriesCatalog(self.cache, client)

    def report_cache(self) -> None:
        if self.verbose:
            print_cache_stats(self.cache_stats, self.cache.count_entries())


def get_config_file() -> Path:
    config_dir = get_config_dir()
    if config_dir is None:
        raise ConfigurationError("Configuration directory could not be determined.")
    return config_dir / CONFIG_FILE_NAME


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turns application errors into a red message and exit status 1."""
    try:
        yield
    except SeriesTroxideError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1) from e


def _parse_range(value: str) -> range:
    try:
        return parse_number_range(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for info, -vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    data_dir: str | None = typer.Option(
        None, "--data-dir", help="Override the directory holding the database."
    ),
    cache_dir: str | None = typer.Option(
        None, "--cache-dir", help="Override the directory holding the cache."
    ),
):
    """Series Troxide CLI"""
    if version:
        console.print(f"[bold]series-troxide[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    logging.getLogger("series_troxide").setLevel(log_level)

    cli_options = {
        key: value
        for key, value in {"data_dir": data_dir, "cache_dir": cache_dir}.items()
        if value is not None
    }

    with handle_errors():
        config_file = get_config_file()
        config_manager = ConfigManager(config_file)
        if show_config:
            print_config(config_file, config_manager.get_config_as_dict())
            raise typer.Exit()
        config = config_manager.load_config(cli_options)

    ctx.obj = AppContext(config, verbose)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with the current settings."""
    state: AppContext = ctx.obj
    with handle_errors():
        config_file = get_config_file()
        if (
            config_file.exists()
            and not force
            and not typer.confirm("Configuration file already exists. Overwrite it?")
        ):
            raise typer.Abort()
        settings = state.config.model_dump(include=AppConfig.get_ini_keys())
        ConfigManager(config_file).save_new_config(settings)
    console.print(
        f"[bold green]✓ Configuration saved to '{config_file}'[/bold green]"
    )


# Database commands
@database_app.command("create")
def database_create(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing database file."
    ),
):
    """Create an empty database file."""
    state: AppContext = ctx.obj
    with handle_errors():
        path = state.transfer.create_empty(force)
    console.print(f"[green]✓ Created an empty database at '{path}'.[/green]")


@database_app.command("import")
def database_import(
    ctx: typer.Context,
    file: Path = typer.Argument(  # noqa: B008
        ..., help="The database file to import.", exists=True, dir_okay=False
    ),
    restore: bool = typer.Option(
        False,
        "--restore",
        help="Also load the imported series into the working database.",
    ),
):
    """Replace the database with the given file."""
    state: AppContext = ctx.obj
    with handle_errors():
        try:
            collection = state.transfer.import_file(file)
        except OSError as e:
            console.print(f"[red]✗ Could not import '{file}': {e}[/red]")
            raise typer.Exit(code=1) from e
        if restore:
            state.transfer.restore(state.datastore)
    console.print(
        f"[green]✓ Imported {len(collection.series)} series from '{file}'.[/green]"
    )


@database_app.command("export")
def database_export(
    ctx: typer.Context,
    destination: Path = typer.Argument(  # noqa: B008
        ..., help="The directory to export into.", file_okay=False
    ),
    snapshot: bool = typer.Option(
        False,
        "--snapshot",
        help="Write the working database to the database file before exporting.",
    ),
):
    """Copy the database file into a directory."""
    state: AppContext = ctx.obj
    with handle_errors():
        if snapshot:
            state.transfer.snapshot(state.datastore)
        try:
            path = state.transfer.export(destination)
        except OSError as e:
            console.print(f"[red]✗ Could not export to '{destination}': {e}[/red]")
            raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Exported the database to '{path}'.[/green]")


@database_app.command("snapshot")
def database_snapshot(ctx: typer.Context):
    """Write the working database to the database file."""
    state: AppContext = ctx.obj
    with handle_errors():
        path = state.transfer.snapshot(state.datastore)
    console.print(f"[green]✓ Wrote the working database to '{path}'.[/green]")


@database_app.command("restore")
def database_restore(ctx: typer.Context):
    """Replace the working database with the database file."""
    state: AppContext = ctx.obj
    with handle_errors():
        try:
            collection = state.transfer.restore(state.datastore)
        except FileNotFoundError as e:
            console.print(
                "[red]✗ No database file to restore from.[/] Run "
                "[cyan]series-troxide database create[/cyan] or import one first."
            )
            raise typer.Exit(code=1) from e
    console.print(
        f"[green]✓ Restored {len(collection.series)} series into the working "
        "database.[/green]"
    )


# Series commands
@series_app.command("list")
def series_list(
    ctx: typer.Context,
    tracked: bool = typer.Option(
        False, "--tracked", help="Only show series that are being tracked."
    ),
):
    """List the series in the database."""
    state: AppContext = ctx.obj
    with handle_errors():
        collection = SeriesTracker(state.datastore).list_series(tracked_only=tracked)
    print_series_table(collection)


@series_app.command("add")
def series_add(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
):
    """Start tracking a series."""
    state: AppContext = ctx.obj

    async def _add_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            return await tracker.track_series(series_id)

    with handle_errors():
        series = asyncio.run(_add_async())
    console.print(f"[green]✓ Tracking '{series.name}'.[/green]")
    state.report_cache()


@series_app.command("remove")
def series_remove(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    untrack_only: bool = typer.Option(
        False,
        "--untrack-only",
        help="Stop tracking but keep the watched episodes.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Stop tracking a series, or delete it with its watch history."""
    state: AppContext = ctx.obj

    if not untrack_only and not force and not typer.confirm(
        f"Remove series '{series_id}' and its watch history?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _remove_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            if untrack_only:
                await tracker.untrack_series(series_id)
            else:
                await tracker.remove_series(series_id)

    with handle_errors():
        asyncio.run(_remove_async())
    if untrack_only:
        console.print(f"[green]✓ Stopped tracking series '{series_id}'.[/green]")
    else:
        console.print(f"[green]✓ Removed series '{series_id}'.[/green]")


@series_app.command("info")
def series_info(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
):
    """Show the main information of a series."""
    state: AppContext = ctx.obj

    async def _info_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_series_main_info(series_id)

    with handle_errors():
        info = asyncio.run(_info_async())
        series = state.datastore.get_series(series_id)
    print_series_info(info, series)
    state.report_cache()


@series_app.command("cast")
def series_cast(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
):
    """Show the cast of a series."""
    state: AppContext = ctx.obj

    async def _cast_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_show_cast(series_id)

    with handle_errors():
        cast = asyncio.run(_cast_async())
    print_cast_table(cast)
    state.report_cache()


@series_app.command("crew")
def series_crew(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
):
    """Show the crew of a series."""
    state: AppContext = ctx.obj

    async def _crew_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_show_crew(series_id)

    with handle_errors():
        crew = asyncio.run(_crew_async())
    print_crew_table(crew)
    state.report_cache()


@series_app.command("seasons")
def series_seasons(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
):
    """Show the seasons of a series and how much of each was watched."""
    state: AppContext = ctx.obj

    async def _seasons_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_seasons_list(series_id)

    with handle_errors():
        seasons = asyncio.run(_seasons_async())
        series = state.datastore.get_series(series_id)
    print_seasons_table(seasons, series)
    state.report_cache()


@series_app.command("episodes")
def series_episodes(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    season: int | None = typer.Option(
        None, "--season", "-s", help="Only show this season."
    ),
):
    """Show the episodes of a series and which of them were watched."""
    state: AppContext = ctx.obj

    async def _episodes_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_episode_list(series_id)

    with handle_errors():
        episode_list = asyncio.run(_episodes_async())
        series = state.datastore.get_series(series_id)

    season_numbers = episode_list.get_season_numbers()
    if season is not None:
        if season not in season_numbers:
            console.print(f"[yellow]TVmaze lists no season {season}.[/yellow]")
            raise typer.Exit(code=1)
        season_numbers = [season]
    print_episodes_table(episode_list, series, season_numbers)
    state.report_cache()


@series_app.command("poster")
def series_poster(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    destination: Path = typer.Argument(  # noqa: B008
        ..., help="The file to save the poster to.", dir_okay=False
    ),
):
    """Save the poster of a series."""
    state: AppContext = ctx.obj

    async def _poster_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_poster(series_id)

    with handle_errors():
        poster = asyncio.run(_poster_async())
    if poster is None:
        console.print(f"[yellow]No poster available for series '{series_id}'.[/yellow]")
        raise typer.Exit(code=1)

    try:
        destination.write_bytes(poster)
    except OSError as e:
        console.print(
            f"[red]✗ Could not save the poster to '{destination}': {e}[/red]"
        )
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Saved the poster to '{destination}'.[/green]")
    state.report_cache()


@series_app.command("watch-time")
def series_watch_time(ctx: typer.Context):
    """Estimate the time spent watching every recorded episode."""
    state: AppContext = ctx.obj

    async def _watch_time_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            return await tracker.get_watch_time(), tracker.get_summary()

    with handle_errors():
        watch_time, summary = asyncio.run(_watch_time_async())
    print_watch_time_panel(watch_time, summary)
    state.report_cache()


# Season commands
@season_app.command("add")
def season_add(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    seasons: str = typer.Argument(..., help="A season number or a range like 1-3."),
):
    """Record seasons of a series."""
    state: AppContext = ctx.obj
    season_range = _parse_range(seasons)

    async def _add_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            return [
                await tracker.add_season(series_id, number) for number in season_range
            ]

    with handle_errors():
        added = asyncio.run(_add_async())
    result = AddResult.from_counts(sum(added), len(season_range))
    _print_add_result(result, "season")
    state.report_cache()


@season_app.command("remove")
def season_remove(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    season: int = typer.Argument(..., help="The season number."),
):
    """Remove a season and its watched episodes."""
    state: AppContext = ctx.obj

    async def _remove_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            return await tracker.remove_season(series_id, season)

    with handle_errors():
        removed = asyncio.run(_remove_async())
    if removed:
        console.print(f"[green]✓ Removed season {season}.[/green]")
    else:
        console.print(f"[yellow]Season {season} was not recorded.[/yellow]")


# Episode commands
@episode_app.command("add")
def episode_add(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    season: int = typer.Argument(..., help="The season number."),
    episodes: str = typer.Argument(..., help="An episode number or a range like 1-10."),
    unreleased: bool = typer.Option(
        False,
        "--unreleased",
        help="Record episodes without checking that they have aired.",
    ),
):
    """Record watched episodes of a season."""
    state: AppContext = ctx.obj
    episode_range = _parse_range(episodes)

    async def _add_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            return await tracker.add_episodes(
                series_id, season, episode_range, check_released=not unreleased
            )

    with handle_errors():
        result = asyncio.run(_add_async())
    _print_add_result(result, "episode")
    state.report_cache()


@episode_app.command("remove")
def episode_remove(
    ctx: typer.Context,
    series_id: int = typer.Argument(..., help="The TVmaze id of the series."),
    season: int = typer.Argument(..., help="The season number."),
    episode: int = typer.Argument(..., help="The episode number."),
):
    """Remove a watched episode."""
    state: AppContext = ctx.obj

    async def _remove_async():
        async with state.open_catalog() as catalog:
            tracker = SeriesTracker(state.datastore, catalog)
            return await tracker.remove_episode(series_id, season, episode)

    with handle_errors():
        removed = asyncio.run(_remove_async())
    if removed:
        console.print(f"[green]✓ Removed S{season:02}E{episode:02}.[/green]")
    else:
        console.print(
            f"[yellow]S{season:02}E{episode:02} was not recorded.[/yellow]"
        )


def _print_add_result(result: AddResult, item: str) -> None:
    if result is AddResult.FULL:
        console.print(f"[green]✓ Added every {item}.[/green]")
    elif result is AddResult.PARTIAL:
        console.print(
            f"[yellow]Added some {item}s; the rest were already recorded or have "
            "not aired yet.[/yellow]"
        )
    else:
        console.print(
            f"[yellow]No {item} added; all were already recorded or have not "
            "aired yet.[/yellow]"
        )


# Catalog commands
@app.command()
def schedule(
    ctx: typer.Context,
    date: str | None = typer.Argument(
        None, help="The date to show, as YYYY-MM-DD. Defaults to today."
    ),
):
    """Show the web schedule for a day, one episode per series."""
    state: AppContext = ctx.obj
    try:
        schedule_date = datetime.date.fromisoformat(date) if date else None
    except ValueError as e:
        raise typer.BadParameter(f"'{date}' is not a YYYY-MM-DD date.") from e

    async def _schedule_async():
        async with state.open_catalog() as catalog:
            return await catalog.get_schedule(schedule_date)

    with handle_errors():
        episodes = asyncio.run(_schedule_async())
    print_schedule_table(
        episodes, (schedule_date or datetime.date.today()).isoformat()
    )
    state.report_cache()


@app.command()
def search(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="The series name to search for."),
):
    """Search TVmaze for series by name."""
    state: AppContext = ctx.obj

    async def _search_async():
        async with TvMazeClient(
            state.config.request_timeout, state.config.max_connections
        ) as client:
            return await client.search_series(name)

    with handle_errors():
        results = asyncio.run(_search_async())
    print_search_results(results)


# Cache commands
@cache_app.command("clear")
def cache_clear(ctx: typer.Context):
    """Remove every cached TVmaze document."""
    state: AppContext = ctx.obj
    with handle_errors():
        cache = state.cache
    console.print("[cyan]Clearing metadata cache...[/cyan]")
    files_count = cache.count_entries()
    if cache.clear():
        console.print(
            f"[green]✓ Cache cleared successfully ({files_count} entries removed"
            ").[/green]"
        )
    else:
        console.print("[red]✗ Failed to clear cache.[/red]")
        raise typer.Exit(code=1)


@cache_app.command("invalidate")
def cache_invalidate(
    ctx: typer.Context,
    series_id: int | None = typer.Argument(
        None,
        help="The TVmaze id of the series. Defaults to every series in the database.",
    ),
    kind: list[str] | None = typer.Option(  # noqa: B008
        None,
        "--kind",
        "-k",
        help=(
            "Only drop this kind of document (repeatable). One of: "
            + ", ".join(_SERIES_RESOURCE_KINDS)
            + "."
        ),
    ),
):
    """Drop cached series documents so they are fetched again."""
    state: AppContext = ctx.obj
    selected = kind or list(_SERIES_RESOURCE_KINDS)
    unknown = [name for name in selected if name not in _SERIES_RESOURCE_KINDS]
    if unknown:
        raise typer.BadParameter(
            f"Unknown document kind(s): {', '.join(unknown)}.", param_hint="--kind"
        )

    with handle_errors():
        cache = state.cache
        series_ids = (
            [series_id] if series_id is not None else state.datastore.get_series_ids()
        )

    removed = 0
    try:
        for current_id in series_ids:
            for name in selected:
                removed += cache.invalidate(
                    ResourceIdentifier(_SERIES_RESOURCE_KINDS[name], current_id)
                )
    except OSError as e:
        console.print(f"[red]✗ Could not drop cached documents: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]✓ Dropped {removed} cached document(s) of {len(series_ids)} "
        "series.[/green]"
    )
