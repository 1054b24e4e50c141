"""
Functions for formatting and displaying data in the console using Rich.
"""

import re
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from series_troxide.core.catalog import EpisodeList
from series_troxide.core.tracker import WatchTime
from series_troxide.models.catalog import (
    Cast,
    Crew,
    Episode,
    SeasonListing,
    SeriesMainInformation,
    SeriesSearchResult,
)
from series_troxide.models.series import Series
from series_troxide.models.stats import CacheStats

_TAG_RE = re.compile(r"<[^>]+>")


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NetworkError": [
            "• Check your internet connection.",
            "• The TVmaze API might be temporarily unavailable.",
            "• Already cached information keeps working offline.",
        ],
        "BadResponseError": [
            "• Check that the series id is correct with `series-troxide search`.",
        ],
        "DeserializationError": [
            "• TVmaze may have changed the shape of its responses.",
            "• Run `series-troxide cache invalidate` for the affected series.",
        ],
        "DatastoreOpenError": [
            "• Another program may be holding the database open.",
            "• Check the permissions of the data directory.",
        ],
        "SeriesNotFoundError": [
            "• List the series in your database with `series-troxide series list`.",
        ],
        "DatabaseFileExistsError": [
            "• Pass --force to overwrite the existing database file.",
        ],
        "InvalidDatabaseFileError": [
            "• The file is not a series-troxide database or is from another version.",
            "• Your current database was left untouched.",
        ],
        "DatabasePathNotFoundError": [
            "• Set `data_dir` in the configuration file.",
        ],
        "ConfigurationError": [
            "• Review the configuration with `series-troxide --show-config`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def strip_html(text: str | None) -> str:
    """TVmaze summaries are HTML fragments."""
    return _TAG_RE.sub("", text or "").strip()


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if value == "":
            value = "[dim](platform default)[/dim]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_series_table(collection: list[Series]):
    """Displays the series stored in the database."""
    console = Console()
    if not collection:
        console.print("[dim]No series in the database yet.[/dim]")
        return

    table = Table(title="Series", box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Tracked", justify="center")
    table.add_column("Seasons", justify="right")
    table.add_column("Episodes", justify="right", style="green")
    table.add_column("Last Watched")

    for series in collection:
        last_watched = ""
        if last_season := series.get_last_season():
            number, season = last_season
            last_watched = f"S{number:02}E{season.get_last_episode():02}"
        table.add_row(
            str(series.id),
            series.name,
            "✓" if series.is_tracked else "✗",
            str(series.get_total_seasons()),
            str(series.get_total_episodes()),
            last_watched,
        )
    console.print(table)


def print_series_info(info: SeriesMainInformation, series: Series | None = None):
    """Displays a series' main information and, if stored, its watch progress."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("ID:", str(info.id))
    table.add_row("Status:", info.status or "Unknown")
    table.add_row("Network:", info.get_network_name() or "Unknown")
    table.add_row("Genres:", ", ".join(info.genres) or "Unknown")
    table.add_row("Premiered:", info.premiered or "Unknown")
    if info.ended:
        table.add_row("Ended:", info.ended)
    if info.average_runtime:
        table.add_row("Runtime:", f"{info.average_runtime} min")
    if info.rating.average is not None:
        table.add_row("Rating:", f"{info.rating.average}/10")
    if series is not None:
        table.add_row(
            "Tracked:",
            "[green]✓ Yes[/green]"
            if series.is_tracked
            else "[yellow]✗ No[/yellow]",
        )
        table.add_row("Watched:", f"{series.get_total_episodes()} episodes")
    if summary := strip_html(info.summary):
        table.add_row()
        table.add_row("Summary:", Text(summary))

    console.print(
        Panel(table, title=f"[bold]{info.name}[/bold]", border_style="cyan")
    )


def print_cast_table(cast: list[Cast]):
    console = Console()
    table = Table(title="Cast", box=box.ROUNDED)
    table.add_column("Actor", style="cyan")
    table.add_column("Character")
    for member in cast:
        table.add_row(member.person.name, member.character.name)
    console.print(table)


def print_crew_table(crew: list[Crew]):
    console = Console()
    table = Table(title="Crew", box=box.ROUNDED)
    table.add_column("Name", style="cyan")
    table.add_column("Role")
    for member in crew:
        table.add_row(member.person.name, member.kind)
    console.print(table)


def print_seasons_table(seasons: list[SeasonListing], series: Series | None = None):
    """Displays the seasons of a series next to how many episodes were watched."""
    console = Console()
    table = Table(title="Seasons", box=box.ROUNDED)
    table.add_column("Season", justify="right", style="cyan")
    table.add_column("Episodes", justify="right")
    table.add_column("Watched", justify="right", style="green")
    table.add_column("Premiered")
    table.add_column("Ended")
    for listing in seasons:
        season = series.get_season(listing.number) if series else None
        table.add_row(
            str(listing.number),
            str(listing.episode_order) if listing.episode_order else "?",
            str(season.get_total_episodes()) if season else "0",
            listing.premiere_date or "",
            listing.end_date or "",
        )
    console.print(table)


def print_schedule_table(episodes: list[Episode], schedule_date: str):
    console = Console()
    if not episodes:
        console.print(f"[dim]Nothing scheduled on {schedule_date}.[/dim]")
        return

    table = Table(title=f"Schedule for {schedule_date}", box=box.ROUNDED)
    table.add_column("Series", style="cyan")
    table.add_column("Episode")
    table.add_column("Title")
    table.add_column("Network", style="dim")
    for episode in episodes:
        show = episode.get_show()
        number = f"E{episode.number:02}" if episode.number is not None else ""
        table.add_row(
            show.name if show else "Unknown",
            f"S{episode.season:02}{number}",
            episode.name,
            (show.get_network_name() if show else None) or "",
        )
    console.print(table)


def print_search_results(results: list[SeriesSearchResult]):
    console = Console()
    if not results:
        console.print("[yellow]No series found.[/yellow]")
        return

    table = Table(title="Search Results", box=box.ROUNDED)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Premiered")
    table.add_column("Status")
    for result in results:
        show = result.show
        table.add_row(
            str(show.id), show.name, show.premiered or "", show.status or ""
        )
    console.print(table)


def print_watch_time_panel(watch_time: WatchTime, summary: dict[str, int]):
    """Displays collection totals and the estimated time spent watching."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right", width=20)
    table.add_column(style="white", justify="left")

    table.add_row("Series:", f"[green]{summary['series']}[/green]")
    table.add_row("Tracked:", f"[green]{summary['tracked']}[/green]")
    table.add_row("Seasons:", str(summary["seasons"]))
    table.add_row("Episodes:", str(summary["episodes"]))
    table.add_row("", "")
    table.add_row("Minutes:", f"[magenta]{watch_time.minutes}[/magenta]")
    table.add_row("Hours:", f"[magenta]{watch_time.hours:.1f}[/magenta]")
    table.add_row("Days:", f"[magenta]{watch_time.days:.1f}[/magenta]")
    if watch_time.series_without_runtime:
        table.add_row(
            "Unknown Runtime:",
            f"[yellow]{watch_time.series_without_runtime} series[/yellow]",
        )

    console.print(
        Panel(
            table,
            title="📺 [bold]Watch Time[/bold]",
            border_style="green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )


def print_cache_stats(stats: CacheStats, entries: int):
    """Displays cache hit statistics for the session."""
    console = Console()
    if not stats.lookups:
        return
    console.print(
        f"[dim]Cache: {stats.hits} hits, {stats.misses} misses "
        f"({stats.hit_rate:.0%} hit rate), {entries} entries on disk.[/dim]"
    )


def print_episodes_table(
    episode_list: EpisodeList, series: Series | None, season_numbers: list[int]
):
    """Displays the episodes of the given seasons, marking the watched ones."""
    console = Console()
    table = Table(title="Episodes", box=box.ROUNDED)
    table.add_column("Episode", style="cyan")
    table.add_column("Title")
    table.add_column("Aired")
    table.add_column("Watched", justify="center")

    for season_number in season_numbers:
        season = series.get_season(season_number) if series else None
        for episode in episode_list.get_episodes(season_number):
            number = f"E{episode.number:02}" if episode.number is not None else ""
            if episode.is_future_release():
                watched = "[dim]upcoming[/dim]"
            elif season and season.is_episode_watched(episode.number):
                watched = "[green]✓[/green]"
            else:
                watched = ""
            table.add_row(
                f"S{season_number:02}{number}",
                episode.name,
                episode.airdate or "",
                watched,
            )
    console.print(table)

    watched_total = series.get_total_episodes() if series else 0
    console.print(
        f"[dim]{watched_total} of {episode_list.get_total_watchable_episodes()} "
        "aired episodes watched.[/dim]"
    )
