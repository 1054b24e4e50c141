"""
Tracking operations on the user's series collection.

The tracker reads a `Series` record from the datastore, applies one change and
writes the record back. Series names and episode air dates come from the
catalog, so adding a series or episodes may hit the network on a cache miss.
"""

import asyncio
import logging
from dataclasses import dataclass

from series_troxide.core.catalog import SeriesCatalog
from series_troxide.exceptions import SeriesNotFoundError
from series_troxide.models.series import AddResult, Series
from series_troxide.storage.datastore import Datastore

log = logging.getLogger(__name__)


@dataclass
class WatchTime:
    """Time spent watching the recorded episodes, in minutes."""

    minutes: int = 0
    episodes: int = 0
    series_without_runtime: int = 0

    @property
    def hours(self) -> float:
        return self.minutes / 60

    @property
    def days(self) -> float:
        return self.minutes / (60 * 24)


class SeriesTracker:
    """
    Mutates tracked series in a datastore, consulting the catalog when needed.

    Without a catalog only the read-only listing and totals are available.
    """

    def __init__(self, datastore: Datastore, catalog: SeriesCatalog | None = None):
        self.datastore = datastore
        self.catalog = catalog
        self._write_lock = asyncio.Lock()

    async def _load(self, series_id: int) -> Series:
        series = await self.datastore.get_series_async(series_id)
        if series is None:
            raise SeriesNotFoundError(series_id)
        return series

    async def _get_or_create(self, series_id: int) -> Series:
        series = await self.datastore.get_series_async(series_id)
        if series is not None:
            return series
        info = await self.catalog.get_series_main_info(series_id)
        log.debug(f"Adding '{info.name}' ({series_id}) to the database.")
        return Series(id=info.id, name=info.name)

    async def track_series(self, series_id: int) -> Series:
        """Marks a series tracked, adding it to the database if it is new."""
        async with self._write_lock:
            series = await self._get_or_create(series_id)
            series.mark_tracked()
            await self.datastore.add_series_async(series)
        log.info(f"Tracking '{series.name}'.")
        return series

    async def untrack_series(self, series_id: int) -> Series:
        """Stops tracking a series while keeping its watched episodes."""
        async with self._write_lock:
            series = await self._load(series_id)
            series.mark_untracked()
            await self.datastore.add_series_async(series)
        log.info(f"Stopped tracking '{series.name}'.")
        return series

    async def remove_series(self, series_id: int) -> None:
        """Deletes a series and its watch history."""
        async with self._write_lock:
            removed = await asyncio.to_thread(self.datastore.remove_series, series_id)
        if not removed:
            raise SeriesNotFoundError(series_id)
        log.info(f"Removed series '{series_id}' from the database.")

    async def add_season(self, series_id: int, season_number: int) -> bool:
        """Returns False when the season was already recorded."""
        async with self._write_lock:
            series = await self._get_or_create(series_id)
            added = series.add_season(season_number)
            await self.datastore.add_series_async(series)
        return added

    async def remove_season(self, series_id: int, season_number: int) -> bool:
        async with self._write_lock:
            series = await self._load(series_id)
            removed = series.remove_season(season_number)
            if removed:
                await self.datastore.add_series_async(series)
        return removed

    async def add_episodes(
        self,
        series_id: int,
        season_number: int,
        episodes: range,
        check_released: bool = True,
    ) -> AddResult:
        """
        Records a range of watched episodes of one season.

        When `check_released` is set, episodes that have not aired yet, or that
        TVmaze does not list at all, are skipped and count as not added.
        """
        if check_released:
            episode_list = await self.catalog.get_episode_list(series_id)
            released = []
            for number in episodes:
                episode = episode_list.get_episode(season_number, number)
                if episode is None or episode.is_future_release():
                    log.debug(
                        f"Skipping S{season_number:02}E{number:02} of series "
                        f"'{series_id}': not released."
                    )
                    continue
                released.append(number)
        else:
            released = list(episodes)

        async with self._write_lock:
            series = await self._get_or_create(series_id)
            added = sum(
                1
                for number in released
                if series.add_episode(season_number, number)
            )
            await self.datastore.add_series_async(series)
        return AddResult.from_counts(added, len(episodes))

    async def remove_episode(
        self, series_id: int, season_number: int, episode_number: int
    ) -> bool:
        async with self._write_lock:
            series = await self._load(series_id)
            removed = series.remove_episode(season_number, episode_number)
            if removed:
                await self.datastore.add_series_async(series)
        return removed

    def list_series(self, tracked_only: bool = False) -> list[Series]:
        """Series ordered by id, optionally only those being tracked."""
        collection = self.datastore.get_series_collection()
        if tracked_only:
            return [series for series in collection if series.is_tracked]
        return collection

    def get_summary(self) -> dict[str, int]:
        """Totals across the whole collection."""
        collection = self.datastore.get_series_collection()
        return {
            "series": len(collection),
            "tracked": sum(1 for series in collection if series.is_tracked),
            "seasons": sum(series.get_total_seasons() for series in collection),
            "episodes": sum(series.get_total_episodes() for series in collection),
        }

    async def get_watch_time(self) -> WatchTime:
        """
        Estimates watch time as watched episodes times the series' average
        runtime.
        """
        collection = [
            series
            for series in self.datastore.get_series_collection()
            if series.get_total_episodes()
        ]
        infos = await self.catalog.get_series_main_info_with_ids(
            [series.id for series in collection]
        )

        watch_time = WatchTime()
        for series, info in zip(collection, infos):
            episodes = series.get_total_episodes()
            watch_time.episodes += episodes
            if info.average_runtime is None:
                watch_time.series_without_runtime += 1
                continue
            watch_time.minutes += episodes * info.average_runtime
        return watch_time
