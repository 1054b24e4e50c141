"""
Typed, cached access to the TVmaze catalog.

Each accessor names its document with a `ResourceIdentifier`, lets the cache
store serve it (fetching through the client on a miss) and deserializes it.
"""

import asyncio
import logging
from datetime import date

from pydantic import TypeAdapter

from series_troxide.api.client import TvMazeClient, deserialize_document
from series_troxide.models.catalog import (
    Cast,
    Crew,
    Episode,
    SeasonListing,
    SeriesMainInformation,
    ShowImage,
)
from series_troxide.storage.cache import CacheStore, ResourceIdentifier, ResourceKind

log = logging.getLogger(__name__)

_series_info_adapter = TypeAdapter(SeriesMainInformation)
_episode_list_adapter = TypeAdapter(list[Episode])
_cast_adapter = TypeAdapter(list[Cast])
_crew_adapter = TypeAdapter(list[Crew])
_image_list_adapter = TypeAdapter(list[ShowImage])
_seasons_list_adapter = TypeAdapter(list[SeasonListing])


class EpisodeList:
    """The episodes of a series, indexed by season and episode number."""

    def __init__(self, series_id: int, episodes: list[Episode]):
        self.series_id = series_id
        self.episodes = episodes

    def get_episode(self, season_number: int, episode_number: int) -> Episode | None:
        for episode in self.episodes:
            if episode.season == season_number and episode.number == episode_number:
                return episode
        return None

    def get_season_numbers(self) -> list[int]:
        return sorted({episode.season for episode in self.episodes})

    def get_episodes(self, season_number: int) -> list[Episode]:
        return [
            episode for episode in self.episodes if episode.season == season_number
        ]

    def get_total_watchable_episodes(self) -> int:
        return sum(1 for episode in self.episodes if not episode.is_future_release())


class SeriesCatalog:
    """Cached TVmaze accessors sharing one cache store and one client."""

    def __init__(self, cache: CacheStore, client: TvMazeClient):
        self.cache = cache
        self.client = client

    async def get_series_main_info(self, series_id: int) -> SeriesMainInformation:
        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, series_id),
            lambda: self.client.fetch_series_main_info(series_id),
        )
        return deserialize_document(document, _series_info_adapter)

    async def get_series_main_info_with_ids(
        self, series_ids: list[int]
    ) -> list[SeriesMainInformation]:
        """Fetches several series concurrently, preserving the given order."""
        return list(
            await asyncio.gather(
                *(self.get_series_main_info(series_id) for series_id in series_ids)
            )
        )

    async def get_episode_list(self, series_id: int) -> EpisodeList:
        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.EPISODE_LIST, series_id),
            lambda: self.client.fetch_episode_list(series_id),
        )
        episodes = deserialize_document(document, _episode_list_adapter)
        return EpisodeList(series_id, episodes)

    async def get_show_cast(self, series_id: int) -> list[Cast]:
        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.SHOW_CAST, series_id),
            lambda: self.client.fetch_show_cast(series_id),
        )
        return deserialize_document(document, _cast_adapter)

    async def get_show_crew(self, series_id: int) -> list[Crew]:
        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.SHOW_CREW, series_id),
            lambda: self.client.fetch_show_crew(series_id),
        )
        return deserialize_document(document, _crew_adapter)

    async def get_image_list(self, series_id: int) -> list[ShowImage]:
        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.IMAGE_LIST, series_id),
            lambda: self.client.fetch_image_list(series_id),
        )
        return deserialize_document(document, _image_list_adapter)

    async def get_seasons_list(self, series_id: int) -> list[SeasonListing]:
        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.SEASONS_LIST, series_id),
            lambda: self.client.fetch_seasons_list(series_id),
        )
        return deserialize_document(document, _seasons_list_adapter)

    async def get_schedule(
        self, schedule_date: date | str | None = None
    ) -> list[Episode]:
        """
        Returns the web schedule for a date (today when omitted), keeping one
        episode per show.
        """
        if schedule_date is None:
            schedule_date = date.today()
        if isinstance(schedule_date, date):
            schedule_date = schedule_date.isoformat()

        document = await self.cache.get(
            ResourceIdentifier(ResourceKind.SCHEDULE_BY_DATE, schedule_date),
            lambda: self.client.fetch_schedule(schedule_date),
        )
        episodes = deserialize_document(document, _episode_list_adapter)

        seen_shows = set()
        deduplicated = []
        for episode in episodes:
            show = episode.get_show()
            show_id = show.id if show else None
            if show_id is not None and show_id in seen_shows:
                continue
            seen_shows.add(show_id)
            deduplicated.append(episode)
        return deduplicated

    async def load_image(self, image_url: str) -> bytes:
        """Returns image bytes, shared across every place the same url is used."""
        return await self.cache.get(
            ResourceIdentifier.for_image(image_url),
            lambda: self.client.fetch_image(image_url),
        )

    async def get_poster(
        self, series_id: int, resolution: str = "original"
    ) -> bytes | None:
        """
        Returns the poster of a series, or None when TVmaze lists none.

        The main poster wins over the others; a poster missing the requested
        resolution falls back to its medium one.
        """
        images = await self.get_image_list(series_id)
        posters = sorted(
            (image for image in images if image.kind == "poster"),
            key=lambda image: not image.main,
        )
        for image in posters:
            url = image.get_url(resolution) or image.get_url("medium")
            if url:
                return await self.load_image(url)
        log.debug(f"No poster listed for series '{series_id}'.")
        return None
