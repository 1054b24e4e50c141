"""Tests for cached catalog access."""

from unittest.mock import AsyncMock

import pytest

from conftest import make_episode, make_show, to_document
from series_troxide.core.catalog import SeriesCatalog
from series_troxide.exceptions import BadResponseError, DeserializationError
from series_troxide.storage.cache import ResourceIdentifier, ResourceKind


class TestSeriesCatalog:
    """Test that catalog accessors go through the cache."""

    @pytest.mark.asyncio
    async def test_series_main_info_is_cached(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        first = await catalog.get_series_main_info(169)
        second = await catalog.get_series_main_info(169)

        assert first == second
        assert first.name == "Breaking Bad"
        mock_client.fetch_series_main_info.assert_awaited_once_with(169)
        path = catalog.cache.resolve_path(
            ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, 169)
        )
        assert path.is_file()

    @pytest.mark.asyncio
    async def test_cached_document_is_served_offline(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        path = catalog.cache.resolve_path(
            ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, 7)
        )
        path.parent.mkdir(parents=True)
        path.write_bytes(to_document(make_show(series_id=7, name="Cached")))

        info = await catalog.get_series_main_info(7)

        assert info.name == "Cached"
        mock_client.fetch_series_main_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_main_info_with_ids_keeps_order(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_series_main_info.side_effect = lambda series_id: to_document(
            make_show(series_id=series_id, name=f"Show {series_id}")
        )

        infos = await catalog.get_series_main_info_with_ids([3, 1, 2])

        assert [info.id for info in infos] == [3, 1, 2]

    @pytest.mark.asyncio
    async def test_episode_list(self, catalog: SeriesCatalog) -> None:
        episode_list = await catalog.get_episode_list(169)

        assert episode_list.get_season_numbers() == [1, 2]
        assert len(episode_list.get_episodes(1)) == 3
        assert episode_list.get_episode(2, 2).is_future_release()
        assert episode_list.get_episode(5, 1) is None
        assert episode_list.get_total_watchable_episodes() == 4

    @pytest.mark.asyncio
    async def test_schedule_keeps_one_episode_per_show(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        show_a = {"show": make_show(series_id=1, name="A")}
        show_b = {"show": make_show(series_id=2, name="B")}
        mock_client.fetch_schedule.return_value = to_document(
            [
                make_episode(1, 1, _embedded=show_a),
                make_episode(1, 2, _embedded=show_a),
                make_episode(3, 4, _embedded=show_b),
            ]
        )

        episodes = await catalog.get_schedule("2024-05-01")

        assert [episode.get_show().name for episode in episodes] == ["A", "B"]
        mock_client.fetch_schedule.assert_awaited_once_with("2024-05-01")
        assert catalog.cache.resolve_path(
            ResourceIdentifier(ResourceKind.SCHEDULE_BY_DATE, "2024-05-01")
        ).is_file()

    @pytest.mark.asyncio
    async def test_images_are_keyed_by_url(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        url = "https://static.tvmaze.com/uploads/images/original_untouched/0/1.jpg"

        assert await catalog.load_image(url) == b"\x89PNG"
        assert await catalog.load_image(url) == b"\x89PNG"

        mock_client.fetch_image.assert_awaited_once_with(url)

    @pytest.mark.asyncio
    async def test_poster_prefers_main_image(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        base = "https://static.tvmaze.com/uploads/images"
        mock_client.fetch_image_list.return_value = to_document(
            [
                {
                    "id": 1,
                    "type": "background",
                    "main": True,
                    "resolutions": {"original": {"url": f"{base}/original/1.jpg"}},
                },
                {
                    "id": 2,
                    "type": "poster",
                    "main": False,
                    "resolutions": {"original": {"url": f"{base}/original/2.jpg"}},
                },
                {
                    "id": 3,
                    "type": "poster",
                    "main": True,
                    "resolutions": {"medium": {"url": f"{base}/medium/3.jpg"}},
                },
            ]
        )

        poster = await catalog.get_poster(169)

        assert poster == b"\x89PNG"
        mock_client.fetch_image_list.assert_awaited_once_with(169)
        mock_client.fetch_image.assert_awaited_once_with(f"{base}/medium/3.jpg")

    @pytest.mark.asyncio
    async def test_no_poster(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        assert await catalog.get_poster(169) is None
        mock_client.fetch_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_response_document(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_show_cast.return_value = to_document(
            {"name": "Not Found", "message": "", "code": 0, "status": 404}
        )

        with pytest.raises(BadResponseError):
            await catalog.get_show_cast(999999)

    @pytest.mark.asyncio
    async def test_unexpected_document(
        self, catalog: SeriesCatalog, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_show_crew.return_value = to_document(
            [{"type": "Creator", "person": {"id": 1}}]
        )

        with pytest.raises(DeserializationError):
            await catalog.get_show_crew(169)
