"""
Pytest configuration and shared fixtures for series-troxide tests.

Documents mirror the shape of real TVmaze responses, trimmed to the fields
the application reads.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from series_troxide.api.client import TvMazeClient
from series_troxide.core.catalog import SeriesCatalog
from series_troxide.models.series import Series, SeriesCollection
from series_troxide.storage.cache import CacheStore
from series_troxide.storage.datastore import Datastore

PAST_AIRSTAMP = "2008-01-20T02:00:00+00:00"
FUTURE_AIRSTAMP = "2999-01-01T00:00:00+00:00"


def make_show(series_id: int = 169, name: str = "Breaking Bad", **extra) -> dict:
    show = {
        "id": series_id,
        "name": name,
        "language": "English",
        "genres": ["Drama", "Crime"],
        "status": "Ended",
        "averageRuntime": 60,
        "premiered": "2008-01-20",
        "ended": "2013-09-29",
        "rating": {"average": 9.2},
        "network": {"name": "AMC", "country": {"name": "United States", "code": "US"}},
        "webChannel": None,
        "summary": "<p>A chemist turns to crime.</p>",
        "image": None,
    }
    show.update(extra)
    return show


def make_episode(season: int, number: int, airstamp: str = PAST_AIRSTAMP, **extra):
    episode = {
        "id": season * 100 + number,
        "name": f"Episode {number}",
        "season": season,
        "number": number,
        "runtime": 60,
        "airdate": airstamp[:10] if airstamp else None,
        "airtime": "22:00",
        "airstamp": airstamp,
    }
    episode.update(extra)
    return episode


def to_document(value) -> bytes:
    return json.dumps(value).encode("utf-8")


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def cache_store(cache_dir: Path) -> CacheStore:
    return CacheStore(cache_dir)


@pytest.fixture
def datastore(data_dir: Path) -> Datastore:
    return Datastore.open(data_dir)


@pytest.fixture
def show_document() -> bytes:
    return to_document(make_show())


@pytest.fixture
def episodes_document() -> bytes:
    """Season 1 has three aired episodes; season 2 has one aired and one upcoming."""
    return to_document(
        [
            make_episode(1, 1),
            make_episode(1, 2),
            make_episode(1, 3),
            make_episode(2, 1),
            make_episode(2, 2, FUTURE_AIRSTAMP),
        ]
    )


@pytest.fixture
def mock_client(show_document: bytes, episodes_document: bytes) -> AsyncMock:
    """A TVmaze client whose endpoint helpers answer from fixtures."""
    client = AsyncMock(spec=TvMazeClient)
    client.fetch_series_main_info.return_value = show_document
    client.fetch_episode_list.return_value = episodes_document
    client.fetch_show_cast.return_value = to_document([])
    client.fetch_show_crew.return_value = to_document([])
    client.fetch_image_list.return_value = to_document([])
    client.fetch_seasons_list.return_value = to_document([])
    client.fetch_schedule.return_value = to_document([])
    client.fetch_image.return_value = b"\x89PNG"
    return client


@pytest.fixture
def catalog(cache_store: CacheStore, mock_client: AsyncMock) -> SeriesCatalog:
    return SeriesCatalog(cache_store, mock_client)


@pytest.fixture
def sample_collection() -> SeriesCollection:
    breaking_bad = Series(id=169, name="Breaking Bad", is_tracked=True)
    breaking_bad.add_episodes(1, range(1, 8))
    breaking_bad.add_episode(2, 1)
    dark = Series(id=17861, name="Dark")
    dark.add_season(1)
    return SeriesCollection.new([breaking_bad, dark])
