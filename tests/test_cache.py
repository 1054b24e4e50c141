"""Tests for the write-once document cache."""

import asyncio
import gc
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from series_troxide.exceptions import NetworkError
from series_troxide.models.stats import CacheStats
from series_troxide.storage import cache as cache_module
from series_troxide.storage.cache import CacheStore, ResourceIdentifier, ResourceKind


class TestResourceIdentifier:
    """Test how identifiers map onto cache paths."""

    def test_resolve_path_is_deterministic(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier(ResourceKind.SHOW_CAST, 169)

        first = cache_store.resolve_path(identifier)
        second = cache_store.resolve_path(
            ResourceIdentifier(ResourceKind.SHOW_CAST, 169)
        )

        assert first == second
        assert first == cache_store.cache_dir / "show_cast" / "169.json"

    def test_resolve_path_does_not_touch_filesystem(
        self, cache_store: CacheStore
    ) -> None:
        cache_store.resolve_path(ResourceIdentifier(ResourceKind.EPISODE_LIST, 1))

        assert not cache_store.cache_dir.exists()

    def test_kinds_do_not_collide(self, cache_store: CacheStore) -> None:
        paths = {
            cache_store.resolve_path(
                ResourceIdentifier(kind, "1" if kind.key_type is str else 1)
            )
            for kind in ResourceKind
        }

        assert len(paths) == len(ResourceKind)

    def test_images_have_no_suffix(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier.for_image(
            "https://static.tvmaze.com/uploads/images/original_untouched/0/2400.jpg"
        )

        path = cache_store.resolve_path(identifier)

        assert path.parent.name == "images"
        assert path.suffix == ""
        assert len(path.name) == 64

    def test_same_image_url_shares_identifier(self) -> None:
        url = "https://static.tvmaze.com/uploads/images/medium_portrait/0/2400.jpg"

        assert ResourceIdentifier.for_image(url) == ResourceIdentifier.for_image(url)
        assert ResourceIdentifier.for_image(url) != ResourceIdentifier.for_image(
            url + "?v=2"
        )

    def test_distinct_string_keys_resolve_to_distinct_paths(
        self, cache_store: CacheStore
    ) -> None:
        keys = ["2024-05-01", "2024_05_01", "20240501"]

        paths = {
            cache_store.resolve_path(
                ResourceIdentifier(ResourceKind.SCHEDULE_BY_DATE, key)
            )
            for key in keys
        }

        assert len(paths) == len(keys)

    @pytest.mark.parametrize(
        "key", ["2024/05/01", "../../etc", "..", "", "a:b", "what?"]
    )
    def test_unusable_file_names_are_rejected(self, key: str) -> None:
        with pytest.raises(ValueError):
            ResourceIdentifier(ResourceKind.SCHEDULE_BY_DATE, key)

    def test_series_kinds_reject_string_keys(self) -> None:
        with pytest.raises(ValueError):
            ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, "169")

    def test_string_kinds_reject_integer_keys(self) -> None:
        with pytest.raises(ValueError):
            ResourceIdentifier(ResourceKind.SCHEDULE_BY_DATE, 20240501)

    def test_boolean_is_not_a_series_id(self) -> None:
        with pytest.raises(ValueError):
            ResourceIdentifier(ResourceKind.SHOW_CAST, True)


class TestCacheStoreGet:
    """Test lookups, fallbacks and write-back."""

    @pytest.mark.asyncio
    async def test_miss_fetches_and_fills(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, 169)
        fetch = AsyncMock(return_value=b'{"id": 169}')

        data = await cache_store.get(identifier, fetch)

        assert data == b'{"id": 169}'
        fetch.assert_awaited_once()
        assert cache_store.resolve_path(identifier).read_bytes() == b'{"id": 169}'

    @pytest.mark.asyncio
    async def test_hit_does_not_fetch(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, 169)
        path = cache_store.resolve_path(identifier)
        path.parent.mkdir(parents=True)
        path.write_bytes(b"cached")
        fetch = AsyncMock(return_value=b"fresh")

        data = await cache_store.get(identifier, fetch)

        assert data == b"cached"
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_lookup_is_served_from_disk(
        self, cache_store: CacheStore
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.EPISODE_LIST, 169)
        fetch = AsyncMock(side_effect=[b"first", b"second"])

        assert await cache_store.get(identifier, fetch) == b"first"
        assert await cache_store.get(identifier, fetch) == b"first"
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_existing_file_is_never_overwritten(
        self, cache_store: CacheStore
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.SHOW_CREW, 1)
        path = cache_store.resolve_path(identifier)

        cache_store._write_cache(path, b"original")
        cache_store._write_cache(path, b"replacement")

        assert path.read_bytes() == b"original"

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_no_file(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier(ResourceKind.SHOW_CAST, 169)
        fetch = AsyncMock(side_effect=NetworkError("https://api.tvmaze.com", "down"))

        with pytest.raises(NetworkError):
            await cache_store.get(identifier, fetch)

        assert not cache_store.resolve_path(identifier).exists()

    @pytest.mark.asyncio
    async def test_other_read_errors_propagate_without_fetch(
        self, cache_store: CacheStore
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.IMAGE_LIST, 169)
        # A directory where the document should be makes the read fail
        cache_store.resolve_path(identifier).mkdir(parents=True)
        fetch = AsyncMock(return_value=b"[]")

        with pytest.raises(IsADirectoryError):
            await cache_store.get(identifier, fetch)

        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure_still_returns_data(
        self, cache_store: CacheStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.SEASONS_LIST, 169)

        def failing_open(*args, **kwargs):
            raise OSError("No space left on device")

        monkeypatch.setattr(cache_module, "open", failing_open, raising=False)

        data = await cache_store.get(identifier, AsyncMock(return_value=b"[]"))

        assert data == b"[]"
        assert not cache_store.resolve_path(identifier).exists()

    @pytest.mark.asyncio
    async def test_sync_fetch_function_returning_text(
        self, cache_store: CacheStore
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.SCHEDULE_BY_DATE, "2024-05-01")
        fetch = Mock(return_value="[]")

        data = await cache_store.get(identifier, fetch)

        assert data == b"[]"
        fetch.assert_called_once()
        assert cache_store.resolve_path(identifier).read_bytes() == b"[]"

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(
        self, cache_store: CacheStore
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.SERIES_MAIN_INFO, 1)
        release = asyncio.Event()
        calls = 0

        async def slow_fetch() -> bytes:
            nonlocal calls
            calls += 1
            await release.wait()
            return b'{"id": 1}'

        async def release_later() -> None:
            await asyncio.sleep(0.1)
            release.set()

        first, second, _ = await asyncio.gather(
            cache_store.get(identifier, slow_fetch),
            cache_store.get(identifier, slow_fetch),
            release_later(),
        )

        assert first == second == b'{"id": 1}'
        assert calls == 1
        assert cache_store._in_flight == {}

    @pytest.mark.asyncio
    async def test_failure_after_every_waiter_is_cancelled(
        self, cache_store: CacheStore
    ) -> None:
        identifier = ResourceIdentifier(ResourceKind.SHOW_CREW, 3)
        release = asyncio.Event()
        unhandled = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _, context: unhandled.append(context))

        async def failing_fetch() -> bytes:
            await release.wait()
            raise NetworkError("https://api.tvmaze.com/shows/3/crew", "timeout")

        waiter = asyncio.ensure_future(cache_store.get(identifier, failing_fetch))
        while identifier not in cache_store._in_flight:
            await asyncio.sleep(0.01)
        fetch_task = cache_store._in_flight[identifier]

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        release.set()
        await asyncio.wait([fetch_task])
        await asyncio.sleep(0)

        assert cache_store._in_flight == {}
        assert fetch_task.done() and not fetch_task.cancelled()
        del fetch_task, waiter
        gc.collect()
        loop.set_exception_handler(None)
        assert unhandled == []

    @pytest.mark.asyncio
    async def test_stats_callback_reports_hits_and_misses(
        self, cache_dir: Path
    ) -> None:
        stats = CacheStats()
        store = CacheStore(cache_dir, stats_callback=stats.record)
        identifier = ResourceIdentifier(ResourceKind.SHOW_CAST, 2)
        fetch = AsyncMock(return_value=b"[]")

        await store.get(identifier, fetch)
        await store.get(identifier, fetch)

        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5


class TestCacheMaintenance:
    """Test explicit invalidation and clearing."""

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier(ResourceKind.SHOW_CAST, 169)
        fetch = AsyncMock(side_effect=[b"old", b"new"])
        await cache_store.get(identifier, fetch)

        assert cache_store.invalidate(identifier) is True
        assert await cache_store.get(identifier, fetch) == b"new"

    def test_invalidate_missing_document(self, cache_store: CacheStore) -> None:
        identifier = ResourceIdentifier(ResourceKind.SHOW_CAST, 169)

        assert cache_store.invalidate(identifier) is False

    def test_clear_removes_everything(self, cache_store: CacheStore) -> None:
        for series_id in (1, 2, 3):
            identifier = ResourceIdentifier(ResourceKind.SHOW_CREW, series_id)
            cache_store._write_cache(cache_store.resolve_path(identifier), b"[]")
        assert cache_store.count_entries() == 3

        assert cache_store.clear() is True
        assert cache_store.count_entries() == 0

    def test_clear_without_cache_dir(self, cache_store: CacheStore) -> None:
        assert cache_store.clear() is True
