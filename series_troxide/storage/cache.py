"""
A write-once, file-based cache for documents fetched from the TVmaze API.

Every cacheable document is named by a `ResourceIdentifier`, which maps to a
fixed path under the cache root. A lookup reads that file; only when the file
is missing does the cache call the supplied fetch function and store what it
returns. Cached files are never refreshed through a lookup: they stay until
they are invalidated explicitly or removed from disk.
"""

import asyncio
import hashlib
import inspect
import logging
import shutil
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pathvalidate import sanitize_filename

log = logging.getLogger(__name__)

FetchResult = bytes | str
FetchFunction = Callable[[], Awaitable[FetchResult] | FetchResult]


class ResourceKind(str, Enum):
    """The kinds of documents that can be cached. Values name the sub-directory."""

    SERIES_MAIN_INFO = "series_main_info"
    EPISODE_LIST = "episode_list"
    SHOW_CAST = "show_cast"
    SHOW_CREW = "show_crew"
    IMAGE_LIST = "image_list"
    SEASONS_LIST = "seasons_list"
    SCHEDULE_BY_DATE = "schedule_by_date"
    IMAGE = "images"

    @property
    def suffix(self) -> str:
        return "" if self is ResourceKind.IMAGE else ".json"

    @property
    def key_type(self) -> type:
        """Schedules are keyed by date and images by url hash, the rest by series id."""
        if self in (ResourceKind.SCHEDULE_BY_DATE, ResourceKind.IMAGE):
            return str
        return int


@dataclass(frozen=True)
class ResourceIdentifier:
    """
    Names one cacheable remote document: what it is and which one.

    Each kind takes a single key type, and string keys must already be valid
    file names, so distinct identifiers always resolve to distinct paths.

    Raises:
        ValueError: If the key has the wrong type for its kind, or is a string
            that cannot be used verbatim as a file name.
    """

    kind: ResourceKind
    key: int | str

    def __post_init__(self) -> None:
        key_type = self.kind.key_type
        if type(self.key) is not key_type:
            raise ValueError(
                f"'{self.kind.value}' documents are keyed by {key_type.__name__}, "
                f"got {self.key!r}."
            )
        if key_type is str and (
            self.key in ("", ".", "..")
            or sanitize_filename(self.key) != self.key
        ):
            raise ValueError(f"'{self.key}' cannot be used as a cache file name.")

    @classmethod
    def for_image(cls, image_url: str) -> "ResourceIdentifier":
        # Image urls contain slashes, so they are keyed by their hash
        digest = hashlib.sha256(image_url.encode("utf-8")).hexdigest()
        return cls(ResourceKind.IMAGE, digest)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.key}"


class CacheStore:
    """
    Serves cached documents and falls back to a fetch function on a miss.

    Concurrent misses for the same identifier share a single fetch.
    """

    def __init__(
        self,
        cache_dir_path: Path,
        stats_callback: Callable[[bool], None] | None = None,
    ):
        """
        Initializes the cache store.

        Args:
            cache_dir_path: The root directory under which documents are stored.
                It is created lazily on the first write.
            stats_callback: Optional callback to report cache hits (True) or misses
                (False).
        """
        self.cache_dir = cache_dir_path
        self._stats_callback = stats_callback
        self._in_flight: dict[ResourceIdentifier, asyncio.Task] = {}

    def resolve_path(self, identifier: ResourceIdentifier) -> Path:
        """Maps an identifier to its file path. Does not touch the filesystem."""
        kind = identifier.kind
        return self.cache_dir / kind.value / f"{identifier.key}{kind.suffix}"

    async def get(
        self, identifier: ResourceIdentifier, fetch_fn: FetchFunction
    ) -> bytes:
        """
        Returns the cached document for `identifier`, fetching it on a miss.

        Only a missing file triggers `fetch_fn`; any other read error propagates.
        A fetched document is written back before it is returned, and a failing
        fetch leaves nothing on disk.
        """
        cache_path = self.resolve_path(identifier)

        try:
            data = await asyncio.to_thread(cache_path.read_bytes)
        except FileNotFoundError:
            self._report(False)
        else:
            self._report(True)
            return data

        task = self._in_flight.get(identifier)
        if task is None:
            log.info(
                f"Falling back online for '{identifier.kind.value}' ({identifier.key})."
            )
            task = asyncio.ensure_future(self._fetch_and_store(cache_path, fetch_fn))
            self._in_flight[identifier] = task
            task.add_done_callback(
                lambda done: self._forget_in_flight(identifier, done)
            )
        else:
            log.debug(f"Joining in-flight fetch for {identifier}.")

        return await asyncio.shield(task)

    def invalidate(self, identifier: ResourceIdentifier) -> bool:
        """
        Deletes the cached document for `identifier`.

        Returns:
            True if a document was removed, False if none was cached.
        """
        cache_path = self.resolve_path(identifier)
        try:
            cache_path.unlink()
        except FileNotFoundError:
            return False
        log.debug(f"Invalidated cached document {identifier}.")
        return True

    def clear(self) -> bool:
        """Removes every cached document."""
        log.info("Clearing all cache entries...")
        try:
            if self.cache_dir.exists():
                shutil.rmtree(self.cache_dir)
            return True
        except OSError as e:
            log.error(f"Failed to clear cache: {e}")
            return False

    def count_entries(self) -> int:
        """Counts the cached documents currently on disk."""
        if not self.cache_dir.is_dir():
            return 0
        return sum(1 for path in self.cache_dir.rglob("*") if path.is_file())

    async def _fetch_and_store(
        self, cache_path: Path, fetch_fn: FetchFunction
    ) -> bytes:
        result = fetch_fn()
        if inspect.isawaitable(result):
            result = await result
        data = result.encode("utf-8") if isinstance(result, str) else bytes(result)
        await asyncio.to_thread(self._write_cache, cache_path, data)
        return data

    def _write_cache(self, cache_path: Path, data: bytes) -> None:
        """
        Writes a freshly fetched document. Failures are logged, never raised:
        the caller already holds the data.
        """
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.warning(f"Failed to create cache directory '{cache_path.parent}': {e}")
            return

        try:
            with open(cache_path, "xb") as f:
                f.write(data)
        except FileExistsError:
            log.debug(f"Cache file '{cache_path}' already exists, keeping it.")
        except OSError as e:
            log.warning(f"Failed to write cache '{cache_path}': {e}")
            # A partial file would be served as-is on the next lookup
            try:
                cache_path.unlink(missing_ok=True)
            except OSError:
                log.debug(f"Could not remove partial cache file '{cache_path}'.")

    def _forget_in_flight(
        self, identifier: ResourceIdentifier, task: asyncio.Task
    ) -> None:
        if self._in_flight.get(identifier) is task:
            del self._in_flight[identifier]
        # Every waiter may have been cancelled; mark a failure as retrieved
        if not task.cancelled():
            task.exception()

    def _report(self, hit: bool) -> None:
        if self._stats_callback:
            self._stats_callback(hit)
