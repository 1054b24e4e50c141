"""
Async client for the TVmaze API.

The client only requests and returns raw documents; it never retries and never
caches. Caching is layered on top by `series_troxide.core.catalog`.
"""

import asyncio
import json
import logging
from typing import Any, TypeVar
from urllib.parse import quote

import aiohttp
from pydantic import TypeAdapter, ValidationError

from series_troxide.exceptions import (
    BadResponseError,
    DeserializationError,
    NetworkError,
)
from series_troxide.models.catalog import BadResponse, SeriesSearchResult

log = logging.getLogger(__name__)

T = TypeVar("T")

_bad_response_adapter = TypeAdapter(BadResponse)


def deserialize_document(document: bytes | str, adapter: TypeAdapter[T]) -> T:
    """
    Parses a TVmaze document with the given adapter.

    Raises:
        BadResponseError: If the document is TVmaze's JSON error body.
        DeserializationError: If the document does not match the expected shape.
    """
    try:
        return adapter.validate_json(document)
    except ValidationError as e:
        try:
            bad_response = _bad_response_adapter.validate_json(document)
        except ValidationError:
            pass
        else:
            raise BadResponseError(bad_response.name, bad_response.message) from e
        raise DeserializationError(
            f"Unexpected TVmaze document: {e.errors()[0]['msg']}",
            _find_errored_line(document, e),
        ) from e


def _find_errored_line(document: bytes | str, error: ValidationError) -> str | None:
    """
    Returns the first failing value, located by following the error's
    location path through the parsed document.
    """
    if isinstance(document, bytes):
        text = document.decode("utf-8", "replace")
    else:
        text = document
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        lines = text.splitlines()
        return lines[e.lineno - 1] if 0 < e.lineno <= len(lines) else None

    value: Any = parsed
    for part in error.errors()[0].get("loc", ()):
        try:
            value = value[part]
        except (KeyError, IndexError, TypeError):
            break
    return json.dumps(value)[:200]


class TvMazeClient:
    """
    Async client for the TVmaze JSON API.

    Each endpoint helper returns the raw response body so it can be cached
    verbatim.
    """

    BASE_URL = "https://api.tvmaze.com/"

    def __init__(self, request_timeout: int = 30, max_connections: int = 8):
        """
        Initializes the API client.

        Args:
            request_timeout: Total timeout in seconds for a single request.
            max_connections: Size of the connection pool.
        """
        self.request_timeout = request_timeout
        self.max_connections = max_connections
        self._session: aiohttp.ClientSession | None = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_connections,
                ttl_dns_cache=300,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": "series-troxide",
                    "Accept-Encoding": "gzip, deflate",
                },
                timeout=aiohttp.ClientTimeout(
                    total=self.request_timeout, connect=min(15, self.request_timeout)
                ),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "TvMazeClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch(self, url: str) -> bytes:
        """
        Requests `url` and returns the response body.

        Error responses are raised, never returned, so they are never cached.

        Raises:
            BadResponseError: If TVmaze answers with its JSON error body.
            NetworkError: On connection failures, timeouts or other HTTP errors.
        """
        await self._initialize_session()
        log.debug(f"GET {url}")
        try:
            async with self._session.get(url) as r:
                body = await r.read()
                if r.status >= 400:
                    self._raise_for_status(url, r.status, body)
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Request to {url} failed: {e!r}")
            raise NetworkError(url, str(e) or type(e).__name__) from e

    @staticmethod
    def _raise_for_status(url: str, status: int, body: bytes) -> None:
        try:
            bad_response = _bad_response_adapter.validate_json(body)
        except ValidationError:
            raise NetworkError(url, f"HTTP {status}") from None
        raise BadResponseError(bad_response.name, bad_response.message)

    def build_url(self, path: str, **params: str) -> str:
        url = self.BASE_URL + path
        if params:
            query = "&".join(
                f"{key}={quote(str(value))}" for key, value in params.items()
            )
            url = f"{url}?{query}"
        return url

    # Public API Methods
    async def fetch_series_main_info(self, series_id: int) -> bytes:
        return await self.fetch(self.build_url(f"shows/{series_id}"))

    async def fetch_episode_list(self, series_id: int) -> bytes:
        return await self.fetch(self.build_url(f"shows/{series_id}/episodes"))

    async def fetch_show_cast(self, series_id: int) -> bytes:
        return await self.fetch(self.build_url(f"shows/{series_id}/cast"))

    async def fetch_show_crew(self, series_id: int) -> bytes:
        return await self.fetch(self.build_url(f"shows/{series_id}/crew"))

    async def fetch_image_list(self, series_id: int) -> bytes:
        return await self.fetch(self.build_url(f"shows/{series_id}/images"))

    async def fetch_seasons_list(self, series_id: int) -> bytes:
        return await self.fetch(self.build_url(f"shows/{series_id}/seasons"))

    async def fetch_schedule(self, date: str) -> bytes:
        """Fetches the web/streaming schedule for a `YYYY-MM-DD` date."""
        return await self.fetch(self.build_url("schedule/web", date=date))

    async def fetch_image(self, image_url: str) -> bytes:
        return await self.fetch(image_url)

    async def search_series(self, series_name: str) -> list[SeriesSearchResult]:
        """Searches series by name. Search results are never cached."""
        document = await self.fetch(self.build_url("search/shows", q=series_name))
        return deserialize_document(document, TypeAdapter(list[SeriesSearchResult]))
