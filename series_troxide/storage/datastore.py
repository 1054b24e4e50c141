"""
Manages the SQLite key-value store that holds the user's tracked series.

The store lives in a directory whose name carries the schema version, so a
store written in an older on-disk format is never opened by code expecting a
newer one.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from series_troxide.exceptions import DatastoreError, DatastoreOpenError
from series_troxide.models.series import Series, SeriesCollection

log = logging.getLogger(__name__)

DATABASE_FOLDER_PREFIX = "series-troxide-db"
DATABASE_FILENAME = "series.sqlite3"
SCHEMA_VERSION = 1


def get_datastore_dir(data_dir: Path, schema_version: int = SCHEMA_VERSION) -> Path:
    """Returns the versioned datastore directory under `data_dir`."""
    return data_dir / f"{DATABASE_FOLDER_PREFIX}-{schema_version}"


class Datastore:
    """
    An ordered key-value store mapping series ids to serialized `Series` records.

    One instance is shared by every consumer in the process. Each operation
    opens its own connection; SQLite's own locking arbitrates concurrent access.
    """

    def __init__(self, db_path: Path, was_recovered: bool = False):
        self.db_path = db_path
        self.was_recovered = was_recovered

    @classmethod
    def open(cls, data_dir: Path, schema_version: int = SCHEMA_VERSION) -> "Datastore":
        """
        Opens the datastore under `data_dir`, creating it when absent.

        Raises:
            DatastoreOpenError: If the store cannot be created or is unreadable.
        """
        log.info("Opening database...")
        datastore_dir = get_datastore_dir(data_dir, schema_version)
        db_path = datastore_dir / DATABASE_FILENAME
        try:
            pre_existed = db_path.is_file() and db_path.stat().st_size > 0
            datastore_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DatastoreOpenError(
                f"Could not prepare database directory '{datastore_dir}': {e}"
            ) from e

        datastore = cls(db_path)
        try:
            had_table = datastore._initialize_db()
        except sqlite3.Error as e:
            raise DatastoreOpenError(
                f"Failed to open database at '{db_path}': {e}"
            ) from e

        datastore.was_recovered = pre_existed and had_table
        if datastore.was_recovered:
            log.debug(f"Recovered existing database at '{db_path}'.")
        else:
            log.info("Created a fresh database as none was found.")
        return datastore

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with WAL journaling enabled."""
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _initialize_db(self) -> bool:
        """
        Creates the series table if it doesn't exist.

        Returns:
            Whether the table existed before this call.
        """
        conn = self._get_connection()
        try:
            with conn:
                row = conn.execute(
                    "SELECT name FROM sqlite_master "
                    "WHERE type='table' AND name='series'"
                ).fetchone()
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS series (
                        series_id INTEGER PRIMARY KEY NOT NULL,
                        record TEXT NOT NULL
                    );
                    """
                )
            return row is not None
        finally:
            conn.close()

    def _execute_read(self, query: str, params: tuple = ()) -> list[tuple]:
        conn = self._get_connection()
        try:
            return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise DatastoreError(f"Database read failed: {e}") from e
        finally:
            conn.close()

    def _execute_write(self, statements: list[tuple[str, tuple]]) -> None:
        """Runs the given statements in one transaction."""
        conn = self._get_connection()
        try:
            with conn:
                for query, params in statements:
                    conn.execute(query, params)
        except sqlite3.Error as e:
            raise DatastoreError(f"Database write failed: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _decode(series_id: int, record: str) -> Series:
        try:
            return Series.model_validate_json(record)
        except ValidationError as e:
            raise DatastoreError(
                f"Stored record for series '{series_id}' is corrupt: {e}"
            ) from e

    @staticmethod
    def _upsert(series: Series) -> tuple[str, tuple]:
        return (
            "INSERT OR REPLACE INTO series (series_id, record) VALUES (?, ?)",
            (series.id, series.model_dump_json()),
        )

    def add_series(self, series: Series) -> None:
        """
        Adds the given series to the database.

        Note:
            This overwrites any previous series with the same id.
        """
        self._execute_write([self._upsert(series)])

    def remove_series(self, series_id: int) -> bool:
        """Removes a series. Returns False when it was not present."""
        existed = self.get_series(series_id) is not None
        self._execute_write([("DELETE FROM series WHERE series_id = ?", (series_id,))])
        return existed

    def get_series(self, series_id: int) -> Series | None:
        rows = self._execute_read(
            "SELECT series_id, record FROM series WHERE series_id = ?", (series_id,)
        )
        if not rows:
            return None
        return self._decode(*rows[0])

    def get_series_collection(self) -> list[Series]:
        """Returns every stored series, ordered by id."""
        rows = self._execute_read(
            "SELECT series_id, record FROM series ORDER BY series_id"
        )
        return [self._decode(series_id, record) for series_id, record in rows]

    def get_series_ids(self) -> list[int]:
        rows = self._execute_read("SELECT series_id FROM series ORDER BY series_id")
        return [row[0] for row in rows]

    def get_total_series(self) -> int:
        return self._execute_read("SELECT COUNT(*) FROM series")[0][0]

    def get_total_seasons(self) -> int:
        """Total seasons recorded across all series."""
        collection = self.get_series_collection()
        return sum(series.get_total_seasons() for series in collection)

    def get_total_episodes(self) -> int:
        """Total watched episodes across all series."""
        collection = self.get_series_collection()
        return sum(series.get_total_episodes() for series in collection)

    def export_collection(self) -> SeriesCollection:
        return SeriesCollection.new(self.get_series_collection())

    def import_collection(self, collection: SeriesCollection) -> None:
        """Adds every series of the collection, overwriting ones with the same id."""
        self._execute_write([self._upsert(series) for series in collection.series])
        log.debug(f"Imported {len(collection.series)} series into the database.")

    def replace_collection(self, collection: SeriesCollection) -> None:
        """Replaces the whole content of the database with the collection."""
        statements = [("DELETE FROM series", ())]
        statements.extend(self._upsert(series) for series in collection.series)
        self._execute_write(statements)
        log.debug(f"Replaced database content with {len(collection.series)} series.")

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function in a worker thread."""
        return await asyncio.to_thread(func, *args)

    async def get_series_async(self, series_id: int) -> Series | None:
        return await self._run_in_executor(self.get_series, series_id)

    async def add_series_async(self, series: Series) -> None:
        await self._run_in_executor(self.add_series, series)
