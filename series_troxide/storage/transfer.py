"""
Importing, exporting and creating the canonical collection file.

The canonical collection file is `series.json` directly under the data
directory. Import and export treat it as an opaque blob and keep its bytes
verbatim; the only parsing happens when an import candidate is validated.
"""

import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from series_troxide.exceptions import (
    DatabaseFileExistsError,
    DatabasePathNotFoundError,
    InvalidDatabaseFileError,
)
from series_troxide.models.series import CURRENT_DATA_VERSION, SeriesCollection
from series_troxide.storage.datastore import Datastore

log = logging.getLogger(__name__)

SERIES_DATABASE_NAME = "series.json"


def parse_collection(content: bytes | str) -> SeriesCollection:
    """
    Parses a collection file's content, the validity gate for imports.

    Raises:
        InvalidDatabaseFileError: If the content is not a collection of the
            current data version.
    """
    try:
        collection = SeriesCollection.model_validate_json(content)
    except ValidationError as e:
        raise InvalidDatabaseFileError(f"Not a valid series database file: {e}") from e

    if not collection.is_compatible():
        raise InvalidDatabaseFileError(
            f"Incompatible version. Expected version {CURRENT_DATA_VERSION}, "
            f"found {collection.version}."
        )
    return collection


class CollectionTransfer:
    """
    Validates, imports and exports the canonical collection file.

    Every operation runs inside `maintenance()`, so two transfers never copy
    over each other. Writers that bypass this object are not coordinated.
    """

    def __init__(self, data_dir_resolver: Callable[[], Path | None]):
        self._data_dir_resolver = data_dir_resolver
        self._maintenance_lock = threading.RLock()

    def get_database_path(self) -> Path:
        """
        Returns the canonical collection file path.

        Raises:
            DatabasePathNotFoundError: If no data directory can be resolved.
        """
        data_dir = self._data_dir_resolver()
        if data_dir is None:
            raise DatabasePathNotFoundError()
        return data_dir / SERIES_DATABASE_NAME

    @contextmanager
    def maintenance(self) -> Iterator[None]:
        """Exclusive scope for operations that replace or copy the collection file."""
        with self._maintenance_lock:
            yield

    def create_empty(self, force: bool = False) -> Path:
        """
        Writes an empty collection to the canonical path.

        Args:
            force: Overwrite an existing collection file.

        Raises:
            DatabaseFileExistsError: If the file exists and `force` is False.
        """
        database_path = self.get_database_path()
        with self.maintenance():
            if database_path.exists() and not force:
                raise DatabaseFileExistsError(database_path)
            self._write_atomic(
                database_path, SeriesCollection.new().model_dump_json(indent=2)
            )
        log.info(f"Created an empty database at '{database_path}'.")
        return database_path

    def export(self, destination_dir: Path) -> Path:
        """
        Copies the canonical collection file into `destination_dir`.

        Raises:
            DatabasePathNotFoundError: If no data directory can be resolved.
            OSError: If the copy fails.
        """
        database_path = self.get_database_path()
        destination = Path(destination_dir) / SERIES_DATABASE_NAME
        with self.maintenance():
            shutil.copyfile(database_path, destination)
        log.info(f"Exported database to '{destination}'.")
        return destination

    def import_file(self, source_file: Path) -> SeriesCollection:
        """
        Replaces the canonical collection file with `source_file`.

        The file is read once and validated; the bytes that passed validation
        are what replaces the active database, through a temporary file, so an
        invalid file or a failed write leaves it untouched. No merging happens:
        import is a full replace.

        Raises:
            InvalidDatabaseFileError: If the file is not a valid collection.
            DatabasePathNotFoundError: If no data directory can be resolved.
            OSError: If the file cannot be read or written.
        """
        source_file = Path(source_file)
        content = source_file.read_bytes()
        collection = parse_collection(content)

        database_path = self.get_database_path()
        with self.maintenance():
            self._write_atomic(database_path, content)
        log.info(
            f"Imported {len(collection.series)} series from '{source_file}'."
        )
        return collection

    def load(self) -> SeriesCollection:
        """Reads and validates the canonical collection file."""
        database_path = self.get_database_path()
        with self.maintenance():
            content = database_path.read_bytes()
        return parse_collection(content)

    def snapshot(self, datastore: Datastore) -> Path:
        """Writes the datastore's current collection to the canonical file."""
        database_path = self.get_database_path()
        collection = datastore.export_collection()
        with self.maintenance():
            self._write_atomic(database_path, collection.model_dump_json(indent=2))
        log.info(
            f"Wrote {len(collection.series)} series from the database to "
            f"'{database_path}'."
        )
        return database_path

    def restore(self, datastore: Datastore) -> SeriesCollection:
        """Replaces the datastore's content with the canonical collection file."""
        with self.maintenance():
            collection = self.load()
            datastore.replace_collection(collection)
        log.info(f"Restored {len(collection.series)} series into the database.")
        return collection

    @staticmethod
    def _write_atomic(path: Path, content: bytes | str) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
