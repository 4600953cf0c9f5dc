"""
Dataset storage backends for scraped items.
Supports a local JSON lines file and a Postgres items table.
"""
import hashlib
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path

import psycopg2
from psycopg2.extras import Json

from alternativeto_scraper.errors import StorageError

ENTITY_TYPE = 'tool.v1'
SOURCE = 'alternativeto.net'


class DatasetStorage(ABC):
    """Abstract base class for dataset storage backends."""

    @abstractmethod
    def save_item(self, dataset_id: str, item: dict) -> bool:
        """
        Persist one item.

        Args:
            dataset_id: Dataset the item belongs to
            item: Item fields as a plain dict (must contain 'url')

        Returns:
            True if a new row/line was written, False if it was already stored
        """
        pass

    def close(self):
        """Release any open handle or connection."""
        pass


class LocalDatasetStorage(DatasetStorage):
    """One JSON lines file per dataset under base_path."""

    def __init__(self, base_path: str = '/app/data/datasets'):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._files = {}
        self._seen = {}

    def get_filepath(self, dataset_id: str) -> Path:
        return self.base_path / f'{dataset_id}.jsonl'

    def _open(self, dataset_id):
        if dataset_id not in self._files:
            filepath = self.get_filepath(dataset_id)
            seen = set()
            if filepath.exists():
                with open(filepath, encoding='utf-8') as f:
                    for line in f:
                        try:
                            seen.add(json.loads(line).get('url'))
                        except ValueError:
                            continue
            self._seen[dataset_id] = seen
            self._files[dataset_id] = open(filepath, 'a', encoding='utf-8')
        return self._files[dataset_id], self._seen[dataset_id]

    def save_item(self, dataset_id: str, item: dict) -> bool:
        url = item.get('url')
        if not url:
            raise StorageError('Cannot store an item without url')
        try:
            f, seen = self._open(dataset_id)
            if url in seen:
                return False
            f.write(json.dumps(item, ensure_ascii=False) + '\n')
            f.flush()
        except OSError as e:
            raise StorageError(f'Failed to write item {url}: {e}') from e
        seen.add(url)
        return True

    def close(self):
        for f in self._files.values():
            f.close()
        self._files = {}


class PostgresDatasetStorage(DatasetStorage):
    """
    Inserts items into the shared ``items`` table.
    Uses INSERT ... ON CONFLICT (dataset_id, url) DO NOTHING so a URL is
    stored at most once per dataset.
    """

    def __init__(self, database_url: str):
        try:
            self.conn = psycopg2.connect(database_url)
        except psycopg2.Error as e:
            raise StorageError(f'Failed to connect to database: {e}') from e

    def save_item(self, dataset_id: str, item: dict) -> bool:
        url = item.get('url')
        if not url:
            raise StorageError('Cannot store an item without url')
        url_hash = hashlib.sha256(url.encode()).hexdigest()
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO items (
                        dataset_id, entity_type, tags, source, url,
                        canonical_url, hash, published_at, data
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (dataset_id, url) DO NOTHING
                    """,
                    (
                        dataset_id,
                        ENTITY_TYPE,
                        item.get('applicationTypes') or [],
                        SOURCE,
                        url,
                        url,
                        url_hash,
                        None,
                        Json(item),
                    )
                )
                inserted = cur.rowcount == 1
            self.conn.commit()
        except psycopg2.Error as e:
            # Rollback on error to allow future transactions
            self.conn.rollback()
            raise StorageError(f'Error inserting item {url}: {e}') from e
        return inserted

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None


def get_dataset_storage(database_url=None):
    """
    Factory function to get the configured dataset storage backend.
    Reads from environment variables:
    - DATASET_STORAGE_TYPE: 'local' or 'postgres' (default: 'local')
    - DATASET_LOCAL_PATH: directory for local JSON lines files
    - DATABASE_URL: Postgres DSN (when not passed explicitly)
    """
    storage_type = os.environ.get('DATASET_STORAGE_TYPE', 'local').lower()

    if storage_type == 'postgres':
        database_url = database_url or os.environ.get('DATABASE_URL')
        if not database_url:
            raise StorageError('Postgres storage requires DATABASE_URL')
        return PostgresDatasetStorage(database_url)

    if storage_type != 'local':
        raise StorageError(f'Unknown DATASET_STORAGE_TYPE: {storage_type}')
    base_path = os.environ.get('DATASET_LOCAL_PATH', '/app/data/datasets')
    return LocalDatasetStorage(base_path)
