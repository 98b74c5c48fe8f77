from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import ValidationError

from .errors import GenreConflict, NotFound, StoreError
from .models import Catalog, GenreList, ScoreFields, ScoreRecord, utc_now


logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Durable storage for score records and the shared genre list."""

    @abstractmethod
    def create(self, fields: ScoreFields, owner_id: str) -> ScoreRecord:
        ...

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> List[ScoreRecord]:
        """Return the owner's records, newest first."""

    @abstractmethod
    def get(self, score_id: UUID) -> ScoreRecord:
        ...

    @abstractmethod
    def update(self, score_id: UUID, fields: ScoreFields) -> ScoreRecord:
        ...

    @abstractmethod
    def delete(self, score_id: UUID) -> None:
        ...

    @abstractmethod
    def load_genre_list(self) -> GenreList:
        ...

    @abstractmethod
    def compare_and_set_genres(self, names: List[str], expected_revision: int) -> GenreList:
        """Replace the genre list if nobody wrote it since ``expected_revision``.

        Raises GenreConflict otherwise.
        """


def load_or_create_catalog(catalog_path: Path) -> Catalog:
    catalog_path.parent.mkdir(parents=True, exist_ok=True)
    if catalog_path.exists():
        data = json.loads(catalog_path.read_text(encoding="utf-8"))
        return Catalog.model_validate(data)

    catalog = Catalog()
    save_catalog_atomic(catalog, catalog_path)
    logger.info("Created new catalog at %s", catalog_path)
    return catalog


def save_catalog_atomic(catalog: Catalog, catalog_path: Path) -> None:
    catalog.updated_at = utc_now()
    tmp_path = catalog_path.with_suffix(catalog_path.suffix + ".tmp")
    payload = catalog.model_dump(mode="json")
    tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp_path.replace(catalog_path)


class JsonCatalogStore(RecordStore):
    """Record store backed by one JSON catalog file.

    Every mutation rewrites the file atomically. The file is reloaded when it
    changes on disk (e.g. synced from another device), so callers always see
    the latest version.
    """

    def __init__(self, catalog_path: Path) -> None:
        self.catalog_path = Path(catalog_path).expanduser().resolve()
        self._lock = threading.RLock()
        self._catalog: Optional[Catalog] = None
        self._catalog_stat: Optional[Tuple[int, int]] = None  # (mtime_ns, size)

    # -- file handling -------------------------------------------------

    def _stat(self) -> Optional[Tuple[int, int]]:
        try:
            st = self.catalog_path.stat()
        except OSError:
            return None
        return (st.st_mtime_ns, st.st_size)

    def _load(self) -> Catalog:
        try:
            catalog = load_or_create_catalog(self.catalog_path)
        except (OSError, ValueError, ValidationError) as e:
            raise StoreError(f"Cannot read catalog {self.catalog_path}: {e}") from e
        self._catalog = catalog
        self._catalog_stat = self._stat()
        return catalog

    def _current(self) -> Catalog:
        if self._catalog is None:
            return self._load()
        if self._stat() != self._catalog_stat:
            logger.info("Catalog %s changed on disk; reloading", self.catalog_path)
            return self._load()
        return self._catalog

    def _save(self, catalog: Catalog) -> None:
        try:
            save_catalog_atomic(catalog, self.catalog_path)
        except OSError as e:
            # Drop the cache so the next read reflects what is actually on disk.
            self._catalog = None
            raise StoreError(f"Cannot write catalog {self.catalog_path}: {e}") from e
        self._catalog_stat = self._stat()

    def _find(self, catalog: Catalog, score_id: UUID) -> int:
        for i, s in enumerate(catalog.scores):
            if s.id == score_id:
                return i
        raise NotFound(f"Score {score_id} not found")

    # -- records -------------------------------------------------------

    def create(self, fields: ScoreFields, owner_id: str) -> ScoreRecord:
        with self._lock:
            catalog = self._current()
            now = utc_now()
            record = ScoreRecord(
                id=uuid4(),
                owner_id=owner_id,
                created_at=now,
                updated_at=now,
                **fields.model_dump(),
            )
            catalog.scores.append(record)
            try:
                self._save(catalog)
            except StoreError:
                catalog.scores.pop()
                raise
            logger.debug("Created score %s for owner %s", record.id, owner_id)
            return record.model_copy(deep=True)

    def list_by_owner(self, owner_id: str) -> List[ScoreRecord]:
        with self._lock:
            catalog = self._current()
            owned = [s.model_copy(deep=True) for s in catalog.scores if s.owner_id == owner_id]
        owned.sort(key=lambda s: s.created_at.timestamp() if s.created_at else float("-inf"), reverse=True)
        return owned

    def get(self, score_id: UUID) -> ScoreRecord:
        with self._lock:
            catalog = self._current()
            return catalog.scores[self._find(catalog, score_id)].model_copy(deep=True)

    def update(self, score_id: UUID, fields: ScoreFields) -> ScoreRecord:
        with self._lock:
            catalog = self._current()
            idx = self._find(catalog, score_id)
            old = catalog.scores[idx]
            # id, owner_id and created_at never change.
            new = ScoreRecord(
                id=old.id,
                owner_id=old.owner_id,
                created_at=old.created_at,
                updated_at=utc_now(),
                **fields.model_dump(),
            )
            catalog.scores[idx] = new
            try:
                self._save(catalog)
            except StoreError:
                catalog.scores[idx] = old
                raise
            return new.model_copy(deep=True)

    def delete(self, score_id: UUID) -> None:
        with self._lock:
            catalog = self._current()
            idx = self._find(catalog, score_id)
            removed = catalog.scores.pop(idx)
            try:
                self._save(catalog)
            except StoreError:
                catalog.scores.insert(idx, removed)
                raise
            logger.debug("Deleted score %s", score_id)

    # -- shared genre list ---------------------------------------------

    def load_genre_list(self) -> GenreList:
        with self._lock:
            return self._current().genres.model_copy(deep=True)

    def compare_and_set_genres(self, names: List[str], expected_revision: int) -> GenreList:
        with self._lock:
            catalog = self._current()
            if catalog.genres.revision != expected_revision:
                raise GenreConflict(
                    f"Genre list is at revision {catalog.genres.revision}, expected {expected_revision}"
                )
            old = catalog.genres
            catalog.genres = GenreList(names=list(names), revision=old.revision + 1)
            try:
                self._save(catalog)
            except StoreError:
                catalog.genres = old
                raise
            return catalog.genres.model_copy(deep=True)

    # -- status ----------------------------------------------------------

    def counts(self) -> Dict[str, int]:
        with self._lock:
            catalog = self._current()
            return {
                "scores": len(catalog.scores),
                "owners": len({s.owner_id for s in catalog.scores}),
                "genres": len(catalog.genres.names or []),
            }
