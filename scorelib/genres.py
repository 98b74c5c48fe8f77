"""The shared genre list.

The list lives in the record store as one document with a revision number;
every write is a compare-and-swap on that revision so concurrent editors
cannot overwrite each other's additions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, List, Optional

from .errors import GenreConflict, StoreError
from .models import DEFAULT_GENRES, AddGenreResult, GenreList, MigrationResult
from .store import RecordStore


logger = logging.getLogger(__name__)

# Attempts at a compare-and-swap write before giving up.
MAX_CAS_ATTEMPTS = 3


def _ordered(names: List[str]) -> List[str]:
    return sorted(names, key=str.lower)


def _contains(names: List[str], name: str) -> bool:
    low = name.lower()
    return any(n.lower() == low for n in names)


def _initialized(store: RecordStore) -> GenreList:
    """Read the genre document, writing the defaults on first access."""
    doc = store.load_genre_list()
    if doc.names is not None:
        return doc
    try:
        return store.compare_and_set_genres(list(DEFAULT_GENRES), doc.revision)
    except GenreConflict:
        # Someone else initialized it first.
        return store.load_genre_list()


def get_genres(store: RecordStore) -> List[str]:
    try:
        doc = _initialized(store)
    except StoreError:
        logger.exception("Error getting genres; using defaults")
        return _ordered(list(DEFAULT_GENRES))
    return _ordered(list(doc.names or DEFAULT_GENRES))


def _update_genres(store: RecordStore, change: Callable[[List[str]], Optional[List[str]]]) -> Optional[GenreList]:
    """Apply ``change`` to the current list and write it with compare-and-swap.

    ``change`` returns the new list, or None to leave the store untouched.
    Returns the written document, or None when nothing was written.
    """
    for _ in range(MAX_CAS_ATTEMPTS):
        doc = _initialized(store)
        new_names = change(list(doc.names or []))
        if new_names is None:
            return None
        try:
            return store.compare_and_set_genres(new_names, doc.revision)
        except GenreConflict:
            logger.info("Genre list changed concurrently; re-reading")
    raise GenreConflict(f"Genre list kept changing after {MAX_CAS_ATTEMPTS} attempts")


def add_genre(store: RecordStore, name: str) -> AddGenreResult:
    name = str(name or "").strip()
    if not name:
        return AddGenreResult(success=False, message="Genre name required")

    def append(names: List[str]) -> Optional[List[str]]:
        if _contains(names, name):
            return None
        return _ordered(names + [name])

    try:
        written = _update_genres(store, append)
    except StoreError:
        logger.exception("Error adding genre %r", name)
        return AddGenreResult(success=False, message="Failed to add genre")
    if written is None:
        return AddGenreResult(success=False, message="Genre already exists")
    logger.info("Added genre %r", name)
    return AddGenreResult(success=True, genres=_ordered(list(written.names or [])))


class LegacyGenreFile:
    """Per-device genre list kept by older installs: a JSON array of names."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def read(self) -> Optional[List[str]]:
        if not self.path.exists():
            return None
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON list")
        return [str(v).strip() for v in data if str(v).strip()]

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def migrate_legacy_genres(store: RecordStore, source: LegacyGenreFile) -> MigrationResult:
    """Move genres from the per-device list into the shared list.

    Meant to run once at start-up. The legacy file is removed only after the
    shared list was written.
    """
    try:
        legacy = source.read()
    except (OSError, ValueError) as e:
        logger.error("Cannot read legacy genres from %s: %s", source.path, e)
        return MigrationResult(success=False, message="Failed to migrate genres")
    if not legacy:
        return MigrationResult(success=True, migrated=0)

    added: List[str] = []

    def merge(names: List[str]) -> Optional[List[str]]:
        added.clear()
        for g in legacy:
            if not _contains(names, g) and not _contains(added, g):
                added.append(g)
        if not added:
            return None
        return _ordered(names + added)

    try:
        written = _update_genres(store, merge)
    except StoreError:
        logger.exception("Error migrating genres")
        return MigrationResult(success=False, message="Failed to migrate genres")
    if written is None:
        return MigrationResult(success=True, migrated=0)

    try:
        source.clear()
    except OSError as e:
        logger.warning("Migrated genres but could not remove %s: %s", source.path, e)
    logger.info("Migrated %d genre(s) from %s", len(added), source.path)
    return MigrationResult(success=True, migrated=len(added), genres=_ordered(list(written.names or [])))
