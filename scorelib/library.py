from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from .csv_codec import export_document, export_filename
from .errors import NotFound
from .importer import ConfirmFn, DecideFn, ImportOutcome, import_document
from .models import FilterSpec, ScoreFields, ScoreRecord, SortSpec
from .store import RecordStore
from .view import CollectionView, build_view, is_duplicate_title


logger = logging.getLogger(__name__)


class ScoreLibrary:
    """One owner's view of the catalog.

    Holds a snapshot of the owner's records, re-read from the store after
    every mutation. Confirmations are passed in as callables so the flows can
    run without a UI.
    """

    def __init__(self, store: RecordStore, owner_id: str) -> None:
        self.store = store
        self.owner_id = owner_id
        self.records: Tuple[ScoreRecord, ...] = ()

    def reload(self) -> Tuple[ScoreRecord, ...]:
        self.records = tuple(self.store.list_by_owner(self.owner_id))
        return self.records

    def view(self, filters: Optional[FilterSpec] = None, sort: Optional[SortSpec] = None) -> CollectionView:
        return build_view(self.records, filters, sort)

    def get(self, score_id: UUID) -> ScoreRecord:
        record = self.store.get(score_id)
        if record.owner_id != self.owner_id:
            raise NotFound(f"Score {score_id} not found")
        return record

    def create(self, fields: ScoreFields, confirm: Optional[ConfirmFn] = None) -> Optional[ScoreRecord]:
        """Create a score. Returns None if the user declined a duplicate title."""
        if confirm is not None and is_duplicate_title(self.records, fields.title):
            if not confirm(
                f'A score with the title "{fields.title}" already exists. Do you want to add it anyway?'
            ):
                return None
        record = self.store.create(fields, self.owner_id)
        self.reload()
        return record

    def update(self, score_id: UUID, fields: ScoreFields) -> ScoreRecord:
        self.get(score_id)
        record = self.store.update(score_id, fields)
        self.reload()
        return record

    def delete(self, score_id: UUID, confirm: Optional[ConfirmFn] = None) -> bool:
        self.get(score_id)
        if confirm is not None and not confirm("Are you sure you want to delete this score?"):
            return False
        self.store.delete(score_id)
        self.reload()
        return True

    def import_csv(self, text: str, decide: DecideFn) -> ImportOutcome:
        # Duplicates are judged against a fresh snapshot taken before any row is created.
        existing = self.reload()
        try:
            return import_document(text, existing, self.store, self.owner_id, decide)
        finally:
            self.reload()

    def export_csv(
        self,
        filters: Optional[FilterSpec] = None,
        sort: Optional[SortSpec] = None,
        day: Optional[date] = None,
    ) -> Tuple[str, str]:
        shown: List[ScoreRecord] = self.view(filters, sort).records
        return export_filename(day), export_document(shown)
