"""CSV import: row validation, duplicate detection and best-effort creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .csv_codec import parse_document
from .errors import ScoreValidationError, StoreError
from .models import SCORE_FIELDS, ScoreFields, ScoreRecord, parse_fields
from .store import RecordStore
from .view import is_duplicate_title


logger = logging.getLogger(__name__)

# Duplicate titles listed in prompts and summaries.
DUPLICATE_DISPLAY_LIMIT = 5


class DuplicateDecision(str, Enum):
    SKIP = "skip"
    IMPORT_ALL = "import_all"
    ABORT = "abort"


DecideFn = Callable[[List[str]], DuplicateDecision]
ConfirmFn = Callable[[str], bool]


@dataclass
class PlannedRow:
    fields: ScoreFields
    duplicate: bool = False


@dataclass
class ImportPlan:
    total: int = 0
    invalid: int = 0
    rows: List[PlannedRow] = field(default_factory=list)

    @property
    def valid(self) -> int:
        return len(self.rows)

    @property
    def duplicate_titles(self) -> List[str]:
        return [r.fields.title for r in self.rows if r.duplicate]


@dataclass
class ImportOutcome:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    duplicates: int = 0
    skipped: int = 0
    imported: int = 0
    errors: int = 0
    aborted: bool = False
    duplicate_titles: List[str] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)

    def summary_lines(self) -> List[str]:
        if self.aborted:
            return [
                "Import cancelled. Summary:",
                f"• Total rows: {self.total}",
                f"• Valid rows: {self.valid}",
                f"• Duplicates found: {self.duplicates}",
                f"• Invalid rows: {self.invalid}",
                "• Imported: 0",
            ]
        lines = [
            "Import Complete!",
            f"• Total rows in file: {self.total}",
            f"• Successfully imported: {self.imported}",
        ]
        if self.invalid:
            lines.append(f"• Invalid rows (missing title/composer): {self.invalid}")
        if self.skipped:
            lines.append(f"• Duplicates skipped: {self.skipped}")
        elif self.duplicates:
            lines.append(f"• Duplicates imported: {self.duplicates}")
        if self.errors:
            lines.append(f"• Errors during import: {self.errors}")
        return lines


def row_to_fields(values: Sequence[str]) -> Optional[ScoreFields]:
    """Map positional CSV values onto score fields; None if the row is invalid."""
    if len(values) < 2 or not values[0].strip() or not values[1].strip():
        return None
    data = {name: (values[i] if i < len(values) else "") for i, name in enumerate(SCORE_FIELDS)}
    try:
        return parse_fields(data)
    except ScoreValidationError as e:
        logger.info("Skipping invalid import row %r: %s", values[0], e)
        return None


def classify_rows(rows: Sequence[Sequence[str]], existing: Sequence[ScoreRecord]) -> ImportPlan:
    """Validate rows and flag duplicates against the records as they were before import.

    Rows are not compared with each other: two new rows with the same title
    are both kept.
    """
    plan = ImportPlan(total=len(rows))
    for values in rows:
        fields = row_to_fields(values)
        if fields is None:
            plan.invalid += 1
            continue
        plan.rows.append(PlannedRow(fields=fields, duplicate=is_duplicate_title(existing, fields.title)))
    return plan


def reconcile_import(
    rows: Sequence[Sequence[str]],
    existing: Sequence[ScoreRecord],
    store: RecordStore,
    owner_id: str,
    decide: DecideFn,
) -> ImportOutcome:
    plan = classify_rows(rows, existing)
    dup_titles = plan.duplicate_titles
    outcome = ImportOutcome(
        total=plan.total,
        valid=plan.valid,
        invalid=plan.invalid,
        duplicates=len(dup_titles),
        duplicate_titles=dup_titles[:DUPLICATE_DISPLAY_LIMIT],
    )

    skip_duplicates = False
    if dup_titles:
        decision = DuplicateDecision(decide(list(dup_titles)))
        if decision is DuplicateDecision.ABORT:
            outcome.aborted = True
            logger.info("Import aborted by user (%d duplicates)", len(dup_titles))
            return outcome
        skip_duplicates = decision is DuplicateDecision.SKIP

    # Sequential on purpose: created records keep the file's row order.
    for row in plan.rows:
        if skip_duplicates and row.duplicate:
            outcome.skipped += 1
            continue
        try:
            store.create(row.fields, owner_id)
        except StoreError as e:
            logger.warning("Error importing row %r: %s", row.fields.title, e)
            outcome.errors += 1
            outcome.error_messages.append(f"{row.fields.title}: {e}")
            continue
        outcome.imported += 1

    logger.info(
        "Import finished: total=%d valid=%d invalid=%d duplicates=%d skipped=%d imported=%d errors=%d",
        outcome.total,
        outcome.valid,
        outcome.invalid,
        outcome.duplicates,
        outcome.skipped,
        outcome.imported,
        outcome.errors,
    )
    return outcome


def import_document(
    text: str,
    existing: Sequence[ScoreRecord],
    store: RecordStore,
    owner_id: str,
    decide: DecideFn,
) -> ImportOutcome:
    """Parse a whole CSV document and reconcile it. Raises EmptyImportFile."""
    return reconcile_import(parse_document(text), existing, store, owner_id, decide)


def _duplicates_preview(titles: List[str]) -> str:
    shown = "\n".join(titles[:DUPLICATE_DISPLAY_LIMIT])
    if len(titles) > DUPLICATE_DISPLAY_LIMIT:
        shown += "\n..."
    return shown


def decision_from_confirm(confirm: ConfirmFn) -> DecideFn:
    """Build a three-way duplicate decision out of two yes/no questions."""

    def decide(titles: List[str]) -> DuplicateDecision:
        skip = confirm(
            f"Found {len(titles)} duplicate title(s):\n{_duplicates_preview(titles)}\n\n"
            "Do you want to SKIP the duplicates and import only the new records?"
        )
        if skip:
            return DuplicateDecision.SKIP
        import_all = confirm(f"Do you want to import ALL records including the {len(titles)} duplicate(s)?")
        return DuplicateDecision.IMPORT_ALL if import_all else DuplicateDecision.ABORT

    return decide
