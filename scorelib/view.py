"""Filtering, searching and sorting of a loaded score collection.

All functions work on a snapshot and return new lists; nothing here mutates
the records passed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .models import FilterSpec, ScoreRecord, SortSpec


DATE_FIELDS = {"created_at", "updated_at"}


@dataclass
class CollectionView:
    records: List[ScoreRecord]
    shown: int
    total: int


def title_key(title: str) -> str:
    return str(title or "").strip().lower()


def is_duplicate_title(records: Sequence[ScoreRecord], title: str) -> bool:
    key = title_key(title)
    return any(title_key(r.title) == key for r in records)


def compile_pattern(text: str) -> Optional[re.Pattern[str]]:
    """Compile a search box pattern into a case-insensitive regex.

    ``*`` matches any run of characters, ``?`` exactly one; everything else
    is literal. The regex is used with ``search`` so a match may start
    anywhere in the field. A pattern that starts or ends with ``?`` asks for
    a whole word of exact length, so its edges must fall on word boundaries
    unless the edge is a ``*``. A ``?`` inside the pattern does not bound it.
    """
    if not text:
        return None
    parts: List[str] = []
    for ch in text:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    body = "".join(parts)
    if text[0] == "?" or text[-1] == "?":
        if text[0] != "*":
            body = r"(?<!\w)" + body
        if text[-1] != "*":
            body = body + r"(?!\w)"
    return re.compile(body, re.IGNORECASE | re.DOTALL)


def matches_text(record: ScoreRecord, rule: re.Pattern[str]) -> bool:
    if rule.search(record.title) or rule.search(record.composer):
        return True
    return bool(record.arranger) and rule.search(record.arranger) is not None


def apply_filters(records: Sequence[ScoreRecord], filters: FilterSpec) -> List[ScoreRecord]:
    result = list(records)

    rule = compile_pattern(filters.text)
    if rule is not None:
        result = [r for r in result if matches_text(r, rule)]

    if filters.genre:
        result = [r for r in result if r.genre == filters.genre or r.genre2 == filters.genre]

    if filters.difficulty:
        result = [r for r in result if r.difficulty == filters.difficulty]

    return result


def _sort_key(field: str) -> Callable[[ScoreRecord], object]:
    if field in DATE_FIELDS:
        def date_key(r: ScoreRecord) -> float:
            ts = getattr(r, field)
            return ts.timestamp() if ts is not None else float("-inf")

        return date_key

    def text_key(r: ScoreRecord) -> str:
        return str(getattr(r, field, "") or "").lower()

    return text_key


def sort_records(records: Sequence[ScoreRecord], sort: SortSpec) -> List[ScoreRecord]:
    # sorted() is stable for reverse=True too, so ties keep their input order.
    return sorted(records, key=_sort_key(sort.field), reverse=sort.direction == "desc")


def build_view(
    records: Sequence[ScoreRecord],
    filters: Optional[FilterSpec] = None,
    sort: Optional[SortSpec] = None,
) -> CollectionView:
    filtered = apply_filters(records, filters or FilterSpec())
    ordered = sort_records(filtered, sort or SortSpec())
    return CollectionView(records=ordered, shown=len(ordered), total=len(records))


def toggle_sort(current: SortSpec, field: str) -> SortSpec:
    """Clicking the active column flips direction; another column starts ascending."""
    if current.field == field:
        return SortSpec(field=current.field, direction="desc" if current.direction == "asc" else "asc")
    return SortSpec(field=field, direction="asc")


def genre_choices(records: Sequence[ScoreRecord]) -> List[str]:
    found = {g for r in records for g in (r.genre, r.genre2) if g}
    return sorted(found)
