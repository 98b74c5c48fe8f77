from __future__ import annotations

import csv
import io
import logging
from datetime import date
from typing import Iterable, List, Optional

from .errors import EmptyImportFile
from .models import SCORE_FIELDS, ScoreFields


logger = logging.getLogger(__name__)

# Long notes fields exceed the csv module default of 128 KiB.
FIELD_SIZE_LIMIT = 16 * 1024 * 1024

EXPORT_HEADER: List[str] = [
    "Title",
    "Composer",
    "Arranger",
    "Genre",
    "Genre 2",
    "Difficulty",
    "Duration",
    "Notes",
]


def parse_line(line: str) -> List[str]:
    """Split one CSV line into trimmed field values.

    Fields may be wrapped in double quotes; inside quotes ``""`` is a literal
    quote and commas are data. Whitespace around a field (and around its
    quotes) is dropped. A line the csv module cannot read yields no fields,
    which the importer counts as an invalid row.
    """
    csv.field_size_limit(FIELD_SIZE_LIMIT)
    reader = csv.reader([line], skipinitialspace=True, strict=False)
    try:
        fields = next(reader)
    except StopIteration:
        return [""]
    except csv.Error as e:
        logger.warning("Unreadable CSV line %r...: %s", line[:40], e)
        return []
    return [f.strip() for f in fields] or [""]


def encode_record(record: ScoreFields) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="")
    w.writerow([getattr(record, name, "") or "" for name in SCORE_FIELDS])
    return buf.getvalue()


def split_document(text: str) -> List[str]:
    """Return the data lines of a CSV document (blank lines and header removed)."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise EmptyImportFile("CSV file is empty or invalid")
    return lines[1:]


def parse_document(text: str) -> List[List[str]]:
    return [parse_line(line) for line in split_document(text)]


def decode_upload(data: bytes) -> str:
    # utf-8-sig also strips a BOM written by spreadsheet programs.
    return data.decode("utf-8-sig")


def export_document(records: Iterable[ScoreFields]) -> str:
    lines = [",".join(EXPORT_HEADER)]
    lines.extend(encode_record(r) for r in records)
    return "\n".join(lines)


def export_filename(day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"music-scores-{day.isoformat()}.csv"
