from __future__ import annotations

from typing import List


class CatalogError(Exception):
    """Base class for score catalog failures."""


class ScoreValidationError(CatalogError):
    """A score (or an imported row) is missing required data or has bad values."""


class EmptyImportFile(CatalogError):
    """The import document has no data rows."""


class StoreError(CatalogError):
    """The record store could not be read or written."""


class NotFound(CatalogError):
    """No score with the requested id exists for the owner."""


class GenreConflict(StoreError):
    """The shared genre list changed between read and write."""


class DuplicateDecisionRequired(Exception):
    """Raised by a decision callback that cannot answer without asking the user.

    Carries the duplicate titles so the caller can present them.
    """

    def __init__(self, duplicate_titles: List[str]) -> None:
        super().__init__(f"{len(duplicate_titles)} duplicate title(s) need a decision")
        self.duplicate_titles = list(duplicate_titles)
