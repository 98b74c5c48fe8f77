from pathlib import Path
from typing import Optional, Set

import pytest

from scorelib.errors import StoreError
from scorelib.models import ScoreFields, ScoreRecord
from scorelib.store import JsonCatalogStore


class FlakyStore(JsonCatalogStore):
    """Catalog store whose create() fails for selected titles."""

    def __init__(self, catalog_path: Path, failing_titles: Optional[Set[str]] = None) -> None:
        super().__init__(catalog_path)
        self.failing_titles = set(failing_titles or ())

    def create(self, fields: ScoreFields, owner_id: str) -> ScoreRecord:
        if fields.title in self.failing_titles:
            raise StoreError(f"backend rejected {fields.title}")
        return super().create(fields, owner_id)


@pytest.fixture
def store(tmp_path):
    return JsonCatalogStore(tmp_path / "scores.json")


@pytest.fixture
def flaky_store(tmp_path):
    return FlakyStore(tmp_path / "scores.json")
