from datetime import date
from uuid import uuid4

import pytest

from scorelib.errors import EmptyImportFile, NotFound
from scorelib.importer import DuplicateDecision
from scorelib.library import ScoreLibrary
from scorelib.models import FilterSpec, ScoreFields, SortSpec


@pytest.fixture
def library(store):
    lib = ScoreLibrary(store, "u1")
    lib.reload()
    return lib


def test_create_reloads_snapshot(library):
    library.create(ScoreFields(title="Etude", composer="Chopin"))
    assert [r.title for r in library.records] == ["Etude"]


def test_create_duplicate_declined(library):
    library.create(ScoreFields(title="Etude", composer="Chopin"))
    prompts = []

    def decline(prompt):
        prompts.append(prompt)
        return False

    assert library.create(ScoreFields(title="etude", composer="Liszt"), confirm=decline) is None
    assert len(library.records) == 1
    assert 'A score with the title "etude" already exists' in prompts[0]


def test_create_duplicate_confirmed(library):
    library.create(ScoreFields(title="Etude", composer="Chopin"))
    library.create(ScoreFields(title="Etude", composer="Liszt"), confirm=lambda p: True)
    assert len(library.records) == 2


def test_update_and_delete_with_confirmation(library):
    rec = library.create(ScoreFields(title="Etude", composer="Chopin"))
    library.update(rec.id, ScoreFields(title="Etude", composer="Chopin", difficulty="Expert"))
    assert library.records[0].difficulty == "Expert"

    assert library.delete(rec.id, confirm=lambda p: False) is False
    assert len(library.records) == 1
    assert library.delete(rec.id, confirm=lambda p: True) is True
    assert library.records == ()


def test_other_owners_records_are_not_found(store, library):
    theirs = store.create(ScoreFields(title="Secret", composer="X"), "u2")
    with pytest.raises(NotFound):
        library.update(theirs.id, ScoreFields(title="Mine now", composer="X"))
    with pytest.raises(NotFound):
        library.delete(theirs.id)
    with pytest.raises(NotFound):
        library.get(uuid4())


def test_view_reports_shown_and_total(library):
    for title, genre in [("Take Five", "Jazz"), ("Etude", "Classical"), ("So What", "Jazz")]:
        library.create(ScoreFields(title=title, composer="X", genre=genre))
    view = library.view(FilterSpec(genre="Jazz"), SortSpec(field="title"))
    assert [r.title for r in view.records] == ["So What", "Take Five"]
    assert (view.shown, view.total) == (2, 3)


def test_import_csv_uses_snapshot_and_reloads(library):
    library.create(ScoreFields(title="Etude", composer="Chopin"))
    outcome = library.import_csv(
        "Title,Composer\nEtude,Chopin\nNocturne,Chopin",
        lambda titles: DuplicateDecision.SKIP,
    )
    assert outcome.imported == 1
    assert sorted(r.title for r in library.records) == ["Etude", "Nocturne"]


def test_import_csv_rejects_empty_document(library):
    with pytest.raises(EmptyImportFile):
        library.import_csv("Title,Composer\n", lambda titles: DuplicateDecision.SKIP)


def test_export_csv_exports_current_view(library):
    library.create(ScoreFields(title="Take Five", composer="Desmond", genre="Jazz"))
    library.create(ScoreFields(title="Etude", composer="Chopin", genre="Classical"))
    filename, document = library.export_csv(FilterSpec(genre="Jazz"), day=date(2025, 1, 31))
    assert filename == "music-scores-2025-01-31.csv"
    assert document.split("\n") == [
        "Title,Composer,Arranger,Genre,Genre 2,Difficulty,Duration,Notes",
        '"Take Five","Desmond","","Jazz","","","",""',
    ]
