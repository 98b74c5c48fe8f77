import pytest
from datetime import date

from scorelib import csv_codec
from scorelib.csv_codec import (
    decode_upload,
    encode_record,
    export_document,
    export_filename,
    parse_document,
    parse_line,
    split_document,
)
from scorelib.errors import EmptyImportFile
from scorelib.models import ScoreFields


def test_parse_line_plain_fields():
    assert parse_line("Etude,Chopin,,Classical") == ["Etude", "Chopin", "", "Classical"]


def test_parse_line_quoted_comma_and_escaped_quote():
    line = '"Symphony No. 5, Op. 67","Beethoven","He said ""bravo"""'
    assert parse_line(line) == ["Symphony No. 5, Op. 67", "Beethoven", 'He said "bravo"']


def test_parse_line_trims_fields():
    assert parse_line('  Nocturne ,  "Chopin"  , x ') == ["Nocturne", "Chopin", "x"]


def test_parse_line_empty_fields():
    assert parse_line(",,") == ["", "", ""]
    assert parse_line('"",""') == ["", ""]
    assert parse_line("") == [""]


def test_encode_record_quotes_everything():
    rec = ScoreFields(title='Say "Hi", Bob', composer="Smith", notes="a,b")
    assert encode_record(rec) == '"Say ""Hi"", Bob","Smith","","","","","","a,b"'


def test_round_trip_preserves_fields():
    rec = ScoreFields(
        title='Overture, "1812"',
        composer="Tchaikovsky",
        arranger="O'Brien",
        genre="Classical",
        genre2="March",
        difficulty="Advanced",
        duration="15:30",
        notes='Cannons "optional", bells',
    )
    values = parse_line(encode_record(rec))
    assert values == [
        rec.title,
        rec.composer,
        rec.arranger,
        rec.genre,
        rec.genre2,
        rec.difficulty,
        rec.duration,
        rec.notes,
    ]


def test_split_document_drops_header_and_blank_lines():
    text = "Title,Composer\n\nEtude,Chopin\r\n   \nNocturne,Chopin\n"
    assert split_document(text) == ["Etude,Chopin", "Nocturne,Chopin"]


@pytest.mark.parametrize("text", ["", "\n\n", "Title,Composer\n", "  \nTitle,Composer\n \n"])
def test_split_document_rejects_documents_without_rows(text):
    with pytest.raises(EmptyImportFile):
        split_document(text)


def test_parse_document():
    rows = parse_document('Title,Composer\n"A, B",C\n')
    assert rows == [["A, B", "C"]]


def test_export_document_header_and_rows():
    doc = export_document([ScoreFields(title="Etude", composer="Chopin", genre="Classical")])
    lines = doc.split("\n")
    assert lines[0] == "Title,Composer,Arranger,Genre,Genre 2,Difficulty,Duration,Notes"
    assert lines[1] == '"Etude","Chopin","","Classical","","","",""'


def test_export_filename_uses_date():
    assert export_filename(date(2024, 3, 9)) == "music-scores-2024-03-09.csv"


def test_decode_upload_strips_bom():
    assert decode_upload("\ufeffTitle,Composer".encode("utf-8")) == "Title,Composer"


def test_parse_line_accepts_fields_over_csv_default_limit():
    notes = "x" * 200_000
    assert parse_line(f'Etude,Chopin,,,,,,"{notes}"')[7] == notes


def test_parse_line_unreadable_line_yields_no_fields(monkeypatch):
    monkeypatch.setattr(csv_codec, "FIELD_SIZE_LIMIT", 10)
    assert parse_line('Etude,Chopin,"' + "x" * 50 + '"') == []
    assert parse_line("Nocturne,Chopin") == ["Nocturne", "Chopin"]
