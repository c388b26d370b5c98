"""
Tests for CSV and Excel upload parsing.
"""

import io

import pandas as pd
import pytest

from idsyncro.core.errors import ValidationError
from idsyncro.handlers.spreadsheet import parse_csv, parse_spreadsheet


def test_parse_csv_strips_and_drops_blank_rows():
    content = "\ufeffName, Course \n  Asha  ,Data\n,\nRavi,\n".encode("utf-8")

    rows = parse_csv(content)

    assert rows == [
        {"Name": "Asha", "Course": "Data"},
        {"Name": "Ravi", "Course": None},
    ]


def test_parse_csv_rejects_non_utf8():
    with pytest.raises(ValidationError):
        parse_csv(b"Name\n\xff\xfe\n")


def test_parse_excel_first_sheet():
    frame = pd.DataFrame({
        "Name": ["Asha", None, "Ravi"],
        "Joined": [pd.Timestamp("2025-01-15"), None, pd.Timestamp("2025-02-01")],
        "Score": [90, None, 85],
    })
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False)

    rows = parse_spreadsheet("cohort.xlsx", buffer.getvalue())

    assert [row["Name"] for row in rows] == ["Asha", "Ravi"]
    assert rows[0]["Joined"] == "2025-01-15"
    assert rows[1]["Score"] == 85


def test_parse_spreadsheet_rejects_other_extensions():
    with pytest.raises(ValidationError):
        parse_spreadsheet("cohort.txt", b"Name\nAsha\n")


@pytest.mark.parametrize("filename, engine", [("cohort.xls", "xlrd"), ("Cohort.XLSX", "openpyxl")])
def test_parse_spreadsheet_picks_engine_by_extension(monkeypatch, filename, engine):
    seen = {}

    def fake_read_excel(buffer, **kwargs):
        seen.update(kwargs)
        return pd.DataFrame({"Name": ["Asha"]})

    monkeypatch.setattr(pd, "read_excel", fake_read_excel)

    rows = parse_spreadsheet(filename, b"workbook")

    assert seen["engine"] == engine
    assert rows == [{"Name": "Asha"}]


def test_legacy_xls_engine_is_installed():
    # Truncated OLE2 header: xlrd must be importable to even reject it
    content = bytes.fromhex("d0cf11e0a1b11ae1") + b"\x00" * 56

    with pytest.raises(ValidationError) as info:
        parse_spreadsheet("cohort.xls", content)

    assert "Install xlrd" not in str(info.value)
