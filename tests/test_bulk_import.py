"""
Tests for staging uploads and reconciling them with a field mapping.
"""

import json

import pytest

from idsyncro.core.constants import ARTIFACT_CERTIFICATE, ARTIFACT_OFFER_LETTER
from idsyncro.core.errors import ValidationError
from idsyncro.handlers.bulk_import import (
    batch_id,
    list_staged_rows,
    parse_schema,
    reconcile,
    stage_rows,
    staging_summary,
)
from idsyncro.handlers.certificates import generate_certificate_batch


def test_unmapped_columns_are_preserved():
    payloads = reconcile(
        [{"A": 1, "B": 2}],
        [{"field": "x", "source": "excel", "excel_column": "A"}],
        today="2025-06-01"
    )

    assert payloads[0]["x"] == 1
    assert payloads[0]["B"] == 2


def test_manual_and_auto_directives():
    payloads = reconcile(
        [{"Name": "Asha"}],
        [
            {"field": "certificate_type", "source": "manual", "value": "Training"},
            {"field": "issue_date", "source": "auto", "rule": "today"},
            {"field": "printed_on", "source": "auto", "rule": "current_date"},
        ],
        today="2025-06-01"
    )

    assert payloads == [{
        "Name": "Asha",
        "certificate_type": "Training",
        "issue_date": "2025-06-01",
        "printed_on": "2025-06-01",
    }]


def test_later_directives_win():
    payloads = reconcile(
        [{"Full Name": "Asha", "Nick": "A"}],
        [
            {"field": "name", "source": "excel", "excel_column": "Full Name"},
            {"field": "name", "source": "excel", "excel_column": "Nick"},
        ],
        today="2025-06-01"
    )

    assert payloads[0]["name"] == "A"


def test_missing_excel_column_maps_to_none():
    payloads = reconcile(
        [{"Name": "Asha"}],
        [{"field": "email", "source": "excel", "excel_column": "Email"}],
        today="2025-06-01"
    )

    assert payloads[0]["email"] is None


@pytest.mark.parametrize("directive", [
    {"field": "name", "source": "formula", "value": "x"},
    {"field": "name", "source": "excel"},
    {"field": "issued", "source": "auto", "rule": "tomorrow"},
    {"field": " ", "source": "manual", "value": "x"},
])
def test_invalid_directives_are_rejected(directive):
    with pytest.raises(ValidationError):
        parse_schema([directive])


def test_batch_id_format():
    assert batch_id("BATCH").startswith("BATCH-")
    assert len(batch_id("BATCH").split("-")[-1]) == 4


async def test_staging_empty_upload_is_rejected(session):
    with pytest.raises(ValidationError):
        await stage_rows(session, ARTIFACT_CERTIFICATE, [])


async def test_staging_unknown_artifact_is_rejected(session):
    with pytest.raises(ValidationError):
        await stage_rows(session, "badge", [{"Name": "Asha"}])


async def test_new_upload_replaces_pending_rows_of_same_kind(session):
    await stage_rows(session, ARTIFACT_CERTIFICATE, [{"Name": "Old"}], filename="old.csv")
    await stage_rows(session, ARTIFACT_OFFER_LETTER, [{"Name": "Offer"}], filename="offers.csv")
    await stage_rows(session, ARTIFACT_CERTIFICATE, [{"Name": "New 1"}, {"Name": "New 2"}], filename="new.csv")

    certificates = await list_staged_rows(session, ARTIFACT_CERTIFICATE)
    offers = await list_staged_rows(session, ARTIFACT_OFFER_LETTER)

    assert [json.loads(row.row_data)["Name"] for row in certificates] == ["New 1", "New 2"]
    assert [row.row_number for row in certificates] == [1, 2]
    assert {row.filename for row in certificates} == {"new.csv"}
    assert len(offers) == 1


async def test_staging_summary(session):
    staged = await stage_rows(
        session,
        ARTIFACT_CERTIFICATE,
        [{"Name": "Asha", "Course": "Data"}, {"Name": "Ravi", "Mentor": "K"}],
        filename="cohort.csv"
    )
    summary = staging_summary(staged)

    assert summary["row_count"] == 2
    assert summary["headers"] == ["Name", "Course", "Mentor"]
    assert summary["filename"] == "cohort.csv"
    assert len(summary["import_hash"]) == 64


async def test_three_row_import_is_issued_and_staging_cleared(session, signer):
    await stage_rows(
        session,
        ARTIFACT_CERTIFICATE,
        [{"Name": "Asha"}, {"Name": "Ravi"}, {"Name": "Meera"}],
        filename="cohort.xlsx"
    )
    staged = await list_staged_rows(session, ARTIFACT_CERTIFICATE)
    schema = parse_schema([
        {"field": "name", "source": "excel", "excel_column": "Name"},
        {"field": "issue_date", "source": "auto", "rule": "today"},
    ])
    payloads = reconcile(staged, schema, today="2025-06-01")

    assert [payload["name"] for payload in payloads] == ["Asha", "Ravi", "Meera"]
    assert {payload["issue_date"] for payload in payloads} == {"2025-06-01"}

    result = await generate_certificate_batch(session, signer, schema)

    assert result["count"] == 3
    assert await list_staged_rows(session, ARTIFACT_CERTIFICATE) == []
