"""
Tests for offer letter issuance and verification.
"""

import json
from datetime import date, timedelta

import pytest
from sqlalchemy import update
from sqlmodel import select

from idsyncro.core.constants import ARTIFACT_OFFER_LETTER
from idsyncro.core.errors import ConflictError, IntegrityError, NotFoundError, ValidationError
from idsyncro.handlers import offer_letters as offer_letters_handler
from idsyncro.handlers.bulk_import import list_staged_rows, stage_rows
from idsyncro.handlers.offer_letters import (
    create_offer_letter,
    generate_offer_letter_batch,
    get_offer_letter_batches,
    update_offer_letter_status,
    verify_offer_letter,
)
from idsyncro.models.offer_letter import (
    OfferLetter,
    OfferLetterBatch,
    OfferLetterCreate,
    OfferLetterGenerateRequest,
    OfferLetterStatus,
)
from idsyncro.utils.codes import OFFER_LETTER_NUMBER_RE


async def test_create_offer_letter(session, signer):
    offer = await create_offer_letter(session, signer, OfferLetterCreate(offer_data={
        "Candidate Name": "Asha Rao",
        "Company": "Acme",
        "designation": "Analyst",
        "issue_date": "2025-06-01",
    }))

    assert OFFER_LETTER_NUMBER_RE.match(offer.offer_letter_number)
    assert offer.issue_date == "2025-06-01"

    public = await verify_offer_letter(session, signer, offer.offer_letter_number)
    assert public["candidate_name"] == "Asha Rao"
    assert public["company_name"] == "Acme"
    assert public["designation"] == "Analyst"
    assert public["validity_period"] == "N/A"


async def test_create_offer_letter_requires_data(session, signer):
    with pytest.raises(ValidationError):
        await create_offer_letter(session, signer, OfferLetterCreate(offer_data={}))


async def test_create_offer_letter_rejects_bad_issue_date(session, signer):
    with pytest.raises(ValidationError):
        await create_offer_letter(session, signer, OfferLetterCreate(offer_data={
            "name": "Asha", "issue_date": "01/06/2025"
        }))


async def test_generate_batch_applies_settings(session, signer):
    await stage_rows(
        session,
        ARTIFACT_OFFER_LETTER,
        [{"name": "Asha", "designation": "Analyst"}, {"name": "Ravi", "designation": "Engineer"}],
        filename="offers.xlsx"
    )

    result = await generate_offer_letter_batch(session, signer, OfferLetterGenerateRequest(
        issue_date="2025-06-01",
        validity_days=10,
        offer_type="Internship"
    ))

    assert result["count"] == 2
    assert result["settings"]["valid_until"] == (date(2025, 6, 1) + timedelta(days=10)).isoformat()
    assert await list_staged_rows(session, ARTIFACT_OFFER_LETTER) == []

    numbers = [item["offer_letter_number"] for item in result["offer_letters"]]
    assert len(set(numbers)) == 2
    public = await verify_offer_letter(session, signer, numbers[0])
    assert public["candidate_name"] == "Asha"
    assert public["issue_date"] == "2025-06-01"

    [batch] = await get_offer_letter_batches(session)
    assert batch.offer_count == 2
    assert batch.filename == "offers.xlsx"


async def test_generate_batch_defaults(session, signer):
    await stage_rows(session, ARTIFACT_OFFER_LETTER, [{"name": "Asha"}])

    result = await generate_offer_letter_batch(session, signer, OfferLetterGenerateRequest())

    assert result["settings"]["validity_days"] == 15
    assert result["settings"]["offer_type"] == "Full-time"


async def test_generate_batch_with_schema(session, signer):
    await stage_rows(session, ARTIFACT_OFFER_LETTER, [{"Full Name": "Asha"}])

    result = await generate_offer_letter_batch(session, signer, OfferLetterGenerateRequest(
        directives=[{"field": "candidate_name", "source": "excel", "excel_column": "Full Name"}]
    ))

    number = result["offer_letters"][0]["offer_letter_number"]
    public = await verify_offer_letter(session, signer, number)
    assert public["candidate_name"] == "Asha"


async def test_generate_batch_without_staging(session, signer):
    with pytest.raises(ValidationError):
        await generate_offer_letter_batch(session, signer, OfferLetterGenerateRequest())


async def test_tampered_offer_letter(sessionmaker, session, signer):
    offer = await create_offer_letter(session, signer, OfferLetterCreate(offer_data={"name": "Asha"}))
    data = json.loads(offer.offer_data)
    data["name"] = "Mallory"
    await session.execute(
        update(OfferLetter).where(OfferLetter.id == offer.id).values(offer_data=json.dumps(data))
    )
    await session.commit()

    async with sessionmaker() as fresh:
        with pytest.raises(IntegrityError):
            await verify_offer_letter(fresh, signer, offer.offer_letter_number)


async def test_withdrawn_offer_letter_is_not_served(session, signer):
    offer = await create_offer_letter(session, signer, OfferLetterCreate(offer_data={"name": "Asha"}))
    number = offer.offer_letter_number

    await update_offer_letter_status(session, offer.id, OfferLetterStatus.WITHDRAWN)

    with pytest.raises(NotFoundError):
        await verify_offer_letter(session, signer, number)


async def test_batch_collision_rolls_back_and_keeps_staging(monkeypatch, sessionmaker, session, signer):
    existing = await create_offer_letter(session, signer, OfferLetterCreate(offer_data={"name": "Asha"}))
    taken = existing.offer_letter_number
    await stage_rows(session, ARTIFACT_OFFER_LETTER, [{"name": "Ravi"}])

    async def reserve_taken_number(session, column, generators, max_attempts=None):
        return [taken]

    monkeypatch.setattr(offer_letters_handler, "reserve_unique_codes", reserve_taken_number)

    with pytest.raises(ConflictError):
        await generate_offer_letter_batch(session, signer, OfferLetterGenerateRequest())

    async with sessionmaker() as fresh:
        letters = (await fresh.execute(select(OfferLetter))).scalars().all()
        batches = (await fresh.execute(select(OfferLetterBatch))).scalars().all()
        staged = await list_staged_rows(fresh, ARTIFACT_OFFER_LETTER)

    assert [letter.offer_letter_number for letter in letters] == [taken]
    assert batches == []
    assert len(staged) == 1
