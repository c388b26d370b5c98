"""
Offer letter issuance and verification handler.
"""

import json
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import exc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from idsyncro.core.config import get_settings
from idsyncro.core.constants import ARTIFACT_OFFER_LETTER, OFFER_DEFAULT_TYPE, SCHEMA_VERSION
from idsyncro.core.errors import ConflictError, IntegrityError, NotFoundError, ValidationError
from idsyncro.core.logging import get_logger
from idsyncro.handlers.audit import record_audit
from idsyncro.handlers.bulk_import import batch_id, clear_staged_rows, list_staged_rows, reconcile
from idsyncro.handlers.sequence import insert_with_retry, reserve_unique_codes
from idsyncro.models.offer_letter import (
    OfferLetter,
    OfferLetterBatch,
    OfferLetterCreate,
    OfferLetterGenerateRequest,
    OfferLetterStatus,
)
from idsyncro.models.staging import ImportStagingRow
from idsyncro.utils.codes import generate_offer_letter_number
from idsyncro.utils.hashing import canonicalize, fingerprint, verify_fingerprint
from idsyncro.utils.signing import Signer, verify_with_algorithm
from idsyncro.utils.time import parse_iso_date, today_iso, utc_now

logger = get_logger(__name__)

# Spreadsheet spellings accepted for the public verification fields
PUBLIC_FIELD_ALIASES = {
    "candidate_name": ("candidate_name", "Candidate Name", "name", "Name"),
    "company_name": ("company_name", "Company", "Company Name"),
    "designation": ("designation", "Designation"),
    "validity_period": ("validity_period", "Validity Period"),
}


def build_offer_letter(
    payload: Mapping[str, Any],
    number: str,
    signer: Signer,
    issue_date: str,
    batch: Optional[str] = None,
    staged: Optional[ImportStagingRow] = None
) -> OfferLetter:
    """Canonicalize, fingerprint and sign ``payload`` into an offer letter row."""
    canonical = canonicalize({
        **payload,
        "issue_date": issue_date,
        "schema_version": SCHEMA_VERSION
    })
    digest = fingerprint(canonical)

    return OfferLetter(
        offer_letter_number=number,
        offer_data=canonical,
        fingerprint=digest,
        signature=signer.sign(digest),
        signature_algorithm=signer.algorithm,
        issue_date=issue_date,
        schema_version=SCHEMA_VERSION,
        batch_id=batch,
        filename=staged.filename if staged else None,
        import_hash=staged.import_hash if staged else None,
        row_number=staged.row_number if staged else None,
        imported_at=staged.imported_at if staged else None
    )


def _issue_date(value: Optional[str]) -> str:
    if not value:
        return today_iso()
    try:
        return parse_iso_date(str(value)).isoformat()
    except ValueError:
        raise ValidationError(f"Issue date must be YYYY-MM-DD, got '{value}'")


async def create_offer_letter(
    session: AsyncSession,
    signer: Signer,
    request: OfferLetterCreate
) -> OfferLetter:
    """Issue one offer letter, regenerating its number on a collision."""
    payload = dict(request.offer_data)
    if not payload:
        raise ValidationError("Offer data is required")
    issue_date = _issue_date(payload.get("issue_date"))

    offer_letter = await insert_with_retry(
        session,
        lambda: build_offer_letter(payload, generate_offer_letter_number(), signer, issue_date),
        column="offer_letter_number"
    )

    record_audit(
        session,
        action="offer_letter_issued",
        entity_type="offer_letter",
        entity_id=offer_letter.offer_letter_number,
        payload={"fingerprint": offer_letter.fingerprint}
    )
    await session.commit()

    logger.info("Issued offer letter %s", offer_letter.offer_letter_number)
    return offer_letter


async def generate_offer_letter_batch(
    session: AsyncSession,
    signer: Signer,
    request: OfferLetterGenerateRequest
) -> Dict[str, Any]:
    """
    Issue an offer letter for every staged row.

    Each payload is the reconciled row plus the batch settings (issue date,
    validity, offer type). The batch row, the letters and the staging clear
    commit together or not at all.

    Raises:
        ValidationError: nothing staged, bad issue date or schema
        ConflictError: numbers could not be made unique
    """
    staged = await list_staged_rows(session, ARTIFACT_OFFER_LETTER)
    if not staged:
        raise ValidationError("No staged data found")

    generated_at = utc_now()
    issue_date = _issue_date(request.issue_date)
    validity = request.validity_days if request.validity_days is not None else get_settings().offer_validity_days
    valid_until = (parse_iso_date(issue_date) + timedelta(days=validity)).isoformat()
    offer_type = request.offer_type or OFFER_DEFAULT_TYPE

    payloads = [
        {
            **row,
            "issue_date": issue_date,
            "validity_days": validity,
            "valid_until": valid_until,
            "offer_type": offer_type,
            "generated_at": generated_at.isoformat(),
        }
        for row in reconcile(staged, request.directives, today=today_iso(generated_at))
    ]
    numbers = await reserve_unique_codes(
        session,
        OfferLetter.offer_letter_number,
        [generate_offer_letter_number] * len(payloads)
    )

    batch = batch_id("BATCH-OL", generated_at)
    session.add(OfferLetterBatch(
        batch_id=batch,
        filename=staged[0].filename,
        import_hash=staged[0].import_hash,
        offer_count=len(payloads),
        imported_at=staged[0].imported_at,
        generated_at=generated_at
    ))

    letters = [
        build_offer_letter(payload, number, signer, issue_date, batch=batch, staged=row)
        for payload, number, row in zip(payloads, numbers, staged)
    ]
    session.add_all(letters)
    record_audit(
        session,
        action="offer_letter_batch_issued",
        entity_type="offer_letter_batch",
        entity_id=batch,
        payload=[letter.fingerprint for letter in letters],
        extra={"import_hash": staged[0].import_hash, "count": len(letters)}
    )

    try:
        await clear_staged_rows(session, ARTIFACT_OFFER_LETTER)
        await session.commit()
    except exc.IntegrityError as e:
        await session.rollback()
        logger.error("Offer letter batch %s rolled back: %s", batch, e.orig)
        raise ConflictError("Offer letter batch collided with existing numbers; nothing was issued, retry")

    logger.info("Issued offer letter batch %s with %d letter(s)", batch, len(letters))
    return {
        "batch_id": batch,
        "count": len(letters),
        "offer_letters": [
            {"offer_letter_number": letter.offer_letter_number, "row": letter.row_number}
            for letter in letters
        ],
        "settings": {
            "issue_date": issue_date,
            "validity_days": validity,
            "valid_until": valid_until,
            "offer_type": offer_type,
        },
    }


async def get_offer_letters(session: AsyncSession) -> List[OfferLetter]:
    result = await session.execute(
        select(OfferLetter).order_by(OfferLetter.generated_at.desc(), OfferLetter.id.desc())
    )
    return list(result.scalars().all())


async def get_offer_letter(session: AsyncSession, offer_pk: int) -> OfferLetter:
    offer_letter = await session.get(OfferLetter, offer_pk)
    if not offer_letter:
        raise NotFoundError("Offer letter not found")
    return offer_letter


async def get_offer_letter_batches(session: AsyncSession) -> List[OfferLetterBatch]:
    result = await session.execute(
        select(OfferLetterBatch).order_by(OfferLetterBatch.generated_at.desc(), OfferLetterBatch.id.desc())
    )
    return list(result.scalars().all())


async def update_offer_letter_status(
    session: AsyncSession,
    offer_pk: int,
    status: OfferLetterStatus
) -> OfferLetter:
    """Change the status flag only; number, data and fingerprint are immutable."""
    offer_letter = await get_offer_letter(session, offer_pk)
    offer_letter.status = status
    await session.commit()
    await session.refresh(offer_letter)
    return offer_letter


def _first_present(data: Mapping[str, Any], names) -> Any:
    for name in names:
        if data.get(name):
            return data[name]
    return "N/A"


def public_offer_letter(offer_letter: OfferLetter) -> Dict[str, Any]:
    data = json.loads(offer_letter.offer_data)
    public = {field: _first_present(data, names) for field, names in PUBLIC_FIELD_ALIASES.items()}
    public.update({
        "offer_letter_number": offer_letter.offer_letter_number,
        "issue_date": offer_letter.issue_date,
        "status": offer_letter.status.value,
        "fingerprint": offer_letter.fingerprint,
        "verified": True,
    })
    return public


async def verify_offer_letter(
    session: AsyncSession,
    signer: Signer,
    number: str
) -> Dict[str, Any]:
    """
    Public lookup of an active offer letter, re-verified against its fingerprint.

    Raises:
        NotFoundError: no active letter with that number
        IntegrityError: the stored letter no longer matches its fingerprint
    """
    number = (number or "").strip()
    if not number:
        raise ValidationError("Offer letter number is required")

    result = await session.execute(
        select(OfferLetter).where(
            OfferLetter.offer_letter_number == number,
            OfferLetter.status == OfferLetterStatus.ACTIVE
        )
    )
    offer_letter = result.scalars().first()
    if not offer_letter:
        raise NotFoundError("Offer letter not found")

    try:
        verify_fingerprint(offer_letter.offer_data, offer_letter.fingerprint)
        if not verify_with_algorithm(
            offer_letter.signature_algorithm,
            offer_letter.fingerprint,
            offer_letter.signature,
            signer
        ):
            raise IntegrityError("Signature does not match the offer letter fingerprint")
    except IntegrityError as e:
        logger.error("Verification failed for %s: %s", number, e)
        raise

    return public_offer_letter(offer_letter)
