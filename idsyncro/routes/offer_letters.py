"""
Offer letter endpoints.
"""

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List

from idsyncro.core.constants import ARTIFACT_OFFER_LETTER
from idsyncro.core.database import get_session
from idsyncro.handlers.bulk_import import list_staged_rows, stage_rows, staged_row_view, staging_summary
from idsyncro.handlers.offer_letters import (
    create_offer_letter,
    generate_offer_letter_batch,
    get_offer_letter,
    get_offer_letter_batches,
    get_offer_letters,
    update_offer_letter_status,
    verify_offer_letter,
)
from idsyncro.handlers.spreadsheet import parse_spreadsheet
from idsyncro.models.offer_letter import (
    OfferLetterBatch,
    OfferLetterCreate,
    OfferLetterGenerateRequest,
    OfferLetterRead,
    OfferLetterStatusUpdate,
)
from idsyncro.models.staging import StagedRowsRead, StagingSummary
from idsyncro.utils.signing import Signer, get_signer

router = APIRouter(prefix="/offer-letters", tags=["offer-letters"])


@router.post("/upload", response_model=StagingSummary, status_code=status.HTTP_201_CREATED)
async def upload_offer_letters_endpoint(
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session)
):
    """Stage a CSV or Excel sheet of candidates, replacing any pending upload."""
    content = await file.read()
    rows = parse_spreadsheet(file.filename, content)
    staged = await stage_rows(session, ARTIFACT_OFFER_LETTER, rows, filename=file.filename)
    return staging_summary(staged)


@router.get("/staging", response_model=StagedRowsRead)
async def offer_letter_staging_endpoint(
    session: AsyncSession = Depends(get_session)
):
    staged = await list_staged_rows(session, ARTIFACT_OFFER_LETTER)
    return {"row_count": len(staged), "rows": [staged_row_view(row) for row in staged]}


@router.post("/generate", status_code=status.HTTP_201_CREATED)
async def generate_offer_letters_endpoint(
    request: OfferLetterGenerateRequest,
    session: AsyncSession = Depends(get_session),
    signer: Signer = Depends(get_signer)
) -> Dict[str, Any]:
    """
    Issue an offer letter for every staged row.

    ``issue_date`` defaults to today and ``validity_days`` to OFFER_VALIDITY_DAYS.
    An optional ``schema`` mapping is applied to each row first.
    """
    return await generate_offer_letter_batch(session, signer, request)


@router.post("/", response_model=OfferLetterRead, status_code=status.HTTP_201_CREATED)
async def create_offer_letter_endpoint(
    offer_letter: OfferLetterCreate,
    session: AsyncSession = Depends(get_session),
    signer: Signer = Depends(get_signer)
):
    """Issue a single offer letter."""
    return await create_offer_letter(session, signer, offer_letter)


@router.get("/", response_model=List[OfferLetterRead])
async def list_offer_letters_endpoint(
    session: AsyncSession = Depends(get_session)
):
    return await get_offer_letters(session)


@router.get("/batches", response_model=List[OfferLetterBatch])
async def list_offer_letter_batches_endpoint(
    session: AsyncSession = Depends(get_session)
):
    return await get_offer_letter_batches(session)


@router.get("/verify/{offer_letter_number}")
async def verify_offer_letter_endpoint(
    offer_letter_number: str,
    session: AsyncSession = Depends(get_session),
    signer: Signer = Depends(get_signer)
):
    """Public verification by offer letter number."""
    return await verify_offer_letter(session, signer, offer_letter_number)


@router.get("/{offer_letter_id}", response_model=OfferLetterRead)
async def get_offer_letter_endpoint(
    offer_letter_id: int,
    session: AsyncSession = Depends(get_session)
):
    return await get_offer_letter(session, offer_letter_id)


@router.patch("/{offer_letter_id}/status", response_model=OfferLetterRead)
async def update_offer_letter_status_endpoint(
    offer_letter_id: int,
    update: OfferLetterStatusUpdate,
    session: AsyncSession = Depends(get_session)
):
    return await update_offer_letter_status(session, offer_letter_id, update.status)
