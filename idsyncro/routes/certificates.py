"""
Certificate endpoints: bulk upload, staging review, issuance and verification.
"""

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List

from idsyncro.core.constants import ARTIFACT_CERTIFICATE
from idsyncro.core.database import get_session
from idsyncro.handlers.bulk_import import list_staged_rows, stage_rows, staged_row_view, staging_summary
from idsyncro.handlers.certificates import (
    create_certificate,
    generate_certificate_batch,
    get_certificate_batches,
    get_certificates,
    revoke_certificate,
    verify_certificates,
)
from idsyncro.handlers.spreadsheet import parse_spreadsheet
from idsyncro.models.certificate import (
    CertificateBatch,
    CertificateCreate,
    CertificateGenerateRequest,
    CertificateRead,
    CertificateRevoke,
)
from idsyncro.models.staging import StagedRowsRead, StagingSummary
from idsyncro.utils.signing import Signer, get_signer

router = APIRouter(prefix="/certificates", tags=["certificates"])


@router.post("/upload", response_model=StagingSummary, status_code=status.HTTP_201_CREATED)
async def upload_certificates_endpoint(
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session)
):
    """
    Stage a CSV or Excel sheet for bulk certificate issuance.

    Any previously staged certificate upload is discarded. Nothing is issued
    until ``/certificates/generate`` is called with a field mapping.
    """
    content = await file.read()
    rows = parse_spreadsheet(file.filename, content)
    staged = await stage_rows(session, ARTIFACT_CERTIFICATE, rows, filename=file.filename)
    return staging_summary(staged)


@router.get("/staging", response_model=StagedRowsRead)
async def certificate_staging_endpoint(
    session: AsyncSession = Depends(get_session)
):
    """Rows waiting to be issued."""
    staged = await list_staged_rows(session, ARTIFACT_CERTIFICATE)
    return {"row_count": len(staged), "rows": [staged_row_view(row) for row in staged]}


@router.post("/generate", status_code=status.HTTP_201_CREATED)
async def generate_certificates_endpoint(
    request: CertificateGenerateRequest,
    session: AsyncSession = Depends(get_session),
    signer: Signer = Depends(get_signer)
) -> Dict[str, Any]:
    """
    Issue one certificate per staged row using the field mapping.

    Example mapping:
    [{"field": "name", "source": "excel", "excel_column": "Full Name"},
     {"field": "certificate_type", "source": "manual", "value": "Internship"},
     {"field": "issue_date", "source": "auto", "rule": "today"}]
    """
    return await generate_certificate_batch(session, signer, request.directives)


@router.post("/", response_model=CertificateRead, status_code=status.HTTP_201_CREATED)
async def create_certificate_endpoint(
    certificate: CertificateCreate,
    session: AsyncSession = Depends(get_session),
    signer: Signer = Depends(get_signer)
):
    """Issue a single certificate."""
    return await create_certificate(session, signer, certificate)


@router.get("/", response_model=List[CertificateRead])
async def list_certificates_endpoint(
    session: AsyncSession = Depends(get_session)
):
    return await get_certificates(session)


@router.get("/batches", response_model=List[CertificateBatch])
async def list_certificate_batches_endpoint(
    session: AsyncSession = Depends(get_session)
):
    return await get_certificate_batches(session)


@router.get("/verify/{identifier}")
async def verify_certificate_endpoint(
    identifier: str,
    session: AsyncSession = Depends(get_session),
    signer: Signer = Depends(get_signer)
):
    """Public verification by certificate code or person UUID."""
    certificates = await verify_certificates(session, signer, identifier)
    return {"count": len(certificates), "certificates": certificates}


@router.post("/{certificate_id}/revoke", response_model=CertificateRead)
async def revoke_certificate_endpoint(
    certificate_id: int,
    revoke: CertificateRevoke,
    session: AsyncSession = Depends(get_session)
):
    return await revoke_certificate(session, certificate_id, revoke.reason)
