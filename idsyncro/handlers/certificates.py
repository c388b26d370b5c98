"""
Certificate issuance and verification handler.

Every certificate stores the canonical form of its data, the SHA-256
fingerprint of that form and a signature over the fingerprint. Verification
re-derives all three from the stored row, so any edit made outside the
issuance path is reported instead of served.
"""

import json
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import exc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from idsyncro.core.constants import (
    ARTIFACT_CERTIFICATE,
    CERTIFICATE_DEFAULT_TYPE,
    CERTIFICATE_PREFIX,
    SCHEMA_VERSION,
)
from idsyncro.core.errors import ConflictError, IntegrityError, NotFoundError, ValidationError
from idsyncro.core.logging import get_logger
from idsyncro.handlers.audit import record_audit
from idsyncro.handlers.bulk_import import batch_id, clear_staged_rows, list_staged_rows, reconcile
from idsyncro.handlers.sequence import insert_with_retry, reserve_unique_codes
from idsyncro.models.certificate import (
    Certificate,
    CertificateBatch,
    CertificateCreate,
    CertificateStatus,
)
from idsyncro.models.staging import SchemaDirective
from idsyncro.utils.codes import generate_certificate_code
from idsyncro.utils.hashing import canonicalize, fingerprint, verify_fingerprint
from idsyncro.utils.signing import Signer, verify_with_algorithm
from idsyncro.utils.time import today_iso, utc_now

logger = get_logger(__name__)


def build_certificate(
    payload: Mapping[str, Any],
    code: str,
    signer: Signer,
    issue_date: str,
    batch: Optional[str] = None
) -> Certificate:
    """Canonicalize, fingerprint and sign ``payload`` into a certificate row."""
    certificate_uuid = str(uuid.uuid4())
    canonical = canonicalize({
        **payload,
        "issue_date": issue_date,
        "schema_version": SCHEMA_VERSION
    })
    digest = fingerprint(canonical)

    return Certificate(
        certificate_uuid=certificate_uuid,
        certificate_code=code,
        person_uuid=str(payload.get("person_uuid") or certificate_uuid),
        name=payload.get("name"),
        certificate_type=payload.get("certificate_type") or CERTIFICATE_DEFAULT_TYPE,
        certificate_data=canonical,
        fingerprint=digest,
        signature=signer.sign(digest),
        signature_algorithm=signer.algorithm,
        issue_date=issue_date,
        schema_version=SCHEMA_VERSION,
        batch_id=batch
    )


def _code_type(payload: Mapping[str, Any]) -> str:
    return payload.get("certificate_type") or "intern"


async def create_certificate(
    session: AsyncSession,
    signer: Signer,
    request: CertificateCreate
) -> Certificate:
    """Issue one certificate, regenerating its code on a collision."""
    payload = {
        **request.data,
        "person_uuid": request.person_uuid,
        "name": request.name,
        "certificate_type": request.certificate_type,
    }
    issue_date = today_iso()

    certificate = await insert_with_retry(
        session,
        lambda: build_certificate(
            payload,
            generate_certificate_code(_code_type(payload)),
            signer,
            issue_date
        ),
        column="certificate_code"
    )

    record_audit(
        session,
        action="certificate_issued",
        entity_type="certificate",
        entity_id=certificate.certificate_code,
        payload={"fingerprint": certificate.fingerprint}
    )
    await session.commit()

    logger.info("Issued certificate %s for %s", certificate.certificate_code, certificate.name)
    return certificate


async def generate_certificate_batch(
    session: AsyncSession,
    signer: Signer,
    schema: Sequence[SchemaDirective]
) -> Dict[str, Any]:
    """
    Reconcile the staged import with ``schema`` and issue every certificate.

    The batch row, all certificates and the staging clear commit together;
    on any failure nothing is issued and the staged rows stay for a retry.

    Raises:
        ValidationError: nothing staged or invalid schema
        ConflictError: codes could not be made unique
    """
    staged = await list_staged_rows(session, ARTIFACT_CERTIFICATE)
    if not staged:
        raise ValidationError("No staged data found")

    issue_date = today_iso()
    payloads = reconcile(staged, schema, today=issue_date)
    codes = await reserve_unique_codes(
        session,
        Certificate.certificate_code,
        [lambda payload=payload: generate_certificate_code(_code_type(payload)) for payload in payloads]
    )

    batch = batch_id("BATCH")
    session.add(CertificateBatch(
        batch_id=batch,
        schema_definition=json.dumps([directive.model_dump() for directive in schema], default=str),
        import_hash=staged[0].import_hash,
        filename=staged[0].filename,
        certificate_count=len(payloads)
    ))

    certificates = [
        build_certificate(payload, code, signer, issue_date, batch=batch)
        for payload, code in zip(payloads, codes)
    ]
    session.add_all(certificates)
    record_audit(
        session,
        action="certificate_batch_issued",
        entity_type="certificate_batch",
        entity_id=batch,
        payload=[certificate.fingerprint for certificate in certificates],
        extra={"import_hash": staged[0].import_hash, "count": len(certificates)}
    )
    try:
        await clear_staged_rows(session, ARTIFACT_CERTIFICATE)
        await session.commit()
    except exc.IntegrityError as e:
        await session.rollback()
        logger.error("Certificate batch %s rolled back: %s", batch, e.orig)
        raise ConflictError("Certificate batch collided with existing codes; nothing was issued, retry")

    logger.info("Issued certificate batch %s with %d certificate(s)", batch, len(certificates))
    return {
        "batch_id": batch,
        "count": len(certificates),
        "certificates": [
            {"certificate_code": c.certificate_code, "name": c.name} for c in certificates[:10]
        ],
    }


async def get_certificates(session: AsyncSession) -> List[Certificate]:
    result = await session.execute(
        select(Certificate).order_by(Certificate.created_at.desc(), Certificate.id.desc())
    )
    return list(result.scalars().all())


async def get_certificate_batches(session: AsyncSession) -> List[CertificateBatch]:
    result = await session.execute(
        select(CertificateBatch).order_by(CertificateBatch.created_at.desc(), CertificateBatch.id.desc())
    )
    return list(result.scalars().all())


def check_certificate_integrity(certificate: Certificate, signer: Signer) -> None:
    """
    Recompute the fingerprint from stored data and check the signature.

    Raises:
        IntegrityError: the row was modified after issuance
    """
    try:
        verify_fingerprint(certificate.certificate_data, certificate.fingerprint)
        if not verify_with_algorithm(
            certificate.signature_algorithm,
            certificate.fingerprint,
            certificate.signature,
            signer
        ):
            raise IntegrityError("Signature does not match the certificate fingerprint")
    except IntegrityError as e:
        logger.error("Verification failed for %s: %s", certificate.certificate_code, e)
        raise


def public_certificate(certificate: Certificate) -> Dict[str, Any]:
    """Public view: stored data overlaid with the authoritative columns."""
    return {
        **json.loads(certificate.certificate_data),
        "certificate_code": certificate.certificate_code,
        "name": certificate.name,
        "certificate_type": certificate.certificate_type,
        "issue_date": certificate.issue_date,
        "status": certificate.status.value,
        "fingerprint": certificate.fingerprint,
        "verified": True,
    }


async def verify_certificates(
    session: AsyncSession,
    signer: Signer,
    identifier: str
) -> List[Dict[str, Any]]:
    """
    Public lookup of active certificates by code or person UUID.

    Raises:
        NotFoundError: no active certificate matches
        IntegrityError: a matching certificate failed re-verification
    """
    identifier = (identifier or "").strip()
    if not identifier:
        raise ValidationError("Identifier is required")

    statement = select(Certificate).where(Certificate.status == CertificateStatus.ACTIVE)
    if identifier.startswith(f"{CERTIFICATE_PREFIX}-"):
        statement = statement.where(Certificate.certificate_code == identifier)
    else:
        statement = statement.where(Certificate.person_uuid == identifier).order_by(
            Certificate.created_at.desc()
        )

    result = await session.execute(statement)
    certificates = list(result.scalars().all())
    if not certificates:
        raise NotFoundError("Certificate not found")

    for certificate in certificates:
        check_certificate_integrity(certificate, signer)
    return [public_certificate(certificate) for certificate in certificates]


async def revoke_certificate(
    session: AsyncSession,
    certificate_pk: int,
    reason: Optional[str] = None
) -> Certificate:
    """Flag a certificate revoked; its code and fingerprint are left untouched."""
    certificate = await session.get(Certificate, certificate_pk)
    if not certificate:
        raise NotFoundError("Certificate not found")

    certificate.status = CertificateStatus.REVOKED
    certificate.revoked_at = utc_now()
    certificate.revocation_reason = reason or "No reason provided"
    record_audit(
        session,
        action="certificate_revoked",
        entity_type="certificate",
        entity_id=certificate.certificate_code,
        payload={"fingerprint": certificate.fingerprint, "reason": certificate.revocation_reason}
    )
    await session.commit()
    await session.refresh(certificate)

    logger.info("Revoked certificate %s", certificate.certificate_code)
    return certificate
