"""
Bulk import handler: staging spreadsheet rows and reconciling them with a
field-mapping schema.

Staging and reconciliation are separate steps so an operator can review the
imported data before any identifier is issued. Only one batch per artifact
kind is pending at a time: staging a new upload discards the previous one.
"""

import json
import secrets
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pydantic
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from idsyncro.core.constants import ARTIFACT_CERTIFICATE, ARTIFACT_OFFER_LETTER
from idsyncro.core.errors import ValidationError
from idsyncro.core.logging import get_logger
from idsyncro.handlers.audit import record_audit
from idsyncro.models.staging import ImportStagingRow, SchemaDirective
from idsyncro.utils.hashing import hash_payload
from idsyncro.utils.time import today_iso, utc_now

logger = get_logger(__name__)

ARTIFACTS = (ARTIFACT_CERTIFICATE, ARTIFACT_OFFER_LETTER)

RawRow = Mapping[str, Any]
DirectiveInput = Union[SchemaDirective, Mapping[str, Any]]


def _check_artifact(artifact: str) -> None:
    if artifact not in ARTIFACTS:
        raise ValidationError(f"Unknown import artifact '{artifact}'")


def parse_schema(schema: Iterable[DirectiveInput]) -> List[SchemaDirective]:
    """
    Validate schema directives up front, before any identifier is issued.

    Raises:
        ValidationError: unknown source or rule, or missing arguments
    """
    directives = []
    for position, item in enumerate(schema, start=1):
        if isinstance(item, SchemaDirective):
            directives.append(item)
            continue
        try:
            directives.append(SchemaDirective.model_validate(item))
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid schema directive #{position}: {e.errors()[0]['msg']}")
    return directives


def apply_schema(row: RawRow, directives: Sequence[SchemaDirective], today: str) -> Dict[str, Any]:
    """Project one row: every original column, then each directive in order."""
    payload = dict(row)
    for directive in directives:
        if directive.source == "excel":
            payload[directive.field] = row.get(directive.excel_column)
        elif directive.source == "manual":
            payload[directive.field] = directive.value
        elif directive.source == "auto":
            payload[directive.field] = today
    return payload


def reconcile(
    rows: Iterable[Union[RawRow, ImportStagingRow]],
    schema: Iterable[DirectiveInput],
    today: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Turn staged rows into record payloads.

    Unmapped columns are preserved verbatim and later directives win on
    conflicting field names. ``auto`` date rules resolve to ``today``
    (defaults to the current UTC date, evaluated now rather than at staging).

    Args:
        rows: Raw column maps or staged rows
        schema: Ordered schema directives
        today: Override for the reconciliation date (YYYY-MM-DD)

    Returns:
        One payload per row, in row order
    """
    directives = parse_schema(schema)
    today = today or today_iso()
    return [apply_schema(staged_row_data(row), directives, today) for row in rows]


def staged_row_data(row: Union[RawRow, ImportStagingRow]) -> Dict[str, Any]:
    if isinstance(row, ImportStagingRow):
        return json.loads(row.row_data)
    return dict(row)


async def stage_rows(
    session: AsyncSession,
    artifact: str,
    rows: Sequence[RawRow],
    filename: Optional[str] = None
) -> List[ImportStagingRow]:
    """
    Replace the pending import for ``artifact`` with ``rows``.

    Raises:
        ValidationError: no rows, or an unknown artifact kind
    """
    _check_artifact(artifact)
    if not rows:
        raise ValidationError("Uploaded spreadsheet has no data rows")

    import_hash = hash_payload([dict(row) for row in rows])
    imported_at = utc_now()
    stage_prefix = batch_id("STAGE", imported_at)

    await session.execute(delete(ImportStagingRow).where(ImportStagingRow.artifact == artifact))

    staged = [
        ImportStagingRow(
            staging_id=f"{stage_prefix}-{index}",
            artifact=artifact,
            row_number=index + 1,
            row_data=json.dumps(dict(row), default=str),
            filename=filename,
            import_hash=import_hash,
            imported_at=imported_at
        )
        for index, row in enumerate(rows)
    ]
    session.add_all(staged)
    record_audit(
        session,
        action="import_staged",
        entity_type=artifact,
        entity_id=stage_prefix,
        payload={"import_hash": import_hash, "rows": len(staged)},
        extra={"filename": filename}
    )
    await session.commit()

    logger.info("Staged %d %s row(s) from %s (hash %s)", len(staged), artifact, filename, import_hash[:12])
    return staged


async def list_staged_rows(session: AsyncSession, artifact: str) -> List[ImportStagingRow]:
    """Pending rows for ``artifact`` in spreadsheet order."""
    _check_artifact(artifact)
    result = await session.execute(
        select(ImportStagingRow)
        .where(ImportStagingRow.artifact == artifact)
        .order_by(ImportStagingRow.row_number)
    )
    return list(result.scalars().all())


async def clear_staged_rows(session: AsyncSession, artifact: str) -> None:
    """Delete pending rows for ``artifact``; joins the caller's transaction."""
    _check_artifact(artifact)
    await session.execute(delete(ImportStagingRow).where(ImportStagingRow.artifact == artifact))


def staging_summary(staged: Sequence[ImportStagingRow]) -> Dict[str, Any]:
    """Headers, counts and a short preview for operator review."""
    rows = [json.loads(row.row_data) for row in staged]
    headers: List[str] = []
    for row in rows:
        headers.extend(key for key in row if key not in headers)
    first = staged[0]
    return {
        "staging_id": first.staging_id.rsplit("-", 1)[0],
        "filename": first.filename,
        "row_count": len(staged),
        "import_hash": first.import_hash,
        "headers": headers,
        "preview": rows[:5],
    }


def staged_row_view(row: ImportStagingRow) -> Dict[str, Any]:
    return {
        "staging_id": row.staging_id,
        "row_number": row.row_number,
        "row_data": json.loads(row.row_data),
        "filename": row.filename,
        "import_hash": row.import_hash,
        "imported_at": row.imported_at,
    }


def batch_id(prefix: str, now: Optional[datetime] = None) -> str:
    """Batch identifier such as BATCH-1735689600000-9F2C."""
    millis = int((now or utc_now()).timestamp() * 1000)
    return f"{prefix}-{millis}-{secrets.token_hex(2).upper()}"
