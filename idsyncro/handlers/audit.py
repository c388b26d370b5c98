"""
Audit trail handler.
"""

import json
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idsyncro.models.audit import AuditLog
from idsyncro.utils.hashing import hash_payload


def record_audit(
    session: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    payload: Any,
    extra: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Stage an audit entry on ``session``; it commits with the caller's transaction."""
    audit = AuditLog(
        payload_hash=hash_payload(payload),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        extra_data=json.dumps(extra, default=str) if extra else None
    )
    session.add(audit)
    return audit
