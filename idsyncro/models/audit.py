"""
Audit log model - append-only tamper-evident issuance trail.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from idsyncro.utils.time import utc_now


class AuditLogBase(SQLModel):
    """Base audit log schema."""
    payload_hash: str = Field(..., description="SHA-256 hash of the audited payload")
    action: str = Field(..., description="Action type (e.g., 'certificate_issued', 'employee_created')")
    entity_type: str = Field(..., description="Entity type (e.g., 'certificate', 'employee')")
    entity_id: Optional[str] = Field(default=None, description="Identifier of the entity")
    extra_data: Optional[str] = Field(
        default=None,
        description="JSON string of additional metadata"
    )


class AuditLog(AuditLogBase, table=True):
    """Audit log database table - append-only."""
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)
