"""
Certificate models - fingerprinted certificates and their issuance batches.
"""

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import SQLModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

from idsyncro.core.constants import CERTIFICATE_DEFAULT_TYPE, SCHEMA_VERSION
from idsyncro.models.staging import SchemaDirective
from idsyncro.utils.time import utc_now


class CertificateStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class Certificate(SQLModel, table=True):
    """Certificate database table."""
    __tablename__ = "certificates"

    id: Optional[int] = Field(default=None, primary_key=True)
    certificate_uuid: str = Field(..., unique=True, index=True)
    certificate_code: str = Field(..., unique=True, index=True)
    person_uuid: str = Field(..., index=True)
    name: Optional[str] = None
    certificate_type: str = Field(default=CERTIFICATE_DEFAULT_TYPE)
    certificate_data: str = Field(..., description="Canonical record the fingerprint covers")
    fingerprint: str = Field(..., min_length=64, max_length=64)
    signature: str
    signature_algorithm: str
    issue_date: str
    schema_version: int = Field(default=SCHEMA_VERSION)
    batch_id: Optional[str] = Field(default=None, index=True)
    status: CertificateStatus = Field(default=CertificateStatus.ACTIVE)
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class CertificateBatch(SQLModel, table=True):
    """One bulk issuance from a staged import."""
    __tablename__ = "certificate_batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    batch_id: str = Field(..., unique=True, index=True)
    certificate_type: str = Field(default="Bulk")
    schema_definition: str
    import_hash: str
    filename: Optional[str] = None
    certificate_count: int
    created_at: datetime = Field(default_factory=utc_now)


class CertificateCreate(SQLModel):
    """Single certificate request; any extra fields travel in ``data``."""
    person_uuid: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    certificate_type: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class CertificateGenerateRequest(BaseModel):
    """Reconcile the staged import with ``schema`` and issue a batch."""
    model_config = ConfigDict(populate_by_name=True)

    directives: List[SchemaDirective] = PydanticField(..., alias="schema", min_length=1)


class CertificateRevoke(SQLModel):
    reason: Optional[str] = None


class CertificateRead(SQLModel):
    id: int
    certificate_uuid: str
    certificate_code: str
    person_uuid: str
    name: Optional[str]
    certificate_type: str
    certificate_data: str
    fingerprint: str
    signature: str
    signature_algorithm: str
    issue_date: str
    schema_version: int
    batch_id: Optional[str]
    status: CertificateStatus
    revoked_at: Optional[datetime]
    revocation_reason: Optional[str]
    created_at: datetime
