"""
Offer letter models - fingerprinted offer letters and their issuance batches.
"""

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import SQLModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

from idsyncro.core.constants import SCHEMA_VERSION
from idsyncro.models.staging import SchemaDirective
from idsyncro.utils.time import utc_now


class OfferLetterStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    REVOKED = "revoked"


class OfferLetter(SQLModel, table=True):
    """Offer letter database table."""
    __tablename__ = "offer_letters"

    id: Optional[int] = Field(default=None, primary_key=True)
    offer_letter_number: str = Field(..., unique=True, index=True)
    offer_data: str = Field(..., description="Canonical record the fingerprint covers")
    fingerprint: str = Field(..., min_length=64, max_length=64)
    signature: str
    signature_algorithm: str
    issue_date: str
    schema_version: int = Field(default=SCHEMA_VERSION)
    batch_id: Optional[str] = Field(default=None, index=True)
    filename: Optional[str] = None
    import_hash: Optional[str] = None
    row_number: Optional[int] = None
    imported_at: Optional[datetime] = None
    status: OfferLetterStatus = Field(default=OfferLetterStatus.ACTIVE)
    generated_at: datetime = Field(default_factory=utc_now)


class OfferLetterBatch(SQLModel, table=True):
    """One bulk issuance from a staged import."""
    __tablename__ = "offer_letter_batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    batch_id: str = Field(..., unique=True, index=True)
    filename: Optional[str] = None
    import_hash: str
    offer_count: int
    imported_at: Optional[datetime] = None
    generated_at: datetime = Field(default_factory=utc_now)


class OfferLetterCreate(SQLModel):
    offer_data: Dict[str, Any]


class OfferLetterGenerateRequest(BaseModel):
    """Settings applied to every staged row when generating a batch."""
    model_config = ConfigDict(populate_by_name=True)

    issue_date: Optional[str] = None
    validity_days: Optional[int] = PydanticField(default=None, ge=0)
    offer_type: Optional[str] = None
    directives: List[SchemaDirective] = PydanticField(default_factory=list, alias="schema")


class OfferLetterStatusUpdate(SQLModel):
    status: OfferLetterStatus


class OfferLetterRead(SQLModel):
    id: int
    offer_letter_number: str
    offer_data: str
    fingerprint: str
    signature: str
    signature_algorithm: str
    issue_date: str
    schema_version: int
    batch_id: Optional[str]
    filename: Optional[str]
    row_number: Optional[int]
    status: OfferLetterStatus
    generated_at: datetime
