"""
Sequence counter model - highest issued suffix per (artifact type, year).
"""

from sqlmodel import SQLModel, Field
from datetime import datetime

from idsyncro.utils.time import utc_now


class SequenceCounter(SQLModel, table=True):
    """Counter rows only ever increase; the allocator is their sole writer."""
    __tablename__ = "sequence_counters"

    artifact_type: str = Field(primary_key=True)
    year: str = Field(primary_key=True, max_length=2)
    value: int = Field(default=0, ge=0)
    updated_at: datetime = Field(default_factory=utc_now)
