"""
Import staging model - spreadsheet rows awaiting identifier issuance.
"""

from pydantic import BaseModel, model_validator
from sqlmodel import SQLModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from idsyncro.core.constants import AUTO_DATE_RULES
from idsyncro.utils.time import utc_now


class ImportStagingRow(SQLModel, table=True):
    """One staged spreadsheet row; cleared once its batch is generated."""
    __tablename__ = "import_staging"

    id: Optional[int] = Field(default=None, primary_key=True)
    staging_id: str = Field(..., unique=True, index=True)
    artifact: str = Field(..., index=True, description="certificate or offer_letter")
    row_number: int = Field(..., ge=1)
    row_data: str = Field(..., description="JSON of the raw column map")
    filename: Optional[str] = None
    import_hash: str
    imported_at: datetime = Field(default_factory=utc_now)


class StagedRowRead(SQLModel):
    staging_id: str
    row_number: int
    row_data: Dict[str, Any]
    filename: Optional[str]
    import_hash: str
    imported_at: datetime


class StagedRowsRead(SQLModel):
    """Pending rows for one artifact kind."""
    row_count: int
    rows: List[StagedRowRead]


class StagingSummary(SQLModel):
    """Returned by an upload so the operator can review before generating."""
    staging_id: str
    filename: Optional[str]
    row_count: int
    import_hash: str
    headers: List[str]
    preview: List[Dict[str, Any]]


class SchemaDirective(BaseModel):
    """
    One rule of a bulk-import mapping.

    - ``excel``: copy ``excel_column`` from the row into ``field``
    - ``manual``: set ``field`` to the constant ``value``
    - ``auto``: compute ``field`` from ``rule`` (only the current date)
    """
    field: str
    source: Literal["excel", "manual", "auto"]
    excel_column: Optional[str] = None
    value: Any = None
    rule: Optional[str] = None

    @model_validator(mode="after")
    def _check_source_arguments(self) -> "SchemaDirective":
        if not self.field.strip():
            raise ValueError("Schema directive needs a target field")
        if self.source == "excel" and not self.excel_column:
            raise ValueError(f"Excel directive for '{self.field}' needs excel_column")
        if self.source == "auto" and self.rule not in AUTO_DATE_RULES:
            raise ValueError(f"Unknown auto rule '{self.rule}' for '{self.field}'")
        return self
