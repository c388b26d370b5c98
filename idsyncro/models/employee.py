"""
Employee model - employee/intern ID records with counter-based codes.
"""

import re
from pydantic import ValidationInfo, field_validator
from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

from idsyncro.utils.time import parse_iso_date, utc_now

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+?[0-9][0-9 ()\-]{5,18}[0-9]$")
BLOOD_GROUPS = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def check_email(value: Optional[str]) -> Optional[str]:
    value = _blank_to_none(value)
    if value is not None and not EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value.lower() if value else value


def check_phone(value: Optional[str]) -> Optional[str]:
    value = _blank_to_none(value)
    if value is not None and not PHONE_RE.match(value):
        raise ValueError("Invalid phone number")
    return value


def check_joining_date(value: Optional[str]) -> Optional[str]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return parse_iso_date(value).isoformat()
    except ValueError:
        raise ValueError("Joining date must be YYYY-MM-DD")


def check_blood_group(value: Optional[str]) -> Optional[str]:
    value = _blank_to_none(value)
    if value is not None and value.upper() not in BLOOD_GROUPS:
        raise ValueError(f"Blood group must be one of {', '.join(BLOOD_GROUPS)}")
    return value.upper() if value else value


FIELD_CHECKS = {
    "email": check_email,
    "phone": check_phone,
    "joining_date": check_joining_date,
    "blood_group": check_blood_group,
}


class EmployeeType(str, Enum):
    """Artifact type; selects the EMP/INT code segment."""
    EMPLOYEE = "employee"
    INTERN = "intern"


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"
    RESIGNED = "resigned"
    ON_LEAVE = "on_leave"
    SUSPENDED = "suspended"


class EmployeeBase(SQLModel):
    """Base employee schema."""
    name: str = Field(..., min_length=1, max_length=200)
    designation: Optional[str] = Field(default=None, max_length=200)
    department: Optional[str] = Field(default=None, max_length=200)
    type: EmployeeType = Field(default=EmployeeType.EMPLOYEE)
    employment_type: Optional[str] = Field(default=None, description="e.g. Full-time, Part-time")
    work_location: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    joining_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    blood_group: Optional[str] = None
    manager: Optional[str] = None


class Employee(EmployeeBase, table=True):
    """Employee database table."""
    __tablename__ = "employees"

    id: Optional[int] = Field(default=None, primary_key=True)
    uuid: str = Field(..., unique=True, index=True)
    employee_id: str = Field(..., unique=True, index=True, description="SWT-YY-TYPE-NNNN")
    status: EmployeeStatus = Field(default=EmployeeStatus.ACTIVE)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class EmployeeCreate(EmployeeBase):
    """Schema for creating an employee."""

    @field_validator(*FIELD_CHECKS)
    @classmethod
    def _check_contact_fields(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        return FIELD_CHECKS[info.field_name](value)


class EmployeeUpdate(SQLModel):
    """Partial update; changing ``type`` issues a new code."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    designation: Optional[str] = None
    department: Optional[str] = None
    type: Optional[EmployeeType] = None
    employment_type: Optional[str] = None
    work_location: Optional[str] = None
    status: Optional[EmployeeStatus] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    joining_date: Optional[str] = None
    blood_group: Optional[str] = None
    manager: Optional[str] = None

    @field_validator(*FIELD_CHECKS)
    @classmethod
    def _check_contact_fields(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        return FIELD_CHECKS[info.field_name](value)


class EmployeeRead(EmployeeBase):
    """Schema for reading an employee."""
    id: int
    uuid: str
    employee_id: str
    status: EmployeeStatus
    created_at: datetime
    updated_at: datetime


class EmployeePublic(SQLModel):
    """Fields exposed by the public verification lookup."""
    name: str
    employee_id: str
    designation: Optional[str] = None
    department: Optional[str] = None
    type: EmployeeType
    status: EmployeeStatus
    created_at: datetime


class BulkStatusUpdate(SQLModel):
    employee_ids: List[int] = Field(..., min_length=1)
    status: EmployeeStatus


class BulkTypeUpdate(SQLModel):
    employee_ids: List[int] = Field(..., min_length=1)
    type: EmployeeType
