"""
Employee and intern ID endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Literal, Optional

from idsyncro.core.database import get_session
from idsyncro.handlers.employees import (
    bulk_update_status,
    bulk_update_type,
    create_employee,
    delete_employee,
    employee_summary,
    find_employee_by_identifier,
    get_employee,
    get_employees,
    list_departments,
    search_employees,
    update_employee,
)
from idsyncro.handlers.sequence import SequenceAllocator, get_allocator
from idsyncro.models.employee import (
    BulkStatusUpdate,
    BulkTypeUpdate,
    EmployeeCreate,
    EmployeePublic,
    EmployeeRead,
    EmployeeStatus,
    EmployeeType,
    EmployeeUpdate,
)

router = APIRouter(prefix="/employees", tags=["employees"])
public_router = APIRouter(tags=["verification"])


@router.post("/", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
async def create_employee_endpoint(
    employee: EmployeeCreate,
    session: AsyncSession = Depends(get_session),
    allocator: SequenceAllocator = Depends(get_allocator)
):
    """Create an employee or intern and issue its SWT ID."""
    return await create_employee(session, allocator, employee)


@router.get("/", response_model=List[EmployeeRead])
async def list_employees_endpoint(
    type: Optional[EmployeeType] = None,
    session: AsyncSession = Depends(get_session)
):
    """List employees, optionally only one type."""
    return await get_employees(session, type)


@router.patch("/bulk/status")
async def bulk_status_endpoint(
    update: BulkStatusUpdate,
    session: AsyncSession = Depends(get_session)
):
    """Set the status of several employees at once."""
    updated = await bulk_update_status(session, update.employee_ids, update.status)
    return {"updated": updated}


@router.patch("/bulk/type")
async def bulk_type_endpoint(
    update: BulkTypeUpdate,
    session: AsyncSession = Depends(get_session),
    allocator: SequenceAllocator = Depends(get_allocator)
):
    """Reclassify several employees; each one that changes type gets a new ID."""
    updated = await bulk_update_type(session, allocator, update.employee_ids, update.type)
    return {"updated": updated}


@router.get("/search", response_model=List[EmployeeRead])
async def search_employees_endpoint(
    q: Optional[str] = None,
    type: Optional[EmployeeType] = None,
    employee_status: Optional[EmployeeStatus] = Query(default=None, alias="status"),
    department: Optional[str] = None,
    sort_by: str = "date",
    session: AsyncSession = Depends(get_session)
):
    """Search by name, ID, department, designation, email or phone."""
    return await search_employees(session, q, type, employee_status, department, sort_by)


@router.get("/departments", response_model=List[str])
async def list_departments_endpoint(session: AsyncSession = Depends(get_session)):
    return await list_departments(session)


@router.get("/summary")
async def employee_summary_endpoint(
    period: Literal["all", "month"] = "all",
    session: AsyncSession = Depends(get_session)
):
    """Headcount by type and status, for all time or the current month."""
    return await employee_summary(session, current_month=period == "month")


@router.get("/{employee_id}", response_model=EmployeeRead)
async def get_employee_endpoint(
    employee_id: int,
    session: AsyncSession = Depends(get_session)
):
    return await get_employee(session, employee_id)


@router.patch("/{employee_id}", response_model=EmployeeRead)
async def update_employee_endpoint(
    employee_id: int,
    changes: EmployeeUpdate,
    session: AsyncSession = Depends(get_session),
    allocator: SequenceAllocator = Depends(get_allocator)
):
    """Partially update an employee."""
    return await update_employee(session, allocator, employee_id, changes)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee_endpoint(
    employee_id: int,
    session: AsyncSession = Depends(get_session)
):
    await delete_employee(session, employee_id)


@public_router.get("/verify/{identifier}", response_model=EmployeePublic)
async def verify_employee_endpoint(
    identifier: str,
    session: AsyncSession = Depends(get_session)
):
    """Public ID card lookup by UUID or SWT employee ID."""
    return await find_employee_by_identifier(session, identifier)
