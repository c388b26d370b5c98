"""
Employee/intern ID record handler.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import exc, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from idsyncro.core.errors import ConflictError, NotFoundError, ValidationError
from idsyncro.core.logging import get_logger
from idsyncro.handlers.audit import record_audit
from idsyncro.handlers.sequence import SequenceAllocator
from idsyncro.models.employee import (
    Employee,
    EmployeeCreate,
    EmployeeStatus,
    EmployeeType,
    EmployeeUpdate,
)
from idsyncro.utils.time import utc_now

logger = get_logger(__name__)

# Verification lookups never match on more than this many characters
MAX_IDENTIFIER_LENGTH = 100
MAX_DEPARTMENT_LENGTH = 50


async def _commit_employee(session: AsyncSession, employee: Employee) -> None:
    try:
        await session.commit()
    except exc.IntegrityError as e:
        await session.rollback()
        # The allocator never hands out a number twice, so this means a row
        # was written around it (manual insert or a second database).
        logger.error("Employee code %s already stored: %s", employee.employee_id, e.orig)
        raise ConflictError(f"Employee ID {employee.employee_id} conflicts with an existing record")
    await session.refresh(employee)


async def create_employee(
    session: AsyncSession,
    allocator: SequenceAllocator,
    employee_data: EmployeeCreate
) -> Employee:
    """Create an employee and allocate its SWT-YY-TYPE-NNNN code."""
    employee_id = await allocator.allocate(employee_data.type.value)
    employee = Employee(
        **employee_data.model_dump(),
        uuid=str(uuid.uuid4()),
        employee_id=employee_id
    )
    session.add(employee)
    record_audit(
        session,
        action="employee_created",
        entity_type="employee",
        entity_id=employee_id,
        payload=employee_data.model_dump(mode="json")
    )
    await _commit_employee(session, employee)

    logger.info("Created %s %s (%s)", employee.type.value, employee_id, employee.name)
    return employee


async def get_employee(session: AsyncSession, employee_pk: int) -> Employee:
    employee = await session.get(Employee, employee_pk)
    if not employee:
        raise NotFoundError(f"Employee {employee_pk} not found")
    return employee


async def get_employees(
    session: AsyncSession,
    employee_type: Optional[EmployeeType] = None
) -> List[Employee]:
    """Return employees, newest first, optionally filtered by type."""
    statement = select(Employee).order_by(Employee.created_at.desc(), Employee.id.desc())
    if employee_type:
        statement = statement.where(Employee.type == employee_type)
    result = await session.execute(statement)
    return list(result.scalars().all())


async def _reclassify(
    allocator: SequenceAllocator,
    employee: Employee,
    new_type: EmployeeType
) -> str:
    """Issue a fresh code for a type change; the old code is retired, never reused."""
    old_code = employee.employee_id
    employee.employee_id = await allocator.allocate(new_type.value)
    employee.type = new_type
    logger.info("Reclassified %s -> %s as %s", old_code, employee.employee_id, new_type.value)
    return old_code


async def update_employee(
    session: AsyncSession,
    allocator: SequenceAllocator,
    employee_pk: int,
    changes: EmployeeUpdate
) -> Employee:
    """
    Apply a partial update.

    Changing ``type`` allocates a brand-new code for the new scope.
    """
    employee = await get_employee(session, employee_pk)
    data = changes.model_dump(exclude_unset=True, exclude_none=True)

    new_type = data.pop("type", None)
    if new_type is not None and new_type != employee.type:
        old_code = await _reclassify(allocator, employee, EmployeeType(new_type))
        record_audit(
            session,
            action="employee_reclassified",
            entity_type="employee",
            entity_id=employee.employee_id,
            payload={"old": old_code, "new": employee.employee_id, "type": employee.type.value}
        )

    for field, value in data.items():
        setattr(employee, field, value)
    employee.updated_at = utc_now()

    await _commit_employee(session, employee)
    return employee


async def bulk_update_status(
    session: AsyncSession,
    employee_pks: List[int],
    status: EmployeeStatus
) -> int:
    """Set ``status`` on every listed employee; returns how many changed."""
    result = await session.execute(select(Employee).where(Employee.id.in_(employee_pks)))
    updated = 0
    for employee in result.scalars().all():
        if employee.status != status:
            employee.status = status
            employee.updated_at = utc_now()
            updated += 1
    await session.commit()
    return updated


async def bulk_update_type(
    session: AsyncSession,
    allocator: SequenceAllocator,
    employee_pks: List[int],
    new_type: EmployeeType
) -> int:
    """Reclassify the listed employees, issuing a new code to each that changes type."""
    result = await session.execute(
        select(Employee).where(Employee.id.in_(employee_pks)).order_by(Employee.id)
    )
    updated = 0
    for employee in result.scalars().all():
        if employee.type == new_type:
            continue
        old_code = await _reclassify(allocator, employee, new_type)
        employee.updated_at = utc_now()
        record_audit(
            session,
            action="employee_reclassified",
            entity_type="employee",
            entity_id=employee.employee_id,
            payload={"old": old_code, "new": employee.employee_id, "type": new_type.value}
        )
        updated += 1

    try:
        await session.commit()
    except exc.IntegrityError as e:
        await session.rollback()
        raise ConflictError(f"Reclassification conflicted with an existing code: {e.orig}")
    return updated


async def delete_employee(session: AsyncSession, employee_pk: int) -> None:
    """Delete the record; its code stays retired because counters never go back."""
    employee = await get_employee(session, employee_pk)
    await session.delete(employee)
    await session.commit()
    logger.info("Deleted employee %s", employee.employee_id)


async def find_employee_by_identifier(session: AsyncSession, identifier: str) -> Employee:
    """Public lookup by UUID or employee code."""
    identifier = (identifier or "").strip()[:MAX_IDENTIFIER_LENGTH]
    if not identifier:
        raise ValidationError("UUID or Employee ID is required")

    result = await session.execute(
        select(Employee).where(or_(Employee.uuid == identifier, Employee.employee_id == identifier))
    )
    employee = result.scalars().first()
    if not employee:
        raise NotFoundError("ID not found")
    return employee


SORT_COLUMNS = {
    "date": (Employee.created_at.desc(), Employee.id.desc()),
    "name": (Employee.name.asc(), Employee.id.asc()),
    "id": (Employee.employee_id.asc(),),
}


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def search_employees(
    session: AsyncSession,
    query: Optional[str] = None,
    employee_type: Optional[EmployeeType] = None,
    status: Optional[EmployeeStatus] = None,
    department: Optional[str] = None,
    sort_by: str = "date"
) -> List[Employee]:
    """
    Case-insensitive search over name, code, department, designation,
    email and phone, with optional exact filters.

    Raises:
        ValidationError: over-long query or department, unknown sort key
    """
    if sort_by not in SORT_COLUMNS:
        raise ValidationError(f"sort_by must be one of {sorted(SORT_COLUMNS)}")
    if query and len(query) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError("Invalid search query")
    if department and len(department) > MAX_DEPARTMENT_LENGTH:
        raise ValidationError("Invalid department parameter")

    statement = select(Employee)
    text = (query or "").strip()
    if text:
        pattern = _like_pattern(text)
        statement = statement.where(or_(*(
            column.ilike(pattern, escape="\\")
            for column in (
                Employee.name,
                Employee.employee_id,
                Employee.department,
                Employee.designation,
                Employee.email,
                Employee.phone,
            )
        )))
    if employee_type:
        statement = statement.where(Employee.type == employee_type)
    if status:
        statement = statement.where(Employee.status == status)
    if department and department.strip():
        statement = statement.where(Employee.department == department.strip())

    result = await session.execute(statement.order_by(*SORT_COLUMNS[sort_by]))
    return list(result.scalars().all())


async def list_departments(session: AsyncSession) -> List[str]:
    """Distinct non-empty departments, sorted."""
    result = await session.execute(
        select(Employee.department)
        .where(Employee.department.is_not(None), func.trim(Employee.department) != "")
        .distinct()
        .order_by(Employee.department)
    )
    return list(result.scalars().all())


async def employee_summary(session: AsyncSession, current_month: bool = False) -> Dict[str, Any]:
    """
    Headcount by type and status, optionally limited to records created this
    calendar month (UTC).
    """
    month_start = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    statement = select(Employee.type, Employee.status, func.count(Employee.id)).group_by(
        Employee.type, Employee.status
    )
    if current_month:
        statement = statement.where(Employee.created_at >= month_start)
    result = await session.execute(statement)

    by_type: Dict[str, int] = {t.value: 0 for t in EmployeeType}
    by_status: Dict[str, int] = {s.value: 0 for s in EmployeeStatus}
    by_type_status: Dict[str, Dict[str, int]] = {t.value: dict(by_status) for t in EmployeeType}
    for employee_type, status, count in result.all():
        type_key = EmployeeType(employee_type).value
        status_key = EmployeeStatus(status).value
        by_type[type_key] += count
        by_status[status_key] += count
        by_type_status[type_key][status_key] += count

    created_this_month = await session.execute(
        select(func.count(Employee.id)).where(Employee.created_at >= month_start)
    )
    return {
        "period": "current_month" if current_month else "all_time",
        "total": sum(by_type.values()),
        "by_type": by_type,
        "by_status": by_status,
        "by_type_and_status": by_type_status,
        "created_this_month": created_this_month.scalar() or 0,
    }
