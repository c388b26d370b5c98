"""
Tests for employee field validation, search, department listing and the
headcount summary.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from idsyncro.core.errors import ValidationError
from idsyncro.handlers.employees import (
    create_employee,
    employee_summary,
    list_departments,
    search_employees,
)
from idsyncro.models.employee import (
    Employee,
    EmployeeCreate,
    EmployeeStatus,
    EmployeeType,
    EmployeeUpdate,
)
from idsyncro.utils.time import utc_now


async def _add(session, allocator, **fields):
    data = {"name": "Asha Rao", "type": "employee"}
    data.update(fields)
    return await create_employee(session, allocator, EmployeeCreate(**data))


def test_contact_fields_are_normalised():
    employee = EmployeeCreate(
        name="Asha",
        email="  Asha.Rao@Example.COM ",
        phone="+91 98765-43210",
        joining_date="2025-06-01T09:30:00",
        blood_group="ab+",
    )

    assert employee.email == "asha.rao@example.com"
    assert employee.phone == "+91 98765-43210"
    assert employee.joining_date == "2025-06-01"
    assert employee.blood_group == "AB+"


def test_blank_contact_fields_become_none():
    employee = EmployeeCreate(name="Asha", email="  ", phone="", blood_group=" ")

    assert employee.email is None
    assert employee.phone is None
    assert employee.blood_group is None


@pytest.mark.parametrize("field,value", [
    ("email", "not-an-email"),
    ("email", "asha@localhost"),
    ("phone", "12ab34"),
    ("phone", "123"),
    ("joining_date", "01/06/2025"),
    ("joining_date", "2025-02-30"),
    ("blood_group", "C+"),
])
def test_invalid_contact_fields_are_rejected(field, value):
    with pytest.raises(PydanticValidationError):
        EmployeeCreate(name="Asha", **{field: value})
    with pytest.raises(PydanticValidationError):
        EmployeeUpdate(**{field: value})


async def test_search_matches_across_columns(session, allocator):
    await _add(session, allocator, name="Asha Rao", department="Engineering")
    await _add(session, allocator, name="Ravi Kumar", designation="Data Analyst")
    await _add(session, allocator, name="Meera", email="meera@acme.io", type="intern")

    assert [e.name for e in await search_employees(session, "asha")] == ["Asha Rao"]
    assert [e.name for e in await search_employees(session, "ANALYST")] == ["Ravi Kumar"]
    assert [e.name for e in await search_employees(session, "acme.io")] == ["Meera"]
    assert [e.name for e in await search_employees(session, "-INT-")] == ["Meera"]


async def test_search_treats_wildcards_literally(session, allocator):
    await _add(session, allocator, name="Asha Rao")
    await _add(session, allocator, name="Ravi_Kumar")

    assert [e.name for e in await search_employees(session, "_")] == ["Ravi_Kumar"]
    assert await search_employees(session, "%") == []


async def test_search_filters_and_sorting(session, allocator):
    await _add(session, allocator, name="Zara", department="Sales")
    await _add(session, allocator, name="Anil", department="Sales", type="intern")
    await _add(session, allocator, name="Mira", department="Support", type="intern")

    interns = await search_employees(session, employee_type=EmployeeType.INTERN, sort_by="name")
    sales = await search_employees(session, department="Sales", sort_by="id")
    newest_first = await search_employees(session)

    assert [e.name for e in interns] == ["Anil", "Mira"]
    assert [e.employee_id[-8:] for e in sales] == ["EMP-0001", "INT-0001"]
    assert [e.name for e in newest_first] == ["Mira", "Anil", "Zara"]


async def test_search_rejects_bad_parameters(session):
    with pytest.raises(ValidationError):
        await search_employees(session, "x" * 101)
    with pytest.raises(ValidationError):
        await search_employees(session, department="d" * 51)
    with pytest.raises(ValidationError):
        await search_employees(session, sort_by="salary")


async def test_departments_are_distinct_and_sorted(session, allocator):
    for department in ("Sales", "Engineering", "Sales", None, "  "):
        await _add(session, allocator, department=department)

    assert await list_departments(session) == ["Engineering", "Sales"]


async def test_summary_counts_by_type_and_status(session, allocator):
    await _add(session, allocator)
    await _add(session, allocator, type="intern")
    suspended = await _add(session, allocator, type="intern")
    suspended.status = EmployeeStatus.SUSPENDED
    await session.commit()

    summary = await employee_summary(session)

    assert summary["period"] == "all_time"
    assert summary["total"] == 3
    assert summary["by_type"] == {"employee": 1, "intern": 2}
    assert summary["by_status"]["active"] == 2
    assert summary["by_status"]["suspended"] == 1
    assert summary["by_type_and_status"]["intern"]["active"] == 1
    assert summary["created_this_month"] == 3


async def test_summary_for_current_month_skips_older_records(session, allocator):
    await _add(session, allocator)
    session.add(Employee(
        name="Old Hire",
        uuid="old-hire",
        employee_id="SWT-20-EMP-0001",
        created_at=utc_now() - timedelta(days=400),
    ))
    await session.commit()

    all_time = await employee_summary(session)
    this_month = await employee_summary(session, current_month=True)

    assert all_time["total"] == 2
    assert this_month["period"] == "current_month"
    assert this_month["total"] == 1
    assert this_month["created_this_month"] == 1


async def test_invalid_email_over_http(client):
    response = await client.post("/employees/", json={"name": "Asha", "email": "asha"})

    assert response.status_code == 422


async def test_invalid_blood_group_on_update_over_http(client):
    created = await client.post("/employees/", json={"name": "Asha", "phone": "+91 98765 43210"})
    assert created.status_code == 201, created.text

    response = await client.patch(f"/employees/{created.json()['id']}", json={"blood_group": "Z"})

    assert response.status_code == 422


async def test_search_departments_and_summary_over_http(client):
    for body in (
        {"name": "Asha", "department": "Engineering"},
        {"name": "Ravi", "department": "Sales", "type": "intern"},
    ):
        assert (await client.post("/employees/", json=body)).status_code == 201

    found = await client.get("/employees/search", params={"q": "rav", "status": "active"})
    departments = await client.get("/employees/departments")
    summary = await client.get("/employees/summary", params={"period": "month"})
    too_long = await client.get("/employees/search", params={"q": "x" * 101})

    assert [item["name"] for item in found.json()] == ["Ravi"]
    assert departments.json() == ["Engineering", "Sales"]
    assert summary.json()["by_type"] == {"employee": 1, "intern": 1}
    assert too_long.status_code == 400
    assert too_long.json()["kind"] == "validation_error"
