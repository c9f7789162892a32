"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Brief / *ListItem  → compact read representations
"""


import re
import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from workforce.common.constants import MAX_EMPLOYEE_AGE, MIN_EMPLOYEE_AGE, GenderType, UserRole

# E.164: "+", 1-3 digit country code, 6-14 digit subscriber number
_E164 = re.compile(r"^\+\d{1,3}\d{6,14}$")


def _age_on(dob: date, today: date) -> int:
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return years


def _check_date_of_birth(value: Optional[date]) -> Optional[date]:
    if value is None:
        return value
    today = date.today()
    if value > today:
        raise ValueError("Date of birth cannot be in the future")
    age = _age_on(value, today)
    if not MIN_EMPLOYEE_AGE <= age <= MAX_EMPLOYEE_AGE:
        raise ValueError(
            f"Employee must be between {MIN_EMPLOYEE_AGE} and {MAX_EMPLOYEE_AGE} years old"
        )
    return value


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not _E164.match(value):
        raise ValueError("Phone must be in E.164 format, e.g. +14155550123")
    return value


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentBrief(BaseModel):
    """Minimal department info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None


class DepartmentUpdate(BaseModel):
    """Partial update — only provided fields are applied."""

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    # Enriched fields (set by service layer)
    employee_count: int = 0
    manager_name: Optional[str] = None


class DepartmentTransfer(BaseModel):
    """Move an employee into another department."""

    employee_id: uuid.UUID
    to_department_id: uuid.UUID
    from_department_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Employee — write schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating a new employee; the code is generated."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    role: UserRole = UserRole.employee
    department_id: Optional[uuid.UUID] = None

    check_date_of_birth = field_validator("date_of_birth")(_check_date_of_birth)
    check_phone = field_validator("phone")(_check_phone)


class EmployeeUpdate(BaseModel):
    """Partial-update payload for an employee (all fields optional)."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    role: Optional[UserRole] = None
    department_id: Optional[uuid.UUID] = None

    check_date_of_birth = field_validator("date_of_birth")(_check_date_of_birth)
    check_phone = field_validator("phone")(_check_phone)


# ═════════════════════════════════════════════════════════════════════
# Employee — read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeSummary(BaseModel):
    """Minimal employee reference (manager lists, department heads)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    role: UserRole
    department_id: Optional[uuid.UUID] = None


class EmployeeListItem(BaseModel):
    """Compact employee row for paginated list endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    department: Optional[DepartmentBrief] = None


class EmployeeDetail(BaseModel):
    """Full employee profile — returned by GET /employees/{id}."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    role: UserRole
    department_id: Optional[uuid.UUID] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    department: Optional[DepartmentBrief] = None
