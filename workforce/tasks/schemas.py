"""Task Pydantic v2 schemas — request / response validation."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from workforce.common.constants import TaskPriority, TaskStatus


class TaskEmployeeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str


class TaskDepartmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class TaskCreate(BaseModel):
    """``department_id`` defaults to the assignee's department."""

    title: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=1)
    assigned_to: uuid.UUID
    deadline: datetime
    department_id: Optional[uuid.UUID] = None
    priority: TaskPriority = TaskPriority.medium
    status: TaskStatus = TaskStatus.pending


class TaskUpdate(BaseModel):
    """Partial update — only provided fields are applied."""

    title: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=1)
    assigned_to: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    deadline: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    title: str
    description: str
    assigned_to: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    deadline: datetime
    status: TaskStatus
    priority: TaskPriority
    completion_date: Optional[datetime] = None
    assignee: Optional[TaskEmployeeBrief] = None
    creator: Optional[TaskEmployeeBrief] = None
    department: Optional[TaskDepartmentBrief] = None
    created_at: datetime
    updated_at: datetime


class TaskStatusCounts(BaseModel):
    """Task counts per status; every status is present."""

    total: int
    counts: dict[TaskStatus, int]
