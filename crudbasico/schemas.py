# crudbasico/schemas.py

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Optional
from enum import Enum


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Status(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Request bodies accept any JSON value per field; coercion happens in
# crudbasico.normalize so bad optional values fall back to defaults instead
# of failing with 422.
class TaskCreate(BaseModel):
    title: Any = Field(None, description="Task title, required")
    description: Any = Field(None, description="Task description")
    priority: Any = Field(None, description="low, medium or high")
    status: Any = Field(None, description="pending, completed or cancelled")
    dueDate: Any = Field(None, description="Due date, ISO 8601 or epoch milliseconds")


class TaskUpdate(TaskCreate):
    pass


class TaskStatusUpdate(BaseModel):
    status: Any = Field(None, description="New status")


class Task(BaseModel):
    id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: Status = Status.PENDING
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True
        use_enum_values = True


class TaskStats(BaseModel):
    total: int
    completed: int
    pending: int
    cancelled: int


class Health(BaseModel):
    status: str = "OK"
    db: str
    dbName: str


class ErrorResponse(BaseModel):
    error: str
