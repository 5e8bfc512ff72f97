from datetime import datetime

from pydantic import BaseModel, Field


class TaskBase(BaseModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None)


class TaskCreate(TaskBase):
    """Schema for creating a task"""

    pass


class TaskUpdate(BaseModel):
    """Schema for updating a task - all fields optional"""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None


class TaskResponse(TaskBase):
    """Schema for task responses"""

    id: str
    created_at: datetime
    updated_at: datetime | None = None
