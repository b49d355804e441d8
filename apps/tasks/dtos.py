"""DTOs and API schemas for the Tasks app."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional

from ninja import Field, Schema
from pydantic import ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .models import Task


# =============================================================================
# Service-level DTOs
# =============================================================================

@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


@dataclass(frozen=True)
class TaskPage:
    """One page of a caller's tasks plus its pagination metadata."""
    tasks: List[Task] = field(default_factory=list)
    pagination: Optional[Pagination] = None


# =============================================================================
# Request schemas
# =============================================================================

class TaskIn(Schema):
    title: str
    description: Optional[str] = None
    completed: Optional[bool] = None


class TaskPatch(Schema):
    """Partial update: only fields present in the request body change."""
    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None


class TaskListQuery(Schema):
    text: Optional[str] = None
    filter: Optional[Literal["all", "done", "pending"]] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    @field_validator("text", "filter", "page", "limit", mode="before")
    @classmethod
    def blank_means_absent(cls, value, info):
        # "?filter=&page=" arrives as empty strings
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        return value


# =============================================================================
# Response schemas (camelCase on the wire)
# =============================================================================

class CamelSchema(Schema):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskOut(CamelSchema):
    id: int
    title: str
    description: Optional[str] = None
    completed: bool
    user_id: str
    created_at: datetime
    updated_at: datetime


class PaginationOut(CamelSchema):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class TaskResponse(CamelSchema):
    data: Optional[TaskOut] = None


class TasksResponse(CamelSchema):
    data: List[TaskOut]
    pagination: PaginationOut
