from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class WorkflowSchema(BaseModel):
    id: int
    extension: str
    title: str
    description: str = ""
    published: int
    default: bool
    created: str | None = None
    created_by: int
    modified: str | None = None
    modified_by: int


class WorkflowList(BaseModel):
    items: list[WorkflowSchema]
    total: int
    limit: int
    offset: int


class WorkflowPayload(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    published: Literal[1, 0, -2] = 1
    default: bool = False


class WorkflowIds(BaseModel):
    ids: list[int] = Field(min_length=1)


class BatchResult(BaseModel):
    success: bool
    ids: list[int]
    errors: list[str] = []


class StateSchema(BaseModel):
    id: int
    workflow_id: int
    title: str
    description: str = ""
    published: int
    condition: int
    default: bool


class TransitionPayload(BaseModel):
    id: int | None = None
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    published: Literal[1, 0, -2] = 1
    from_state_id: int
    to_state_id: int
